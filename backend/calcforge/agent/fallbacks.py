"""
Fallback Calculators
Network-free specifications picked by keyword when the model is unavailable.
"""

from typing import Callable, Tuple, Union

from calcforge.models import CalculatorField as F
from calcforge.models import CalculatorKind, CalculatorSpec


TAX = CalculatorSpec(
    title="Tax Calculator",
    fields=(
        F("amount", "Amount", placeholder="1000"),
        F("tax_rate", "Tax Rate (%)", placeholder="15"),
    ),
    formula="amount * (tax_rate / 100)",
    cta="Calculate Tax",
)

PERCENTAGE = CalculatorSpec(
    title="Percentage Calculator",
    fields=(
        F("value", "Value", placeholder="250"),
        F("percentage", "Percentage (%)", placeholder="20"),
    ),
    formula="value * (percentage / 100)",
    cta="Calculate Percentage",
)

DISCOUNT = CalculatorSpec(
    title="Discount Calculator",
    fields=(
        F("original_price", "Original Price", placeholder="100"),
        F("discount_rate", "Discount (%)", placeholder="25"),
    ),
    formula="original_price - (original_price * (discount_rate / 100))",
    cta="Calculate Final Price",
)

LOAN = CalculatorSpec(
    title="Loan Payment Calculator",
    fields=(
        F("amount", "Loan Amount", placeholder="20000"),
        F("rate", "Interest Rate (%)", placeholder="6.5"),
        F("term", "Term (years)", placeholder="5"),
    ),
    formula="PMT(rate/100/12, term*12, -amount)",
    cta="Calculate Payment",
    kind=CalculatorKind.LOAN,
)

BMI = CalculatorSpec(
    title="BMI Calculator",
    fields=(
        F("weight", "Weight (kg)", placeholder="70"),
        F("height", "Height (cm)", placeholder="175"),
    ),
    formula="weight / ((height/100) * (height/100))",
    cta="Calculate BMI",
    kind=CalculatorKind.BMI,
)

TIP = CalculatorSpec(
    title="Tip Calculator",
    fields=(
        F("bill_amount", "Bill Amount", placeholder="50.00"),
        F("tip_percentage", "Tip Percentage", placeholder="18"),
    ),
    formula="bill_amount * (tip_percentage / 100)",
    cta="Calculate Tip",
    kind=CalculatorKind.TIP,
)

ROI = CalculatorSpec(
    title="ROI Calculator",
    fields=(
        F("investment", "Initial Investment", placeholder="10000"),
        F("return_value", "Final Value", placeholder="12000"),
    ),
    formula="((return_value - investment) / investment) * 100",
    cta="Calculate ROI",
    kind=CalculatorKind.ROI,
)

CALORIE = CalculatorSpec(
    title="Calorie Calculator",
    fields=(
        F("weight", "Weight (kg)", placeholder="70"),
        F("height", "Height (cm)", placeholder="175"),
        F("age", "Age", placeholder="30"),
    ),
    formula="10 * weight + 6.25 * height - 5 * age + 5",
    cta="Calculate Calories",
    kind=CalculatorKind.CALORIE,
)

INTEREST = CalculatorSpec(
    title="Interest Calculator",
    fields=(
        F("principal", "Principal Amount", placeholder="5000"),
        F("rate", "Interest Rate (%)", placeholder="8"),
        F("time", "Time (years)", placeholder="3"),
    ),
    formula="principal * (1 + (rate/100)) ** time",
    cta="Calculate Interest",
)

CIRCLE_AREA = CalculatorSpec(
    title="Circle Area Calculator",
    fields=(F("radius", "Radius", placeholder="5"),),
    formula="pi * radius * radius",
    cta="Calculate Area",
)

RECTANGLE_AREA = CalculatorSpec(
    title="Rectangle Area Calculator",
    fields=(
        F("length", "Length", placeholder="10"),
        F("width", "Width", placeholder="8"),
    ),
    formula="length * width",
    cta="Calculate Area",
)

GRADE = CalculatorSpec(
    title="Grade Calculator",
    fields=(
        F("total_points", "Total Points Earned", placeholder="85"),
        F("max_points", "Maximum Points", placeholder="100"),
    ),
    formula="(total_points / max_points) * 100",
    cta="Calculate Grade",
)

CURRENCY = CalculatorSpec(
    title="Currency Converter",
    fields=(
        F("amount", "Amount", placeholder="100"),
        F("rate", "Exchange Rate", placeholder="1.2"),
    ),
    formula="amount * rate",
    cta="Convert Currency",
)

FUEL = CalculatorSpec(
    title="Fuel Efficiency Calculator",
    fields=(
        F("distance", "Distance (miles)", placeholder="300"),
        F("fuel_used", "Fuel Used (gallons)", placeholder="12"),
    ),
    formula="distance / fuel_used",
    cta="Calculate MPG",
)

SIMPLE = CalculatorSpec(
    title="Simple Calculator",
    fields=(
        F("number1", "First Number", placeholder="10"),
        F("number2", "Second Number", placeholder="5"),
    ),
    formula="number1 + number2",
    cta="Calculate Sum",
)


def _area(prompt: str) -> CalculatorSpec:
    return CIRCLE_AREA if "circle" in prompt else RECTANGLE_AREA


# A family maps to a spec, or to a function choosing one from the lowered prompt.
Choice = Union[CalculatorSpec, Callable[[str], CalculatorSpec]]

# Checked in order; the first family with a keyword in the prompt wins.
FAMILIES: Tuple[Tuple[Tuple[str, ...], Choice], ...] = (
    (("tax", "vat", "gst"), TAX),
    (("percentage", "percent", "%"), PERCENTAGE),
    (("discount", "sale"), DISCOUNT),
    (("loan", "payment", "mortgage"), LOAN),
    (("bmi", "body mass"), BMI),
    (("tip",), TIP),
    (("roi", "return", "investment"), ROI),
    (("calorie", "bmr"), CALORIE),
    (("interest", "compound"), INTEREST),
    (("area", "rectangle", "circle"), _area),
    (("grade", "gpa"), GRADE),
    (("currency", "exchange"), CURRENCY),
    (("fuel", "mpg", "mileage"), FUEL),
)


def fallback_spec(prompt: str) -> CalculatorSpec:
    """Pick the static specification for the first keyword family in ``prompt``."""
    lowered = (prompt or "").lower()
    for keywords, choice in FAMILIES:
        if not any(k in lowered for k in keywords):
            continue
        if isinstance(choice, CalculatorSpec):
            return choice
        return choice(lowered)
    return SIMPLE
