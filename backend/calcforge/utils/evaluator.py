"""
Calculator Evaluation
Turns a specification plus user-entered values into a display-ready result.
"""

import logging
import math
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from calcforge.errors import FormulaError
from calcforge.models import CalculatorKind, CalculatorSpec
from calcforge.utils.expressions import evaluate_formula

logger = logging.getLogger(__name__)

ERROR_CALCULATION = "Error in calculation"
ERROR_FORMULA = "Error in formula evaluation"

# 28% front-end debt-to-income cap for housing payments
MAX_HOUSING_RATIO = 0.28
DEFAULT_MORTGAGE_RATE = 3.5
DEFAULT_MORTGAGE_TERM = 30
SEDENTARY_MULTIPLIER = 1.2

# plain decimal or exponent notation, nothing Python-specific like "5_0"
_NUMBER = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def fixed(value: float, places: int) -> str:
    """Format with a fixed number of decimals, rounding halves up."""
    number = Decimal(value)
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, number.adjusted() + places + 2)
        return str(number.quantize(quantum, rounding=ROUND_HALF_UP))


def parse_number(raw: str) -> Optional[float]:
    """Strict numeric parse; None unless the whole text is a finite number."""
    try:
        text = raw.strip()
    except AttributeError:
        return None
    if not _NUMBER.fullmatch(text):
        return None
    value = float(text)
    return value if math.isfinite(value) else None


def _entered(value: Any) -> str:
    return "" if value is None else str(value).strip()


def coerce_inputs(spec: CalculatorSpec, values: Mapping[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Check completeness and coerce values by field type.

    Returns (inputs, message). When ``message`` is set it explains why the
    calculation cannot go ahead and ``inputs`` is empty.
    """
    entered = {f.id: _entered(values.get(f.id)) for f in spec.fields}
    missing = [f.label for f in spec.fields if not entered[f.id]]
    if missing:
        return {}, f"Please fill in: {', '.join(missing)}"

    inputs: Dict[str, Any] = {}
    for f in spec.fields:
        raw = entered[f.id]
        if f.type == "number":
            number = parse_number(raw)
            if number is None:
                return {}, f"Invalid number for {f.label}"
            inputs[f.id] = number
        else:
            inputs[f.id] = raw
    return inputs, None


def _num(inputs: Mapping[str, Any], *names: str, default: float = 0.0) -> float:
    for name in names:
        value = inputs.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            number = parse_number(value)
            if number is not None:
                return number
    return default


def _loan(spec, inputs):
    amount = _num(inputs, "amount")
    rate = _num(inputs, "rate") / 100 / 12
    periods = _num(inputs, "term") * 12
    if not (amount and rate and periods):
        return "Please check your input values"
    growth = (1 + rate) ** periods
    payment = amount * rate * growth / (growth - 1)
    return f"${fixed(payment, 2)} per month"


def bmi_category(bmi: float) -> str:
    if bmi < 18.5:
        return "Underweight"
    if bmi < 25:
        return "Normal"
    if bmi < 30:
        return "Overweight"
    return "Obese"


def _bmi(spec, inputs):
    weight = _num(inputs, "weight")
    height = _num(inputs, "height")
    if not (weight and height):
        return "Please enter valid weight and height"
    bmi = weight / (height / 100) ** 2
    return f"BMI: {fixed(bmi, 1)} ({bmi_category(bmi)})"


def _tip(spec, inputs):
    bill = _num(inputs, "bill_amount")
    tip = bill * _num(inputs, "tip_percentage") / 100
    return f"Tip: ${fixed(tip, 2)}, Total: ${fixed(bill + tip, 2)}"


def _roi(spec, inputs):
    investment = _num(inputs, "investment")
    if not investment:
        return "Please enter valid investment and return values"
    roi = (_num(inputs, "return_value") - investment) / investment * 100
    return f"ROI: {fixed(roi, 2)}%"


def _mortgage(spec, inputs):
    income = _num(inputs, "income")
    expenses = _num(inputs, "expenses", "debt")
    down_payment = _num(inputs, "down_payment")
    rate = _num(inputs, "rate", default=DEFAULT_MORTGAGE_RATE) / 100 / 12
    periods = _num(inputs, "term", default=DEFAULT_MORTGAGE_TERM) * 12
    if not periods:
        return "Please check your input values"

    max_payment = (income - expenses) * MAX_HOUSING_RATIO / 12
    if rate:
        growth = (1 + rate) ** periods
        max_loan = max_payment * (growth - 1) / (rate * growth)
    else:
        max_loan = max_payment * periods
    return f"Max affordable home price: ${fixed(max_loan + down_payment, 0)}"


def _calorie(spec, inputs):
    weight = _num(inputs, "weight")
    height = _num(inputs, "height")
    age = _num(inputs, "age")
    if not (weight and height and age):
        return "Please enter valid weight, height, and age"

    gender = str(inputs.get("gender") or "male").strip().lower()
    offset = -161 if gender == "female" else 5
    # Mifflin-St Jeor
    bmr = 10 * weight + 6.25 * height - 5 * age + offset
    tdee = bmr * _num(inputs, "activity_level", default=SEDENTARY_MULTIPLIER)
    return f"BMR: {fixed(bmr, 0)} cal/day, TDEE: {fixed(tdee, 0)} cal/day"


def _generic(spec, inputs):
    numbers = {k: v for k, v in inputs.items() if isinstance(v, float)}
    if not spec.formula:
        return f"Result: {fixed(sum(numbers.values()), 2)}"
    try:
        value = evaluate_formula(spec.formula, numbers)
    except FormulaError as e:
        logger.info("Formula %r failed: %s", spec.formula, e)
        return ERROR_FORMULA
    if not math.isfinite(value):
        return ERROR_FORMULA
    return f"Result: {fixed(value, 2)}"


HANDLERS: Dict[CalculatorKind, Callable[[CalculatorSpec, Dict[str, Any]], str]] = {
    CalculatorKind.LOAN: _loan,
    CalculatorKind.BMI: _bmi,
    CalculatorKind.TIP: _tip,
    CalculatorKind.ROI: _roi,
    CalculatorKind.MORTGAGE: _mortgage,
    CalculatorKind.CALORIE: _calorie,
    CalculatorKind.GENERIC: _generic,
}


def evaluate_calculator(spec: CalculatorSpec, values: Mapping[str, Any]) -> str:
    """
    Compute the result message for a calculator.

    Never raises: missing or malformed input and evaluation failures all come
    back as short human-readable messages.
    """
    try:
        inputs, message = coerce_inputs(spec, values or {})
        if message:
            return message
        return HANDLERS[spec.kind](spec, inputs)
    except Exception:
        logger.exception("Unexpected error evaluating %r", spec.title)
        return ERROR_CALCULATION
