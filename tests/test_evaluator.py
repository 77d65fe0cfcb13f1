import pytest

from calcforge.agent import fallbacks
from calcforge.models import CalculatorField, CalculatorKind, CalculatorSpec
from calcforge.utils import evaluator
from calcforge.utils.evaluator import evaluate_calculator, fixed


def test_loan_payment():
    result = evaluate_calculator(fallbacks.LOAN, {"amount": "20000", "rate": "6.5", "term": "5"})
    assert result == "$391.32 per month"


def test_loan_with_zero_rate_asks_to_check_inputs():
    result = evaluate_calculator(fallbacks.LOAN, {"amount": "20000", "rate": "0", "term": "5"})
    assert result == "Please check your input values"


def test_bmi_with_category():
    assert evaluate_calculator(fallbacks.BMI, {"weight": "70", "height": "175"}) == "BMI: 22.9 (Normal)"
    assert evaluate_calculator(fallbacks.BMI, {"weight": "50", "height": "175"}) == "BMI: 16.3 (Underweight)"
    assert evaluate_calculator(fallbacks.BMI, {"weight": "100", "height": "175"}) == "BMI: 32.7 (Obese)"


def test_tip():
    result = evaluate_calculator(fallbacks.TIP, {"bill_amount": "50", "tip_percentage": "18"})
    assert result == "Tip: $9.00, Total: $59.00"


def test_roi():
    result = evaluate_calculator(fallbacks.ROI, {"investment": "10000", "return_value": "12000"})
    assert result == "ROI: 20.00%"


def test_roi_needs_an_investment():
    result = evaluate_calculator(fallbacks.ROI, {"investment": "0", "return_value": "12000"})
    assert result == "Please enter valid investment and return values"


def test_calorie_uses_female_constant_when_gender_given():
    spec = fallbacks.CALORIE.with_changes(fields=fallbacks.CALORIE.fields + (
        CalculatorField("gender", "Gender", type="select", options=("male", "female")),
    ))
    result = evaluate_calculator(spec, {"weight": "70", "height": "175", "age": "30", "gender": "female"})
    assert result == "BMR: 1483 cal/day, TDEE: 1779 cal/day"


def test_mortgage_affordability():
    spec = CalculatorSpec(
        title="Home Budget",
        fields=(
            CalculatorField("income", "Annual Income"),
            CalculatorField("expenses", "Annual Debt"),
            CalculatorField("down_payment", "Down Payment"),
            CalculatorField("rate", "Rate (%)"),
        ),
        kind=CalculatorKind.MORTGAGE,
    )
    result = evaluate_calculator(
        spec, {"income": "120000", "expenses": "20000", "down_payment": "50000", "rate": "0"}
    )
    assert result == "Max affordable home price: $890000"


def test_missing_fields_are_listed_in_field_order():
    result = evaluate_calculator(fallbacks.LOAN, {"amount": "1000", "rate": "   "})
    assert result == "Please fill in: Interest Rate (%), Term (years)"


@pytest.mark.parametrize("bad", ["abc", "12abc", "inf", "nan"])
def test_first_invalid_number_is_reported(bad):
    result = evaluate_calculator(fallbacks.LOAN, {"amount": bad, "rate": "x", "term": "5"})
    assert result == "Invalid number for Loan Amount"


def test_generic_formula_is_evaluated():
    result = evaluate_calculator(fallbacks.TAX, {"amount": "1000", "tax_rate": "15"})
    assert result == "Result: 150.00"


def test_generic_without_formula_sums_numbers():
    spec = fallbacks.SIMPLE.with_changes(formula=None)
    assert evaluate_calculator(spec, {"number1": "10", "number2": "5"}) == "Result: 15.00"


def test_generic_division_by_zero_reports_formula_error():
    result = evaluate_calculator(fallbacks.FUEL, {"distance": "300", "fuel_used": "0"})
    assert result == "Error in formula evaluation"


def test_dispatch_uses_kind_not_title():
    spec = fallbacks.TIP.with_changes(kind=CalculatorKind.GENERIC, formula="bill_amount * 2")
    result = evaluate_calculator(spec, {"bill_amount": "50", "tip_percentage": "18"})
    assert result == "Result: 100.00"


def test_repeated_evaluation_is_stable():
    values = {"weight": "70", "height": "175"}
    assert evaluate_calculator(fallbacks.BMI, values) == evaluate_calculator(fallbacks.BMI, values)


def test_unexpected_errors_become_generic_message(monkeypatch):
    def boom(spec, inputs):
        raise RuntimeError("boom")

    monkeypatch.setitem(evaluator.HANDLERS, CalculatorKind.TIP, boom)
    result = evaluate_calculator(fallbacks.TIP, {"bill_amount": "50", "tip_percentage": "18"})
    assert result == "Error in calculation"


def test_fixed_rounds_half_up():
    assert fixed(0.125, 2) == "0.13"
    assert fixed(2.5, 0) == "3"


def test_calorie_uses_selected_activity_level():
    spec = fallbacks.CALORIE.with_changes(fields=fallbacks.CALORIE.fields + (
        CalculatorField("activity_level", "Activity Level", type="select", options=("1.2", "1.55", "1.9")),
    ))
    result = evaluate_calculator(spec, {"weight": "70", "height": "175", "age": "30", "activity_level": "1.9"})
    assert result == "BMR: 1649 cal/day, TDEE: 3133 cal/day"


def test_calorie_ignores_activity_level_that_is_not_a_number():
    spec = fallbacks.CALORIE.with_changes(fields=fallbacks.CALORIE.fields + (
        CalculatorField("activity_level", "Activity Level", type="text"),
    ))
    result = evaluate_calculator(spec, {"weight": "70", "height": "175", "age": "30", "activity_level": "active"})
    assert result == "BMR: 1649 cal/day, TDEE: 1979 cal/day"


@pytest.mark.parametrize("bad", ["5_0", "0x10", "1__0", "1e", "."])
def test_python_only_number_syntax_is_invalid(bad):
    result = evaluate_calculator(fallbacks.TIP, {"bill_amount": bad, "tip_percentage": "18"})
    assert result == "Invalid number for Bill Amount"


def test_exponent_notation_is_accepted():
    result = evaluate_calculator(fallbacks.TIP, {"bill_amount": "5e1", "tip_percentage": "18"})
    assert result == "Tip: $9.00, Total: $59.00"


def test_very_large_amounts_are_formatted():
    result = evaluate_calculator(fallbacks.TIP, {"bill_amount": "1e27", "tip_percentage": "18"})
    assert result.startswith("Tip: $")
    assert result != "Error in calculation"
    assert fixed(1e27, 2) == f"{int(1e27)}.00"


def test_deeply_nested_formula_reports_formula_error():
    spec = fallbacks.SIMPLE.with_changes(formula="-" * 200000 + "number1")
    result = evaluate_calculator(spec, {"number1": "10", "number2": "5"})
    assert result == "Error in formula evaluation"
