import math

import pytest

from calcforge.errors import FormulaError
from calcforge.utils.expressions import evaluate_formula, formula_variables, pmt


def test_arithmetic_precedence_and_power_alias():
    assert evaluate_formula("2 + 3 * 4") == 14
    assert evaluate_formula("2^3") == 8
    assert evaluate_formula("-(4 - 10) % 4") == 2


def test_variables_are_bound_from_mapping():
    value = evaluate_formula("amount * (tax_rate / 100)", {"amount": 1000.0, "tax_rate": 15.0})
    assert value == pytest.approx(150.0)


def test_math_namespace_and_constants():
    assert evaluate_formula("Math.PI * radius * radius", {"radius": 1.0}) == pytest.approx(math.pi)
    assert evaluate_formula("Math.pow(2, 10)") == 1024
    assert evaluate_formula("round(3.14159, 2)") == pytest.approx(3.14)
    assert evaluate_formula("sqrt(16) + pi - PI") == pytest.approx(4.0)


def test_pmt_matches_amortized_payment():
    value = evaluate_formula(
        "PMT(rate/100/12, term*12, -amount)",
        {"rate": 6.5, "term": 5.0, "amount": 20000.0},
    )
    assert value == pytest.approx(391.32, abs=0.005)


def test_pmt_without_interest_splits_principal_evenly():
    assert pmt(0, 10, -1000) == pytest.approx(100.0)


@pytest.mark.parametrize("formula", [
    "__import__('os').system('echo hi')",
    "radius.__class__",
    "'text'",
    "[1, 2]",
    "lambda: 1",
    "unknown_name + 1",
    "open('x')",
    "2 +",
    "",
])
def test_rejects_anything_outside_the_grammar(formula):
    with pytest.raises(FormulaError):
        evaluate_formula(formula, {"radius": 1.0})


def test_division_by_zero_is_a_formula_error():
    with pytest.raises(FormulaError):
        evaluate_formula("distance / fuel_used", {"distance": 300.0, "fuel_used": 0.0})


def test_huge_powers_fail_fast():
    with pytest.raises(FormulaError):
        evaluate_formula("10 ** 10 ** 10")


def test_formula_variables_skips_functions_and_constants():
    names = formula_variables("PMT(rate/100/12, term*12, -amount) + Math.PI * pi")
    assert sorted(names) == ["amount", "rate", "term"]


@pytest.mark.parametrize("formula", [
    "-" * 200000 + "1",
    "(" * 400 + "1" + ")" * 400,
])
def test_oversized_or_deeply_nested_formulas_are_formula_errors(formula):
    with pytest.raises(FormulaError):
        evaluate_formula(formula)
