"""
Formula Expressions
Safe evaluation of calculator formulas over numeric field values.

Formulas are parsed with ``ast`` and walked against a fixed whitelist of
operators, constants and functions; nothing is ever executed.
"""

import ast
import math
from typing import Dict, List, Mapping, Optional

from calcforge.errors import FormulaError


def pmt(rate: float, nper: float, pv: float, fv: float = 0.0, when: float = 0.0) -> float:
    """
    Periodic payment of an annuity (spreadsheet PMT semantics).

    ``pv`` is negative for money received, so ``PMT(r, n, -amount)`` gives a
    positive payment. ``when`` is 0 for end-of-period payments, 1 for
    beginning-of-period.
    """
    if nper == 0:
        raise FormulaError("PMT: number of periods must not be zero")
    if rate == 0:
        return -(pv + fv) / nper
    growth = (1 + rate) ** nper
    return -(rate * (fv + pv * growth)) / ((1 + rate * when) * (growth - 1))


def _round(value: float, digits: float = 0) -> float:
    # literals are floats, round() wants an int digit count
    return round(value, int(digits))


CONSTANTS: Dict[str, float] = {
    'pi': math.pi,
    'e': math.e,
    'PI': math.pi,
    'E': math.e,
}

FUNCTIONS = {
    'PMT': pmt,
    'sqrt': math.sqrt,
    'abs': abs,
    'min': min,
    'max': max,
    'round': _round,
    'pow': math.pow,
    'exp': math.exp,
    'log': math.log,
    'log10': math.log10,
    'floor': math.floor,
    'ceil': math.ceil,
    'sin': math.sin,
    'cos': math.cos,
    'tan': math.tan,
}

# JavaScript-style ``Math.`` prefix, as language models tend to write it
NAMESPACE = 'Math'

MAX_FORMULA_LENGTH = 1000


def _prepare(formula: str) -> ast.Expression:
    s = (formula or '').strip()
    if not s:
        raise FormulaError("Empty formula")
    if len(s) > MAX_FORMULA_LENGTH:
        raise FormulaError(f"Formula is longer than {MAX_FORMULA_LENGTH} characters")
    s = s.replace('^', '**').replace('π', 'pi')
    try:
        return ast.parse(s, mode='eval')
    except SyntaxError as e:
        raise FormulaError(f"Invalid formula syntax: {e.msg}")
    except (ValueError, MemoryError, RecursionError):
        raise FormulaError("Formula is nested too deeply")


def _lookup(name: str, variables: Mapping[str, float]) -> float:
    if name in variables:
        return variables[name]
    if name in CONSTANTS:
        return CONSTANTS[name]
    raise FormulaError(f"Unknown name: {name}")


def _function(node: ast.expr):
    if isinstance(node, ast.Name):
        name = node.id
    elif (isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name)
          and node.value.id == NAMESPACE):
        name = node.attr
    else:
        raise FormulaError("Unsupported function call")
    if name not in FUNCTIONS:
        raise FormulaError(f"Unknown function: {name}")
    return FUNCTIONS[name]


def evaluate_formula(formula: str, variables: Optional[Mapping[str, float]] = None) -> float:
    """
    Evaluate a formula with the given variable bindings.

    Supports numbers, variables, ``+ - * / % **`` (``^`` is read as power),
    unary signs, parentheses, the constants in CONSTANTS and the functions in
    FUNCTIONS, optionally written with a ``Math.`` prefix.

    Raises FormulaError for anything else, including division by zero.
    """
    variables = variables or {}
    tree = _prepare(formula)

    def _eval(n):
        if isinstance(n, ast.Expression):
            return _eval(n.body)
        elif isinstance(n, ast.Constant):
            if isinstance(n.value, bool) or not isinstance(n.value, (int, float)):
                raise FormulaError(f"Unsupported literal: {n.value!r}")
            return float(n.value)
        elif isinstance(n, ast.BinOp):
            left = _eval(n.left)
            right = _eval(n.right)
            if isinstance(n.op, ast.Add):
                return left + right
            elif isinstance(n.op, ast.Sub):
                return left - right
            elif isinstance(n.op, ast.Mult):
                return left * right
            elif isinstance(n.op, ast.Div):
                return left / right
            elif isinstance(n.op, ast.Mod):
                return left % right
            elif isinstance(n.op, ast.Pow):
                return left ** right
            else:
                raise FormulaError(f"Unsupported operator: {type(n.op).__name__}")
        elif isinstance(n, ast.UnaryOp):
            operand = _eval(n.operand)
            if isinstance(n.op, ast.USub):
                return -operand
            elif isinstance(n.op, ast.UAdd):
                return operand
            else:
                raise FormulaError(f"Unsupported unary operator: {type(n.op).__name__}")
        elif isinstance(n, ast.Call):
            if n.keywords:
                raise FormulaError("Keyword arguments are not supported")
            func = _function(n.func)
            args = [_eval(arg) for arg in n.args]
            return func(*args)
        elif isinstance(n, ast.Name):
            return _lookup(n.id, variables)
        elif isinstance(n, ast.Attribute):
            if isinstance(n.value, ast.Name) and n.value.id == NAMESPACE and n.attr in CONSTANTS:
                return CONSTANTS[n.attr]
            raise FormulaError("Attribute access is not supported")
        else:
            raise FormulaError(f"Unsupported syntax: {type(n).__name__}")

    try:
        result = _eval(tree)
    except FormulaError:
        raise
    except (ArithmeticError, TypeError, ValueError) as e:
        raise FormulaError(f"Failed to evaluate formula: {e}")
    except (MemoryError, RecursionError):
        raise FormulaError("Formula is nested too deeply")

    if isinstance(result, complex):
        raise FormulaError("Formula produced a complex number")
    return float(result)


def formula_variables(formula: str) -> List[str]:
    """Names a formula reads as variables, each listed once."""
    tree = _prepare(formula)
    names: List[str] = []
    called = {id(n.func) for n in ast.walk(tree) if isinstance(n, ast.Call)}
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and id(node) not in called:
            if node.id in CONSTANTS or node.id == NAMESPACE or node.id in names:
                continue
            names.append(node.id)
    return names
