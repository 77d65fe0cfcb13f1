"""
Calculator Evaluation API
Computes results for a specification and user-entered values
"""

import logging
import math

from flask import Blueprint, request, jsonify

from calcforge.errors import FormulaError, SpecValidationError
from calcforge.models import CalculatorSpec
from calcforge.utils.evaluator import evaluate_calculator
from calcforge.utils.expressions import evaluate_formula, formula_variables

logger = logging.getLogger(__name__)

evaluate_bp = Blueprint('evaluate', __name__)


@evaluate_bp.route('', methods=['POST'])
def evaluate():
    """
    Evaluate a calculator.

    Request JSON:
    {
        "spec": {"title": "Tip Calculator", "kind": "tip", "fields": [...]},
        "values": {"bill_amount": "50", "tip_percentage": "18"}
    }

    Response JSON:
    {
        "result": "Tip: $9.00, Total: $59.00",
        "error": null
    }

    Input problems (missing fields, bad numbers) are reported in "result",
    the same place a successful result would be shown.
    """
    try:
        data = request.get_json(silent=True) or {}
        values = data.get('values') or {}

        if not isinstance(values, dict):
            return jsonify({"error": "values must be an object"}), 400

        try:
            spec = CalculatorSpec.from_dict(data.get('spec'))
        except SpecValidationError as e:
            logger.info("Rejected specification: %s", e)
            return jsonify({"error": "Invalid calculator specification"}), 400

        return jsonify({
            "result": evaluate_calculator(spec, values),
            "error": None
        })

    except Exception as e:
        logger.exception("Evaluation request failed")
        return jsonify({"error": str(e)}), 500


@evaluate_bp.route('/formula', methods=['POST'])
def evaluate_expression():
    """
    Evaluate a bare formula.

    Request JSON:
    {
        "formula": "PMT(rate/100/12, term*12, -amount)",
        "variables": {"rate": 6.5, "term": 5, "amount": 20000}
    }

    Response JSON:
    {
        "value": 391.32,
        "variables": ["rate", "term", "amount"],
        "error": null
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        formula = data.get('formula', '')
        variables = data.get('variables') or {}

        if not formula:
            return jsonify({"error": "formula is required"}), 400

        try:
            bindings = {str(k): float(v) for k, v in variables.items()}
        except (TypeError, ValueError, AttributeError):
            return jsonify({"error": "variables must map names to numbers"}), 400

        try:
            value = evaluate_formula(formula, bindings)
            names = formula_variables(formula)
        except FormulaError as e:
            return jsonify({"error": str(e)}), 400

        if not math.isfinite(value):
            return jsonify({"error": "Formula result is not a finite number"}), 400

        return jsonify({
            "value": value,
            "variables": names,
            "error": None
        })

    except Exception as e:
        logger.exception("Formula request failed")
        return jsonify({"error": str(e)}), 500
