"""
Saved Calculators API
Save, load, edit, delete, like and fork calculators.

The caller's identity arrives in the X-User-Id header (optionally with
X-User-Name); authenticating it is the job of whatever sits in front of
this service.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from calcforge.errors import AuthenticationError, RepositoryError, SpecValidationError
from calcforge.models import AuthorProfile, CalculatorSpec
from calcforge.utils.evaluator import evaluate_calculator

logger = logging.getLogger(__name__)

calculators_bp = Blueprint('calculators', __name__)

MAX_TAGS = 5


def _repository():
    return current_app.extensions['calculator_repository']


def _user_id():
    return request.headers.get('X-User-Id', '').strip() or None


def _session_id():
    return request.headers.get('X-Session-Id', '').strip()


def _profile():
    user_id = _user_id()
    if not user_id:
        raise AuthenticationError("User not authenticated")
    return AuthorProfile(
        id=user_id,
        username=request.headers.get('X-User-Name', '').strip() or user_id,
    )


def _clean_tags(tags):
    if not isinstance(tags, list):
        return []
    cleaned = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned[:MAX_TAGS]


def _editable(data):
    """Pick and normalize the editable keys present in a request body."""
    changes = {}
    if 'title' in data:
        title = str(data.get('title') or '').strip()
        if not title:
            raise SpecValidationError("Title is required")
        changes['title'] = title
    if 'spec' in data:
        changes['spec'] = CalculatorSpec.from_dict(data['spec'])
    for key in ('description', 'category'):
        if key in data:
            value = data[key]
            changes[key] = (str(value).strip() or None) if value is not None else None
    if 'prompt' in data:
        changes['prompt'] = str(data.get('prompt') or '')
    for key in ('is_public', 'is_template'):
        if key in data:
            changes[key] = bool(data[key])
    if 'tags' in data:
        changes['tags'] = _clean_tags(data['tags'])
    return changes


@calculators_bp.errorhandler(RepositoryError)
def repository_error(error):
    return jsonify({"error": str(error)}), error.status_code


@calculators_bp.errorhandler(SpecValidationError)
def spec_error(error):
    return jsonify({"error": f"Invalid calculator specification: {error}"}), 400


@calculators_bp.route('', methods=['POST'])
def create():
    """
    Save a generated calculator.

    Request JSON:
    {
        "title": "My Tip Calculator",
        "prompt": "tip calculator",
        "spec": {...},
        "description": "...", "is_public": true, "is_template": false,
        "category": "Finance", "tags": ["dining"]
    }
    """
    profile = _profile()
    data = request.get_json(silent=True) or {}
    if 'spec' not in data:
        return jsonify({"error": "spec is required"}), 400

    calculator = _repository().create_calculator(profile, _editable(data))

    session_id = _session_id()
    if session_id:
        current_app.extensions['sessions'].get(session_id).remember(calculator)

    return jsonify({"calculator": calculator.to_dict(), "error": None}), 201


@calculators_bp.route('/<calculator_id>', methods=['GET'])
def get(calculator_id):
    """Load a calculator; every load counts as a view."""
    calculator = _repository().get_calculator(calculator_id, _user_id())
    return jsonify({"calculator": calculator.to_dict(), "error": None})


@calculators_bp.route('/<calculator_id>', methods=['PUT', 'PATCH'])
def update(calculator_id):
    user_id = _profile().id
    changes = _editable(request.get_json(silent=True) or {})
    calculator = _repository().update_calculator(user_id, calculator_id, changes)
    return jsonify({"calculator": calculator.to_dict(), "error": None})


@calculators_bp.route('/<calculator_id>', methods=['DELETE'])
def delete(calculator_id):
    _repository().delete_calculator(_profile().id, calculator_id)

    session = current_app.extensions['sessions'].find(_session_id())
    if session is not None:
        session.forget(calculator_id)
    return jsonify({"deleted": calculator_id, "error": None})


@calculators_bp.route('/<calculator_id>/like', methods=['POST'])
def like(calculator_id):
    _repository().like_calculator(_profile().id, calculator_id)
    return jsonify({"liked": True, "error": None})


@calculators_bp.route('/<calculator_id>/like', methods=['DELETE'])
def unlike(calculator_id):
    _repository().unlike_calculator(_profile().id, calculator_id)
    return jsonify({"liked": False, "error": None})


@calculators_bp.route('/<calculator_id>/fork', methods=['POST'])
def fork(calculator_id):
    forked = _repository().fork_calculator(_profile(), calculator_id)
    return jsonify({"calculator": forked.to_dict(), "error": None}), 201


@calculators_bp.route('/<calculator_id>/evaluate', methods=['POST'])
def evaluate(calculator_id):
    """
    Run a saved calculator.

    Request JSON:
    {
        "values": {"amount": "20000", "rate": "6.5", "term": "5"}
    }
    """
    data = request.get_json(silent=True) or {}
    values = data.get('values') or {}
    if not isinstance(values, dict):
        return jsonify({"error": "values must be an object"}), 400

    calculator = _repository().get_calculator(calculator_id, _user_id(), count_view=False)
    return jsonify({
        "result": evaluate_calculator(calculator.spec, values),
        "error": None
    })
