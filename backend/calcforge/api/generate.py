"""
Calculator Generation API
Turns a natural-language description into a calculator specification.
Set SPEC_PROVIDER=gemini (default) or SPEC_PROVIDER=openai to switch models.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from calcforge.errors import GenerationInProgressError
from calcforge.session import GenerationSession, run_generation

logger = logging.getLogger(__name__)

generate_bp = Blueprint('generate', __name__)

FALLBACK_NOTICE = "Using a sample calculator because the AI model is unavailable."


def _generator():
    return current_app.extensions['spec_generator']


def _sessions():
    return current_app.extensions['sessions']


@generate_bp.route('', methods=['POST'])
def generate():
    """
    Generate a calculator specification from a prompt.

    Request JSON:
    {
        "prompt": "tip calculator"
    }

    Optional header X-Session-Id ties the request to a client session; a
    second request for a session that is still generating gets 409.

    Response JSON:
    {
        "spec": {"title": "Tip Calculator", "kind": "tip", "fields": [...], ...},
        "source": "fallback",
        "notice": "Using a sample calculator ...",
        "error": null
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        prompt = str(data.get('prompt') or '').strip()

        if not prompt:
            return jsonify({"error": "prompt is required"}), 400

        session_id = request.headers.get('X-Session-Id', '').strip()
        if session_id:
            result = run_generation(_sessions().get(session_id), _generator(), prompt)
        else:
            result = _generator().generate(prompt)

        return jsonify({
            "spec": result.spec.to_dict(),
            "source": result.source,
            "notice": FALLBACK_NOTICE if result.used_fallback else None,
            "error": None
        })

    except GenerationInProgressError as e:
        return jsonify({"error": str(e)}), 409
    except Exception as e:
        logger.exception("Generation request failed")
        return jsonify({"error": str(e)}), 500


@generate_bp.route('/session', methods=['GET', 'DELETE'])
def session_state():
    """
    Inspect (GET) or end (DELETE) the caller's generation session.

    An unknown session id reads as a fresh idle session and is not stored.
    """
    session_id = request.headers.get('X-Session-Id', '').strip()
    if not session_id:
        return jsonify({"error": "X-Session-Id header is required"}), 400

    if request.method == 'DELETE':
        _sessions().discard(session_id)
        session = None
    else:
        session = _sessions().find(session_id)
    if session is None:
        session = GenerationSession()

    return jsonify({
        "prompt": session.prompt,
        "state": session.state.value,
        "spec": session.spec.to_dict() if session.spec else None,
        "saved_calculators": [c.id for c in session.saved_calculators],
        "error": None
    })


@generate_bp.route('/status', methods=['GET'])
def status():
    """Check whether the model provider is configured and reachable"""
    generator = _generator()
    info = generator.status()
    available = generator.check_connection() if request.args.get('check') == 'true' else info["has_api_key"]
    return jsonify({
        **info,
        "available": available,
        "error": None if info["has_api_key"] else "No API key configured; sample calculators will be used"
    })
