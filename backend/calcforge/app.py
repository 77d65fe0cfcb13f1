"""
Calcforge - Flask Backend
Main application entry point
"""

import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS

from calcforge.agent.spec_agent import SpecGenerator
from calcforge.config import Settings
from calcforge.session import SessionRegistry
from calcforge.storage.repository import CalculatorRepository
from calcforge.utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def create_app(settings=None, generator=None, repository=None):
    """Create and configure the Flask application"""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config['CALCFORGE_SETTINGS'] = settings

    # CORS configuration - allow frontend to communicate with backend
    CORS(app, resources={
        r"/api/*": {
            "origins": settings.cors_origins,
            "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "X-User-Id", "X-User-Name", "X-Session-Id"]
        }
    })

    app.extensions['spec_generator'] = generator or SpecGenerator(settings)
    app.extensions['calculator_repository'] = (
        repository or CalculatorRepository(settings.database_path).init_db()
    )
    app.extensions['sessions'] = SessionRegistry()

    # Register API blueprints
    from calcforge.api.generate import generate_bp
    from calcforge.api.evaluate import evaluate_bp
    from calcforge.api.calculators import calculators_bp

    app.register_blueprint(generate_bp, url_prefix='/api/generate')
    app.register_blueprint(evaluate_bp, url_prefix='/api/evaluate')
    app.register_blueprint(calculators_bp, url_prefix='/api/calculators')

    # Health check endpoint
    @app.route('/api/health')
    def health():
        return jsonify({"status": "healthy"})

    # Error handlers
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({"error": "Internal server error"}), 500

    logger.info("Calcforge started (provider: %s, api key: %s)",
                settings.provider, "set" if settings.api_key else "missing")
    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=True)
