# FILE: cleanhero-backend/main.py

import logging
from flask import Flask, jsonify
from pydantic import ValidationError

import dependencies
from logging_config import setup_logging
from celery_worker import celery_app
from extensions import limiter
from api.error_utils import create_error_response


def create_app(test_config=None):
    # --- SETUP & CONFIG ---
    setup_logging()

    app = Flask(__name__)
    app.config.update(
        JWT_SECRET_KEY=dependencies.JWT_SECRET_KEY,
        RATELIMIT_STORAGE_URI=dependencies.REDIS_URL,
        MAX_CONTENT_LENGTH=12 * 1024 * 1024,
    )
    if test_config:
        app.config.update(test_config)

    if not app.config.get('JWT_SECRET_KEY'):
        logging.critical("JWT_SECRET_KEY is not set; token issuing will fail.")

    # --- Initialize Extensions ---
    limiter.init_app(app)
    celery_app.conf.update(app.config.get('CELERY', {}))

    # --- Import and Register Blueprints ---
    from api.auth import auth_bp
    from api.collect import collect_bp, health_check as collect_health_check
    from api.landing import landing_bp
    from api.reports import reports_bp
    from api.users import users_bp

    app.register_blueprint(auth_bp, url_prefix='/', strict_slashes=False)
    app.register_blueprint(landing_bp, url_prefix='/', strict_slashes=False)
    app.register_blueprint(collect_bp, url_prefix='/collect')
    app.register_blueprint(reports_bp, url_prefix='/reports')
    app.register_blueprint(users_bp, url_prefix='/users')

    # --- Global Error Handlers ---
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({"error_code": "BAD_REQUEST", "details": e.errors(include_url=False, include_context=False)}), 400

    @app.errorhandler(404)
    def resource_not_found(e):
        """Handles 404 Not Found errors for a clean API response."""
        return create_error_response("NOT_FOUND", "The requested resource was not found.", status_code=404)

    @app.errorhandler(413)
    def payload_too_large(e):
        return jsonify(error_code="MISSING_INPUT", message="Verification image is larger than 10MB."), 413

    @app.errorhandler(500)
    def internal_server_error(e):
        """Handles unexpected 500 Internal Server Errors for a clean API response."""
        logging.critical(f"An unhandled exception occurred: {e}", exc_info=True)
        return jsonify(error_code="INTERNAL_SERVER_ERROR", message="An unexpected error occurred on the server."), 500

    @app.route('/health', methods=['GET'])
    @limiter.exempt
    def health():
        redis_client = dependencies.get_redis_client()
        checks = {
            "taskStore": collect_health_check(),
            "oracle": dependencies.get_oracle().health_check(),
            "redis": {"status": "OK", "details": "Ping successful."} if redis_client
                     else {"status": "ERROR", "details": "Redis client is not configured."},
        }
        healthy = all(c["status"] == "OK" for c in (checks["taskStore"], checks["oracle"]))
        return jsonify({"status": "OK" if healthy else "ERROR", "checks": checks}), 200 if healthy else 503

    return app


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=8080)
