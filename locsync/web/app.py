"""Flask application configuration and blueprint registration."""

from __future__ import annotations

from flask import Flask, jsonify

from locsync.exceptions import LocsyncError
from locsync.logger import get_logger

from .routes.worker import worker_bp

logger = get_logger(__name__)


def build_app(worker) -> Flask:
    """Create and configure the Flask application around a worker."""
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data.
    app.json.ensure_ascii = False
    app.extensions["locsync_worker"] = worker

    register_blueprints(app)
    register_default_routes(app)

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(worker_bp, url_prefix="/api/worker")


def register_default_routes(app: Flask) -> None:
    """Register default health route and error handlers."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        worker = app.extensions["locsync_worker"]
        return jsonify({"status": "ok", "worker_running": worker.is_alive})

    @app.errorhandler(LocsyncError)
    def locsync_error(e):
        logger.warning(f"Request failed: {e}")
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception(f"Internal server error: {e}")
        return jsonify({"error": "Internal server error"}), 500
