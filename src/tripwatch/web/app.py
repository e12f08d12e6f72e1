"""
Flask application factory for the TripWatch status API.

Exposes the engine's latest location, cached trips and polling state as
JSON, and lets a desktop host drive lifecycle events and manual refreshes.
"""

import logging

from flask import Flask

from ..core.config import Config
from ..core.engine import TelemetryEngine

logger = logging.getLogger(__name__)


def create_app(config: Config | None = None, engine: TelemetryEngine | None = None) -> Flask:
    """
    Application factory for Flask app.

    Args:
        config: TripWatch configuration, or None to load defaults
        engine: Running engine, or None to build one from the configuration

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    if config is None:
        config = Config()
    if engine is None:
        engine = TelemetryEngine(config)

    app.config["TRIPWATCH_CONFIG"] = config
    app.config["engine"] = engine

    from .routes import api

    app.register_blueprint(api.bp, url_prefix="/api")

    @app.route("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {"status": "ok", "version": config.get("app.version", "0.1.0")}

    logger.info("Flask app created")
    return app
