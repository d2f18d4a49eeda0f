"""
Use Case Governance Engine
Flask Application Factory.

Usage:
    from governance_engine import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config

The app carries no routes: it hosts configuration, logging and the resolved
``EngineSettings`` for whatever API layer embeds the engine.
"""

import logging
import os

from flask import Flask

from governance_engine.config import config
from governance_engine.core.exceptions import ConfigurationError, ValidationError
from governance_engine.middleware.logging_config import configure_logging
from governance_engine.settings import init_engine
from governance_engine.utils.errors import E, api_error

logger = logging.getLogger(__name__)

__version__ = "1.0.0"


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.

    Raises:
        ConfigurationError: an engine config record cannot be interpreted.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Engine settings (weights, sizing, TOM, metrics) ──────────────────
    init_engine(app)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(ConfigurationError)
    def configuration_error(e):
        logger.error("Engine configuration error (%s): %s", e.section or "unknown", e)
        return api_error(E.CONFIGURATION, str(e), details=e.details or None)

    @app.errorhandler(ValidationError)
    def validation_error(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details or None)

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    return app
