"""
Use Case Governance Engine
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])

Engine records (scoring model, T-shirt sizing, TOM) are JSON strings taken
from the environment; unset keys fall back to the built-in defaults.
"""

import json
import os

from governance_engine.core.exceptions import ConfigurationError


class Config:
    """Base configuration shared across all environments."""

    DEBUG = False
    TESTING = False

    # Engine records (JSON)
    SCORING_MODEL = os.getenv("SCORING_MODEL_JSON")
    TSHIRT_SIZING = os.getenv("TSHIRT_SIZING_JSON")
    TOM_CONFIG = os.getenv("TOM_CONFIG_JSON")

    # Use cases active before this date are exempt from auto-deactivation
    GOVERNANCE_ENFORCEMENT_DATE = os.getenv("GOVERNANCE_ENFORCEMENT_DATE", "2026-01-24T00:00:00Z")

    # Calculation timing
    METRICS_ENABLED = os.getenv("METRICS_ENABLED", "true").lower() == "true"
    METRICS_BUFFER_SIZE = int(os.getenv("METRICS_BUFFER_SIZE", "100"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    # Tests build their own records; never pick up the shell's env
    SCORING_MODEL = None
    TSHIRT_SIZING = None
    TOM_CONFIG = None
    GOVERNANCE_ENFORCEMENT_DATE = "2026-01-24T00:00:00Z"
    METRICS_ENABLED = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False

    def __init__(self):
        for key in ("SCORING_MODEL", "TSHIRT_SIZING", "TOM_CONFIG"):
            raw = getattr(self, key)
            if not raw:
                continue
            try:
                json.loads(raw)
            except ValueError as exc:
                raise ConfigurationError(f"{key}_JSON environment variable is not valid JSON",
                                         section=key) from exc


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
