"""
Engine settings resolved from Flask config.

``create_app`` calls ``init_engine(app)``, which parses the JSON-shaped config
records once and stores the result on ``app.extensions["governance_engine"]``.
Services receive an ``EngineSettings`` explicitly; request handlers fetch the
app-wide one with ``get_engine_settings()``.

Usage:
    settings = get_engine_settings()
    assessment = assess_use_case(use_case, settings, settings.collector)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from flask import current_app, has_app_context

from governance_engine.core.exceptions import ConfigurationError
from governance_engine.models.scoring import ScoringWeights
from governance_engine.models.sizing import DEFAULT_TSHIRT_SIZING_CONFIG, TShirtSizingConfig
from governance_engine.models.tom import (
    DEFAULT_TOM_CONFIG,
    TomConfig,
    ensure_tom_config,
    merge_preset_profile,
)
from governance_engine.services.performance import (
    DEFAULT_MAX_SAMPLES,
    MetricsCollector,
    NullMetricsCollector,
    RingBufferMetricsCollector,
)

logger = logging.getLogger(__name__)

EXTENSION_KEY = "governance_engine"

# Use cases active before this instant are never auto-deactivated
GOVERNANCE_ENFORCEMENT_DATE = datetime(2026, 1, 24, tzinfo=timezone.utc)


@dataclass(frozen=True)
class EngineSettings:
    scoring_model: ScoringWeights = field(default_factory=ScoringWeights)
    tshirt_sizing: TShirtSizingConfig = DEFAULT_TSHIRT_SIZING_CONFIG
    tom_config: TomConfig = DEFAULT_TOM_CONFIG
    enforcement_date: datetime = GOVERNANCE_ENFORCEMENT_DATE
    collector: MetricsCollector = field(default_factory=NullMetricsCollector)


def _parse_enforcement_date(value: Any) -> datetime:
    if value is None or value == "":
        return GOVERNANCE_ENFORCEMENT_DATE
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ConfigurationError(
                f"GOVERNANCE_ENFORCEMENT_DATE is not an ISO-8601 date: {value!r}",
                section="governanceEnforcementDate",
            ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _build_collector(app_config: Mapping[str, Any]) -> MetricsCollector:
    if not _as_bool(app_config.get("METRICS_ENABLED"), default=False):
        return NullMetricsCollector()
    try:
        size = int(app_config.get("METRICS_BUFFER_SIZE") or DEFAULT_MAX_SAMPLES)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("METRICS_BUFFER_SIZE must be an integer",
                                 section="metrics") from exc
    if size < 1:
        raise ConfigurationError("METRICS_BUFFER_SIZE must be at least 1", section="metrics")
    return RingBufferMetricsCollector(max_samples=size)


def load_engine_settings(app_config: Mapping[str, Any]) -> EngineSettings:
    """Parse engine config keys; absent keys fall back to the built-in defaults.

    Raises:
        ConfigurationError: a supplied record cannot be interpreted.
    """
    sizing_raw = app_config.get("TSHIRT_SIZING")
    sizing = (
        DEFAULT_TSHIRT_SIZING_CONFIG if sizing_raw in (None, "")
        else TShirtSizingConfig.from_dict(sizing_raw)
    )
    if sizing.skipped_rules:
        logger.warning("T-shirt sizing loaded with %d malformed rule(s) skipped",
                       len(sizing.skipped_rules))
    if not sizing.has_catch_all_rule:
        logger.warning("T-shirt sizing has no catch-all mapping rule; "
                       "unmatched scores fall back to the smallest size")

    return EngineSettings(
        scoring_model=ScoringWeights.from_dict(app_config.get("SCORING_MODEL") or None),
        tshirt_sizing=sizing,
        tom_config=merge_preset_profile(ensure_tom_config(app_config.get("TOM_CONFIG") or None)),
        enforcement_date=_parse_enforcement_date(app_config.get("GOVERNANCE_ENFORCEMENT_DATE")),
        collector=_build_collector(app_config),
    )


def init_engine(app) -> EngineSettings:
    settings = load_engine_settings(app.config)
    app.extensions[EXTENSION_KEY] = settings
    logger.debug(
        "Engine settings loaded: threshold=%.2f sizing_rules=%d tom_enabled=%s",
        settings.scoring_model.quadrant_threshold,
        len(settings.tshirt_sizing.mapping_rules),
        settings.tom_config.enabled,
    )
    return settings


def get_engine_settings() -> EngineSettings:
    """Settings of the current app; defaults outside an app context."""
    if has_app_context():
        settings = current_app.extensions.get(EXTENSION_KEY)
        if settings is not None:
            return settings
    return EngineSettings()
