"""
Scoring configuration: lever weights and the quadrant threshold.

Weights are percentages per lever.  They are not required to sum to 100;
a heavier map simply saturates at the 5.0 ceiling.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Mapping

from governance_engine.core.exceptions import ConfigurationError

DEFAULT_LEVER_WEIGHT = 20.0
DEFAULT_QUADRANT_THRESHOLD = 3.0


class Quadrant(str, Enum):
    QUICK_WIN = "Quick Win"
    STRATEGIC_BET = "Strategic Bet"
    EXPERIMENTAL = "Experimental"
    WATCHLIST = "Watchlist"

    @classmethod
    def parse(cls, value: Any) -> "Quadrant | None":
        """Return the matching quadrant for a stored label, or None."""
        for quadrant in cls:
            if value == quadrant.value or value is quadrant:
                return quadrant
        return None


def _weight(raw: Mapping[str, Any], key: str) -> float:
    value = raw.get(key)
    if value is None:
        return DEFAULT_LEVER_WEIGHT
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Weight for {key!r} must be numeric",
                section="scoringModel",
                details={key: value},
            ) from None
    if value < 0:
        raise ConfigurationError(
            f"Weight for {key!r} must not be negative",
            section="scoringModel",
            details={key: value},
        )
    return float(value)


@dataclass(frozen=True)
class ImpactWeights:
    """Business-value lever weights (percent)."""
    revenue_impact: float = DEFAULT_LEVER_WEIGHT
    cost_savings: float = DEFAULT_LEVER_WEIGHT
    risk_reduction: float = DEFAULT_LEVER_WEIGHT
    broker_partner_experience: float = DEFAULT_LEVER_WEIGHT
    strategic_fit: float = DEFAULT_LEVER_WEIGHT

    _KEYS = {
        "revenue_impact": "revenueImpact",
        "cost_savings": "costSavings",
        "risk_reduction": "riskReduction",
        "broker_partner_experience": "brokerPartnerExperience",
        "strategic_fit": "strategicFit",
    }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "ImpactWeights":
        raw = raw or {}
        return cls(**{attr: _weight(raw, key) for attr, key in cls._KEYS.items()})

    def as_list(self) -> list[float]:
        return [getattr(self, f.name) for f in fields(self)]

    def to_dict(self) -> dict:
        return {key: getattr(self, attr) for attr, key in self._KEYS.items()}


@dataclass(frozen=True)
class EffortWeights:
    """Feasibility lever weights (percent)."""
    data_readiness: float = DEFAULT_LEVER_WEIGHT
    technical_complexity: float = DEFAULT_LEVER_WEIGHT
    change_impact: float = DEFAULT_LEVER_WEIGHT
    model_risk: float = DEFAULT_LEVER_WEIGHT
    adoption_readiness: float = DEFAULT_LEVER_WEIGHT

    _KEYS = {
        "data_readiness": "dataReadiness",
        "technical_complexity": "technicalComplexity",
        "change_impact": "changeImpact",
        "model_risk": "modelRisk",
        "adoption_readiness": "adoptionReadiness",
    }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "EffortWeights":
        raw = raw or {}
        return cls(**{attr: _weight(raw, key) for attr, key in cls._KEYS.items()})

    def as_list(self) -> list[float]:
        return [getattr(self, f.name) for f in fields(self)]

    def to_dict(self) -> dict:
        return {key: getattr(self, attr) for attr, key in self._KEYS.items()}


@dataclass(frozen=True)
class ScoringWeights:
    """Per-organisation scoring model (``metadata.scoringModel``)."""
    business_value: ImpactWeights = field(default_factory=ImpactWeights)
    feasibility: EffortWeights = field(default_factory=EffortWeights)
    quadrant_threshold: float = DEFAULT_QUADRANT_THRESHOLD

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | str | None) -> "ScoringWeights":
        """Parse ``{"businessValue", "feasibility", "quadrantThreshold"}``.

        Accepts a JSON string as stored by the metadata table.  Missing
        sections or keys fall back to equal 20% weighting and threshold 3.0.
        """
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise ConfigurationError(
                    f"Scoring model is not valid JSON: {exc}", section="scoringModel",
                ) from exc
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise ConfigurationError("Scoring model must be an object", section="scoringModel")

        threshold = raw.get("quadrantThreshold")
        if not threshold:
            threshold = DEFAULT_QUADRANT_THRESHOLD
        try:
            threshold = float(threshold)
        except (TypeError, ValueError):
            raise ConfigurationError(
                "quadrantThreshold must be numeric",
                section="scoringModel",
                details={"quadrantThreshold": threshold},
            ) from None

        return cls(
            business_value=ImpactWeights.from_dict(raw.get("businessValue")),
            feasibility=EffortWeights.from_dict(raw.get("feasibility")),
            quadrant_threshold=threshold,
        )

    def to_dict(self) -> dict:
        return {
            "businessValue": self.business_value.to_dict(),
            "feasibility": self.feasibility.to_dict(),
            "quadrantThreshold": self.quadrant_threshold,
        }
