"""
Use case snapshot consumed by the scoring and governance engine.

The persistence layer owns the record; the engine only ever receives an
immutable snapshot for the duration of one call.  ``UseCase.from_dict`` is the
boundary adapter for JSON-shaped records (camelCase keys, string-encoded
booleans) coming from storage or the API.

Usage:
    from governance_engine.models.use_case import UseCase

    uc = UseCase.from_dict(record)
    merged = uc.merged({"businessFunction": ""})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Lever & field catalogues
# ═════════════════════════════════════════════════════════════════════════════

# Business-value levers, in weighting order (Impact score)
BUSINESS_VALUE_LEVERS: tuple[str, ...] = (
    "revenue_impact",
    "cost_savings",
    "risk_reduction",
    "broker_partner_experience",
    "strategic_fit",
)

# Feasibility levers, in weighting order (Effort score)
FEASIBILITY_LEVERS: tuple[str, ...] = (
    "data_readiness",
    "technical_complexity",
    "change_impact",
    "model_risk",
    "adoption_readiness",
)

ALL_LEVERS: tuple[str, ...] = BUSINESS_VALUE_LEVERS + FEASIBILITY_LEVERS

LEVER_LABELS: dict[str, str] = {
    "revenue_impact": "Revenue Impact",
    "cost_savings": "Cost Savings",
    "risk_reduction": "Risk Reduction",
    "broker_partner_experience": "Broker/Partner Experience",
    "strategic_fit": "Strategic Fit",
    "data_readiness": "Data Readiness",
    "technical_complexity": "Technical Complexity",
    "change_impact": "Change Impact",
    "model_risk": "Model Risk",
    "adoption_readiness": "Adoption Readiness",
}

# Responsible AI yes/no questions (tri-state on the snapshot)
RAI_BOOLEAN_FIELDS: tuple[str, ...] = (
    "explainability_required",
    "human_accountability",
    "data_outside_uk_eu",
    "third_party_model",
)

LEVER_MIN = 1
LEVER_MAX = 5


class TriState(str, Enum):
    """Answer to a yes/no question that may not have been asked yet."""
    UNSET = "unset"
    TRUE = "true"
    FALSE = "false"

    @property
    def is_set(self) -> bool:
        return self is not TriState.UNSET

    def to_wire(self) -> str | None:
        """Storage representation: ``"true"`` / ``"false"`` / ``None``."""
        return None if self is TriState.UNSET else self.value


def parse_tri_state(value: Any) -> TriState:
    """Accept the literal strings ``"true"``/``"false"`` or native booleans.

    Anything else (None, "", "yes", "undefined") is UNSET.
    """
    if isinstance(value, TriState):
        return value
    if value is True or value == "true":
        return TriState.TRUE
    if value is False or value == "false":
        return TriState.FALSE
    return TriState.UNSET


def _parse_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else number
    return None


def _parse_text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _parse_flag(value: Any) -> str | None:
    # legacyActivationFlag is a string column; normalise booleans into it
    if value is True:
        return "true"
    if value is False:
        return "false"
    return _parse_text(value)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring unparseable createdAt value %r", value)
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_kpis(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value if v)


# ═════════════════════════════════════════════════════════════════════════════
# UseCase snapshot
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class UseCase:
    """Read-only view of a use case record."""
    id: str | None = None
    title: str | None = None
    description: str | None = None

    # Lifecycle
    use_case_status: str | None = None
    deployment_status: str | None = None
    tom_phase_override: str | None = None
    created_at: datetime | None = None
    legacy_activation_flag: str | None = None

    # Operating model
    primary_business_owner: str | None = None
    business_function: str | None = None

    # Business-value levers (1-5)
    revenue_impact: float | None = None
    cost_savings: float | None = None
    risk_reduction: float | None = None
    broker_partner_experience: float | None = None
    strategic_fit: float | None = None

    # Feasibility levers (1-5)
    data_readiness: float | None = None
    technical_complexity: float | None = None
    change_impact: float | None = None
    model_risk: float | None = None
    adoption_readiness: float | None = None

    # Responsible AI
    explainability_required: TriState = TriState.UNSET
    human_accountability: TriState = TriState.UNSET
    data_outside_uk_eu: TriState = TriState.UNSET
    third_party_model: TriState = TriState.UNSET
    customer_harm_risk: str | None = None
    rai_questionnaire_complete: str | None = None

    # Manual scoring overrides
    manual_impact_score: float | None = None
    manual_effort_score: float | None = None
    manual_quadrant: str | None = None
    override_reason: str | None = None

    # Phase readiness signals
    investment_cost_gbp: float | None = None
    selected_kpis: tuple[str, ...] = field(default_factory=tuple)
    target_independence: float | None = None
    current_independence: float | None = None

    # Record keys the engine has no attribute for (custom TOM checklist fields)
    extra: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    # ── Adapters ─────────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "UseCase":
        """Build a snapshot from a JSON-shaped record.

        Accepts camelCase storage keys and snake_case attribute names.  Nested
        ``valueRealization.selectedKpis`` and
        ``capabilityTransition.{independencePercentage, selfSufficiencyTarget}``
        are flattened.  Unknown keys are kept verbatim in ``extra``.
        """
        data = dict(data or {})
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}

        for key, value in data.items():
            attr = _ALIASES.get(key, key)
            if attr in _FIELD_PARSERS:
                kwargs[attr] = _FIELD_PARSERS[attr](value)
            elif key not in _NESTED_FIELDS:
                extra[key] = value
        if extra:
            kwargs["extra"] = extra

        value_realization = data.get("valueRealization") or {}
        if isinstance(value_realization, Mapping) and "selected_kpis" not in kwargs:
            kwargs["selected_kpis"] = _parse_kpis(value_realization.get("selectedKpis"))

        capability = data.get("capabilityTransition") or {}
        if isinstance(capability, Mapping):
            if "current_independence" not in kwargs:
                kwargs["current_independence"] = _parse_number(
                    capability.get("independencePercentage"))
            target = (capability.get("selfSufficiencyTarget") or {})
            if isinstance(target, Mapping) and "target_independence" not in kwargs:
                kwargs["target_independence"] = _parse_number(
                    target.get("targetIndependence"))

        return cls(**kwargs)

    @classmethod
    def coerce(cls, value: "UseCase | Mapping[str, Any] | None") -> "UseCase":
        """Return ``value`` unchanged if it is already a snapshot."""
        if isinstance(value, UseCase):
            return value
        return cls.from_dict(value)

    def to_dict(self) -> dict:
        """Storage-shaped (camelCase) representation."""
        out: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if isinstance(value, TriState):
                value = value.to_wire()
            elif isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, tuple):
                value = list(value)
            out[_CAMEL_NAMES[f.name]] = value
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out

    def merged(self, updates: Mapping[str, Any] | None) -> "UseCase":
        """Shallow-merge proposed field updates onto a copy of this snapshot."""
        if not updates:
            return self
        patch = UseCase.from_dict(updates)
        changed: dict[str, Any] = {}
        for key in updates:
            for attr in _NESTED_FIELDS.get(key, (_ALIASES.get(key, key),)):
                if attr in _FIELD_PARSERS:
                    changed[attr] = getattr(patch, attr)
        if patch.extra:
            changed["extra"] = {**self.extra, **patch.extra}
        return replace(self, **changed)

    # ── Convenience ──────────────────────────────────────────────────────

    def has_field(self, key: str) -> bool:
        """True if ``key`` names an attribute or a key carried in ``extra``."""
        return _ALIASES.get(key, key) in _FIELD_PARSERS or key in self.extra

    def field_value(self, key: str) -> Any:
        """Value of a record field by storage key or attribute name."""
        attr = _ALIASES.get(key, key)
        if attr in _FIELD_PARSERS:
            return getattr(self, attr)
        return self.extra.get(key)

    def lever(self, name: str) -> float | None:
        return getattr(self, name)

    def business_value_levers(self) -> list[float | None]:
        return [getattr(self, name) for name in BUSINESS_VALUE_LEVERS]

    def feasibility_levers(self) -> list[float | None]:
        return [getattr(self, name) for name in FEASIBILITY_LEVERS]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


_CAMEL_NAMES: dict[str, str] = {f.name: _camel(f.name) for f in fields(UseCase)}

_ALIASES: dict[str, str] = {camel: attr for attr, camel in _CAMEL_NAMES.items()}

_NESTED_FIELDS: dict[str, tuple[str, ...]] = {
    "valueRealization": ("selected_kpis",),
    "capabilityTransition": ("current_independence", "target_independence"),
}

_NUMBER_FIELDS = set(ALL_LEVERS) | {
    "manual_impact_score",
    "manual_effort_score",
    "investment_cost_gbp",
    "target_independence",
    "current_independence",
}

_FIELD_PARSERS: dict[str, Any] = {}
for _f in fields(UseCase):
    if _f.name == "extra":
        continue
    if _f.name in _NUMBER_FIELDS:
        _FIELD_PARSERS[_f.name] = _parse_number
    elif _f.name in RAI_BOOLEAN_FIELDS:
        _FIELD_PARSERS[_f.name] = parse_tri_state
    elif _f.name == "created_at":
        _FIELD_PARSERS[_f.name] = _parse_datetime
    elif _f.name == "legacy_activation_flag":
        _FIELD_PARSERS[_f.name] = _parse_flag
    elif _f.name == "selected_kpis":
        _FIELD_PARSERS[_f.name] = _parse_kpis
    else:
        _FIELD_PARSERS[_f.name] = _parse_text
