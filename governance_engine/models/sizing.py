"""
T-shirt sizing configuration (``metadata.tShirtSizing``).

Sizes are listed smallest first; ``sizes[0]`` is the fallback when no mapping
rule matches.  Mapping rules are evaluated by descending priority, and the
default table ends with a condition-less catch-all so every (impact, effort)
pair resolves to a size.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from governance_engine.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

WORKING_DAYS_PER_WEEK = 5
DEFAULT_OVERHEAD_MULTIPLIER = 1.35
DEFAULT_BENEFIT_RANGE_PCT = 20.0

# Annual benefit per impact point, in £K
DEFAULT_BENEFIT_MULTIPLIERS: dict[str, float] = {
    "XS": 25,
    "S": 50,
    "M": 100,
    "L": 200,
    "XL": 400,
}
FALLBACK_BENEFIT_MULTIPLIER = 50

_SECTION = "tShirtSizing"


def _number(value: Any, name: str, *, allow_none: bool = False) -> float | None:
    if value is None and allow_none:
        return None
    if isinstance(value, bool) or value is None:
        raise ConfigurationError(f"{name} must be numeric", section=_SECTION,
                                 details={name: value})
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be numeric", section=_SECTION,
                                     details={name: value}) from None
    if not math.isfinite(number):
        raise ConfigurationError(f"{name} must be a finite number", section=_SECTION,
                                 details={name: value})
    return number


# ═════════════════════════════════════════════════════════════════════════════
# Data Classes
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TShirtSize:
    name: str
    min_weeks: float
    max_weeks: float
    team_size_min: float
    team_size_max: float
    color: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TShirtSize":
        if not isinstance(raw, Mapping) or not raw.get("name"):
            raise ConfigurationError("Each size needs a name", section=_SECTION,
                                     details={"size": raw})
        name = str(raw["name"])
        return cls(
            name=name,
            min_weeks=_number(raw.get("minWeeks"), f"sizes[{name}].minWeeks"),
            max_weeks=_number(raw.get("maxWeeks"), f"sizes[{name}].maxWeeks"),
            team_size_min=_number(raw.get("teamSizeMin"), f"sizes[{name}].teamSizeMin"),
            team_size_max=_number(raw.get("teamSizeMax"), f"sizes[{name}].teamSizeMax"),
            color=raw.get("color"),
            description=raw.get("description"),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "minWeeks": self.min_weeks,
            "maxWeeks": self.max_weeks,
            "teamSizeMin": self.team_size_min,
            "teamSizeMax": self.team_size_max,
            "color": self.color,
            "description": self.description,
        }


@dataclass(frozen=True)
class Role:
    type: str
    daily_rate_gbp: float

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Role":
        if not isinstance(raw, Mapping):
            raise ConfigurationError("Each role must be an object", section=_SECTION,
                                     details={"role": raw})
        role_type = str(raw.get("type") or "Unnamed role")
        return cls(
            type=role_type,
            daily_rate_gbp=_number(raw.get("dailyRateGBP"), f"roles[{role_type}].dailyRateGBP"),
        )

    def to_dict(self) -> dict:
        return {"type": self.type, "dailyRateGBP": self.daily_rate_gbp}


@dataclass(frozen=True)
class MappingRule:
    """Impact/effort window that selects a target size.

    Any bound may be None, meaning unbounded on that side.  Bounds are
    inclusive.
    """
    name: str
    target_size: str
    priority: int = 0
    impact_min: float | None = None
    impact_max: float | None = None
    effort_min: float | None = None
    effort_max: float | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "MappingRule":
        if not isinstance(raw, Mapping):
            raise ConfigurationError("Mapping rule must be an object", section=_SECTION,
                                     details={"rule": raw})
        name = str(raw.get("name") or "Unnamed rule")
        target = raw.get("targetSize")
        if not target or not isinstance(target, str):
            raise ConfigurationError(f"Rule {name!r} has no targetSize", section=_SECTION,
                                     details={"rule": name})
        condition = raw.get("condition") or {}
        if not isinstance(condition, Mapping):
            raise ConfigurationError(f"Rule {name!r} condition must be an object",
                                     section=_SECTION, details={"rule": name})
        priority = _number(raw.get("priority", 0), f"rules[{name}].priority")
        return cls(
            name=name,
            target_size=target,
            priority=int(priority),
            impact_min=_number(condition.get("impactMin"), f"rules[{name}].impactMin", allow_none=True),
            impact_max=_number(condition.get("impactMax"), f"rules[{name}].impactMax", allow_none=True),
            effort_min=_number(condition.get("effortMin"), f"rules[{name}].effortMin", allow_none=True),
            effort_max=_number(condition.get("effortMax"), f"rules[{name}].effortMax", allow_none=True),
        )

    @property
    def is_catch_all(self) -> bool:
        return all(b is None for b in (self.impact_min, self.impact_max,
                                       self.effort_min, self.effort_max))

    def matches(self, impact: float, effort: float) -> bool:
        if self.impact_min is not None and impact < self.impact_min:
            return False
        if self.impact_max is not None and impact > self.impact_max:
            return False
        if self.effort_min is not None and effort < self.effort_min:
            return False
        if self.effort_max is not None and effort > self.effort_max:
            return False
        return True

    def to_dict(self) -> dict:
        condition = {
            key: value
            for key, value in (
                ("impactMin", self.impact_min),
                ("impactMax", self.impact_max),
                ("effortMin", self.effort_min),
                ("effortMax", self.effort_max),
            )
            if value is not None
        }
        return {
            "name": self.name,
            "condition": condition,
            "targetSize": self.target_size,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class TShirtSizingConfig:
    enabled: bool = True
    sizes: tuple[TShirtSize, ...] = ()
    roles: tuple[Role, ...] = ()
    overhead_multiplier: float = DEFAULT_OVERHEAD_MULTIPLIER
    mapping_rules: tuple[MappingRule, ...] = ()
    benefit_multipliers: dict[str, float] = field(default_factory=dict)
    benefit_range_pct: float = DEFAULT_BENEFIT_RANGE_PCT
    skipped_rules: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | str | None) -> "TShirtSizingConfig":
        """Parse a stored sizing record.

        ``None`` yields the built-in default table.  Malformed sizes or roles
        raise ConfigurationError; a malformed individual mapping rule is
        skipped with a warning and its name kept in ``skipped_rules``.
        """
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise ConfigurationError(f"T-shirt sizing is not valid JSON: {exc}",
                                         section=_SECTION) from exc
        if raw is None:
            return DEFAULT_TSHIRT_SIZING_CONFIG
        if not isinstance(raw, Mapping):
            raise ConfigurationError("T-shirt sizing must be an object", section=_SECTION)

        for key in ("sizes", "roles", "mappingRules"):
            if raw.get(key) is not None and not isinstance(raw.get(key), (list, tuple)):
                raise ConfigurationError(f"{key} must be a list", section=_SECTION,
                                         details={key: raw.get(key)})

        rules = []
        skipped = []
        for index, rule_raw in enumerate(raw.get("mappingRules") or []):
            try:
                rules.append(MappingRule.from_dict(rule_raw))
            except ConfigurationError as exc:
                label = (rule_raw.get("name") if isinstance(rule_raw, Mapping) else None) \
                    or f"rule #{index}"
                logger.warning("Skipping malformed T-shirt mapping rule %s: %s", label, exc)
                skipped.append(str(label))

        multipliers_raw = raw.get("benefitMultipliers") or {}
        if not isinstance(multipliers_raw, Mapping):
            raise ConfigurationError("benefitMultipliers must be an object", section=_SECTION)
        multipliers = {
            str(size): _number(value, f"benefitMultipliers[{size}]")
            for size, value in multipliers_raw.items()
        }

        overhead = raw.get("overheadMultiplier")
        range_pct = raw.get("benefitRangePct")
        return cls(
            enabled=raw.get("enabled", True) not in (False, "false"),
            sizes=tuple(TShirtSize.from_dict(s) for s in raw.get("sizes") or []),
            roles=tuple(Role.from_dict(r) for r in raw.get("roles") or []),
            overhead_multiplier=(
                DEFAULT_OVERHEAD_MULTIPLIER if overhead is None
                else _number(overhead, "overheadMultiplier")
            ),
            mapping_rules=tuple(rules),
            benefit_multipliers=multipliers,
            benefit_range_pct=(
                DEFAULT_BENEFIT_RANGE_PCT if range_pct is None
                else _number(range_pct, "benefitRangePct")
            ),
            skipped_rules=tuple(skipped),
        )

    def find_size(self, name: str | None) -> TShirtSize | None:
        for size in self.sizes:
            if size.name == name:
                return size
        return None

    @property
    def has_catch_all_rule(self) -> bool:
        return any(rule.is_catch_all for rule in self.mapping_rules)

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "sizes": [s.to_dict() for s in self.sizes],
            "roles": [r.to_dict() for r in self.roles],
            "overheadMultiplier": self.overhead_multiplier,
            "mappingRules": [r.to_dict() for r in self.mapping_rules],
            "benefitMultipliers": dict(self.benefit_multipliers),
            "benefitRangePct": self.benefit_range_pct,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Built-in default table
# ═════════════════════════════════════════════════════════════════════════════

def _rule(name, size, priority, **bounds) -> MappingRule:
    return MappingRule(name=name, target_size=size, priority=priority, **bounds)


DEFAULT_TSHIRT_SIZING_CONFIG = TShirtSizingConfig(
    enabled=True,
    sizes=(
        TShirtSize("XS", 1, 3, 1, 2, "#10B981", "Quick fixes and small enhancements"),
        TShirtSize("S", 2, 6, 2, 3, "#3B82F6", "Small projects and proof of concepts"),
        TShirtSize("M", 4, 12, 3, 5, "#F59E0B", "Medium-sized initiatives"),
        TShirtSize("L", 8, 24, 5, 8, "#EF4444", "Large strategic projects"),
        TShirtSize("XL", 16, 52, 8, 12, "#8B5CF6", "Major transformation initiatives"),
    ),
    roles=(
        Role("Developer", 400),
        Role("Analyst", 350),
        Role("PM", 500),
    ),
    overhead_multiplier=DEFAULT_OVERHEAD_MULTIPLIER,
    mapping_rules=(
        _rule("Critical Quick Fix", "XS", 150, impact_min=4.5, effort_max=1.5),
        _rule("Transformational Programme", "XL", 140, impact_min=4.5, effort_min=4.5),
        _rule("Low Value Heavy Lift", "L", 130, impact_max=2.0, effort_min=4.0),
        _rule("High Value Fast Track", "S", 120, impact_min=4.0, effort_max=2.0),
        _rule("Quick Win - High Impact, Low Effort", "S", 100, impact_min=3.5, effort_max=2.5),
        _rule("Strategic Bet - High Impact, Medium Effort", "M", 90,
              impact_min=3.0, effort_min=2.5, effort_max=3.5),
        _rule("Complex Strategic - High Impact, High Effort", "L", 85,
              impact_min=3.0, effort_min=3.5, effort_max=4.5),
        _rule("Major Strategic - High Impact, Very High Effort", "XL", 82,
              impact_min=3.0, effort_min=4.5),
        _rule("Complex Strategic - Medium Impact, High Effort", "L", 80,
              impact_min=2.5, effort_min=3.5),
        _rule("Small Experiment - Low to Medium Impact", "XS", 70,
              impact_max=3.0, effort_max=2.0),
        _rule("Focused Experiment - Low to Medium Impact", "S", 65,
              impact_max=3.0, effort_min=2.0, effort_max=3.0),
        _rule("Moderate Build - Low Impact, Higher Effort", "M", 60,
              impact_max=2.5, effort_min=3.0, effort_max=4.0),
        _rule("Default - Medium", "M", 1),
    ),
    benefit_multipliers=dict(DEFAULT_BENEFIT_MULTIPLIERS),
    benefit_range_pct=DEFAULT_BENEFIT_RANGE_PCT,
)
