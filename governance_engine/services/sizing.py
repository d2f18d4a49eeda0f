"""
T-shirt size estimation: cost, duration and benefit ranges.

Algorithm:
    1. Reject disabled / incomplete configs (result carries ``error``).
    2. Clamp impact and effort into [1, 5].
    3. Walk mapping rules by descending priority (stable: first listed wins
       a tie) and take the first whose window contains both values.
    4. No match → smallest size (``sizes[0]``).
    5. daily team cost = avg positive role rate × avg team size × overhead
       cost range       = daily team cost × weeks × 5 working days

Nothing here raises for bad configuration: problems are reported through the
``error`` field together with whatever could still be determined.

Usage:
    from governance_engine.services.sizing import estimate_size
    estimate = estimate_size(4.6, 1.0, DEFAULT_TSHIRT_SIZING_CONFIG)
    # -> SizingEstimate(size="XS", cost_min=..., matched_rule="Critical Quick Fix")
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping

from governance_engine.core.exceptions import ConfigurationError
from governance_engine.models.sizing import (
    DEFAULT_BENEFIT_MULTIPLIERS,
    FALLBACK_BENEFIT_MULTIPLIER,
    WORKING_DAYS_PER_WEEK,
    MappingRule,
    TShirtSizingConfig,
)

logger = logging.getLogger(__name__)

INPUT_MIN = 1.0
INPUT_MAX = 5.0


@dataclass(frozen=True)
class SizingEstimate:
    size: str | None = None
    cost_min: int | None = None
    cost_max: int | None = None
    weeks_min: float | None = None
    weeks_max: float | None = None
    team_size_range: str | None = None
    matched_rule: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        body = {
            "size": self.size,
            "costMin": self.cost_min,
            "costMax": self.cost_max,
            "weeksMin": self.weeks_min,
            "weeksMax": self.weeks_max,
            "teamSizeRange": self.team_size_range,
            "matchedRule": self.matched_rule,
        }
        if self.error:
            body["error"] = self.error
        return body


@dataclass(frozen=True)
class BenefitRange:
    benefit_min: int | None = None
    benefit_max: int | None = None

    def to_dict(self) -> dict:
        return {"benefitMin": self.benefit_min, "benefitMax": self.benefit_max}


def _clamp_input(value: float | None) -> float:
    return max(INPUT_MIN, min(INPUT_MAX, value or 0))


def _coerce_config(config: TShirtSizingConfig | Mapping[str, Any] | str | None) -> TShirtSizingConfig:
    if isinstance(config, TShirtSizingConfig):
        return config
    return TShirtSizingConfig.from_dict(config)


def _failure(message: str, **partial) -> SizingEstimate:
    logger.warning("T-shirt sizing failed: %s", message)
    return SizingEstimate(error=message, **partial)


def _validate(config: TShirtSizingConfig) -> str | None:
    if not config.enabled:
        return "T-shirt sizing is disabled"
    missing = [
        name for name, items in (
            ("sizes", config.sizes),
            ("roles", config.roles),
            ("mappingRules", config.mapping_rules),
        )
        if not items
    ]
    if missing:
        return f"T-shirt sizing configuration is incomplete: missing {', '.join(missing)}"
    return None


def select_rule(impact: float, effort: float, rules: tuple[MappingRule, ...]) -> MappingRule | None:
    """First rule, by descending priority, whose window contains the point.

    ``sorted`` is stable, so equal priorities keep their configured order.
    """
    for rule in sorted(rules, key=lambda r: r.priority, reverse=True):
        try:
            if rule.matches(impact, effort):
                return rule
        except TypeError:
            logger.warning("Skipping malformed T-shirt mapping rule %r", rule.name)
    return None


def estimate_size(
    impact: float | None,
    effort: float | None,
    config: TShirtSizingConfig | Mapping[str, Any] | str | None = None,
) -> SizingEstimate:
    """Select a T-shirt size and derive cost / duration / team ranges."""
    try:
        config = _coerce_config(config)
    except ConfigurationError as exc:
        return _failure(f"Invalid T-shirt sizing configuration: {exc}")

    problem = _validate(config)
    if problem:
        return _failure(problem)

    impact = _clamp_input(impact)
    effort = _clamp_input(effort)

    rule = select_rule(impact, effort, config.mapping_rules)
    if rule is None:
        size_name = config.sizes[0].name
        logger.debug("No T-shirt rule matched (impact=%.2f, effort=%.2f); falling back to %s",
                     impact, effort, size_name)
    else:
        size_name = rule.target_size
    rule_name = rule.name if rule else None

    size = config.find_size(size_name)
    if size is None:
        return _failure(f"Size {size_name!r} is not defined in the sizing configuration",
                        size=size_name, matched_rule=rule_name)

    partial = {
        "size": size.name,
        "weeks_min": size.min_weeks,
        "weeks_max": size.max_weeks,
        "team_size_range": f"{size.team_size_min:g}-{size.team_size_max:g}",
        "matched_rule": rule_name,
    }

    rates = [role.daily_rate_gbp for role in config.roles if role.daily_rate_gbp > 0]
    if not rates:
        return _failure("No roles with a positive daily rate are configured", **partial)

    average_rate = sum(rates) / len(rates)
    average_team = (size.team_size_min + size.team_size_max) / 2
    daily_team_cost = average_rate * average_team * config.overhead_multiplier

    raw_min = daily_team_cost * size.min_weeks * WORKING_DAYS_PER_WEEK
    raw_max = daily_team_cost * size.max_weeks * WORKING_DAYS_PER_WEEK
    if not (math.isfinite(raw_min) and math.isfinite(raw_max)):
        return _failure(f"Cost calculation overflowed for size {size.name}", **partial)
    cost_min = round(raw_min)
    cost_max = round(raw_max)
    if cost_min < 0 or cost_max < 0 or cost_max < cost_min:
        return _failure(
            f"Cost calculation produced an invalid range ({cost_min}..{cost_max}) for size {size.name}",
            **partial,
        )

    return SizingEstimate(cost_min=cost_min, cost_max=cost_max, **partial)


def estimate_annual_benefit(
    impact: float | None,
    size: str | None,
    config: TShirtSizingConfig | Mapping[str, Any] | str | None = None,
) -> BenefitRange:
    """Annual benefit band: multiplier(£K) × clamped impact, ± benefitRangePct.

    Both ends are rounded to the nearest £1,000.
    """
    if not size:
        return BenefitRange()
    try:
        config = _coerce_config(config)
    except ConfigurationError as exc:
        logger.warning("Benefit estimate using default multipliers: %s", exc)
        config = TShirtSizingConfig.from_dict(None)

    multiplier = (
        config.benefit_multipliers.get(size)
        or DEFAULT_BENEFIT_MULTIPLIERS.get(size)
        or FALLBACK_BENEFIT_MULTIPLIER
    )
    base = multiplier * 1000 * _clamp_input(impact)
    band = config.benefit_range_pct / 100
    if not math.isfinite(base * (1 + band)):
        logger.warning("Benefit estimate for size %s overflowed; no band returned", size)
        return BenefitRange()
    return BenefitRange(
        benefit_min=round(base * (1 - band) / 1000) * 1000,
        benefit_max=round(base * (1 + band) / 1000) * 1000,
    )
