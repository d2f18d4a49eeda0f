"""
Weighted Impact / Effort scoring and quadrant classification.

    score    = clamp(Σ lever_i × weight_i / 100, 0, 5)
    Impact   = score(business-value levers, businessValue weights)
    Effort   = score(feasibility levers, feasibility weights)

Unassessed levers (None) count as zero.  Weights need not sum to 100.

Usage:
    from governance_engine.services.scoring import score_use_case
    result = score_use_case(use_case, ScoringWeights())
    # -> ScoreResult(impact_score=4.2, effort_score=2.0, quadrant=Quadrant.QUICK_WIN)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from governance_engine.models.scoring import (
    DEFAULT_QUADRANT_THRESHOLD,
    EffortWeights,
    ImpactWeights,
    Quadrant,
    ScoringWeights,
)
from governance_engine.models.use_case import UseCase

logger = logging.getLogger(__name__)

SCORE_MIN = 0.0
SCORE_MAX = 5.0


def _clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    return max(low, min(high, value))


def compute_weighted_score(
    levers: Sequence[float | None],
    weights: Sequence[float],
) -> float:
    """Σ(lever × weight / 100), clamped to [0, 5].

    Missing levers score zero; the result keeps full float precision.
    """
    if len(levers) != len(weights):
        raise ValueError(f"Expected {len(weights)} levers, got {len(levers)}")
    total = sum((lever or 0) * weight / 100 for lever, weight in zip(levers, weights))
    return _clamp(total)


def calculate_impact_score(
    revenue_impact: float | None,
    cost_savings: float | None,
    risk_reduction: float | None,
    broker_partner_experience: float | None,
    strategic_fit: float | None,
    weights: ImpactWeights | None = None,
) -> float:
    weights = weights or ImpactWeights()
    return compute_weighted_score(
        [revenue_impact, cost_savings, risk_reduction, broker_partner_experience, strategic_fit],
        weights.as_list(),
    )


def calculate_effort_score(
    data_readiness: float | None,
    technical_complexity: float | None,
    change_impact: float | None,
    model_risk: float | None,
    adoption_readiness: float | None,
    weights: EffortWeights | None = None,
) -> float:
    weights = weights or EffortWeights()
    return compute_weighted_score(
        [data_readiness, technical_complexity, change_impact, model_risk, adoption_readiness],
        weights.as_list(),
    )


def classify_quadrant(
    impact_score: float,
    effort_score: float,
    threshold: float = DEFAULT_QUADRANT_THRESHOLD,
) -> Quadrant:
    """Map (impact, effort) onto the 2×2 prioritisation matrix.

    Impact is "high" at ``>= threshold``.  Effort is "low" only when strictly
    ``< threshold``, so an effort exactly on the threshold is high effort:
    ``classify_quadrant(3.0, 3.0)`` is STRATEGIC_BET.
    """
    high_impact = impact_score >= threshold
    low_effort = effort_score < threshold
    if high_impact and low_effort:
        return Quadrant.QUICK_WIN
    if high_impact:
        return Quadrant.STRATEGIC_BET
    if low_effort:
        return Quadrant.EXPERIMENTAL
    return Quadrant.WATCHLIST


# ═════════════════════════════════════════════════════════════════════════════
# Use-case level scoring
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ScoreResult:
    impact_score: float
    effort_score: float
    quadrant: Quadrant

    def to_dict(self) -> dict:
        return {
            "impactScore": self.impact_score,
            "effortScore": self.effort_score,
            "quadrant": self.quadrant.value,
        }


@dataclass(frozen=True)
class EffectiveScores:
    """Calculated scores alongside the values after manual overrides."""
    calculated: ScoreResult
    impact_score: float
    effort_score: float
    quadrant: Quadrant
    has_overrides: bool
    override_reason: str | None = None

    def to_dict(self) -> dict:
        return {
            **self.calculated.to_dict(),
            "effectiveImpactScore": self.impact_score,
            "effectiveEffortScore": self.effort_score,
            "effectiveQuadrant": self.quadrant.value,
            "hasOverrides": self.has_overrides,
            "overrideReason": self.override_reason,
        }


def score_use_case(use_case: UseCase, weights: ScoringWeights | None = None) -> ScoreResult:
    weights = weights or ScoringWeights()
    impact = compute_weighted_score(use_case.business_value_levers(),
                                    weights.business_value.as_list())
    effort = compute_weighted_score(use_case.feasibility_levers(),
                                    weights.feasibility.as_list())
    return ScoreResult(
        impact_score=impact,
        effort_score=effort,
        quadrant=classify_quadrant(impact, effort, weights.quadrant_threshold),
    )


def _manual_score(value: float | None) -> float | None:
    # only a positive manual score counts as an override
    if value is None or value <= 0:
        return None
    return _clamp(value)


def resolve_effective_scores(
    use_case: UseCase,
    weights: ScoringWeights | None = None,
) -> EffectiveScores:
    """Apply ``manualImpactScore`` / ``manualEffortScore`` / ``manualQuadrant``.

    A valid manual quadrant label wins outright; otherwise the quadrant is
    re-derived from the effective scores.
    """
    weights = weights or ScoringWeights()
    calculated = score_use_case(use_case, weights)

    manual_impact = _manual_score(use_case.manual_impact_score)
    manual_effort = _manual_score(use_case.manual_effort_score)
    impact = manual_impact if manual_impact is not None else calculated.impact_score
    effort = manual_effort if manual_effort is not None else calculated.effort_score

    manual_quadrant = Quadrant.parse(use_case.manual_quadrant)
    if use_case.manual_quadrant and manual_quadrant is None:
        logger.warning("Ignoring unknown manual quadrant %r on use case %s",
                       use_case.manual_quadrant, use_case.id)
    quadrant = manual_quadrant or classify_quadrant(impact, effort, weights.quadrant_threshold)

    return EffectiveScores(
        calculated=calculated,
        impact_score=impact,
        effort_score=effort,
        quadrant=quadrant,
        has_overrides=any(v is not None for v in (manual_impact, manual_effort, manual_quadrant)),
        override_reason=use_case.override_reason,
    )


def recalculate_portfolio(
    use_cases: Iterable[UseCase | Mapping[str, Any]],
    scoring_model: ScoringWeights | Mapping[str, Any] | str | None = None,
) -> list[dict]:
    """Rescore every record after a scoring model change.

    Returns ``[{"id", "impactScore", "effortScore", "quadrant"}, ...]`` for the
    persistence layer to write back.
    """
    weights = (
        scoring_model if isinstance(scoring_model, ScoringWeights)
        else ScoringWeights.from_dict(scoring_model)
    )
    updates = []
    for record in use_cases:
        use_case = UseCase.coerce(record)
        result = score_use_case(use_case, weights)
        updates.append({"id": use_case.id, **result.to_dict()})
    logger.info("Recalculated scores for %d use case(s) (threshold=%.2f)",
                len(updates), weights.quadrant_threshold)
    return updates
