"""
Assessment service: one call that runs every read-only evaluation for a
use case: scores, effective quadrant, T-shirt size, benefit band and the
three-gate governance check.

Usage:
    from governance_engine.services.assessment_service import assess_use_case
    assessment = assess_use_case(record, get_engine_settings())
    payload = assessment.to_dict()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from governance_engine.models.use_case import UseCase
from governance_engine.settings import EngineSettings
from governance_engine.services.governance_gates import (
    GovernanceCheckResult,
    perform_full_governance_check,
)
from governance_engine.services.performance import MetricsCollector, timed
from governance_engine.services.scoring import EffectiveScores, resolve_effective_scores
from governance_engine.services.sizing import (
    BenefitRange,
    SizingEstimate,
    estimate_annual_benefit,
    estimate_size,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UseCaseAssessment:
    use_case_id: str | None
    scores: EffectiveScores
    sizing: SizingEstimate
    benefit: BenefitRange
    governance: GovernanceCheckResult

    @property
    def quadrant(self) -> str:
        return self.scores.quadrant.value

    def to_dict(self) -> dict:
        return {
            "id": self.use_case_id,
            "scores": self.scores.to_dict(),
            "quadrant": self.quadrant,
            "sizing": self.sizing.to_dict(),
            "benefit": self.benefit.to_dict(),
            "governance": self.governance.to_dict(),
        }


def assess_use_case(
    use_case: UseCase | Mapping[str, Any],
    settings: EngineSettings | None = None,
    collector: MetricsCollector | None = None,
) -> UseCaseAssessment:
    """Evaluate one use case against the given (or default) engine settings.

    Sizing uses the effective scores, so manual overrides move the size.
    """
    settings = settings or EngineSettings()
    use_case = UseCase.coerce(use_case)

    with timed(collector, "assess_use_case", use_case_id=use_case.id):
        scores = resolve_effective_scores(use_case, settings.scoring_model)
        sizing = estimate_size(scores.impact_score, scores.effort_score, settings.tshirt_sizing)
        benefit = estimate_annual_benefit(scores.impact_score, sizing.size, settings.tshirt_sizing)
        governance = perform_full_governance_check(use_case, collector)

    logger.debug(
        "Assessed use case %s: quadrant=%s size=%s governance=%s",
        use_case.id, scores.quadrant.value, sizing.size, governance.status.value,
        extra={"use_case_id": use_case.id, "operation": "assess_use_case"},
    )
    return UseCaseAssessment(
        use_case_id=use_case.id,
        scores=scores,
        sizing=sizing,
        benefit=benefit,
        governance=governance,
    )
