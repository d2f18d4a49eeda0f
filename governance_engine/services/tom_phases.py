"""
TOM phase derivation and exit-requirement evaluation.

Phase derivation (per use case):
    TOM disabled                      → "disabled"
    valid manual override             → that phase
    status matches one phase          → that phase
    status matches several phases     → first whose mapped deployments include
                                        the deployment status, else lowest priority
    nothing matches                   → "unmapped"

A transition is any change of derived phase id.  Leaving a real phase checks
that phase's ``exit_requirements`` against the use case's readiness signals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from governance_engine.models.tom import TomConfig, TomPhase, ensure_tom_config
from governance_engine.models.use_case import LEVER_MAX, LEVER_MIN, TriState, UseCase
from governance_engine.services.governance_gates import calculate_governance_status

logger = logging.getLogger(__name__)

DISABLED_PHASE_ID = "disabled"
UNMAPPED_PHASE_ID = "unmapped"
DEFAULT_TARGET_INDEPENDENCE = 70

REQUIREMENT_LABELS: dict[str, str] = {
    "basic_details": "Basic Details",
    "business_owner": "Business Owner",
    "scoring_complete": "Scoring Complete",
    "operating_model_gate": "Operating Model Gate",
    "intake_gate": "Intake & Prioritization Gate",
    "rai_gate": "Responsible AI Gate",
    "investment_cost": "Investment Cost",
    "kpi_selection": "KPI Selection",
    "independence_threshold": "Independence Threshold",
}

# Levers that must be scored before leaving the early phases
_READINESS_LEVERS = (
    "revenue_impact",
    "cost_savings",
    "risk_reduction",
    "broker_partner_experience",
    "strategic_fit",
    "technical_complexity",
    "data_readiness",
)


@dataclass(frozen=True)
class DerivedPhase:
    id: str
    name: str
    color: str
    is_override: bool
    matched_by: str  # status | deployment | priority | manual | disabled | unmapped

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "isOverride": self.is_override,
            "matchedBy": self.matched_by,
        }


@dataclass(frozen=True)
class GovernanceGateInput:
    """Sequenced gate outcomes supplied by the caller."""
    operating_model_passed: bool = False
    intake_passed: bool = False
    rai_passed: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "GovernanceGateInput | None":
        if raw is None:
            return None
        return cls(
            operating_model_passed=bool(raw.get("operatingModelPassed")),
            intake_passed=bool(raw.get("intakePassed")),
            rai_passed=bool(raw.get("raiPassed")),
        )


@dataclass(frozen=True)
class PhaseTransitionInfo:
    has_transition: bool
    from_phase_id: str | None
    to_phase_id: str | None
    from_phase: TomPhase | None = None
    to_phase: TomPhase | None = None
    exit_requirements_pending: tuple[str, ...] = field(default_factory=tuple)
    is_exiting_unphased_or_disabled: bool = False

    def to_dict(self) -> dict:
        return {
            "hasTransition": self.has_transition,
            "fromPhaseId": self.from_phase_id,
            "toPhaseId": self.to_phase_id,
            "exitRequirementsPending": list(self.exit_requirements_pending),
            "isExitingUnphasedOrDisabled": self.is_exiting_unphased_or_disabled,
        }


def _derived(phase: TomPhase, matched_by: str, is_override: bool = False) -> DerivedPhase:
    return DerivedPhase(id=phase.id, name=phase.name, color=phase.color,
                        is_override=is_override, matched_by=matched_by)


def derive_phase(
    use_case_status: str | None,
    deployment_status: str | None,
    tom_phase_override: str | None,
    tom_config: TomConfig | Mapping[str, Any] | None,
) -> DerivedPhase:
    config = ensure_tom_config(tom_config)
    if not config.enabled:
        return DerivedPhase(DISABLED_PHASE_ID, "TOM Disabled", "#6B7280", False, "disabled")

    if tom_phase_override:
        override = config.find_phase(tom_phase_override)
        if override is not None:
            return _derived(override, "manual", is_override=True)

    matching = [
        phase for phase in config.phases
        if not phase.manual_only and use_case_status and use_case_status in phase.mapped_statuses
    ]
    if not matching:
        return DerivedPhase(UNMAPPED_PHASE_ID, "Unmapped", "#9CA3AF", False, "unmapped")
    if len(matching) == 1:
        return _derived(matching[0], "status")

    if deployment_status:
        for phase in matching:
            if deployment_status in phase.mapped_deployments:
                return _derived(phase, "deployment")

    return _derived(min(matching, key=lambda p: p.priority), "priority")


def calculate_phase_summary(
    use_cases: Iterable[UseCase | Mapping[str, Any]],
    tom_config: TomConfig | Mapping[str, Any] | None,
) -> dict[str, int]:
    """Count use cases per derived phase (plus ``unmapped`` / ``disabled``)."""
    config = ensure_tom_config(tom_config)
    summary = {phase.id: 0 for phase in config.phases}
    summary[UNMAPPED_PHASE_ID] = 0
    summary[DISABLED_PHASE_ID] = 0
    for record in use_cases:
        use_case = UseCase.coerce(record)
        derived = derive_phase(use_case.use_case_status, use_case.deployment_status,
                               use_case.tom_phase_override, config)
        summary[derived.id] = summary.get(derived.id, 0) + 1
    return summary


def get_requirement_label(requirement_id: str) -> str:
    """Human-readable label; unknown ids are title-cased."""
    if requirement_id in REQUIREMENT_LABELS:
        return REQUIREMENT_LABELS[requirement_id]
    return requirement_id.replace("_", " ").replace("-", " ").title()


# ═════════════════════════════════════════════════════════════════════════════
# Exit requirements
# ═════════════════════════════════════════════════════════════════════════════

def _has_text(value: str | None) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _scored(value: float | None) -> bool:
    return value is not None and LEVER_MIN <= value <= LEVER_MAX


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, TriState):
        return value.is_set
    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    if isinstance(value, (int, float)):
        return value != 0
    return True


def is_requirement_met(
    requirement_id: str,
    use_case: UseCase,
    gates: GovernanceGateInput,
) -> bool:
    """Evaluate one exit requirement.

    Ids outside the checklist catalogue are read as record field names
    (``raiRiskTier``) and are met when that field holds a value.  Ids that
    match neither are never met.
    """
    if requirement_id == "basic_details":
        return _has_text(use_case.title) and _has_text(use_case.description)
    if requirement_id == "business_owner":
        return _has_text(use_case.primary_business_owner)
    if requirement_id == "scoring_complete":
        return all(_scored(use_case.lever(name)) for name in _READINESS_LEVERS)
    if requirement_id == "operating_model_gate":
        return gates.operating_model_passed
    if requirement_id == "intake_gate":
        return gates.intake_passed
    if requirement_id == "rai_gate":
        return gates.rai_passed
    if requirement_id == "investment_cost":
        return (use_case.investment_cost_gbp or 0) > 0
    if requirement_id == "kpi_selection":
        return len(use_case.selected_kpis) > 0
    if requirement_id == "independence_threshold":
        target = use_case.target_independence or DEFAULT_TARGET_INDEPENDENCE
        current = use_case.current_independence
        return current is not None and current >= target
    if use_case.has_field(requirement_id):
        return _has_value(use_case.field_value(requirement_id))
    logger.warning("Unknown TOM exit requirement %r treated as unmet", requirement_id)
    return False


def _gates_from_use_case(use_case: UseCase) -> GovernanceGateInput:
    check = calculate_governance_status(use_case)
    return GovernanceGateInput(
        operating_model_passed=check.operating_model.passed,
        intake_passed=check.intake.passed,
        rai_passed=check.responsible_ai.passed,
    )


def detect_phase_transition(
    *,
    current_status: str | None,
    current_deployment: str | None,
    current_override: str | None,
    new_status: str | None,
    new_deployment: str | None,
    new_override: str | None,
    use_case: UseCase | Mapping[str, Any],
    tom_config: TomConfig | Mapping[str, Any] | None,
    governance_gates: GovernanceGateInput | Mapping[str, Any] | None = None,
) -> PhaseTransitionInfo:
    """Compare the derived phase before and after a status change.

    When ``governance_gates`` is omitted the gate outcomes are computed from
    the use case itself.
    """
    config = ensure_tom_config(tom_config)
    use_case = UseCase.coerce(use_case)

    from_derived = derive_phase(current_status, current_deployment, current_override, config)
    to_derived = derive_phase(new_status, new_deployment, new_override, config)
    from_phase = config.find_phase(from_derived.id)
    to_phase = config.find_phase(to_derived.id)

    if from_derived.id == to_derived.id:
        return PhaseTransitionInfo(False, from_derived.id, to_derived.id, from_phase, to_phase)

    if from_derived.id in (DISABLED_PHASE_ID, UNMAPPED_PHASE_ID) or from_phase is None:
        return PhaseTransitionInfo(True, from_derived.id, to_derived.id, from_phase, to_phase,
                                   is_exiting_unphased_or_disabled=True)

    if isinstance(governance_gates, Mapping):
        governance_gates = GovernanceGateInput.from_dict(governance_gates)
    gates = governance_gates or _gates_from_use_case(use_case)

    pending = tuple(
        req for req in from_phase.exit_requirements
        if not is_requirement_met(req, use_case, gates)
    )
    return PhaseTransitionInfo(
        has_transition=True,
        from_phase_id=from_derived.id,
        to_phase_id=to_derived.id,
        from_phase=from_phase,
        to_phase=to_phase,
        exit_requirements_pending=pending,
    )
