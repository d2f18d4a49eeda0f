"""
Governance Gates: three sequential checkpoints a use case must clear
before it can be activated.

    Gate 1  Operating Model           owner, status beyond Discovery, business function
    Gate 2  Intake & Prioritization   all ten scoring levers in [1, 5]
    Gate 3  Responsible AI            four yes/no answers + customer harm risk

Each gate function reports its own completeness only.  Sequencing is layered
on top in ``calculate_governance_status``: a gate counts as passed only if
every earlier gate passed too.

Usage:
    from governance_engine.services.governance_gates import perform_full_governance_check
    result = perform_full_governance_check(use_case)
    # -> result.can_activate, result.gates[Gate.INTAKE].passed, result.missing_fields
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from governance_engine.models.use_case import (
    ALL_LEVERS,
    LEVER_LABELS,
    LEVER_MAX,
    LEVER_MIN,
    TriState,
    UseCase,
)
from governance_engine.services.performance import MetricsCollector, timed

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Enums & Data Classes
# ═════════════════════════════════════════════════════════════════════════════

class Gate(str, Enum):
    OPERATING_MODEL = "operating_model"
    INTAKE = "intake"
    RESPONSIBLE_AI = "responsible_ai"

    @property
    def label(self) -> str:
        return _GATE_LABELS[self]

    @property
    def key(self) -> str:
        """Key used in API payloads (``gates.operatingModel`` etc.)."""
        return _GATE_KEYS[self]


_GATE_LABELS = {
    Gate.OPERATING_MODEL: "Operating Model",
    Gate.INTAKE: "Intake & Prioritization",
    Gate.RESPONSIBLE_AI: "Responsible AI",
}

_GATE_KEYS = {
    Gate.OPERATING_MODEL: "operatingModel",
    Gate.INTAKE: "intake",
    Gate.RESPONSIBLE_AI: "responsibleAI",
}

# Evaluation and regression-blame order.  Reordering changes which gate is
# reported when several regress at once.
GATE_ORDER: tuple[Gate, ...] = (Gate.OPERATING_MODEL, Gate.INTAKE, Gate.RESPONSIBLE_AI)


class GovernanceStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    IN_REVIEW = "in_review"
    COMPLETE = "complete"


@dataclass(frozen=True)
class GateResult:
    """Outcome of one gate: pass flag, missing-field labels, 0-100 progress."""
    passed: bool
    issues: tuple[str, ...] = ()
    progress: int = 0

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "issues": list(self.issues),
            "progress": self.progress,
        }


@dataclass(frozen=True)
class GovernanceCheckResult:
    """All three gates for one use case.

    ``gates`` holds the sequenced results (passed only if earlier gates
    passed); ``raw_gates`` holds each gate's own completeness.
    ``overall_progress`` averages the raw progress values.
    """
    gates: dict[Gate, GateResult]
    raw_gates: dict[Gate, GateResult]
    overall_progress: int
    status: GovernanceStatus
    missing_fields: tuple[str, ...] = field(default_factory=tuple)

    @property
    def can_activate(self) -> bool:
        return all(self.gates[gate].passed for gate in GATE_ORDER)

    @property
    def all_passed(self) -> bool:
        return self.can_activate

    @property
    def governance_status(self) -> str:
        return "complete" if self.can_activate else "incomplete"

    @property
    def operating_model(self) -> GateResult:
        return self.gates[Gate.OPERATING_MODEL]

    @property
    def intake(self) -> GateResult:
        return self.gates[Gate.INTAKE]

    @property
    def responsible_ai(self) -> GateResult:
        return self.gates[Gate.RESPONSIBLE_AI]

    def to_dict(self) -> dict:
        return {
            "canActivate": self.can_activate,
            "governanceStatus": self.governance_status,
            "status": self.status.value,
            "gates": {gate.key: self.gates[gate].to_dict() for gate in GATE_ORDER},
            "missingFields": list(self.missing_fields),
            "overallProgress": self.overall_progress,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Field predicates
# ═════════════════════════════════════════════════════════════════════════════

_BLANK_MARKERS = frozenset({"undefined", "null"})


def _has_text(value: str | None) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _valid_lever(value: float | None) -> bool:
    # 0 / None mean "not yet scored"
    return value is not None and LEVER_MIN <= value <= LEVER_MAX


def _answered(value: TriState) -> bool:
    return value.is_set


def _has_selection(value: str | None) -> bool:
    return _has_text(value) and value.strip().lower() not in _BLANK_MARKERS


def _gate_result(checks: list[tuple[str, bool]]) -> GateResult:
    issues = tuple(label for label, ok in checks if not ok)
    completed = len(checks) - len(issues)
    return GateResult(
        passed=not issues,
        issues=issues,
        progress=round(100 * completed / len(checks)),
    )


# ═════════════════════════════════════════════════════════════════════════════
# Gate Definitions: each reports unconditional completeness
# ═════════════════════════════════════════════════════════════════════════════

def calculate_operating_model_gate(use_case: UseCase) -> GateResult:
    """Operating Model: owner, status beyond Discovery, business function."""
    status = use_case.use_case_status
    return _gate_result([
        ("Primary Business Owner", _has_text(use_case.primary_business_owner)),
        ("Use Case Status (beyond Discovery)",
         _has_text(status) and status.strip().lower() != "discovery"),
        ("Business Function", _has_text(use_case.business_function)),
    ])


def calculate_intake_gate(use_case: UseCase) -> GateResult:
    """Intake & Prioritization: all ten scoring levers scored 1-5."""
    return _gate_result([
        (LEVER_LABELS[name], _valid_lever(use_case.lever(name))) for name in ALL_LEVERS
    ])


def calculate_rai_gate(use_case: UseCase) -> GateResult:
    """Responsible AI: four yes/no answers plus a customer harm risk rating."""
    return _gate_result([
        ("Explainability Required", _answered(use_case.explainability_required)),
        ("Customer Harm Risk", _has_selection(use_case.customer_harm_risk)),
        ("Human Accountability", _answered(use_case.human_accountability)),
        ("Data Outside UK/EU", _answered(use_case.data_outside_uk_eu)),
        ("Third Party Model", _answered(use_case.third_party_model)),
    ])


# ═════════════════════════════════════════════════════════════════════════════
# Gate Registry: one check per Gate member
# ═════════════════════════════════════════════════════════════════════════════

_GATE_CHECKS: dict[Gate, Callable[[UseCase], GateResult]] = {
    Gate.OPERATING_MODEL: calculate_operating_model_gate,
    Gate.INTAKE: calculate_intake_gate,
    Gate.RESPONSIBLE_AI: calculate_rai_gate,
}

_missing_checks = set(Gate) - set(_GATE_CHECKS)
if _missing_checks:
    raise RuntimeError(f"No gate check registered for: {sorted(g.value for g in _missing_checks)}")


def evaluate_gate(gate: Gate, use_case: UseCase | Mapping[str, Any]) -> GateResult:
    """Run a single gate's own checklist (no sequencing)."""
    return _GATE_CHECKS[gate](UseCase.coerce(use_case))


# ═════════════════════════════════════════════════════════════════════════════
# Aggregation
# ═════════════════════════════════════════════════════════════════════════════

def calculate_governance_status(use_case: UseCase | Mapping[str, Any]) -> GovernanceCheckResult:
    """Evaluate the gates in ``GATE_ORDER`` and apply sequential gating."""
    use_case = UseCase.coerce(use_case)

    raw: dict[Gate, GateResult] = {}
    gated: dict[Gate, GateResult] = {}
    missing: list[str] = []
    prior_passed = True
    previous: Gate | None = None

    for gate in GATE_ORDER:
        result = _GATE_CHECKS[gate](use_case)
        raw[gate] = result
        passed = result.passed and prior_passed
        gated[gate] = GateResult(passed=passed, issues=result.issues, progress=result.progress)

        if prior_passed:
            missing.extend(result.issues)
        else:
            # a blocked gate names only its immediate predecessor
            missing.append(f"{previous.label} gate must pass first")
        prior_passed = passed
        previous = gate

    overall = round(sum(r.progress for r in raw.values()) / len(GATE_ORDER))

    if all(gated[g].passed for g in GATE_ORDER):
        status = GovernanceStatus.COMPLETE
    elif any(gated[g].passed for g in GATE_ORDER):
        status = GovernanceStatus.IN_REVIEW
    elif any(r.progress > 0 for r in raw.values()):
        status = GovernanceStatus.PENDING
    else:
        status = GovernanceStatus.NONE

    return GovernanceCheckResult(
        gates=gated,
        raw_gates=raw,
        overall_progress=overall,
        status=status,
        missing_fields=tuple(missing),
    )


def perform_full_governance_check(
    use_case: UseCase | Mapping[str, Any],
    collector: MetricsCollector | None = None,
) -> GovernanceCheckResult:
    """Full three-gate check, timed on ``collector`` when one is supplied."""
    use_case = UseCase.coerce(use_case)
    with timed(collector, "governance_check", use_case_id=use_case.id):
        result = calculate_governance_status(use_case)
    logger.debug(
        "Governance check use_case=%s status=%s progress=%d can_activate=%s",
        use_case.id, result.status.value, result.overall_progress, result.can_activate,
        extra={"use_case_id": use_case.id, "operation": "governance_check"},
    )
    return result
