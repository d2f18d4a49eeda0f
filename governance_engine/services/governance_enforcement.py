"""
Governance Enforcement: activation blocking, auto-deactivation and phase
transition checks layered on top of the three governance gates.

    check_activation_allowed            moving into In-flight / Implemented
    check_governance_regression         editing an already-active use case
    check_phase_transition_requirements leaving a TOM phase with open exit items

Every function returns a result object; none of them raise for a business
rule failure.  Audit-worthy outcomes are logged with ``audit_action`` and can
be turned into audit log rows with ``build_audit_event``.

Usage:
    from governance_engine.services.governance_enforcement import check_activation_allowed

    result = check_activation_allowed(use_case, "In-flight")
    if result.blocked:
        return api_error(E.GOVERNANCE_INCOMPLETE, "...",
                         details=build_activation_blocked_response(result))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from governance_engine.models.tom import TomConfig
from governance_engine.models.use_case import UseCase
from governance_engine.services.governance_gates import (
    GATE_ORDER,
    GovernanceCheckResult,
    perform_full_governance_check,
)
from governance_engine.services.performance import MetricsCollector
from governance_engine.services.tom_phases import (
    GovernanceGateInput,
    detect_phase_transition,
    get_requirement_label,
)
from governance_engine.settings import (
    GOVERNANCE_ENFORCEMENT_DATE,
    EngineSettings,
    get_engine_settings,
)
from governance_engine.utils.errors import (
    GOVERNANCE_INCOMPLETE,
    GOVERNANCE_REGRESSION,
    PHASE_TRANSITION_REQUIRES_JUSTIFICATION,
)

logger = logging.getLogger(__name__)

# Statuses that require all gates before a use case may enter them
ACTIVATION_STATUSES: tuple[str, ...] = ("In-flight", "Implemented")

UNKNOWN_GATE = "Unknown"


class GovernanceAuditAction(str, Enum):
    ACTIVATION_BLOCKED = "ACTIVATION_BLOCKED"
    AUTO_DEACTIVATION = "AUTO_DEACTIVATION"
    PHASE_TRANSITION_OVERRIDE = "PHASE_TRANSITION_OVERRIDE"
    LEGACY_GOVERNANCE_WARNING = "LEGACY_GOVERNANCE_WARNING"


# ═════════════════════════════════════════════════════════════════════════════
# Result types
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ActivationBlockResult:
    blocked: bool
    reason: str | None = None
    governance_check: GovernanceCheckResult | None = None

    def to_dict(self) -> dict:
        body: dict = {"blocked": self.blocked}
        if self.reason:
            body["reason"] = self.reason
        if self.governance_check is not None:
            body["governanceCheck"] = self.governance_check.to_dict()
        return body


@dataclass(frozen=True)
class GovernanceRegressionResult:
    should_deactivate: bool
    reason: str | None = None
    regressed_gate: str | None = None
    is_legacy_use_case: bool | None = None

    def to_dict(self) -> dict:
        body: dict = {"shouldDeactivate": self.should_deactivate}
        if self.reason:
            body["reason"] = self.reason
        if self.regressed_gate:
            body["regressedGate"] = self.regressed_gate
        if self.is_legacy_use_case is not None:
            body["isLegacyUseCase"] = self.is_legacy_use_case
        return body


@dataclass(frozen=True)
class PhaseTransitionResult:
    allowed: bool
    requires_justification: bool
    current_phase: str
    target_phase: str
    pending_exit_requirements: tuple[str, ...] = field(default_factory=tuple)
    is_exiting_unphased_or_disabled: bool = False

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "requiresJustification": self.requires_justification,
            "currentPhase": self.current_phase,
            "targetPhase": self.target_phase,
            "pendingExitRequirements": list(self.pending_exit_requirements),
            "isExitingUnphasedOrDisabled": self.is_exiting_unphased_or_disabled,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Activation guard
# ═════════════════════════════════════════════════════════════════════════════

def _collector_for(
    collector: MetricsCollector | None,
    settings: EngineSettings | None,
) -> MetricsCollector:
    if collector is not None:
        return collector
    return (settings or get_engine_settings()).collector


def check_activation_allowed(
    use_case: UseCase | Mapping[str, Any],
    target_status: str | None,
    collector: MetricsCollector | None = None,
    settings: EngineSettings | None = None,
) -> ActivationBlockResult:
    """Block a move into an activation status while any gate is open.

    ``legacyActivationFlag == "true"`` skips the gate check entirely.
    Timing goes to ``collector``, else to the engine settings' collector.
    """
    if target_status not in ACTIVATION_STATUSES:
        return ActivationBlockResult(blocked=False)

    use_case = UseCase.coerce(use_case)
    if use_case.legacy_activation_flag == "true":
        logger.debug("Legacy activation flag set on use case %s; skipping gates", use_case.id)
        return ActivationBlockResult(blocked=False)

    check = perform_full_governance_check(use_case, _collector_for(collector, settings))
    if check.can_activate:
        return ActivationBlockResult(blocked=False)

    logger.info(
        "Activation of use case %s to %r blocked: %d missing field(s)",
        use_case.id, target_status, len(check.missing_fields),
        extra={
            "use_case_id": use_case.id,
            "audit_action": GovernanceAuditAction.ACTIVATION_BLOCKED.value,
            "target_status": target_status,
        },
    )
    return ActivationBlockResult(blocked=True, reason=GOVERNANCE_INCOMPLETE,
                                 governance_check=check)


# ═════════════════════════════════════════════════════════════════════════════
# Regression monitor
# ═════════════════════════════════════════════════════════════════════════════

def is_legacy_active_use_case(
    use_case: UseCase | Mapping[str, Any],
    enforcement_date: datetime = GOVERNANCE_ENFORCEMENT_DATE,
) -> bool:
    """Active and created before governance enforcement started."""
    use_case = UseCase.coerce(use_case)
    if use_case.use_case_status not in ACTIVATION_STATUSES:
        return False
    return use_case.created_at is not None and use_case.created_at < enforcement_date


def identify_regressed_gate(before: GovernanceCheckResult, after: GovernanceCheckResult) -> str:
    """First gate, in ``GATE_ORDER``, that went from passed to failed."""
    for gate in GATE_ORDER:
        if before.gates[gate].passed and not after.gates[gate].passed:
            return gate.label
    return UNKNOWN_GATE


def check_governance_regression(
    current_use_case: UseCase | Mapping[str, Any],
    proposed_field_updates: Mapping[str, Any] | None,
    enforcement_date: datetime | None = None,
    collector: MetricsCollector | None = None,
    settings: EngineSettings | None = None,
) -> GovernanceRegressionResult:
    """Would applying the updates make an active use case fail governance?

    Legacy use cases get the diagnosis but are never deactivated.  The legacy
    cutoff comes from ``settings`` (default: ``get_engine_settings()``)
    unless ``enforcement_date`` is passed.
    """
    settings = settings or get_engine_settings()
    enforcement_date = enforcement_date or settings.enforcement_date
    collector = _collector_for(collector, settings)
    current = UseCase.coerce(current_use_case)
    if current.use_case_status not in ACTIVATION_STATUSES:
        return GovernanceRegressionResult(should_deactivate=False)

    is_legacy = is_legacy_active_use_case(current, enforcement_date)
    merged = current.merged(proposed_field_updates)

    before = perform_full_governance_check(current, collector)
    after = perform_full_governance_check(merged, collector)
    if not (before.can_activate and not after.can_activate):
        return GovernanceRegressionResult(should_deactivate=False)

    regressed_gate = identify_regressed_gate(before, after)
    extra = {"use_case_id": current.id, "regressed_gate": regressed_gate}

    if is_legacy:
        logger.warning(
            "Legacy use case %s would fail governance (%s gate); not deactivating",
            current.id, regressed_gate,
            extra={**extra, "audit_action": GovernanceAuditAction.LEGACY_GOVERNANCE_WARNING.value},
        )
        return GovernanceRegressionResult(
            should_deactivate=False,
            reason=f"Legacy use case would fail governance: {regressed_gate} gate no longer passes",
            regressed_gate=regressed_gate,
            is_legacy_use_case=True,
        )

    logger.info(
        "Governance regression on use case %s (%s gate); deactivation required",
        current.id, regressed_gate,
        extra={**extra, "audit_action": GovernanceAuditAction.AUTO_DEACTIVATION.value},
    )
    return GovernanceRegressionResult(
        should_deactivate=True,
        reason=f"Governance regression detected: {regressed_gate} gate no longer passes",
        regressed_gate=regressed_gate,
        is_legacy_use_case=False,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Phase transitions
# ═════════════════════════════════════════════════════════════════════════════

def check_phase_transition_requirements(
    use_case: UseCase | Mapping[str, Any],
    current_status: str | None,
    target_status: str | None,
    tom_config: TomConfig | Mapping[str, Any] | None = None,
    justification: str | None = None,
    governance_gates: GovernanceGateInput | Mapping[str, Any] | None = None,
    settings: EngineSettings | None = None,
) -> PhaseTransitionResult:
    """Decide whether a status change may leave the current TOM phase.

    Pending exit requirements block the move unless a non-blank
    ``justification`` is given; the justification text itself is not
    validated.  Leaving an unphased or disabled state is always allowed.
    Without ``tom_config`` the engine settings' TOM config is used.
    """
    if tom_config is None:
        tom_config = (settings or get_engine_settings()).tom_config
    use_case = UseCase.coerce(use_case)
    info = detect_phase_transition(
        current_status=current_status,
        current_deployment=use_case.deployment_status,
        current_override=use_case.tom_phase_override,
        new_status=target_status,
        new_deployment=use_case.deployment_status,
        new_override=use_case.tom_phase_override,
        use_case=use_case,
        tom_config=tom_config,
        governance_gates=governance_gates,
    )

    if not info.has_transition:
        return PhaseTransitionResult(
            allowed=True,
            requires_justification=False,
            current_phase=info.from_phase_id or "unknown",
            target_phase=info.to_phase_id or "unknown",
        )

    if info.is_exiting_unphased_or_disabled:
        return PhaseTransitionResult(
            allowed=True,
            requires_justification=False,
            current_phase=info.from_phase_id or "unphased",
            target_phase=info.to_phase_id or "unknown",
            is_exiting_unphased_or_disabled=True,
        )

    pending = tuple(get_requirement_label(r) for r in info.exit_requirements_pending)
    current_phase = info.from_phase.name if info.from_phase else (info.from_phase_id or "unknown")
    target_phase = info.to_phase.name if info.to_phase else (info.to_phase_id or "unknown")
    justified = bool(justification and justification.strip())

    if pending and not justified:
        return PhaseTransitionResult(
            allowed=False,
            requires_justification=True,
            current_phase=current_phase,
            target_phase=target_phase,
            pending_exit_requirements=pending,
        )

    if pending:
        logger.info(
            "Phase transition %s -> %s for use case %s overridden with justification "
            "(%d pending requirement(s))",
            current_phase, target_phase, use_case.id, len(pending),
            extra={
                "use_case_id": use_case.id,
                "audit_action": GovernanceAuditAction.PHASE_TRANSITION_OVERRIDE.value,
                "target_status": target_status,
            },
        )
    return PhaseTransitionResult(
        allowed=True,
        requires_justification=bool(pending),
        current_phase=current_phase,
        target_phase=target_phase,
        pending_exit_requirements=pending,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Response & audit builders
# ═════════════════════════════════════════════════════════════════════════════

def build_activation_blocked_response(result: ActivationBlockResult) -> dict:
    """Diagnostic body for a blocked activation (per-gate missing fields)."""
    if result.governance_check is None:
        raise ValueError("Activation result carries no governance check")
    check = result.governance_check.to_dict()
    return {
        "error": result.reason or GOVERNANCE_INCOMPLETE,
        "message": "Use case cannot be activated until all governance gates pass",
        "gates": check["gates"],
        "missingFields": check["missingFields"],
        "overallProgress": check["overallProgress"],
    }


def build_phase_transition_required_response(result: PhaseTransitionResult) -> dict:
    return {
        "error": PHASE_TRANSITION_REQUIRES_JUSTIFICATION,
        "message": ("Please provide phaseTransitionJustification to proceed with "
                    "incomplete exit requirements"),
        "currentPhase": result.current_phase,
        "targetPhase": result.target_phase,
        "pendingExitRequirements": list(result.pending_exit_requirements),
    }


def build_regression_response(result: GovernanceRegressionResult) -> dict:
    return {
        "error": GOVERNANCE_REGRESSION,
        "message": result.reason or "Update would not change governance status",
        "regressedGate": result.regressed_gate,
        "isLegacyUseCase": bool(result.is_legacy_use_case),
        "shouldDeactivate": result.should_deactivate,
    }


def build_audit_event(
    action: GovernanceAuditAction,
    use_case: UseCase | Mapping[str, Any],
    **details,
) -> dict:
    """Row for the persistence layer's governance audit log."""
    use_case = UseCase.coerce(use_case)
    return {
        "action": action.value,
        "use_case_id": use_case.id,
        "use_case_status": use_case.use_case_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details,
    }
