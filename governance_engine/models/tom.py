"""
Target Operating Model (TOM) configuration.

A TOM config is a phase table: each phase maps a set of use case statuses
(and optionally deployment statuses) to a named lifecycle stage with an exit
checklist.  The config is disabled by default; when disabled every use case
derives to the synthetic ``disabled`` phase.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from governance_engine.core.exceptions import ConfigurationError

_SECTION = "tomConfig"


def _int(value: Any, name: str, phase_id: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        if isinstance(value, bool):
            raise ValueError(value)
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"TOM phase {name} must be a number, got {value!r}",
                                 section=_SECTION, details={"phase": phase_id}) from exc
    return int(number)


@dataclass(frozen=True)
class TomPhase:
    id: str
    name: str
    order: int = 0
    priority: int = 0
    description: str = ""
    color: str = "#6B7280"
    mapped_statuses: tuple[str, ...] = ()
    mapped_deployments: tuple[str, ...] = ()
    manual_only: bool = False
    governance_gate: str = "none"
    expected_duration_weeks: int | None = None
    exit_requirements: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TomPhase":
        if not isinstance(raw, Mapping) or not raw.get("id"):
            raise ConfigurationError("Each TOM phase needs an id", section=_SECTION,
                                     details={"phase": raw})
        exit_reqs = raw.get("exitRequirements")
        if exit_reqs is None:
            # older records nest the checklist under dataRequirements.exit
            data_reqs = raw.get("dataRequirements") or {}
            if not isinstance(data_reqs, Mapping):
                raise ConfigurationError("dataRequirements must be an object",
                                         section=_SECTION, details={"phase": raw["id"]})
            exit_reqs = data_reqs.get("exit") or []
        if isinstance(exit_reqs, str):
            exit_reqs = [exit_reqs]
        if not isinstance(exit_reqs, (list, tuple)):
            raise ConfigurationError("exit requirements must be a list",
                                     section=_SECTION, details={"phase": raw["id"]})
        order = _int(raw.get("order"), "order", raw["id"])
        priority = raw.get("priority")
        # named priorities ("high") fall back to the phase order
        if isinstance(priority, (int, float)) and not isinstance(priority, bool):
            priority = _int(priority, "priority", raw["id"])
        else:
            priority = order
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            order=order,
            priority=priority,
            description=raw.get("description") or "",
            color=raw.get("color") or "#6B7280",
            mapped_statuses=tuple(raw.get("mappedStatuses") or ()),
            mapped_deployments=tuple(raw.get("mappedDeployments") or ()),
            manual_only=bool(raw.get("manualOnly", False)),
            governance_gate=raw.get("governanceGate") or "none",
            expected_duration_weeks=raw.get("expectedDurationWeeks"),
            exit_requirements=tuple(exit_reqs),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "order": self.order,
            "priority": self.priority,
            "description": self.description,
            "color": self.color,
            "mappedStatuses": list(self.mapped_statuses),
            "mappedDeployments": list(self.mapped_deployments),
            "manualOnly": self.manual_only,
            "governanceGate": self.governance_gate,
            "expectedDurationWeeks": self.expected_duration_weeks,
            "exitRequirements": list(self.exit_requirements),
        }


@dataclass(frozen=True)
class TomConfig:
    enabled: bool = False
    active_preset: str = "coe_led"
    presets: dict = field(default_factory=dict)
    preset_profiles: dict = field(default_factory=dict)
    phases: tuple[TomPhase, ...] = ()
    governance_bodies: tuple[dict, ...] = ()
    derivation_rules: dict = field(default_factory=dict)

    def find_phase(self, phase_id: str | None) -> TomPhase | None:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def active_profile(self) -> dict | None:
        return self.preset_profiles.get(self.active_preset)

    def to_dict(self) -> dict:
        return {
            "enabled": "true" if self.enabled else "false",
            "activePreset": self.active_preset,
            "presets": self.presets,
            "presetProfiles": self.preset_profiles,
            "phases": [p.to_dict() for p in self.phases],
            "governanceBodies": list(self.governance_bodies),
            "derivationRules": self.derivation_rules,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Defaults
# ═════════════════════════════════════════════════════════════════════════════

def _phase(pid, name, order, color, statuses, deployments, gate, weeks, exit_reqs,
           description, manual_only=False) -> dict:
    return {
        "id": pid,
        "name": name,
        "order": order,
        "priority": order,
        "description": description,
        "color": color,
        "mappedStatuses": statuses,
        "mappedDeployments": deployments,
        "manualOnly": manual_only,
        "governanceGate": gate,
        "expectedDurationWeeks": weeks,
        "exitRequirements": exit_reqs,
    }


_RSA_TOM_PHASES = [
    _phase("ideation", "Ideation", 1, "#9333EA", ["Discovery"], [], "innovation_board", 4,
           ["basic_details", "business_owner"],
           "Early discovery, opportunity identification, and initial concept validation"),
    _phase("assessment", "Assessment", 2, "#3C2CDA", ["Backlog", "On Hold"], [], "ai_steerco", 6,
           ["scoring_complete", "operating_model_gate", "intake_gate"],
           "Detailed feasibility analysis, business case development, and resource planning"),
    _phase("foundation", "Foundation", 3, "#1D86FF", ["In-flight"], [], "ai_steerco", 8,
           ["rai_gate", "investment_cost"],
           "Technical infrastructure setup, team onboarding, and governance alignment"),
    _phase("build", "Build", 4, "#14CBDE", [], ["PoC", "Pilot"], "working_group", 12,
           ["kpi_selection"],
           "Active development, integration, and pilot testing with controlled user groups"),
    _phase("scale", "Scale", 5, "#10B981", ["Implemented"], ["Production"], "business_owner", 10,
           ["independence_threshold"],
           "Production deployment, user adoption, and capability transfer to client teams"),
    _phase("operate", "Operate", 6, "#07125E", [], [], "none", None, [],
           "Full client ownership, continuous optimization, and value realization tracking",
           manual_only=True),
]

_DEFAULT_PHASES = [
    _phase("foundation", "Foundation", 1, "#3C2CDA", ["Discovery", "Backlog", "On Hold"], [],
           "ai_steerco", 8, ["basic_details", "business_owner", "scoring_complete"],
           "Initial setup, governance alignment, and backlog grooming"),
    _phase("strategic", "Strategic", 2, "#1D86FF", ["In-flight"], ["PoC", "Pilot"],
           "working_group", 16,
           ["operating_model_gate", "intake_gate", "rai_gate", "investment_cost"],
           "Active development, pilots, and value validation"),
    _phase("transition", "Transition", 3, "#14CBDE", ["Implemented"], ["Production"],
           "business_owner", 12, ["kpi_selection", "independence_threshold"],
           "Production deployment and capability transfer in progress"),
    _phase("steady_state", "Steady State", 4, "#07125E", [], [], "none", None, [],
           "Full client ownership, optimization mode", manual_only=True),
]


def _profile(overrides: dict, ratios: dict, tracks: list, phases: list | None = None) -> dict:
    profile = {"phaseOverrides": overrides, "staffingRatios": ratios, "deliveryTracks": tracks}
    if phases is not None:
        profile["phases"] = phases
    return profile


def _override(gate, weeks) -> dict:
    return {"governanceGate": gate, "expectedDurationWeeks": weeks}


def _ratio(vendor, client) -> dict:
    return {"vendor": vendor, "client": client}


def _track(tid, name, description) -> dict:
    return {"id": tid, "name": name, "description": description}


DEFAULT_TOM_RECORD: dict = {
    "enabled": "false",
    "activePreset": "coe_led",
    "presets": {
        "centralized": {"name": "Centralized CoE", "description": "Single AI team owns all delivery"},
        "federated": {"name": "Federated Model",
                      "description": "Business units own AI with central standards"},
        "hybrid": {"name": "Hybrid Model", "description": "Central platform, distributed execution"},
        "coe_led": {"name": "CoE-Led with Business Pods",
                    "description": "CoE leads with embedded business pods"},
        "rsa_tom": {"name": "RSA Enterprise TOM",
                    "description": "Six-phase enterprise model with extended governance"},
    },
    "presetProfiles": {
        "centralized": _profile(
            {
                "foundation": _override("ai_steerco", 12),
                "strategic": _override("ai_steerco", 20),
                "transition": _override("ai_steerco", 16),
                "steady_state": _override("ai_steerco", None),
            },
            {
                "foundation": _ratio(0.9, 0.1),
                "strategic": _ratio(0.8, 0.2),
                "transition": _ratio(0.6, 0.4),
                "steady_state": _ratio(0.2, 0.8),
            },
            [_track("single_track", "Unified Delivery", "All initiatives through central CoE pipeline")],
        ),
        "federated": _profile(
            {
                "foundation": _override("working_group", 6),
                "strategic": _override("business_owner", 12),
                "transition": _override("business_owner", 8),
                "steady_state": _override("none", None),
            },
            {
                "foundation": _ratio(0.4, 0.6),
                "strategic": _ratio(0.3, 0.7),
                "transition": _ratio(0.2, 0.8),
                "steady_state": _ratio(0.1, 0.9),
            },
            [_track("bu_owned", "Business Unit Owned", "Each business unit manages own AI initiatives")],
        ),
        "hybrid": _profile(
            {
                "foundation": _override("working_group", 6),
                "strategic": _override("working_group", 14),
                "transition": _override("business_owner", 10),
                "steady_state": _override("none", None),
            },
            {
                "foundation": _ratio(0.6, 0.4),
                "strategic": _ratio(0.5, 0.5),
                "transition": _ratio(0.35, 0.65),
                "steady_state": _ratio(0.15, 0.85),
            },
            [
                _track("quick_wins", "Quick Wins", "Fast-track high-impact, low-effort initiatives"),
                _track("strategic", "Strategic Initiatives",
                       "Long-term capability building and complex projects"),
            ],
        ),
        "coe_led": _profile(
            {
                "foundation": _override("ai_steerco", 8),
                "strategic": _override("working_group", 16),
                "transition": _override("business_owner", 12),
                "steady_state": _override("none", None),
            },
            {
                "foundation": _ratio(0.7, 0.3),
                "strategic": _ratio(0.55, 0.45),
                "transition": _ratio(0.4, 0.6),
                "steady_state": _ratio(0.2, 0.8),
            },
            [
                _track("coe_track", "CoE Pipeline",
                       "Primary delivery through CoE with business pod support"),
                _track("pod_track", "Business Pods",
                       "Embedded teams handling domain-specific initiatives"),
            ],
        ),
        "rsa_tom": _profile(
            {
                "ideation": _override("innovation_board", 4),
                "assessment": _override("ai_steerco", 6),
                "foundation": _override("ai_steerco", 8),
                "build": _override("working_group", 12),
                "scale": _override("business_owner", 10),
                "operate": _override("none", None),
            },
            {
                "ideation": _ratio(0.3, 0.7),
                "assessment": _ratio(0.5, 0.5),
                "foundation": _ratio(0.75, 0.25),
                "build": _ratio(0.8, 0.2),
                "scale": _ratio(0.5, 0.5),
                "operate": _ratio(0.15, 0.85),
            },
            [
                _track("innovation", "Innovation Track",
                       "Exploratory initiatives and proof of concepts"),
                _track("transformation", "Transformation Track",
                       "Large-scale enterprise transformation programs"),
                _track("enhancement", "Enhancement Track",
                       "Incremental improvements to existing capabilities"),
            ],
            phases=_RSA_TOM_PHASES,
        ),
    },
    "phases": _DEFAULT_PHASES,
    "governanceBodies": [
        {"id": "innovation_board", "name": "Innovation Board",
         "role": "Early-stage opportunity assessment and ideation approval", "cadence": "Weekly"},
        {"id": "ai_steerco", "name": "AI Steering Committee",
         "role": "Strategic oversight and investment decisions", "cadence": "Monthly"},
        {"id": "working_group", "name": "AI Working Group",
         "role": "Tactical execution and prioritization", "cadence": "Bi-weekly"},
        {"id": "business_owner", "name": "Business Owner Review",
         "role": "Value validation and adoption sign-off", "cadence": "Weekly"},
    ],
    "derivationRules": {
        "matchOrder": ["useCaseStatus", "deploymentStatus"],
        "fallbackBehavior": "lowestPriority",
        "nullDeploymentHandling": "ignoreInMatching",
    },
}


def _parse_phases(raw_phases: Any) -> tuple[TomPhase, ...]:
    if not isinstance(raw_phases, (list, tuple)):
        raise ConfigurationError("phases must be a list", section=_SECTION)
    return tuple(TomPhase.from_dict(p) for p in raw_phases)


def ensure_tom_config(raw: TomConfig | Mapping[str, Any] | str | None) -> TomConfig:
    """Fill a partial TOM record with defaults and return a typed config.

    Sections the record omits (phases, presets, profiles, governance bodies,
    derivation rules) are taken from ``DEFAULT_TOM_RECORD``.
    """
    if isinstance(raw, TomConfig):
        return raw
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ConfigurationError(f"TOM config is not valid JSON: {exc}",
                                     section=_SECTION) from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError("TOM config must be an object", section=_SECTION)

    merged = {**DEFAULT_TOM_RECORD, **{k: v for k, v in raw.items() if v is not None}}
    enabled = merged.get("enabled")
    return TomConfig(
        enabled=enabled is True or enabled == "true",
        active_preset=merged.get("activePreset") or DEFAULT_TOM_RECORD["activePreset"],
        presets=dict(merged["presets"]),
        preset_profiles=dict(merged["presetProfiles"]),
        phases=_parse_phases(merged["phases"]),
        governance_bodies=tuple(merged["governanceBodies"]),
        derivation_rules=dict(merged["derivationRules"]),
    )


def merge_preset_profile(config: TomConfig) -> TomConfig:
    """Apply the active preset's phase definitions and per-phase overrides."""
    profile = config.active_profile()
    if not profile:
        return config

    base_phases = _parse_phases(profile["phases"]) if profile.get("phases") else config.phases
    overrides = profile.get("phaseOverrides") or {}

    merged_phases = []
    for phase in base_phases:
        override = overrides.get(phase.id)
        if not override:
            merged_phases.append(phase)
            continue
        merged_phases.append(replace(
            phase,
            governance_gate=override.get("governanceGate") or phase.governance_gate,
            expected_duration_weeks=(
                override["expectedDurationWeeks"]
                if "expectedDurationWeeks" in override
                else phase.expected_duration_weeks
            ),
        ))
    return replace(config, phases=tuple(merged_phases))


DEFAULT_TOM_CONFIG = ensure_tom_config(None)
