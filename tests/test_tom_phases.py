"""
TOM phase derivation, phase summaries and exit requirements.
"""

import pytest

from governance_engine.core.exceptions import ConfigurationError
from governance_engine.models.tom import (
    DEFAULT_TOM_CONFIG,
    TomConfig,
    ensure_tom_config,
    merge_preset_profile,
)
from governance_engine.models.use_case import UseCase
from governance_engine.services.tom_phases import (
    GovernanceGateInput,
    calculate_phase_summary,
    derive_phase,
    detect_phase_transition,
    get_requirement_label,
    is_requirement_met,
)


def _enabled(**overrides):
    return ensure_tom_config({"enabled": "true", **overrides})


def _rsa():
    return merge_preset_profile(_enabled(activePreset="rsa_tom"))


# ═══════════════════════════════════════════════════════════════════════════
# 1 · Config loading
# ═══════════════════════════════════════════════════════════════════════════

class TestTomConfig:

    def test_default_is_disabled(self):
        assert DEFAULT_TOM_CONFIG.enabled is False
        assert [p.id for p in DEFAULT_TOM_CONFIG.phases] == [
            "foundation", "strategic", "transition", "steady_state",
        ]

    def test_presets(self):
        assert set(DEFAULT_TOM_CONFIG.presets) == {
            "centralized", "federated", "hybrid", "coe_led", "rsa_tom",
        }

    def test_enabled_flag_accepts_bool_and_string(self):
        assert ensure_tom_config({"enabled": True}).enabled is True
        assert ensure_tom_config('{"enabled": "true"}').enabled is True
        assert ensure_tom_config({"enabled": "yes"}).enabled is False

    def test_passthrough(self):
        config = TomConfig()
        assert ensure_tom_config(config) is config

    def test_invalid_records(self):
        with pytest.raises(ConfigurationError):
            ensure_tom_config("{broken")
        with pytest.raises(ConfigurationError):
            ensure_tom_config(["not", "an", "object"])
        with pytest.raises(ConfigurationError):
            ensure_tom_config({"phases": [{"name": "No id"}]})

    def test_legacy_exit_checklist_location(self):
        config = ensure_tom_config({"phases": [
            {"id": "p1", "mappedStatuses": ["Backlog"], "dataRequirements": {"exit": ["kpi_selection"]}},
        ]})
        assert config.phases[0].exit_requirements == ("kpi_selection",)

    @pytest.mark.parametrize("phase", [
        {"id": "p1", "order": "first"},
        {"id": "p1", "order": float("nan")},
        {"id": "p1", "order": 1, "priority": float("inf")},
        {"id": "p1", "dataRequirements": "x"},
        {"id": "p1", "exitRequirements": {"kpi_selection": True}},
    ])
    def test_malformed_phase_raises_configuration_error(self, phase):
        with pytest.raises(ConfigurationError) as exc:
            ensure_tom_config({"phases": [phase]})
        assert exc.value.section == "tomConfig"

    def test_named_priority_falls_back_to_order(self):
        config = ensure_tom_config({"phases": [{"id": "p1", "order": 3, "priority": "high"}]})
        assert config.phases[0].priority == 3

    def test_rsa_preset_replaces_phases(self):
        config = _rsa()
        assert [p.id for p in config.phases] == [
            "ideation", "assessment", "foundation", "build", "scale", "operate",
        ]

    def test_preset_overrides_apply(self):
        config = merge_preset_profile(_enabled(activePreset="centralized"))
        strategic = config.find_phase("strategic")
        assert strategic.governance_gate == "ai_steerco"
        assert strategic.expected_duration_weeks == 20

    def test_unknown_preset_is_noop(self):
        config = _enabled(activePreset="nope")
        assert merge_preset_profile(config) is config

    def test_to_dict_round_trip_fields(self):
        body = _enabled().to_dict()
        assert body["enabled"] == "true"
        assert body["phases"][0]["exitRequirements"] == [
            "basic_details", "business_owner", "scoring_complete",
        ]


# ═══════════════════════════════════════════════════════════════════════════
# 2 · Phase derivation
# ═══════════════════════════════════════════════════════════════════════════

class TestDerivePhase:

    def test_disabled(self):
        derived = derive_phase("In-flight", None, None, DEFAULT_TOM_CONFIG)
        assert derived.id == "disabled"
        assert derived.matched_by == "disabled"

    def test_status_match(self):
        derived = derive_phase("Backlog", None, None, _enabled())
        assert derived.id == "foundation"
        assert derived.matched_by == "status"

    def test_unmapped(self):
        assert derive_phase("Retired", None, None, _enabled()).id == "unmapped"
        assert derive_phase(None, None, None, _enabled()).id == "unmapped"

    def test_manual_override(self):
        derived = derive_phase("Backlog", None, "steady_state", _enabled())
        assert derived.id == "steady_state"
        assert derived.is_override is True

    def test_invalid_override_ignored(self):
        assert derive_phase("Backlog", None, "nowhere", _enabled()).id == "foundation"

    def test_manual_only_phase_not_status_matched(self):
        config = _enabled(phases=[
            {"id": "a", "mappedStatuses": ["In-flight"], "manualOnly": True},
            {"id": "b", "mappedStatuses": ["In-flight"]},
        ])
        assert derive_phase("In-flight", None, None, config).id == "b"

    def test_multiple_matches_use_deployment(self):
        config = _enabled(phases=[
            {"id": "pilot", "priority": 2, "mappedStatuses": ["In-flight"],
             "mappedDeployments": ["Pilot"]},
            {"id": "build", "priority": 1, "mappedStatuses": ["In-flight"],
             "mappedDeployments": ["PoC"]},
        ])
        derived = derive_phase("In-flight", "Pilot", None, config)
        assert derived.id == "pilot"
        assert derived.matched_by == "deployment"

    def test_multiple_matches_fall_back_to_lowest_priority(self):
        config = _enabled(phases=[
            {"id": "late", "priority": 5, "mappedStatuses": ["In-flight"]},
            {"id": "early", "priority": 1, "mappedStatuses": ["In-flight"]},
        ])
        derived = derive_phase("In-flight", "Production", None, config)
        assert derived.id == "early"
        assert derived.matched_by == "priority"

    def test_rsa_scale(self):
        assert derive_phase("Implemented", "Production", None, _rsa()).id == "scale"

    def test_summary(self, make_record):
        records = [
            make_record(useCaseStatus="Backlog"),
            make_record(useCaseStatus="In-flight"),
            make_record(useCaseStatus="In-flight"),
            make_record(useCaseStatus="Retired"),
        ]
        summary = calculate_phase_summary(records, _enabled())
        assert summary["foundation"] == 1
        assert summary["strategic"] == 2
        assert summary["transition"] == 0
        assert summary["unmapped"] == 1
        assert summary["disabled"] == 0

    def test_summary_when_disabled(self, make_record):
        summary = calculate_phase_summary([make_record()], None)
        assert summary["disabled"] == 1


# ═══════════════════════════════════════════════════════════════════════════
# 3 · Exit requirements
# ═══════════════════════════════════════════════════════════════════════════

class TestExitRequirements:

    def test_labels(self):
        assert get_requirement_label("kpi_selection") == "KPI Selection"
        assert get_requirement_label("independence_threshold") == "Independence Threshold"
        assert get_requirement_label("custom_sign-off") == "Custom Sign Off"

    def test_basic_details(self, make_use_case):
        gates = GovernanceGateInput()
        assert is_requirement_met("basic_details", make_use_case(), gates)
        assert not is_requirement_met("basic_details", make_use_case(description=" "), gates)

    def test_scoring_complete_ignores_other_feasibility_levers(self, make_use_case):
        use_case = make_use_case(changeImpact=None, modelRisk=None)
        assert is_requirement_met("scoring_complete", use_case, GovernanceGateInput())
        use_case = make_use_case(dataReadiness=0)
        assert not is_requirement_met("scoring_complete", use_case, GovernanceGateInput())

    def test_gate_requirements_follow_input(self, make_use_case):
        gates = GovernanceGateInput(operating_model_passed=True, rai_passed=False)
        assert is_requirement_met("operating_model_gate", make_use_case(), gates)
        assert not is_requirement_met("intake_gate", make_use_case(), gates)
        assert not is_requirement_met("rai_gate", make_use_case(), gates)

    def test_investment_cost(self, make_use_case):
        gates = GovernanceGateInput()
        assert is_requirement_met("investment_cost", make_use_case(), gates)
        assert not is_requirement_met("investment_cost", make_use_case(investmentCostGbp=0), gates)

    def test_independence_threshold(self, make_use_case):
        gates = GovernanceGateInput()
        below = make_use_case()
        assert not is_requirement_met("independence_threshold", below, gates)
        custom = make_use_case(capabilityTransition={
            "independencePercentage": 40, "selfSufficiencyTarget": {"targetIndependence": 30},
        })
        assert is_requirement_met("independence_threshold", custom, gates)

    def test_unknown_requirement_unmet(self, make_use_case, caplog):
        assert not is_requirement_met("moon_landing", make_use_case(), GovernanceGateInput())
        assert "moon_landing" in caplog.text

    def test_record_field_requirement(self):
        gates = GovernanceGateInput()
        assert is_requirement_met("raiRiskTier", UseCase.from_dict({"raiRiskTier": "Low"}), gates)
        assert not is_requirement_met("raiRiskTier", UseCase.from_dict({"raiRiskTier": " "}), gates)
        assert not is_requirement_met("raiRiskTier", UseCase.from_dict({"raiRiskTier": None}), gates)

    def test_engine_field_requirement(self, make_use_case):
        gates = GovernanceGateInput()
        assert is_requirement_met("businessFunction", make_use_case(), gates)
        assert not is_requirement_met("businessFunction", make_use_case(businessFunction=""), gates)
        assert not is_requirement_met("thirdPartyModel", make_use_case(thirdPartyModel=None), gates)


# ═══════════════════════════════════════════════════════════════════════════
# 4 · Transition detection
# ═══════════════════════════════════════════════════════════════════════════

class TestDetectPhaseTransition:

    def _detect(self, use_case, current, new, config, **kw):
        return detect_phase_transition(
            current_status=current, current_deployment=None, current_override=None,
            new_status=new, new_deployment=None, new_override=None,
            use_case=use_case, tom_config=config, **kw,
        )

    def test_no_transition(self, make_use_case):
        info = self._detect(make_use_case(), "Discovery", "On Hold", _enabled())
        assert info.has_transition is False

    def test_pending_requirements(self, make_use_case):
        use_case = make_use_case(primaryBusinessOwner=None)
        info = self._detect(use_case, "Backlog", "In-flight", _enabled())
        assert info.has_transition is True
        assert info.from_phase_id == "foundation"
        assert info.to_phase_id == "strategic"
        assert info.exit_requirements_pending == ("business_owner",)

    def test_supplied_gates_override_computed(self, make_use_case):
        info = self._detect(make_use_case(), "In-flight", "Implemented", _enabled(),
                            governance_gates={"operatingModelPassed": True})
        assert info.exit_requirements_pending == ("intake_gate", "rai_gate")

    def test_from_disabled(self, make_use_case):
        info = self._detect(make_use_case(), "Backlog", "In-flight", None)
        assert info.has_transition is False
        assert info.from_phase_id == "disabled"

    def test_exit_from_unmapped(self, make_use_case):
        info = self._detect(make_use_case(), "Retired", "Backlog", _enabled())
        assert info.is_exiting_unphased_or_disabled is True
        assert info.exit_requirements_pending == ()

    def test_to_dict(self, make_use_case):
        body = self._detect(make_use_case(), "Backlog", "In-flight", _enabled()).to_dict()
        assert body["hasTransition"] is True
        assert body["exitRequirementsPending"] == []

    def test_rsa_build_exit(self):
        use_case = UseCase.from_dict({"selected_kpis": []})
        info = detect_phase_transition(
            current_status="In-flight", current_deployment="PoC", current_override="build",
            new_status="Implemented", new_deployment="Production", new_override=None,
            use_case=use_case, tom_config=_rsa(),
        )
        assert info.from_phase_id == "build"
        assert info.to_phase_id == "scale"
        assert info.exit_requirements_pending == ("kpi_selection",)
