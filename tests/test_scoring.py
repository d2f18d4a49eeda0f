"""
Weighted scoring, quadrant classification and manual overrides.

Covers:
  • compute_weighted_score: formula, missing levers, clamping
  • classify_quadrant: decision table and the effort boundary
  • ScoringWeights parsing: defaults, JSON strings, invalid weights
  • resolve_effective_scores / recalculate_portfolio
"""

import itertools

import pytest

from governance_engine.core.exceptions import ConfigurationError
from governance_engine.models.scoring import (
    EffortWeights,
    ImpactWeights,
    Quadrant,
    ScoringWeights,
)
from governance_engine.models.use_case import UseCase
from governance_engine.services.scoring import (
    calculate_effort_score,
    calculate_impact_score,
    classify_quadrant,
    compute_weighted_score,
    recalculate_portfolio,
    resolve_effective_scores,
    score_use_case,
)


# ═══════════════════════════════════════════════════════════════════════════
# 1 · compute_weighted_score
# ═══════════════════════════════════════════════════════════════════════════

class TestWeightedScore:

    def test_all_fives_with_equal_weights_is_five(self):
        assert calculate_impact_score(5, 5, 5, 5, 5) == 5.0

    def test_formula(self):
        score = compute_weighted_score([4, 2, 3, 1, 5], [40, 10, 20, 10, 20])
        assert score == pytest.approx(4 * 0.4 + 2 * 0.1 + 3 * 0.2 + 1 * 0.1 + 5 * 0.2)

    def test_missing_levers_count_as_zero(self):
        assert compute_weighted_score([None, None, 5, None, None], [20] * 5) == pytest.approx(1.0)

    def test_all_missing_is_zero(self):
        assert calculate_effort_score(None, None, None, None, None) == 0.0

    def test_overweighted_map_clamps_at_five(self):
        assert compute_weighted_score([5] * 5, [50] * 5) == 5.0

    @pytest.mark.parametrize("weights", [
        [20, 20, 20, 20, 20],
        [0, 0, 0, 0, 0],
        [100, 100, 100, 100, 100],
        [5, 60, 0, 15, 20],
    ])
    def test_output_always_within_bounds(self, weights):
        values = [None, 0, 1, 2, 3, 4, 5]
        for levers in itertools.product(values, repeat=5):
            score = compute_weighted_score(list(levers), weights)
            assert 0.0 <= score <= 5.0

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            compute_weighted_score([1, 2, 3], [20] * 5)

    def test_custom_impact_weights(self):
        weights = ImpactWeights(revenue_impact=100, cost_savings=0, risk_reduction=0,
                                broker_partner_experience=0, strategic_fit=0)
        assert calculate_impact_score(3, 5, 5, 5, 5, weights) == pytest.approx(3.0)


# ═══════════════════════════════════════════════════════════════════════════
# 2 · classify_quadrant
# ═══════════════════════════════════════════════════════════════════════════

class TestQuadrant:

    @pytest.mark.parametrize("impact, effort, expected", [
        (4.0, 2.0, Quadrant.QUICK_WIN),
        (4.0, 4.0, Quadrant.STRATEGIC_BET),
        (2.0, 2.0, Quadrant.EXPERIMENTAL),
        (2.0, 4.0, Quadrant.WATCHLIST),
    ])
    def test_decision_table(self, impact, effort, expected):
        assert classify_quadrant(impact, effort) is expected

    def test_boundary_is_strategic_bet(self):
        assert classify_quadrant(3.0, 3.0, 3.0) is Quadrant.STRATEGIC_BET

    def test_effort_just_below_threshold_is_low(self):
        assert classify_quadrant(3.0, 2.999) is Quadrant.QUICK_WIN

    def test_impact_just_below_threshold_is_low(self):
        assert classify_quadrant(2.999, 3.0) is Quadrant.WATCHLIST

    def test_high_impact_high_effort(self):
        assert classify_quadrant(4.4, 3.6, 3.0).value == "Strategic Bet"

    def test_custom_threshold(self):
        assert classify_quadrant(3.5, 3.5, 4.0) is Quadrant.EXPERIMENTAL

    def test_parse_labels(self):
        assert Quadrant.parse("Quick Win") is Quadrant.QUICK_WIN
        assert Quadrant.parse("quick win") is None
        assert Quadrant.parse(None) is None


# ═══════════════════════════════════════════════════════════════════════════
# 3 · ScoringWeights parsing
# ═══════════════════════════════════════════════════════════════════════════

class TestScoringWeights:

    def test_none_gives_equal_weights(self):
        weights = ScoringWeights.from_dict(None)
        assert weights.business_value.as_list() == [20.0] * 5
        assert weights.feasibility.as_list() == [20.0] * 5
        assert weights.quadrant_threshold == 3.0

    def test_partial_record_fills_defaults(self):
        weights = ScoringWeights.from_dict({"businessValue": {"revenueImpact": 40}})
        assert weights.business_value.revenue_impact == 40.0
        assert weights.business_value.cost_savings == 20.0
        assert weights.feasibility == EffortWeights()

    def test_json_string(self):
        weights = ScoringWeights.from_dict('{"quadrantThreshold": 3.5}')
        assert weights.quadrant_threshold == 3.5

    def test_zero_threshold_falls_back(self):
        assert ScoringWeights.from_dict({"quadrantThreshold": 0}).quadrant_threshold == 3.0

    def test_numeric_string_weight_accepted(self):
        weights = ScoringWeights.from_dict({"feasibility": {"modelRisk": "35"}})
        assert weights.feasibility.model_risk == 35.0

    def test_non_numeric_weight_raises(self):
        with pytest.raises(ConfigurationError) as exc:
            ScoringWeights.from_dict({"businessValue": {"strategicFit": "lots"}})
        assert exc.value.section == "scoringModel"

    def test_negative_weight_raises(self):
        with pytest.raises(ConfigurationError):
            ScoringWeights.from_dict({"feasibility": {"dataReadiness": -5}})

    def test_invalid_json_raises(self):
        with pytest.raises(ConfigurationError):
            ScoringWeights.from_dict("{not json")

    def test_to_dict_uses_camel_case(self):
        body = ScoringWeights().to_dict()
        assert body["businessValue"]["brokerPartnerExperience"] == 20.0
        assert body["feasibility"]["adoptionReadiness"] == 20.0
        assert body["quadrantThreshold"] == 3.0


# ═══════════════════════════════════════════════════════════════════════════
# 4 · Use-case scoring & overrides
# ═══════════════════════════════════════════════════════════════════════════

class TestUseCaseScoring:

    def test_score_use_case(self, make_use_case):
        result = score_use_case(make_use_case())
        # (4+5+3+4+5)/5 and (2+2+3+2+1)/5
        assert result.impact_score == pytest.approx(4.2)
        assert result.effort_score == pytest.approx(2.0)
        assert result.quadrant is Quadrant.QUICK_WIN
        assert result.to_dict()["quadrant"] == "Quick Win"

    def test_no_overrides(self, make_use_case):
        scores = resolve_effective_scores(make_use_case())
        assert scores.has_overrides is False
        assert scores.impact_score == scores.calculated.impact_score

    def test_manual_scores_reclassify(self, make_use_case):
        use_case = make_use_case(manualEffortScore=4.5, overrideReason="Vendor lock-in")
        scores = resolve_effective_scores(use_case)
        assert scores.effort_score == 4.5
        assert scores.quadrant is Quadrant.STRATEGIC_BET
        assert scores.calculated.quadrant is Quadrant.QUICK_WIN
        assert scores.has_overrides is True
        assert scores.to_dict()["overrideReason"] == "Vendor lock-in"

    def test_manual_quadrant_wins(self, make_use_case):
        scores = resolve_effective_scores(make_use_case(manualQuadrant="Watchlist"))
        assert scores.quadrant is Quadrant.WATCHLIST

    def test_unknown_manual_quadrant_ignored(self, make_use_case):
        scores = resolve_effective_scores(make_use_case(manualQuadrant="Moonshot"))
        assert scores.quadrant is Quadrant.QUICK_WIN
        assert scores.has_overrides is False

    def test_zero_manual_score_is_not_an_override(self, make_use_case):
        scores = resolve_effective_scores(make_use_case(manualImpactScore=0))
        assert scores.has_overrides is False

    def test_manual_score_clamped(self, make_use_case):
        scores = resolve_effective_scores(make_use_case(manualImpactScore=9))
        assert scores.impact_score == 5.0

    def test_recalculate_portfolio(self, make_record):
        records = [
            make_record(id="a"),
            make_record(id="b", revenueImpact=1, costSavings=1, riskReduction=1,
                        brokerPartnerExperience=1, strategicFit=1),
        ]
        updates = recalculate_portfolio(records, {"quadrantThreshold": 3.0})
        assert [u["id"] for u in updates] == ["a", "b"]
        assert updates[0]["quadrant"] == "Quick Win"
        assert updates[1]["impactScore"] == pytest.approx(1.0)
        assert updates[1]["quadrant"] == "Experimental"

    def test_recalculate_with_threshold_change(self):
        record = UseCase(revenue_impact=4, cost_savings=4, risk_reduction=4,
                         broker_partner_experience=4, strategic_fit=4)
        [default] = recalculate_portfolio([record], None)
        [strict] = recalculate_portfolio([record], {"quadrantThreshold": 4.5})
        assert default["quadrant"] == "Quick Win"
        assert strict["quadrant"] == "Experimental"
