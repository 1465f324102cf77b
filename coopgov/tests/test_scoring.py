# coopgov/tests/test_scoring.py
import pytest

from conftest import full_draft
from coopgov.engine.charter_config import CHARTER_CONFIG
from coopgov.engine.errors import ConfigurationAnomaly, InternalScoringError
from coopgov.engine.scoring import (
    HeuristicGoalScorer,
    budget_penalty,
    check_goal_weights,
    clamp01,
    compose,
    score_draft,
    weighted_totals,
)
from coopgov.engine.extraction import sanitize_extraction
from coopgov.schemas import CharterConfig, MissionImpactScore, StructuralScores


def _charter(goals, **extra):
    return CharterConfig.model_validate({**CHARTER_CONFIG, "goalDefinitions": goals, **extra})


THREE_GOALS = [
    {"key": "A", "label": "A", "weight": 0.5},
    {"key": "B", "label": "B", "weight": 0.3},
    {"key": "C", "label": "C", "weight": 0.2},
]


def test_compose_weighted_composite():
    gs = compose({"A": 1.0, "B": 0.5, "C": 0.0}, _charter(THREE_GOALS))
    assert gs.composite == pytest.approx(0.65)
    assert gs.scores == {"A": 1.0, "B": 0.5, "C": 0.0}


def test_compose_clamps_and_fills_missing():
    gs = compose({"A": 1.7, "B": -0.3, "extra": 0.9}, _charter(THREE_GOALS))
    assert gs.scores == {"A": 1.0, "B": 0.0, "C": 0.0}
    assert gs.composite == pytest.approx(0.5)


def test_compose_renormalises_weights():
    goals = [{"key": "A", "label": "A", "weight": 0.6}, {"key": "B", "label": "B", "weight": 0.6}]
    gs = compose({"A": 1.0, "B": 0.0}, _charter(goals))
    assert gs.composite == pytest.approx(0.5)


def test_compose_zero_weights_fall_back_to_equal():
    goals = [{"key": "A", "label": "A", "weight": 0.0}, {"key": "B", "label": "B", "weight": 0.0}]
    gs = compose({"A": 0.8, "B": 0.4}, _charter(goals))
    assert gs.composite == pytest.approx(0.6)


def test_goal_scores_serialise_flat():
    gs = compose({"A": 1.0, "B": 0.5, "C": 0.0}, _charter(THREE_GOALS))
    assert gs.model_dump() == {"A": 1.0, "B": 0.5, "C": 0.0, "composite": 0.65}


def test_check_goal_weights(charter):
    check_goal_weights(charter)
    goals = [{"key": "A", "label": "A", "weight": 0.6}, {"key": "B", "label": "B", "weight": 0.6}]
    with pytest.raises(ConfigurationAnomaly):
        check_goal_weights(_charter(goals))
    with pytest.raises(ConfigurationAnomaly):
        check_goal_weights(_charter(THREE_GOALS, scoringWeights={"selfReliance": 0.4}))


def test_weighted_totals_match_hand_computation():
    charter = _charter([
        {"key": "income_stability", "label": "Income Stability", "weight": 0.35},
        {"key": "asset_creation", "label": "Asset Creation", "weight": 0.25},
        {"key": "leakage_reduction", "label": "Leakage Reduction", "weight": 0.20},
        {"key": "export_expansion", "label": "Export Expansion", "weight": 0.20},
    ])
    structural = StructuralScores(
        goal_mapping_valid=True, feasibility_score=0.8, risk_score=0.2, accountability_score=0.7,
    )
    impacts = [
        MissionImpactScore(goal_id=k, impact_score=s, goal_priority_weight=w)
        for k, s, w in [
            ("income_stability", 0.8, 0.35),
            ("asset_creation", 0.7, 0.25),
            ("leakage_reduction", 0.9, 0.20),
            ("export_expansion", 0.6, 0.20),
        ]
    ]
    totals = weighted_totals(structural, impacts, charter)
    assert totals.mission_weighted_score == pytest.approx(0.755, abs=1e-3)
    assert totals.structural_weighted_score == pytest.approx(0.775, abs=1e-3)
    assert totals.overall_score == pytest.approx(0.763, abs=1e-3)
    assert totals.passes_threshold


def _draft(**overrides):
    return sanitize_extraction(full_draft(**overrides)).draft


def test_heuristic_scorer_is_deterministic(charter):
    scorer = HeuristicGoalScorer()
    a = scorer.score(_draft(), charter)
    b = scorer.score(_draft(), charter)
    assert a == b
    assert set(a) == set(charter.goal_keys())
    assert all(0.0 <= v <= 1.0 for v in a.values())


def test_local_share_raises_leakage_score(charter):
    scorer = HeuristicGoalScorer()
    low = scorer.score(_draft(treasuryPlan={"localPercent": 30, "nationalPercent": 70}), charter)
    high = scorer.score(_draft(treasuryPlan={"localPercent": 90, "nationalPercent": 10}), charter)
    assert high["LeakageReduction"] > low["LeakageReduction"]


def test_budget_penalty_grows_with_amount():
    assert budget_penalty(0) == 0.0
    assert budget_penalty(10_000) < budget_penalty(100_000) < budget_penalty(10_000_000) < 0.2


class ExplodingScorer:
    def score(self, draft, charter):
        raise ZeroDivisionError("bad model")


def test_score_draft_wraps_failures(charter):
    with pytest.raises(InternalScoringError) as exc:
        score_draft(ExplodingScorer(), _draft(), charter, label="Phased budget")
    assert exc.value.label == "Phased budget"


def test_compose_treats_nan_as_zero():
    gs = compose({"A": float("nan"), "B": float("inf"), "C": 0.5}, _charter(THREE_GOALS))
    assert gs.scores == {"A": 0.0, "B": 1.0, "C": 0.5}
    assert gs.composite == pytest.approx(0.4)


def test_clamp01():
    assert clamp01([-1.0, 0.25, 3.0, float("nan")]).tolist() == [0.0, 0.25, 1.0, 0.0]
