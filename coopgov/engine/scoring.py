# coopgov/engine/scoring.py
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Protocol, Set

import numpy as np

from ..schemas import (
    CharterConfig,
    ComputedScores,
    Evaluation,
    GoalScores,
    MissionImpactScore,
    ProposalCategory,
    StructuralScores,
    StructuredDraft,
)
from .errors import ConfigurationAnomaly, InternalScoringError


# Budget (USD) a proposal can ask for before size starts to count against it.
COMFORT_BUDGET = 50_000
BASE_SCORE = 0.35
WEIGHT_TOLERANCE = 1e-6


class GoalScorer(Protocol):
    def score(self, draft: StructuredDraft, charter: CharterConfig) -> Mapping[str, float]:
        ...


# -------------------------
# CONCEPTS
# -------------------------
# A goal is matched to concepts through the words in its key, label and
# description, so renamed or added charter goals still get a signal.
CONCEPTS: Dict[str, Dict[str, Set]] = {
    "leakage": {
        "triggers": {"leakage", "leak", "circulation", "retention", "external", "reliance", "asset"},
        "keywords": {"local", "leakage", "recirculat", "member-owned", "internal", "uc", "buy"},
        "categories": {
            ProposalCategory.PROCUREMENT,
            ProposalCategory.BUSINESS_FUNDING,
            ProposalCategory.WALLET_INCENTIVE,
        },
    },
    "member": {
        "triggers": {"member", "members", "benefit"},
        "keywords": {"member", "discount", "access", "afford", "service", "savings"},
        "categories": {
            ProposalCategory.WALLET_INCENTIVE,
            ProposalCategory.BUSINESS_FUNDING,
            ProposalCategory.PROCUREMENT,
        },
    },
    "equity": {
        "triggers": {"equity", "ownership", "wealth", "asset", "growth"},
        "keywords": {"own", "equity", "asset", "property", "land", "building", "share"},
        "categories": {ProposalCategory.BUSINESS_FUNDING, ProposalCategory.INFRASTRUCTURE},
    },
    "jobs": {
        "triggers": {"jobs", "job", "employment", "work", "labor"},
        "keywords": {"job", "hire", "hiring", "employ", "worker", "training", "wage"},
        "categories": {
            ProposalCategory.BUSINESS_FUNDING,
            ProposalCategory.TRANSPORT,
            ProposalCategory.INFRASTRUCTURE,
        },
    },
    "community": {
        "triggers": {"community", "vitality", "culture", "cultural", "transparency"},
        "keywords": {"community", "neighborhood", "culture", "youth", "elder", "center", "garden"},
        "categories": {
            ProposalCategory.INFRASTRUCTURE,
            ProposalCategory.GOVERNANCE,
            ProposalCategory.OTHER,
        },
    },
    "resilience": {
        "triggers": {"resilience", "resilient", "sufficiency", "stability", "reliance"},
        "keywords": {"resilien", "storage", "solar", "backup", "emergency", "supply", "reserve"},
        "categories": {
            ProposalCategory.INFRASTRUCTURE,
            ProposalCategory.PROCUREMENT,
            ProposalCategory.TRANSPORT,
        },
    },
}

_WORD = re.compile(r"[a-z][a-z\-]+")
_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def tokenize(text: str) -> List[str]:
    return _WORD.findall(text.lower())


def keyword_hits(keywords: Iterable[str], words: List[str]) -> int:
    return sum(1 for k in keywords if any(w.startswith(k) for w in words))


def goal_concepts(key: str, label: str, description: str | None) -> List[str]:
    tokens = set(tokenize(_CAMEL.sub(" ", key)) + tokenize(label) + tokenize(description or ""))
    return [name for name, c in CONCEPTS.items() if tokens & c["triggers"]]


def clamp01(values) -> np.ndarray:
    """Clip into [0, 1]; NaN counts as 0 and infinities saturate."""
    arr = np.nan_to_num(np.asarray(values, dtype=float), nan=0.0, posinf=1.0, neginf=0.0)
    return np.clip(arr, 0.0, 1.0)


def budget_penalty(amount: float) -> float:
    # 0 for tiny asks, approaching 0.2 for very large ones
    if amount <= 0:
        return 0.0
    return 0.2 * amount / (amount + 4 * COMFORT_BUDGET)


class HeuristicGoalScorer:
    """
    Deterministic keyword + signal scorer.

    Every goal starts from a neutral base and moves with category affinity,
    text evidence, treasury locality, impact claims and budget size.
    """

    def score(self, draft: StructuredDraft, charter: CharterConfig) -> Dict[str, float]:
        words = tokenize(f"{draft.title or ''} {draft.summary or ''}")
        category = draft.category or ProposalCategory.OTHER
        penalty = budget_penalty(draft.budget.amountRequested) if draft.budget else 0.0
        local = draft.treasuryPlan.localPercent if draft.treasuryPlan else None
        impact = draft.impact

        out: Dict[str, float] = {}
        for goal in charter.goalDefinitions:
            concepts = goal_concepts(goal.key, goal.label, goal.description)
            s = BASE_SCORE - penalty

            if not concepts:
                s += min(0.2, 0.04 * keyword_hits(set(tokenize(goal.description or goal.label)), words))

            for name in concepts:
                c = CONCEPTS[name]
                if category in c["categories"]:
                    s += 0.15
                s += min(0.15, 0.05 * keyword_hits(c["keywords"], words))

                if name in ("leakage", "resilience") and local is not None:
                    s += (local - 50.0) / 100.0 * 0.4
                if name == "leakage" and impact and impact.leakageReductionUSD > 0:
                    s += 0.1
                if name in ("leakage", "member") and draft.treasuryPlan and draft.treasuryPlan.acceptUC:
                    s += 0.05
                if name == "jobs" and impact:
                    s += min(0.3, 0.02 * impact.jobsCreated)
                if name == "equity" and impact and impact.timeHorizonMonths >= 24:
                    s += 0.05

            out[goal.key] = float(clamp01(s))
        return out


# -------------------------
# COMPOSITION
# -------------------------
def check_goal_weights(charter: CharterConfig) -> None:
    """Raise ConfigurationAnomaly when goal or scoring weights do not sum to 1."""
    total = sum(charter.goal_weights().values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ConfigurationAnomaly(f"goal weights sum to {total:.4f}, renormalised")
    if charter.scoringWeights:
        sw = sum(charter.scoringWeights.values())
        if abs(sw - 1.0) > WEIGHT_TOLERANCE:
            raise ConfigurationAnomaly(f"scoringWeights sum to {sw:.4f}")


def compose(raw: Mapping[str, float], charter: CharterConfig) -> GoalScores:
    """
    Clamp per-goal scores and fold them into a renormalised composite.
    Goals the scorer did not return score 0.
    """
    keys = charter.goal_keys()
    s = clamp01([float(raw.get(k, 0.0)) for k in keys])
    w = np.array([charter.goal_weights()[k] for k in keys], dtype=float)
    if w.sum() <= 0:
        w = np.ones_like(w)
    composite = float(clamp01(np.dot(s, w) / w.sum()))
    return GoalScores(
        scores={k: round(float(v), 4) for k, v in zip(keys, s)},
        composite=round(composite, 4),
    )


def score_draft(scorer: GoalScorer, draft: StructuredDraft, charter: CharterConfig, label: str = "original") -> GoalScores:
    try:
        raw = scorer.score(draft, charter)
        return compose(raw, charter)
    except Exception as e:
        raise InternalScoringError(label, e) from e


# -------------------------
# EVALUATION BLOCK
# -------------------------
def structural_scores(draft: StructuredDraft, goal_scores: GoalScores) -> StructuralScores:
    has_budget = draft.budget is not None
    has_plan = draft.treasuryPlan is not None
    has_impact = draft.impact is not None
    size = (
        draft.budget.amountRequested / (draft.budget.amountRequested + 10 * COMFORT_BUDGET)
        if has_budget else 0.5
    )
    claims = bool(has_impact and (draft.impact.jobsCreated or draft.impact.leakageReductionUSD))

    feasibility = 0.25 + 0.2 * has_budget + 0.15 * has_plan + 0.1 * has_impact + 0.3 * (1 - size)
    risk = 0.15 + 0.4 * size + 0.15 * (not has_plan) + 0.1 * (not has_impact)
    accountability = 0.2 + 0.25 * claims + 0.2 * has_plan + 0.15 * has_budget + 0.2 * has_impact

    return StructuralScores(
        goal_mapping_valid=any(v >= 0.5 for v in goal_scores.scores.values()),
        feasibility_score=round(float(clamp01(feasibility)), 4),
        risk_score=round(float(clamp01(risk)), 4),
        accountability_score=round(float(clamp01(accountability)), 4),
    )


def weighted_totals(
    structural: StructuralScores,
    impacts: List[MissionImpactScore],
    charter: CharterConfig,
) -> ComputedScores:
    """
    mission    = sum(impact * priority) / sum(priority)
    structural = feasibility*wf + (1 - risk)*wr + accountability*wa
    overall    = mission*mix_m + structural*mix_s
    """
    weights = np.array([m.goal_priority_weight for m in impacts], dtype=float)
    values = np.array([m.impact_score for m in impacts], dtype=float)
    mission = float(np.dot(values, weights) / weights.sum()) if weights.sum() > 0 else (
        float(values.mean()) if len(values) else 0.0
    )

    sw = charter.structuralWeights
    sw_total = sw.feasibility + sw.risk + sw.accountability or 1.0
    structural_total = (
        structural.feasibility_score * sw.feasibility
        + (1 - structural.risk_score) * sw.risk
        + structural.accountability_score * sw.accountability
    ) / sw_total

    mix = charter.scoreMix
    mix_total = mix.missionWeight + mix.structuralWeight or 1.0
    overall = (mission * mix.missionWeight + structural_total * mix.structuralWeight) / mix_total

    overall = float(clamp01(overall))
    return ComputedScores(
        mission_weighted_score=round(float(clamp01(mission)), 4),
        structural_weighted_score=round(float(clamp01(structural_total)), 4),
        overall_score=round(overall, 4),
        passes_threshold=overall >= charter.screeningPassThreshold,
    )


def compute_evaluation(draft: StructuredDraft, charter: CharterConfig, goal_scores: GoalScores) -> Evaluation:
    structural = structural_scores(draft, goal_scores)
    weights = charter.goal_weights()
    impacts = [
        MissionImpactScore(goal_id=k, impact_score=v, goal_priority_weight=weights[k])
        for k, v in goal_scores.scores.items()
    ]
    return Evaluation(
        structural_scores=structural,
        mission_impact_scores=impacts,
        computed_scores=weighted_totals(structural, impacts, charter),
    )
