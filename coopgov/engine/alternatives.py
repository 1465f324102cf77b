# coopgov/engine/alternatives.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..logging_config import log_failure
from ..schemas import (
    Alternative,
    CharterConfig,
    FieldChange,
    GoalScores,
    ProposalCategory,
    StructuredDraft,
)
from .scoring import COMFORT_BUDGET, CONCEPTS, goal_concepts

MAX_ALTERNATIVES = 3
TARGET_LOCAL_PERCENT = 80.0
PHASE_FRACTION = 0.6


@dataclass
class Candidate:
    """
    An unscored variant of the draft.

    - draft: deep-copied, modified draft (the original is never touched)
    - changes: explicit field deltas shown to voters
    """
    label: str
    draft: StructuredDraft
    changes: List[FieldChange]
    rationale: str
    dataNeeds: List[str] = field(default_factory=list)


def apply_changes(draft: StructuredDraft, changes: Dict[str, Any]) -> StructuredDraft:
    """
    Return a revalidated copy of draft with dot-path changes applied,
    e.g. {"budget.amountRequested": 90000}.
    """
    data = draft.model_dump(mode="json")
    for path, value in changes.items():
        parts = path.split(".")
        node = data
        for p in parts[:-1]:
            if node.get(p) is None:
                node[p] = {}
            node = node[p]
        node[parts[-1]] = value
    return StructuredDraft.model_validate(data)


# -------------------------
# STRATEGIES
# -------------------------
def _phased_budget(draft: StructuredDraft, charter: CharterConfig) -> Optional[Candidate]:
    if draft.budget is None:
        return None
    amount = draft.budget.amountRequested
    reduced = max(float(COMFORT_BUDGET), round(amount * PHASE_FRACTION / 1000) * 1000)
    if reduced >= amount:
        return None
    return Candidate(
        label="Phased budget",
        draft=apply_changes(draft, {"budget.amountRequested": reduced}),
        changes=[FieldChange(field="budget.amountRequested", from_=amount, to=reduced)],
        rationale=(
            f"Fund a first phase of {reduced:,.0f} and release the rest on milestones; "
            "a smaller ask lowers risk to the treasury."
        ),
        dataNeeds=["milestones for the first phase"],
    )


def _local_shift(draft: StructuredDraft, charter: CharterConfig) -> Optional[Candidate]:
    plan = draft.treasuryPlan
    if plan is None or plan.localPercent >= TARGET_LOCAL_PERCENT:
        return None
    local, national = TARGET_LOCAL_PERCENT, 100.0 - TARGET_LOCAL_PERCENT
    return Candidate(
        label="More local treasury share",
        draft=apply_changes(draft, {
            "treasuryPlan.localPercent": local,
            "treasuryPlan.nationalPercent": national,
        }),
        changes=[
            FieldChange(field="treasuryPlan.localPercent", from_=plan.localPercent, to=local),
            FieldChange(field="treasuryPlan.nationalPercent", from_=plan.nationalPercent, to=national),
        ],
        rationale=(
            f"Route {local:.0f}% of spending through local members and vendors "
            "so more of the money keeps circulating inside the co-op."
        ),
        dataNeeds=["local vendors able to supply the project"],
    )


def best_category(charter: CharterConfig) -> Optional[ProposalCategory]:
    """Active category with the most weighted concept coverage across goals."""
    totals: Dict[str, float] = {}
    active = charter.active_category_keys()
    for goal in charter.goalDefinitions:
        for name in goal_concepts(goal.key, goal.label, goal.description):
            for cat in CONCEPTS[name]["categories"]:
                if cat.value in active and cat != ProposalCategory.OTHER:
                    totals[cat.value] = totals.get(cat.value, 0.0) + goal.weight
    if not totals:
        return None
    # ties broken by enum order for determinism
    order = [c.value for c in ProposalCategory]
    best = max(totals, key=lambda k: (totals[k], -order.index(k)))
    return ProposalCategory(best)


def _rescope(draft: StructuredDraft, charter: CharterConfig) -> Optional[Candidate]:
    target = best_category(charter)
    current = draft.category or ProposalCategory.OTHER
    if target is None or target == current:
        return None
    label = target.value.replace("_", " ")
    return Candidate(
        label=f"Re-scope as {label}",
        draft=apply_changes(draft, {"category": target.value}),
        changes=[FieldChange(field="category", from_=current.value, to=target.value)],
        rationale=(
            f"Narrow the proposal to its {label} component, which the charter's "
            "weighted goals favour most."
        ),
    )


STRATEGIES: Sequence[Callable[[StructuredDraft, CharterConfig], Optional[Candidate]]] = (
    _phased_budget,
    _local_shift,
    _rescope,
)


def generate_candidates(
    draft: StructuredDraft,
    charter: CharterConfig,
    failed: Optional[List[str]] = None,
) -> List[Candidate]:
    """
    Run every strategy against the draft. A strategy that crashes only
    loses its own candidate; its name is appended to `failed` when given.
    """
    out = []
    for strategy in STRATEGIES:
        name = strategy.__name__.strip("_").replace("_", " ")
        try:
            cand = strategy(draft, charter)
        except Exception as e:
            log_failure("ALTERNATIVE_STRATEGY_FAILED", {"strategy": name, "error": repr(e)})
            if failed is not None:
                failed.append(name)
            continue
        if cand is not None:
            out.append(cand)
    return out


def select_alternatives(
    scored: Sequence[tuple[Candidate, GoalScores]],
    original: GoalScores,
    limit: int = MAX_ALTERNATIVES,
) -> List[Alternative]:
    """
    Keep candidates that strictly beat the original, best first, capped.
    Sort is stable so equal composites keep strategy order.
    """
    better = [(c, s) for c, s in scored if s.composite > original.composite]
    better.sort(key=lambda cs: cs[1].composite, reverse=True)
    return [
        Alternative(
            label=c.label,
            changes=c.changes,
            scores=s,
            rationale=c.rationale,
            dataNeeds=c.dataNeeds or None,
        )
        for c, s in better[:limit]
    ]
