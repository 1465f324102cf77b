# coopgov/engine/decision.py
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence

from ..schemas import (
    Alternative,
    AuditCheck,
    CharterConfig,
    Decision,
    GoalScores,
    MissingDataItem,
    ProposalStatus,
)
from .compliance import COMPLIANCE_PREFIX, HARD_COMPLIANCE_CHECKS


DEFAULT_STATUS_MAP: Mapping[Decision, ProposalStatus] = MappingProxyType({
    Decision.ADVANCE: ProposalStatus.VOTABLE,
    Decision.REVISE: ProposalStatus.VOTABLE,
    Decision.BLOCK: ProposalStatus.DRAFT,
})


@dataclass(frozen=True)
class DecisionPolicyConfig:
    dominance_margin: float = 0.08
    status_map: Mapping[Decision, ProposalStatus] = field(default_factory=lambda: DEFAULT_STATUS_MAP)
    hard_failure_status: ProposalStatus = ProposalStatus.FAILED

    @classmethod
    def from_settings(cls, settings) -> "DecisionPolicyConfig":
        return cls(dominance_margin=float(settings.DOMINANCE_MARGIN))


@dataclass
class DecisionOut:
    decision: Decision
    reasons: List[str] = field(default_factory=list)
    best_alternative: Optional[Alternative] = None
    hard_failure: bool = False  # non-decision metadata, drives status only


def decide(
    goal_scores: GoalScores,
    alternatives: Sequence[Alternative],
    missing: Sequence[MissingDataItem],
    checks: Iterable[AuditCheck],
    charter: CharterConfig,
    policy: DecisionPolicyConfig | None = None,
) -> DecisionOut:
    policy = policy or DecisionPolicyConfig()
    composite = goal_scores.composite
    cutoff = charter.approvalThresholdPercent / 100.0
    best = max(alternatives, key=lambda a: a.scores.composite) if alternatives else None

    # ---------- 1. hard compliance, then blocking data ----------
    reasons = [
        f"Failed {c.name}: {c.note or 'compliance screen did not pass'}"
        for c in checks
        if c.name in HARD_COMPLIANCE_CHECKS and not c.passed
    ]
    blocking = [m for m in missing if m.blocking]
    if not reasons:
        reasons = [
            f"Failed {m.field.split('.', 1)[1]}: {m.why_needed}"
            for m in blocking
            if m.field.startswith(COMPLIANCE_PREFIX)
        ]
    if reasons:
        return DecisionOut(Decision.BLOCK, reasons, None, hard_failure=True)

    if blocking:
        reasons = [f"Missing {m.field}: {m.why_needed}" for m in blocking]
        return DecisionOut(Decision.REVISE, reasons, best)

    # ---------- 2. a materially better formulation exists ----------
    if best is not None:
        diff = round(best.scores.composite - composite, 4)
        if diff > policy.dominance_margin:
            return DecisionOut(
                Decision.BLOCK,
                [f"Dominated by '{best.label}' (+{diff:.3f} composite, margin {policy.dominance_margin:.2f})."],
                best,
            )

    # ---------- 3. meets the approval cutoff ----------
    if composite >= cutoff:
        reasons = [f"Composite {composite:.3f} meets the {cutoff:.2f} approval cutoff."]
        if best is not None:
            reasons.append(
                f"Optional improvement: '{best.label}' (+{best.scores.composite - composite:.3f})."
            )
        return DecisionOut(Decision.ADVANCE, reasons, best)

    # ---------- 4. falls short ----------
    labels = charter.goal_labels()
    short = [
        f"{labels.get(k, k)} ({v:.2f})"
        for k, v in goal_scores.scores.items()
        if v < cutoff
    ]
    reasons = [f"Composite {composite:.3f} is below the {cutoff:.2f} approval cutoff."]
    if short:
        reasons.append("Goals below cutoff: " + ", ".join(short) + ".")
    return DecisionOut(Decision.REVISE, reasons, best)


def status_from_decision(out: DecisionOut, policy: DecisionPolicyConfig | None = None) -> ProposalStatus:
    """The only place a legacy status is derived."""
    policy = policy or DecisionPolicyConfig()
    if out.decision == Decision.BLOCK and out.hard_failure:
        return policy.hard_failure_status
    return policy.status_map[out.decision]
