# coopgov/engine/missing_data.py
from typing import Iterable, List

from ..schemas import AuditCheck, MissingDataItem, ProposalCategory, StructuredDraft
from .compliance import COMPLIANCE_PREFIX, HARD_COMPLIANCE_CHECKS

PLACEHOLDER_TITLES = {"", "untitled", "untitled proposal", "proposal", "tbd", "n/a"}


def detect_missing_data(
    draft: StructuredDraft,
    *,
    extraction_available: bool = True,
    trusted: bool = True,
) -> List[MissingDataItem]:
    """
    List what the author still has to supply.

    Pure: same draft + flags in, same items out, in a fixed order.
    Blocking items keep the proposal from advancing.
    """
    items: List[MissingDataItem] = []

    # 1. Extractor could not read the text at all
    if not extraction_available:
        items.append(MissingDataItem(
            field="extraction",
            question="Could you restate the proposal with budget, split and expected impact?",
            why_needed="The proposal text could not be read automatically, so nothing was scored with confidence.",
            blocking=True,
        ))

    # 2. Extracted numbers contradicted themselves
    if not trusted:
        items.append(MissingDataItem(
            field="treasuryPlan",
            question="What are the exact local and national percentages (they must add up to 100)?",
            why_needed="The figures read from the text were inconsistent, so none of them can be relied on.",
            blocking=True,
        ))

    if draft.budget is None:
        items.append(MissingDataItem(
            field="budget.amountRequested",
            question="How much funding is requested, and in which currency (UC, USD or mixed)?",
            why_needed="Feasibility and treasury risk cannot be judged without an amount.",
            blocking=True,
        ))

    if draft.treasuryPlan is None and trusted:
        items.append(MissingDataItem(
            field="treasuryPlan",
            question="How will spending split between local and national vendors?",
            why_needed="Leakage and local-circulation goals depend on where the money goes.",
            blocking=True,
        ))

    # ---------- non-blocking ----------
    if draft.region is None:
        items.append(MissingDataItem(
            field="region",
            question="Which region or neighborhood does this serve?",
            why_needed="Regional context sharpens the local-impact estimate.",
        ))

    if draft.impact is None:
        items.append(MissingDataItem(
            field="impact",
            question="How many jobs, and how much leakage reduction, do you expect and over what time?",
            why_needed="Impact claims feed the jobs, leakage and accountability scores.",
        ))

    if (draft.title or "").strip().lower() in PLACEHOLDER_TITLES:
        items.append(MissingDataItem(
            field="title",
            question="What short title should members see on the ballot?",
            why_needed="A placeholder title makes the proposal hard to find and discuss.",
        ))

    if draft.category in (None, ProposalCategory.OTHER):
        items.append(MissingDataItem(
            field="category",
            question="Which category fits best (business funding, procurement, infrastructure, ...)?",
            why_needed="Category affinity is part of goal scoring.",
        ))

    return items


def compliance_items(checks: Iterable[AuditCheck]) -> List[MissingDataItem]:
    """Failed hard compliance checks, surfaced as blocking items."""
    return [
        MissingDataItem(
            field=f"{COMPLIANCE_PREFIX}{c.name}",
            question="Can the proposal be reworked to satisfy the co-op charter?",
            why_needed=c.note or f"{c.name} failed",
            blocking=True,
        )
        for c in checks
        if c.name in HARD_COMPLIANCE_CHECKS and not c.passed
    ]
