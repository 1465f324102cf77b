# coopgov/engine/compliance.py
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from ..schemas import AuditCheck, CharterConfig, StructuredDraft


MANIPULATION_PATTERNS = (
    "ignore previous instructions",
    "do not research",
    "fast track",
    "approve regardless",
    "bypass checks",
    "override",
    "skip validation",
    "emergency approval",
    "urgent bypass",
    "disable guardrails",
)

UNREALISTIC_CLAIMS = (
    "guaranteed profit",
    "risk-free",
    "100% success",
    "no downside",
    "unlimited potential",
    "revolutionary breakthrough",
)

# Failing either of these blocks the proposal outright.
HARD_COMPLIANCE_CHECKS = frozenset({"sector_exclusion_screen", "manipulation_attempt_detected"})
COMPLIANCE_PREFIX = "compliance."

MIN_CHARTER_TEXT = 50


def _matched_sectors(text: str, exclusions: Iterable[str]) -> List[str]:
    hits = []
    for kw in exclusions:
        # whole words, optional plural: "cafe" hits "cafes" but not "cafeteria"
        if re.search(rf"\b{re.escape(kw)}s?\b", text):
            hits.append(kw)
    return hits


def _phrase_hits(text: str, phrases: Iterable[str]) -> List[str]:
    return [p for p in phrases if p in text]


def run_compliance_checks(
    text: str,
    draft: StructuredDraft,
    charter: CharterConfig,
) -> List[AuditCheck]:
    """
    Screens over the raw text plus extracted title. Always returns one
    check per screen, passed or not.
    """
    lower = f"{draft.title or ''} {text}".lower()

    sectors = _matched_sectors(lower, charter.sectorExclusions)
    manipulation = _phrase_hits(lower, MANIPULATION_PATTERNS)
    unrealistic = _phrase_hits(lower, UNREALISTIC_CLAIMS)
    charter_ok = len(charter.charterText.strip()) > MIN_CHARTER_TEXT

    return [
        AuditCheck(
            name="sector_exclusion_screen",
            passed=not sectors,
            note=_note("Proposal matches excluded sectors", sectors),
        ),
        AuditCheck(
            name="manipulation_attempt_detected",
            passed=not manipulation,
            note=_note("Language attempting to steer the review", manipulation),
        ),
        AuditCheck(
            name="unrealistic_claims_detected",
            passed=not unrealistic,
            note=_note("Unrealistic or overly optimistic claims", unrealistic),
        ),
        AuditCheck(
            name="charter_loaded",
            passed=charter_ok,
            note=None if charter_ok else f"charter text shorter than {MIN_CHARTER_TEXT + 1} characters",
        ),
    ]


def category_check(draft: StructuredDraft, charter: CharterConfig) -> AuditCheck:
    if draft.category is None:
        return AuditCheck(name="category_allowed", passed=True, note="no category extracted; using 'other'")
    allowed = draft.category.value in charter.active_category_keys()
    return AuditCheck(
        name="category_allowed",
        passed=allowed,
        note=None if allowed else f"category '{draft.category.value}' is not active for this co-op",
    )


def _note(label: str, hits: List[str]) -> Optional[str]:
    if not hits:
        return None
    return f"{label}: {', '.join(hits)}"
