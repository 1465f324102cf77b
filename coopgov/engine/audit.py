# coopgov/engine/audit.py
from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

from ..schemas import Audit, AuditCheck


REQUIRED_CHECKS: Tuple[str, ...] = (
    "basic_validation",
    "extraction_available",
    "extraction_schema",
    "treasury_allocation_sum",
    "budget_non_negative",
    "category_allowed",
    "sector_exclusion_screen",
    "manipulation_attempt_detected",
    "unrealistic_claims_detected",
    "charter_loaded",
    "charter_weights_normalized",
    "goal_scoring",
    "alternative_scoring",
)

NOT_PERFORMED = "check not performed"


class AuditRecorder:
    """
    Collects named checks for one run.

    Each name is recorded once. finalize() reports every required check
    that never ran as failed, so an omission shows up in the trail.
    """

    def __init__(self, engine_version: str, required: Iterable[str] = REQUIRED_CHECKS):
        self.engine_version = engine_version
        self.required = tuple(required)
        self._checks: Dict[str, AuditCheck] = {}

    def record(self, name: str, passed: bool, note: Optional[str] = None) -> AuditCheck:
        if name in self._checks:
            raise ValueError(f"audit check '{name}' already recorded")
        check = AuditCheck(name=name, passed=bool(passed), note=note)
        self._checks[name] = check
        return check

    def extend(self, checks: Iterable[AuditCheck]) -> None:
        for c in checks:
            self.record(c.name, c.passed, c.note)

    def has(self, name: str) -> bool:
        return name in self._checks

    def finalize(self, charter_version: Optional[int] = None) -> Audit:
        for name in self.required:
            if name not in self._checks:
                self.record(name, False, NOT_PERFORMED)
        return Audit(
            engineVersion=self.engine_version,
            charterVersion=charter_version,
            checks=list(self._checks.values()),
        )
