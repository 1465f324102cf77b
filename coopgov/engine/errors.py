# coopgov/engine/errors.py
from __future__ import annotations

from typing import Dict, List


class ProposalValidationError(ValueError):
    """
    Raw proposal input broke a structural rule.

    The only engine error that reaches the caller; no output is produced.
    """

    def __init__(self, errors: List[Dict[str, str]]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in self.errors))

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]


class ExtractionUnavailable(RuntimeError):
    pass


class ConfigurationAnomaly(RuntimeError):
    pass


class InternalScoringError(RuntimeError):
    def __init__(self, label: str, cause: Exception | str):
        self.label = label
        super().__init__(f"{label}: {cause}")


class CharterNotFound(LookupError):
    pass
