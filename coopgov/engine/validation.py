# coopgov/engine/validation.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from pydantic import BaseModel, ValidationError

from ..schemas import (
    Budget,
    Impact,
    ProposalCategory,
    ProposalInput,
    Region,
    StructuredDraft,
    TreasuryPlan,
)
from .errors import ProposalValidationError


# Pydantic error types that mean "a declared invariant failed" rather than
# "the value was the wrong type".
INVARIANT_ERROR_TYPES = {
    "value_error",
    "greater_than",
    "greater_than_equal",
    "less_than",
    "less_than_equal",
    "finite_number",
}

DRAFT_FIELD_MODELS: Dict[str, type[BaseModel]] = {
    "budget": Budget,
    "treasuryPlan": TreasuryPlan,
    "impact": Impact,
    "region": Region,
}

TEXT_FIELD_BOUNDS: Dict[str, Tuple[int, int]] = {
    "title": (3, 140),
    "summary": (10, 1000),
}


@dataclass(frozen=True)
class DraftIssue:
    field: str
    message: str
    invariant: bool = False


def _field_path(loc: tuple) -> str:
    return ".".join(str(p) for p in loc)


def validate_input(payload: ProposalInput | Mapping[str, Any] | None) -> ProposalInput:
    """
    Structural gate for raw submissions. Fails fast with a field-level
    ProposalValidationError; nothing downstream runs on bad input.
    """
    if isinstance(payload, ProposalInput):
        return payload
    if payload is None:
        raise ProposalValidationError([{"field": "text", "message": "Field required"}])
    try:
        return ProposalInput.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"field": _field_path(err["loc"]) or "input", "message": err["msg"]}
            for err in e.errors()
        ]
        raise ProposalValidationError(errors) from e


def validate_draft_fields(raw: Mapping[str, Any]) -> Tuple[Dict[str, Any], List[DraftIssue]]:
    """
    Check each extracted field against the same constraints user input gets.

    Returns the fields that passed (already typed) and one issue per field
    that did not. Failing fields are dropped, never half-kept.
    """
    clean: Dict[str, Any] = {}
    issues: List[DraftIssue] = []

    for name, model in DRAFT_FIELD_MODELS.items():
        value = raw.get(name)
        if value is None:
            continue
        if isinstance(value, BaseModel):
            value = value.model_dump()
        try:
            clean[name] = model.model_validate(value)
        except ValidationError as e:
            errs = e.errors()
            invariant = any(err["type"] in INVARIANT_ERROR_TYPES for err in errs)
            issues.append(DraftIssue(name, errs[0]["msg"], invariant=invariant))

    for name, (lo, hi) in TEXT_FIELD_BOUNDS.items():
        value = raw.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            issues.append(DraftIssue(name, "must be a string"))
            continue
        value = value.strip()
        if not lo <= len(value) <= hi:
            issues.append(DraftIssue(name, f"length must be between {lo} and {hi}"))
            continue
        clean[name] = value

    category = raw.get("category")
    if category is not None:
        try:
            clean["category"] = ProposalCategory(str(getattr(category, "value", category)).strip().lower())
        except ValueError:
            clean["category"] = ProposalCategory.OTHER
            issues.append(DraftIssue("category", f"unknown category {category!r}, using 'other'"))

    return clean, issues


def check_draft(draft: StructuredDraft | Mapping[str, Any]) -> List[DraftIssue]:
    if isinstance(draft, BaseModel):
        draft = draft.model_dump(mode="json")
    return validate_draft_fields(draft)[1]
