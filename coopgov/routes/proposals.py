# coopgov/routes/proposals.py
from __future__ import annotations

from functools import lru_cache
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..db import get_db
from ..engine import CharterNotFound, ProposalEngine
from ..registry import SqlCharterRegistry, record_event
from ..settings import get_settings

router = APIRouter(prefix="/proposals", tags=["proposals"])
settings = get_settings()

RECOVERED_FAILURE_CHECKS = frozenset({
    "extraction_available",
    "goal_scoring",
    "alternative_scoring",
    "charter_weights_normalized",
})


@lru_cache(maxsize=1)
def get_engine() -> ProposalEngine:
    return ProposalEngine(settings=settings)


def _load(db: Session, proposal_id: str) -> models.ProposalRecord:
    rec = db.query(models.ProposalRecord).filter(models.ProposalRecord.id == proposal_id).first()
    if not rec:
        raise HTTPException(404, "Proposal not found")
    return rec


# -------------------------
# LIST
# -------------------------
@router.get("/", response_model=List[schemas.ProposalSummary])
def list_proposals(
    decision: schemas.Decision | None = None,
    coop_id: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    q = db.query(models.ProposalRecord)
    if decision is not None:
        q = q.filter(models.ProposalRecord.decision == decision.value)
    if coop_id:
        q = q.filter(models.ProposalRecord.coop_id == coop_id)
    rows = q.order_by(models.ProposalRecord.created_at.desc()).limit(limit).all()
    return [schemas.ProposalSummary.model_validate(r) for r in rows]


# -------------------------
# GET PROPOSAL
# -------------------------
@router.get("/{proposal_id}", response_model=schemas.ProposalOutput)
def get_proposal(proposal_id: str, db: Session = Depends(get_db)):
    rec = _load(db, proposal_id)
    return schemas.ProposalOutput.model_validate(rec.output)


# -------------------------
# SUBMIT (evaluate + persist)
# -------------------------
@router.post("/", response_model=schemas.ProposalOutput, status_code=201)
def submit_proposal(
    body: schemas.ProposalSubmission,
    response: Response,
    db: Session = Depends(get_db),
    engine: ProposalEngine = Depends(get_engine),
):
    response.headers["X-Engine-Version"] = settings.ENGINE_VERSION

    coop_id = body.coopId or settings.DEFAULT_COOP_ID
    charter = SqlCharterRegistry(db).get_active_config(coop_id)

    # raises ProposalValidationError -> 422 via error handlers
    out = engine.evaluate(body.model_dump(exclude={"coopId"}, exclude_none=True), charter)

    rec = models.ProposalRecord(
        id=out.id,
        coop_id=coop_id,
        charter_version=charter.version,
        title=out.title,
        decision=out.decision.value,
        status=out.status.value,
        composite=out.goalScores.composite,
        output=out.model_dump(mode="json", by_alias=True),
        engine_version=out.audit.engineVersion,
        app_version=settings.APP_VERSION,
        schema_version=settings.SCHEMA_VERSION,
    )
    try:
        db.add(rec)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Duplicate proposal id")

    record_event(db, models.ActionEnum.EVALUATE_PROPOSAL, out.id, {
        "charter_version": charter.version,
        "decision": out.decision.value,
        "status": out.status.value,
        "composite": out.goalScores.composite,
        "blocking": [m.field for m in out.missing_data if m.blocking],
        "failed_checks": [c.name for c in out.audit.checks if not c.passed],
    }, coop_id=coop_id)

    # engine failures it recovered from are kept next to the proposal
    for check in out.audit.checks:
        if check.name in RECOVERED_FAILURE_CHECKS and not check.passed:
            record_event(db, models.ActionEnum.FAILURE_LOG, out.id, {
                "check": check.name,
                "note": check.note,
                "engine_version": out.audit.engineVersion,
            }, coop_id=coop_id)
    return out


# -------------------------
# COMMENTS
# -------------------------
@router.post("/{proposal_id}/comments/evaluate", response_model=schemas.CommentEvaluation)
def evaluate_comment(
    proposal_id: str,
    body: schemas.CommentIn,
    db: Session = Depends(get_db),
    engine: ProposalEngine = Depends(get_engine),
):
    rec = _load(db, proposal_id)
    out = rec.output or {}
    registry = SqlCharterRegistry(db)

    # judge against the charter the proposal was scored with
    try:
        charter = registry.get_version(rec.coop_id, rec.charter_version)
    except CharterNotFound:
        charter = registry.get_active_config(rec.coop_id)

    context = schemas.CommentContext(
        title=out.get("title", rec.title),
        summary=out.get("summary", ""),
        category=out.get("category", schemas.ProposalCategory.OTHER.value),
    )
    result = engine.evaluate_comment(body.text, context, charter)

    record_event(db, models.ActionEnum.EVALUATE_COMMENT, proposal_id, {
        "alignment": result.alignment,
        "score": result.score,
        "goals": result.goalsImpacted,
    }, coop_id=rec.coop_id)
    return result
