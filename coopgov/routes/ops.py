# coopgov/routes/ops.py
import hashlib
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..ai.model_loader import MODELS_DIR, get_category_model_and_vec
from ..ai.train_category import DATA
from ..db import get_db
from ..engine.audit import REQUIRED_CHECKS
from ..settings import get_settings

router = APIRouter(prefix="/ops", tags=["operations"])
settings = get_settings()

CLASSIFIER_PICKLE = MODELS_DIR / "category_nb.pkl"
SEED_DATA = DATA / "categories.csv"


def _md5(path: Path):
    return hashlib.md5(path.read_bytes()).hexdigest() if path.exists() else None


# --- 1. HEALTH ---
@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Database round-trip plus a classifier load. 503 if the DB is down.
    """
    status = {"api": "online", "version": settings.APP_VERSION, "env": settings.ENV, "checks": {}}

    try:
        db.execute(text("SELECT 1"))
        status["checks"]["database"] = "ok"
    except SQLAlchemyError as e:
        status["checks"]["database"] = f"failed: {e}"
        raise HTTPException(503, detail=status)

    nb, _ = get_category_model_and_vec()
    status["checks"]["category_model"] = "ok" if CLASSIFIER_PICKLE.exists() else "trained_from_seed"
    status["checks"]["category_labels"] = len(nb.classes_)
    return status


# --- 2. ENGINE PROVENANCE ---
@router.get("/meta/engine")
def engine_metadata():
    """Pins which scoring and decision logic produced a stored evaluation."""
    return {
        "app_version": settings.APP_VERSION,
        "engine_version": settings.ENGINE_VERSION,
        "schema_version": settings.SCHEMA_VERSION,
        "classifier_version": settings.CLASSIFIER_VERSION,
        "classifier_hash": _md5(CLASSIFIER_PICKLE),
        "seed_data_hash": _md5(SEED_DATA),
        "dominance_margin": settings.DOMINANCE_MARGIN,
        "extractor_timeout_s": settings.EXTRACTOR_TIMEOUT_SECONDS,
        "required_checks": list(REQUIRED_CHECKS),
    }
