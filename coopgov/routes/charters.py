# coopgov/routes/charters.py
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from .. import schemas
from ..db import get_db
from ..registry import SqlCharterRegistry
from ..settings import get_settings

router = APIRouter(prefix="/charters", tags=["charters"])
settings = get_settings()


@router.get("/{coop_id}", response_model=schemas.CharterConfig)
def get_active_charter(coop_id: str, db: Session = Depends(get_db)):
    return SqlCharterRegistry(db).get_active_config(coop_id)


@router.get("/{coop_id}/versions", response_model=List[schemas.CharterVersionInfo])
def list_charter_versions(coop_id: str, db: Session = Depends(get_db)):
    rows = SqlCharterRegistry(db).list_versions(coop_id)
    if not rows:
        raise HTTPException(404, "No charter for this co-op")
    return rows


@router.get("/{coop_id}/versions/{version}", response_model=schemas.CharterConfig)
def get_charter_version(coop_id: str, version: int, db: Session = Depends(get_db)):
    return SqlCharterRegistry(db).get_version(coop_id, version)


@router.get("/{coop_id}/changes")
def charter_changes(coop_id: str, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return SqlCharterRegistry(db).history(coop_id)


@router.put("/{coop_id}", response_model=schemas.CharterConfig)
def publish_charter(
    coop_id: str,
    body: schemas.CharterUpdate,
    x_admin_key: str = Header(None),
    db: Session = Depends(get_db),
):
    """
    Publish a new charter version. Runs already in flight keep the
    snapshot they started with; new runs see this version.
    """
    if x_admin_key != settings.ADMIN_KEY:  # Simple auth for v1
        raise HTTPException(403, "Unauthorized")
    try:
        return SqlCharterRegistry(db).publish(coop_id, body.changes, body.reason, body.actor)
    except ValidationError:
        raise
    except ValueError as e:
        raise HTTPException(422, str(e))
