# coopgov/registry.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from . import models
from .engine.charter_config import apply_charter_changes, default_charter
from .engine.errors import CharterNotFound
from .logging_config import log_charter_publish
from .schemas import CharterConfig, CharterVersionInfo
from .settings import get_settings

settings = get_settings()


def record_event(
    db: Session,
    action: models.ActionEnum,
    proposal_id: str | None,
    payload: dict,
    *,
    coop_id: str | None = None,
    actor_type: str = "SYSTEM",
):
    evt = models.Event(
        proposal_id=proposal_id,
        coop_id=coop_id,
        action=action,
        actor_type=actor_type,
        payload=json.dumps(payload, ensure_ascii=False, default=str),
        app_version=settings.APP_VERSION,
        schema_version=settings.SCHEMA_VERSION,
    )
    db.add(evt)
    db.commit()


class SqlCharterRegistry:
    """
    Charter versions persisted in the database.

    Every read returns a freshly validated, frozen CharterConfig, so a run
    keeps its snapshot even if a new version is published meanwhile.
    """

    def __init__(self, db: Session):
        self.db = db

    def _active_row(self, coop_id: str) -> Optional[models.CharterVersion]:
        return (
            self.db.query(models.CharterVersion)
            .filter(models.CharterVersion.coop_id == coop_id, models.CharterVersion.is_active.is_(True))
            .order_by(models.CharterVersion.version.desc())
            .first()
        )

    def get_active_config(self, coop_id: str) -> CharterConfig:
        row = self._active_row(coop_id)
        if row is None:
            raise CharterNotFound(coop_id)
        return CharterConfig.model_validate(row.config)

    def get_version(self, coop_id: str, version: int) -> CharterConfig:
        row = (
            self.db.query(models.CharterVersion)
            .filter(models.CharterVersion.coop_id == coop_id, models.CharterVersion.version == version)
            .first()
        )
        if row is None:
            raise CharterNotFound(f"{coop_id} v{version}")
        return CharterConfig.model_validate(row.config)

    def list_versions(self, coop_id: str) -> List[CharterVersionInfo]:
        rows = (
            self.db.query(models.CharterVersion)
            .filter(models.CharterVersion.coop_id == coop_id)
            .order_by(models.CharterVersion.version.desc())
            .all()
        )
        return [CharterVersionInfo.model_validate(r) for r in rows]

    def history(self, coop_id: str) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(models.CharterChange)
            .filter(models.CharterChange.coop_id == coop_id)
            .order_by(models.CharterChange.id.asc())
            .all()
        )
        return [
            {
                "coop_id": r.coop_id,
                "from_version": r.from_version,
                "to_version": r.to_version,
                "changes": r.changes,
                "reason": r.reason,
                "actor": r.actor,
                "created_at": r.created_at,
            }
            for r in rows
        ]

    def register(self, charter: CharterConfig, actor: Optional[str] = "system") -> CharterConfig:
        self.db.query(models.CharterVersion).filter(
            models.CharterVersion.coop_id == charter.coopId
        ).update({models.CharterVersion.is_active: False}, synchronize_session=False)
        self.db.add(models.CharterVersion(
            coop_id=charter.coopId,
            version=charter.version,
            is_active=True,
            config=charter.model_dump(mode="json"),
            created_by=actor,
        ))
        self.db.commit()
        record_event(
            self.db, models.ActionEnum.SEED_CHARTER, None,
            {"version": charter.version, "actor": actor},
            coop_id=charter.coopId,
        )
        return charter

    def publish(
        self,
        coop_id: str,
        changes: Mapping[str, Any],
        reason: str,
        actor: Optional[str] = None,
    ) -> CharterConfig:
        current = self.get_active_config(coop_id)
        latest = (
            self.db.query(models.CharterVersion)
            .filter(models.CharterVersion.coop_id == coop_id)
            .order_by(models.CharterVersion.version.desc())
            .first()
        )
        nxt = apply_charter_changes(CharterConfig.model_validate(latest.config), changes)

        self.db.query(models.CharterVersion).filter(
            models.CharterVersion.coop_id == coop_id
        ).update({models.CharterVersion.is_active: False}, synchronize_session=False)
        self.db.add(models.CharterVersion(
            coop_id=coop_id,
            version=nxt.version,
            is_active=True,
            config=nxt.model_dump(mode="json"),
            created_by=actor,
        ))
        self.db.add(models.CharterChange(
            coop_id=coop_id,
            from_version=current.version,
            to_version=nxt.version,
            changes=dict(changes),
            reason=reason,
            actor=actor,
        ))
        self.db.commit()

        payload = log_charter_publish(coop_id, nxt.version, actor)
        record_event(
            self.db, models.ActionEnum.PUBLISH_CHARTER, None,
            {**payload, "reason": reason},
            coop_id=coop_id, actor_type="ADMIN",
        )
        return nxt


def ensure_default_charter(db: Session, coop_id: str | None = None) -> CharterConfig:
    """Seed version 1 of the default charter if the co-op has none (idempotent)."""
    coop_id = coop_id or settings.DEFAULT_COOP_ID
    reg = SqlCharterRegistry(db)
    try:
        return reg.get_active_config(coop_id)
    except CharterNotFound:
        return reg.register(default_charter(coop_id))
