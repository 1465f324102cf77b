# coopgov/models.py
from __future__ import annotations

import enum
import json
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Enum as SAEnum,
    DateTime,
    Float,
    Boolean,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator, TEXT

from .db import Base


# -------------------------
# SQLite-safe JSON value
# -------------------------
class JsonValue(TypeDecorator):
    """JSON object or list stored as TEXT; unreadable rows come back empty."""

    impl = TEXT
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return "{}"
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False, default=str)
        if isinstance(value, str):
            s = value.strip()
            return s if s else "{}"
        return "{}"

    def process_result_value(self, value, dialect):
        if not value:
            return {}
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, (dict, list)) else {}


class ActionEnum(str, enum.Enum):
    EVALUATE_PROPOSAL = "EVALUATE_PROPOSAL"
    EVALUATE_COMMENT = "EVALUATE_COMMENT"
    SEED_CHARTER = "SEED_CHARTER"
    PUBLISH_CHARTER = "PUBLISH_CHARTER"
    FAILURE_LOG = "FAILURE_LOG"


class CharterVersion(Base):
    __tablename__ = "charter_versions"
    __table_args__ = (UniqueConstraint("coop_id", "version", name="uq_charter_coop_version"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    coop_id = Column(String, nullable=False, index=True)
    version = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False, index=True)

    # full CharterConfig snapshot
    config = Column(JsonValue, nullable=False, default=dict)

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class CharterChange(Base):
    __tablename__ = "charter_changes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coop_id = Column(String, nullable=False, index=True)
    from_version = Column(Integer, nullable=True)
    to_version = Column(Integer, nullable=False)
    changes = Column(JsonValue, nullable=False, default=dict)
    reason = Column(Text, nullable=False)
    actor = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class ProposalRecord(Base):
    __tablename__ = "proposals"

    id = Column(String, primary_key=True)  # prop_XXXXXX from the engine
    coop_id = Column(String, nullable=False, index=True)
    charter_version = Column(Integer, nullable=True)

    title = Column(String, nullable=False)
    decision = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    composite = Column(Float, nullable=False, default=0.0)

    # full ProposalOutput as returned to the caller
    output = Column(JsonValue, nullable=False, default=dict)

    # Provenance
    engine_version = Column(String, nullable=True)
    app_version = Column(String, nullable=True)
    schema_version = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)

    proposal_id = Column(String, nullable=True, index=True)
    coop_id = Column(String, nullable=True, index=True)
    action = Column(SAEnum(ActionEnum), nullable=False)
    actor_type = Column(String, default="SYSTEM")
    payload = Column(Text, default="{}")

    app_version = Column(String, default="dev")
    schema_version = Column(String, default="dev")

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
