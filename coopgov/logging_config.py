# coopgov/logging_config.py
import json
import logging
import os
from datetime import datetime, timezone

logger = logging.getLogger("coopgov")
logger.setLevel(os.getenv("COOPGOV_LOG_LEVEL", "INFO").upper())

if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    logger.addHandler(handler)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _emit(level: int, payload: dict) -> None:
    logger.log(level, json.dumps(payload, default=str))


def log_event(action: str, message: str, extra: dict | None = None) -> None:
    payload = {"action": action, "message": message}
    if extra:
        payload.update(extra)
    _emit(logging.INFO, payload)


def log_failure(error_code: str, context: dict | None = None) -> dict:
    """
    Every recovered engine failure (extractor timeout, scoring error,
    weight anomaly) goes through here.

    Returns the payload so callers can also store it on an Event row.
    """
    payload = {"error_code": error_code, "timestamp": _now()}
    if context:
        payload["context"] = context
    _emit(logging.ERROR, payload)
    return payload


def log_charter_publish(coop_id: str, version: int, actor: str | None) -> dict:
    payload = {"coop_id": coop_id, "version": version, "actor": actor, "timestamp": _now()}
    _emit(logging.INFO, {"action": "CHARTER_PUBLISH", **payload})
    return payload
