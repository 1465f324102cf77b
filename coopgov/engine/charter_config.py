# coopgov/engine/charter_config.py
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..schemas import CharterConfig, CharterVersionInfo
from .errors import CharterNotFound


DEFAULT_CHARTER_TEXT = (
    "The cooperative exists to rebuild economic self-reliance through internal "
    "investment, local production and shared ownership. Proposals are judged on "
    "how much money they keep circulating among members, the jobs and equity "
    "they create, and the resilience they add to the community."
)

CHARTER_CONFIG: Dict[str, Any] = {
    "charterText": DEFAULT_CHARTER_TEXT,

    # goals are config, not code
    "goalDefinitions": [
        {"key": "LeakageReduction", "label": "Leakage Reduction", "weight": 0.25,
         "description": "Reduce external economic leakage"},
        {"key": "MemberBenefit", "label": "Member Benefit", "weight": 0.20,
         "description": "Direct benefit to co-op members"},
        {"key": "EquityGrowth", "label": "Equity Growth", "weight": 0.15,
         "description": "Build long-term equity and ownership"},
        {"key": "LocalJobs", "label": "Local Jobs", "weight": 0.15,
         "description": "Create local employment opportunities"},
        {"key": "CommunityVitality", "label": "Community Vitality", "weight": 0.15,
         "description": "Strengthen community infrastructure and culture"},
        {"key": "Resilience", "label": "Resilience", "weight": 0.10,
         "description": "Build economic resilience and self-sufficiency"},
    ],
    "scoringWeights": {
        "selfReliance": 0.25,
        "communityJobs": 0.20,
        "assetRetention": 0.20,
        "transparency": 0.15,
        "culturalValue": 0.20,
    },
    "structuralWeights": {"feasibility": 0.40, "risk": 0.35, "accountability": 0.25},
    "scoreMix": {"missionWeight": 0.60, "structuralWeight": 0.40},
    "screeningPassThreshold": 0.6,
    "sectorExclusions": [
        "fashion",
        "restaurant",
        "cafe",
        "food truck",
        "personality brand",
        "lifestyle brand",
    ],
    "quorumPercent": 15,
    "approvalThresholdPercent": 51,
    "votingWindowDays": 7,
    "minScBalanceToSubmit": 0,
}


def default_charter(coop_id: str = "default") -> CharterConfig:
    return CharterConfig.model_validate({**CHARTER_CONFIG, "coopId": coop_id, "version": 1})


def apply_charter_changes(current: CharterConfig, changes: Mapping[str, Any]) -> CharterConfig:
    """
    Build the next version of a charter. Identity fields are not editable;
    everything else is revalidated as a whole.
    """
    payload = current.model_dump(mode="json")
    for key, value in changes.items():
        if key in ("coopId", "version"):
            continue
        if key not in payload:
            raise ValueError(f"Unknown charter field: {key}")
        payload[key] = value
    payload["version"] = current.version + 1
    return CharterConfig.model_validate(payload)


class CharterRegistry:
    """
    In-process, versioned charter store.

    Readers get immutable snapshots; publish() swaps the active pointer so
    runs already holding a snapshot never observe the change.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions: Dict[str, List[CharterConfig]] = {}
        self._active: Dict[str, int] = {}
        self._meta: Dict[tuple[str, int], Dict[str, Any]] = {}
        self._history: List[Dict[str, Any]] = []

    def register(self, charter: CharterConfig, actor: Optional[str] = "system") -> CharterConfig:
        with self._lock:
            versions = self._versions.setdefault(charter.coopId, [])
            if any(c.version == charter.version for c in versions):
                raise ValueError(f"{charter.coopId} v{charter.version} already registered")
            versions.append(charter)
            versions.sort(key=lambda c: c.version)
            self._active[charter.coopId] = charter.version
            self._meta[(charter.coopId, charter.version)] = {
                "created_by": actor,
                "created_at": datetime.now(timezone.utc),
            }
        return charter

    def publish(
        self,
        coop_id: str,
        changes: Mapping[str, Any],
        reason: str,
        actor: Optional[str] = None,
    ) -> CharterConfig:
        with self._lock:
            current = self._active_locked(coop_id)
            latest = self._versions[coop_id][-1]
            nxt = apply_charter_changes(latest, changes)
            if nxt.version <= latest.version:
                raise ValueError("version must increase")
            self._versions[coop_id].append(nxt)
            self._active[coop_id] = nxt.version
            self._meta[(coop_id, nxt.version)] = {
                "created_by": actor,
                "created_at": datetime.now(timezone.utc),
            }
            self._history.append({
                "coop_id": coop_id,
                "from_version": current.version,
                "to_version": nxt.version,
                "changes": dict(changes),
                "reason": reason,
                "actor": actor,
            })
        return nxt

    def get_active_config(self, coop_id: str) -> CharterConfig:
        with self._lock:
            return self._active_locked(coop_id)

    def get_version(self, coop_id: str, version: int) -> CharterConfig:
        with self._lock:
            for c in self._versions.get(coop_id, []):
                if c.version == version:
                    return c
        raise CharterNotFound(f"{coop_id} v{version}")

    def list_versions(self, coop_id: str) -> List[CharterVersionInfo]:
        with self._lock:
            active = self._active.get(coop_id)
            rows = [
                CharterVersionInfo(
                    coop_id=coop_id,
                    version=c.version,
                    is_active=(c.version == active),
                    **self._meta.get((coop_id, c.version), {}),
                )
                for c in self._versions.get(coop_id, [])
            ]
        return sorted(rows, key=lambda r: r.version, reverse=True)

    def history(self, coop_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(h) for h in self._history if h["coop_id"] == coop_id]

    def _active_locked(self, coop_id: str) -> CharterConfig:
        version = self._active.get(coop_id)
        if version is None:
            raise CharterNotFound(coop_id)
        for c in self._versions[coop_id]:
            if c.version == version:
                return c
        raise CharterNotFound(f"{coop_id} v{version}")
