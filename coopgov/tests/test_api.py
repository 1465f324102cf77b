# coopgov/tests/test_api.py
from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import GROCERY_TEXT
from coopgov import models
from coopgov.db import session_scope
from coopgov.main import app
from coopgov.registry import ensure_default_charter

client = TestClient(app)

ADMIN = {"x-admin-key": "test-admin-key"}


def _post_proposal(payload: dict) -> dict:
    r = client.post("/proposals/", json=payload)
    assert r.status_code == 201, r.text
    return r.json()


def _seed_coop(coop_id: str) -> None:
    with session_scope() as db:
        ensure_default_charter(db, coop_id)


# -------------------------
# PROPOSALS
# -------------------------
def test_root_health():
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_short_proposal_rejected():
    r = client.post("/proposals/", json={"text": "Hi"})
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["fields"][0]["field"] == "text"


def test_missing_text_rejected():
    r = client.post("/proposals/", json={"proposer": {"wallet": "0xabc123"}})
    assert r.status_code == 422
    assert "text" in [f["field"] for f in r.json()["fields"]]


def test_submit_then_fetch():
    r = client.post("/proposals/", json={
        "text": GROCERY_TEXT,
        "proposer": {"wallet": "0xabc123", "role": "merchant"},
        "region": {"code": "US-MI", "name": "Detroit"},
    })
    assert r.status_code == 201, r.text
    assert r.headers["X-Engine-Version"].startswith("proposal-engine@")
    data = r.json()

    assert data["id"].startswith("prop_")
    assert data["budget"]["amountRequested"] == 150000
    assert data["treasuryPlan"]["localPercent"] + data["treasuryPlan"]["nationalPercent"] == 100
    assert "composite" in data["goalScores"]
    assert data["decision"] in ("advance", "revise", "block")
    assert data["audit"]["charterVersion"] >= 1
    for alt in data["alternatives"]:
        for change in alt["changes"]:
            assert "from" in change and "to" in change

    fetched = client.get(f"/proposals/{data['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["id"] == data["id"]
    assert fetched.json()["goalScores"] == data["goalScores"]

    listed = client.get("/proposals/", params={"coop_id": "soulaan"})
    assert data["id"] in [p["id"] for p in listed.json()]

    filtered = client.get("/proposals/", params={"decision": data["decision"]})
    assert all(p["decision"] == data["decision"] for p in filtered.json())

    with session_scope() as db:
        events = db.query(models.Event).filter(models.Event.proposal_id == data["id"]).all()
        assert models.ActionEnum.EVALUATE_PROPOSAL in [e.action for e in events]
        assert all(e.coop_id == "soulaan" for e in events)


def test_unknown_proposal_404():
    r = client.get("/proposals/prop_nope00")
    assert r.status_code == 404
    assert r.json()["error"] == "HTTP_404"


def test_unknown_coop_404():
    r = client.post("/proposals/", json={"text": GROCERY_TEXT, "coopId": "no-such-coop"})
    assert r.status_code == 404
    assert r.json()["error"] == "CHARTER_NOT_FOUND"


def test_excluded_sector_fails():
    data = _post_proposal({"text": "Open a members cafe downtown with a $60,000 build-out and a 60/40 local/national split."})
    assert data["decision"] == "block"
    assert data["status"] == "failed"
    assert data["bestAlternative"] is None


def test_comment_evaluation():
    data = _post_proposal({"text": GROCERY_TEXT})
    r = client.post(
        f"/proposals/{data['id']}/comments/evaluate",
        json={"text": "We should hire local workers and buy from member-owned farms."},
    )
    assert r.status_code == 200, r.text
    out = r.json()
    assert out["alignment"] in ("ALIGNED", "NEUTRAL", "MISALIGNED")
    assert 0 <= out["score"] <= 1
    assert out["analysis"]

    assert client.post("/proposals/prop_nope00/comments/evaluate", json={"text": "hi"}).status_code == 404


# -------------------------
# CHARTERS
# -------------------------
def test_get_default_charter():
    r = client.get("/charters/soulaan")
    assert r.status_code == 200
    body = r.json()
    assert body["coopId"] == "soulaan"
    assert abs(sum(g["weight"] for g in body["goalDefinitions"]) - 1.0) < 1e-6


def test_publish_requires_admin_key():
    _seed_coop("api-coop-auth")
    r = client.put("/charters/api-coop-auth", json={"reason": "try", "changes": {"votingWindowDays": 9}})
    assert r.status_code == 403
    r = client.put(
        "/charters/api-coop-auth",
        json={"reason": "try", "changes": {"votingWindowDays": 9}},
        headers={"x-admin-key": "wrong"},
    )
    assert r.status_code == 403


def test_publish_new_version():
    _seed_coop("api-coop")
    r = client.put(
        "/charters/api-coop",
        json={"reason": "longer voting window", "changes": {"votingWindowDays": 10}, "actor": "board"},
        headers=ADMIN,
    )
    assert r.status_code == 200, r.text
    assert r.json()["version"] == 2
    assert r.json()["votingWindowDays"] == 10

    versions = client.get("/charters/api-coop/versions").json()
    assert [v["version"] for v in versions] == [2, 1]
    assert [v["is_active"] for v in versions] == [True, False]

    old = client.get("/charters/api-coop/versions/1").json()
    assert old["votingWindowDays"] == 7

    changes = client.get("/charters/api-coop/changes").json()
    assert changes[-1]["to_version"] == 2
    assert changes[-1]["reason"] == "longer voting window"

    data = _post_proposal({"text": GROCERY_TEXT, "coopId": "api-coop"})
    assert data["audit"]["charterVersion"] == 2
    assert data["governance"]["votingWindowDays"] == 10


def test_publish_invalid_changes():
    _seed_coop("api-coop-bad")
    r = client.put("/charters/api-coop-bad", json={"reason": "bad", "changes": {"votingWindowDays": 99}}, headers=ADMIN)
    assert r.status_code == 422
    r = client.put("/charters/api-coop-bad", json={"reason": "bad", "changes": {"nope": 1}}, headers=ADMIN)
    assert r.status_code == 422
    assert client.get("/charters/api-coop-bad").json()["version"] == 1


def test_unknown_charter_versions_404():
    assert client.get("/charters/nobody/versions").status_code == 404
    assert client.get("/charters/soulaan/versions/999").status_code == 404


# -------------------------
# OPS / DASHBOARD
# -------------------------
def test_ops_health_and_meta():
    health = client.get("/ops/health")
    assert health.status_code == 200
    assert health.json()["checks"]["database"] == "ok"

    meta = client.get("/ops/meta/engine").json()
    assert meta["engine_version"].startswith("proposal-engine@")
    assert "goal_scoring" in meta["required_checks"]


def test_dashboard_renders_and_escapes():
    data = _post_proposal({"text": "<script>alert(1)</script> Member tool library for the east side, $20,000 ask."})
    page = client.get("/dashboard/")
    assert page.status_code == 200
    assert data["id"] in page.text

    detail = client.get(f"/dashboard/proposals/{data['id']}")
    assert detail.status_code == 200
    assert "<script>alert(1)</script>" not in detail.text
