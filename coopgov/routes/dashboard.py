# coopgov/routes/dashboard.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from jinja2 import Template
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import ProposalRecord
from ..schemas import Decision

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

DECISION_COLORS = {
    "advance": "#15803d",
    "revise": "#b45309",
    "block": "#b91c1c",
}

_STYLE = r"""
  <style>
    :root {
      --coop-green: #2f7d5b;
      --coop-bg: #f5f2eb;
      --coop-surface: #ffffff;
      --coop-border: #e2e8f0;
      --coop-text: #1f2933;
      --coop-muted: #6b7280;
    }
    * { box-sizing: border-box; }
    body { font-family: system-ui, -apple-system, "Segoe UI", Roboto, sans-serif; margin: 0; background: var(--coop-bg); color: var(--coop-text); }
    .shell { max-width: 1100px; margin: 0 auto; padding: 22px 18px 40px; }
    .topbar { display: flex; align-items: center; justify-content: space-between; margin-bottom: 16px; padding-bottom: 10px; border-bottom: 1px solid rgba(0,0,0,0.06); }
    .brand-title { font-family: "Georgia", serif; font-size: 24px; letter-spacing: 0.04em; color: var(--coop-green); }
    .brand-sub { font-size: 12px; text-transform: uppercase; letter-spacing: 0.15em; color: #666; }
    .card { background: var(--coop-surface); border: 1px solid var(--coop-border); border-radius: 14px; padding: 12px 16px; margin: 12px 0; }
    .pill { display:inline-block; padding: 3px 10px; border-radius: 999px; color: #fff; font-size: 12px; font-weight: 700; text-transform: uppercase; }
    table { width: 100%; border-collapse: collapse; font-size: 13px; }
    th, td { text-align: left; padding: 6px 8px; border-bottom: 1px solid var(--coop-border); vertical-align: top; }
    th { color: var(--coop-muted); font-weight: 600; }
    .pass { color: #15803d; font-weight: 700; }
    .fail { color: #b91c1c; font-weight: 700; }
    .bar { background: #e5e7eb; border-radius: 6px; height: 8px; width: 160px; display:inline-block; vertical-align: middle; }
    .bar > span { background: var(--coop-green); display:block; height: 8px; border-radius: 6px; }
    .muted { color: var(--coop-muted); }
    a { color: var(--coop-green); }
  </style>
"""

LIST_TEMPLATE = Template(
    r"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>Co-op Proposals · Review</title>
""" + _STYLE + r"""
</head>
<body>
<div class="shell">
  <div class="topbar">
    <div>
      <div class="brand-title">Proposal Review</div>
      <div class="brand-sub">{{ total }} proposals{% if sel_decision %} · {{ sel_decision }}{% endif %}</div>
    </div>
  </div>
  <div class="card">
    <table>
      <tr><th>ID</th><th>Title</th><th>Co-op</th><th>Charter</th><th>Composite</th><th>Decision</th><th>Status</th></tr>
      {% for p in proposals %}
      <tr>
        <td><a href="/dashboard/proposals/{{ p.id }}">{{ p.id }}</a></td>
        <td>{{ p.title }}</td>
        <td>{{ p.coop_id }}</td>
        <td>v{{ p.charter_version }}</td>
        <td>{{ "%.3f"|format(p.composite) }}</td>
        <td><span class="pill" style="background: {{ colors.get(p.decision, '#334155') }}">{{ p.decision }}</span></td>
        <td>{{ p.status }}</td>
      </tr>
      {% else %}
      <tr><td colspan="7" class="muted">No proposals yet.</td></tr>
      {% endfor %}
    </table>
  </div>
</div>
</body>
</html>
""",
    autoescape=True,
)

DETAIL_TEMPLATE = Template(
    r"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ p.title }} · Audit</title>
""" + _STYLE + r"""
</head>
<body>
<div class="shell">
  <div class="topbar">
    <div>
      <div class="brand-title">{{ p.title }}</div>
      <div class="brand-sub">{{ p.id }} · {{ p.category }} · {{ p.audit.engineVersion }} · charter v{{ p.audit.charterVersion }}</div>
    </div>
    <span class="pill" style="background: {{ colors.get(p.decision, '#334155') }}">{{ p.decision }} / {{ p.status }}</span>
  </div>

  <div class="card">
    <p>{{ p.summary }}</p>
    <ul>
      {% for r in p.decisionReasons %}<li>{{ r }}</li>{% endfor %}
    </ul>
  </div>

  <div class="card">
    <h3>Goal scores</h3>
    <table>
      {% for key, value in goals %}
      <tr><td>{{ key }}</td><td><span class="bar"><span style="width: {{ (value * 100)|round|int }}%"></span></span> {{ "%.2f"|format(value) }}</td></tr>
      {% endfor %}
      <tr><th>Composite</th><th>{{ "%.3f"|format(p.goalScores.composite) }}</th></tr>
    </table>
  </div>

  {% if p.alternatives %}
  <div class="card">
    <h3>Alternatives</h3>
    <table>
      <tr><th>Label</th><th>Composite</th><th>Changes</th><th>Rationale</th></tr>
      {% for a in p.alternatives %}
      <tr>
        <td>{{ a.label }}</td>
        <td>{{ "%.3f"|format(a.scores.composite) }}</td>
        <td>{% for c in a.changes %}{{ c.field }}: {{ c["from"] }} → {{ c.to }}<br>{% endfor %}</td>
        <td>{{ a.rationale }}</td>
      </tr>
      {% endfor %}
    </table>
  </div>
  {% endif %}

  <div class="card">
    <h3>Missing data</h3>
    <table>
      <tr><th>Field</th><th>Question</th><th>Blocking</th></tr>
      {% for m in p.missing_data %}
      <tr><td>{{ m.field }}</td><td>{{ m.question }}</td><td>{% if m.blocking %}<span class="fail">yes</span>{% else %}no{% endif %}</td></tr>
      {% else %}
      <tr><td colspan="3" class="muted">Nothing outstanding.</td></tr>
      {% endfor %}
    </table>
  </div>

  <div class="card">
    <h3>Audit checks</h3>
    <table>
      <tr><th>Check</th><th>Result</th><th>Note</th></tr>
      {% for c in p.audit.checks %}
      <tr>
        <td>{{ c.name }}</td>
        <td>{% if c.passed %}<span class="pass">pass</span>{% else %}<span class="fail">fail</span>{% endif %}</td>
        <td class="muted">{{ c.note or "" }}</td>
      </tr>
      {% endfor %}
    </table>
  </div>
</div>
</body>
</html>
""",
    autoescape=True,
)


@router.get("/", response_class=HTMLResponse)
def dashboard(
    decision: Decision | None = Query(None),
    db: Session = Depends(get_db),
):
    q = db.query(ProposalRecord)
    if decision is not None:
        q = q.filter(ProposalRecord.decision == decision.value)
    rows = q.order_by(desc(ProposalRecord.created_at)).limit(200).all()
    return LIST_TEMPLATE.render(
        proposals=rows,
        total=len(rows),
        sel_decision=decision.value if decision else "",
        colors=DECISION_COLORS,
    )


@router.get("/proposals/{proposal_id}", response_class=HTMLResponse)
def proposal_detail(proposal_id: str, db: Session = Depends(get_db)):
    rec = db.query(ProposalRecord).filter(ProposalRecord.id == proposal_id).first()
    if not rec:
        raise HTTPException(404, "Proposal not found")

    p: dict[str, Any] = rec.output or {}
    goals = [(k, v) for k, v in (p.get("goalScores") or {}).items() if k != "composite"]
    return DETAIL_TEMPLATE.render(p=p, goals=goals, colors=DECISION_COLORS)
