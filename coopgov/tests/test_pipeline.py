# coopgov/tests/test_pipeline.py
import asyncio
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import GROCERY_TEXT, NO_BUDGET_TEXT, ConstantScorer, StubExtractor, full_draft
from coopgov.engine import alternatives, ids
from coopgov.engine.audit import REQUIRED_CHECKS
from coopgov.engine.charter_config import CHARTER_CONFIG, CharterRegistry, default_charter
from coopgov.engine.errors import ProposalValidationError
from coopgov.engine.extraction import FieldExtractor
from coopgov.engine.scoring import HeuristicGoalScorer
from coopgov.schemas import CharterConfig, CommentContext, Decision, ProposalStatus

REGION = {"code": "US-MI", "name": "Detroit"}


def _checks(out):
    return {c.name: c for c in out.audit.checks}


def test_short_text_raises_before_anything_runs(make_engine):
    stub = StubExtractor(full_draft())
    eng = make_engine(extractor=stub)
    with pytest.raises(ProposalValidationError) as exc:
        eng.evaluate({"text": "Hi"})
    assert exc.value.fields == ["text"]
    assert stub.calls == 0


def test_grocery_end_to_end(engine):
    out = engine.evaluate({"text": GROCERY_TEXT, "proposer": {"wallet": "0xabc123", "role": "member"}})

    assert out.id.startswith("prop_") and len(out.id) == 11
    assert out.title == "Member-owned grocery on MLK Avenue"
    assert out.budget.amountRequested == 150000
    assert out.treasuryPlan.localPercent + out.treasuryPlan.nationalPercent == 100
    assert out.impact.jobsCreated == 12
    assert 0.0 <= out.goalScores.composite <= 1.0
    assert set(out.goalScores.scores) == {
        "LeakageReduction", "MemberBenefit", "EquityGrowth", "LocalJobs", "CommunityVitality", "Resilience",
    }

    checks = _checks(out)
    assert checks["treasury_allocation_sum"].passed
    assert checks["goal_scoring"].passed
    counts = Counter(c.name for c in out.audit.checks)
    assert all(counts[name] == 1 for name in REQUIRED_CHECKS)
    assert out.audit.charterVersion == 1
    assert out.decisionReasons


def test_alternatives_sorted_and_capped(engine):
    out = engine.evaluate({"text": GROCERY_TEXT})
    composites = [a.scores.composite for a in out.alternatives]
    assert len(composites) <= 3
    assert composites == sorted(composites, reverse=True)
    assert all(c > out.goalScores.composite for c in composites)
    if out.decision == Decision.BLOCK and out.bestAlternative is not None:
        assert out.bestAlternative.scores.composite > out.goalScores.composite


def test_missing_budget_is_blocking(engine):
    out = engine.evaluate({"text": NO_BUDGET_TEXT})
    budget = [m for m in out.missing_data if m.field == "budget.amountRequested"]
    assert budget and budget[0].blocking
    assert out.decision != Decision.ADVANCE
    assert out.budget is None


def test_ids_are_unique(make_engine):
    eng = make_engine()
    ids = {eng.evaluate({"text": GROCERY_TEXT}).id for _ in range(15)}
    assert len(ids) == 15


class SlowAsyncExtractor(FieldExtractor):
    name = "slow-async"

    async def extract(self, text):
        await asyncio.sleep(5)
        return full_draft()


def test_extractor_timeout_degrades(make_engine):
    eng = make_engine(extractor=SlowAsyncExtractor())
    eng.timeout_s = 0.05
    out = eng.evaluate({"text": GROCERY_TEXT})

    checks = _checks(out)
    assert not checks["extraction_available"].passed
    assert out.missing_data[0].field == "extraction"
    assert out.missing_data[0].blocking
    assert out.decision == Decision.REVISE
    assert out.title == "Untitled proposal"


def test_untrusted_extraction_is_not_used(make_engine):
    eng = make_engine(full_draft(treasuryPlan={"localPercent": 70, "nationalPercent": 40}))
    out = eng.evaluate({"text": GROCERY_TEXT})

    assert out.budget is None
    assert out.treasuryPlan is None
    assert out.title == "Member grocery co-op"
    checks = _checks(out)
    assert not checks["treasury_allocation_sum"].passed
    assert not checks["extraction_schema"].passed
    fields = [m.field for m in out.missing_data]
    assert fields.count("treasuryPlan") == 1
    assert out.decision == Decision.REVISE


def test_excluded_sector_blocks_hard(make_engine):
    eng = make_engine(full_draft(title="Members restaurant", category="business_funding"))
    out = eng.evaluate({"text": "Open a members restaurant on Woodward serving local food, budget $80,000."})

    assert out.decision == Decision.BLOCK
    assert out.status == ProposalStatus.FAILED
    assert out.bestAlternative is None
    assert not _checks(out)["sector_exclusion_screen"].passed
    assert "compliance.sector_exclusion_screen" in [m.field for m in out.missing_data]


def test_weight_anomaly_is_recorded_not_raised(make_engine):
    charter = CharterConfig.model_validate({
        **CHARTER_CONFIG,
        "goalDefinitions": [
            {"key": "LeakageReduction", "label": "Leakage Reduction", "weight": 0.6},
            {"key": "LocalJobs", "label": "Local Jobs", "weight": 0.6},
        ],
    })
    out = make_engine().evaluate({"text": GROCERY_TEXT}, charter)
    assert not _checks(out)["charter_weights_normalized"].passed
    assert 0.0 <= out.goalScores.composite <= 1.0


class PickyScorer(HeuristicGoalScorer):
    """Fails only on the phased-budget variant."""

    def score(self, draft, charter):
        if draft.budget is not None and draft.budget.amountRequested == 90000:
            raise RuntimeError("model refused")
        return super().score(draft, charter)


def test_failing_alternative_is_dropped(make_engine):
    out = make_engine(scorer=PickyScorer()).evaluate({"text": GROCERY_TEXT})
    checks = _checks(out)
    assert checks["goal_scoring"].passed
    assert not checks["alternative_scoring"].passed
    assert "Phased budget" in checks["alternative_scoring"].note
    assert all(a.label != "Phased budget" for a in out.alternatives)


class BrokenScorer:
    def score(self, draft, charter):
        raise RuntimeError("model offline")


def test_failing_original_scores_zero(make_engine):
    out = make_engine(scorer=BrokenScorer()).evaluate({"text": GROCERY_TEXT, "region": REGION})
    checks = _checks(out)
    assert not checks["goal_scoring"].passed
    assert not checks["alternative_scoring"].passed
    assert out.goalScores.composite == 0.0
    assert out.alternatives == []
    assert out.decision == Decision.REVISE


def test_strong_complete_proposal_advances(make_engine):
    out = make_engine(scorer=ConstantScorer(0.9)).evaluate({"text": GROCERY_TEXT, "region": REGION})
    assert out.missing_data == []
    assert out.decision == Decision.ADVANCE
    assert out.status == ProposalStatus.VOTABLE
    assert out.region.code == "US-MI"
    assert out.alternatives == []


def test_run_uses_its_charter_snapshot(make_engine):
    registry = CharterRegistry()
    registry.register(default_charter("coop-a"))
    snapshot = registry.get_active_config("coop-a")
    registry.publish("coop-a", {"approvalThresholdPercent": 95}, reason="tighten")

    eng = make_engine(scorer=ConstantScorer(0.9))
    old = eng.evaluate({"text": GROCERY_TEXT, "region": REGION}, snapshot)
    new = eng.evaluate({"text": GROCERY_TEXT, "region": REGION}, registry.get_active_config("coop-a"))

    assert old.audit.charterVersion == 1
    assert old.governance.approvalThresholdPercent == 51
    assert old.decision == Decision.ADVANCE
    assert new.audit.charterVersion == 2
    assert new.governance.approvalThresholdPercent == 95
    assert new.decision == Decision.REVISE


def test_comment_alignment(engine, charter):
    ctx = CommentContext(
        title="Member grocery co-op",
        summary="Open a member-owned grocery stocked from local farms.",
        category="procurement",
    )
    good = engine.evaluate_comment(
        "Buying from local member-owned farms keeps money in the neighborhood. "
        "We should hire local workers and consider opening the grocery in phases.",
        ctx,
        charter,
    )
    assert good.alignment == "ALIGNED"
    assert "LocalJobs" in good.goalsImpacted

    bad = engine.evaluate_comment("lol this is garbage whatever", ctx, charter)
    assert bad.alignment == "MISALIGNED"
    assert bad.goalsImpacted == []


def test_cancelling_one_run_leaves_others_alone(make_engine):
    slow = make_engine(extractor=SlowAsyncExtractor())
    fast = make_engine()

    async def scenario():
        doomed = asyncio.create_task(slow.evaluate_async({"text": GROCERY_TEXT}))
        kept = asyncio.create_task(fast.evaluate_async({"text": GROCERY_TEXT}))
        await asyncio.sleep(0.05)
        doomed.cancel()
        out = await kept
        with pytest.raises(asyncio.CancelledError):
            await doomed
        return out

    out = asyncio.run(scenario())
    assert out.budget.amountRequested == 150000


# -------------------------
# NON-FINITE AND HUNG INPUTS
# -------------------------
def test_infinite_budget_from_extractor_is_distrusted(make_engine):
    eng = make_engine(full_draft(budget={"currency": "USD", "amountRequested": float("inf")}))
    out = eng.evaluate({"text": GROCERY_TEXT})

    assert out.budget is None
    assert 0.0 <= out.goalScores.composite <= 1.0
    assert not _checks(out)["budget_non_negative"].passed
    assert out.decision == Decision.REVISE


def test_overlong_amount_in_text_is_survivable(engine):
    out = engine.evaluate({
        "text": "We request $" + "9" * 320 + " to open a member grocery with a 70/30 local/national split.",
    })
    assert out.budget is None
    assert out.treasuryPlan.localPercent == 70
    assert all(0.0 <= a.scores.composite <= 1.0 for a in out.alternatives)
    assert "budget.amountRequested" in [m.field for m in out.missing_data]


def test_crashing_strategy_is_noted_in_audit(make_engine, monkeypatch):
    def _overflowing(draft, charter):
        raise OverflowError("cannot convert float infinity to integer")

    monkeypatch.setattr(alternatives, "STRATEGIES", (_overflowing, alternatives._local_shift))
    out = make_engine().evaluate({"text": GROCERY_TEXT})

    check = _checks(out)["alternative_scoring"]
    assert not check.passed
    assert "overflowing" in check.note
    assert all(a.label != "Phased budget" for a in out.alternatives)


def test_discarded_treasury_plan_is_named_in_audit(make_engine):
    eng = make_engine(full_draft(budget={"currency": "USD", "amountRequested": -5}))
    out = eng.evaluate({"text": GROCERY_TEXT})

    assert out.treasuryPlan is None
    note = _checks(out)["treasury_allocation_sum"].note
    assert "discarded" in note
    assert "could not be extracted" not in note


class HangingExtractor(FieldExtractor):
    name = "hanging"

    def __init__(self):
        self.release = threading.Event()

    def extract(self, text):
        self.release.wait(5)
        return full_draft()


def test_hung_extractor_does_not_starve_another_engine(make_engine):
    hanging = HangingExtractor()
    stuck = make_engine(extractor=hanging)
    stuck.extractor_pool = ThreadPoolExecutor(max_workers=1)
    stuck.timeout_s = 0.05
    try:
        assert not _checks(stuck.evaluate({"text": GROCERY_TEXT}))["extraction_available"].passed

        other = make_engine()
        assert other.extractor_pool is not stuck.extractor_pool
        assert _checks(other.evaluate({"text": GROCERY_TEXT}))["extraction_available"].passed
    finally:
        hanging.release.set()


def test_generated_id_skips_ones_already_issued(monkeypatch):
    chars = iter("a" * 6 + "a" * 6 + "b" * 6)
    monkeypatch.setattr(ids, "_issued", set())
    monkeypatch.setattr(ids.secrets, "choice", lambda alphabet: next(chars))

    assert ids.generate_proposal_id() == "prop_aaaaaa"
    assert ids.generate_proposal_id() == "prop_bbbbbb"
