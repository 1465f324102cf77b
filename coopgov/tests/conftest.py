# coopgov/tests/conftest.py
import os
import tempfile

# Must run before coopgov.db / coopgov.settings are imported anywhere.
_TMP = tempfile.mkdtemp(prefix="coopgov-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["COOPGOV_ADMIN_KEY"] = "test-admin-key"
os.environ["COOPGOV_DEFAULT_COOP"] = "soulaan"

import pytest

from coopgov.engine.charter_config import default_charter
from coopgov.engine.extraction import FieldExtractor, RuleBasedExtractor
from coopgov.engine.pipeline import ProposalEngine


GROCERY_TEXT = (
    "Member-owned grocery on MLK Avenue. We request $150,000 to open a cooperative "
    "grocery store stocked from local farms. Spending will follow a 70/30 local/national "
    "split and the store will accept UC. It will create 12 local jobs within 18 months "
    "and keep $40,000 a year in the neighborhood economy."
)

NO_BUDGET_TEXT = (
    "We want to start a weekend farmers market for members in the east side parking lot "
    "so residents can buy fresh produce close to home."
)


class StubExtractor(FieldExtractor):
    """Returns a fixed payload; records calls."""

    name = "stub"

    def __init__(self, payload):
        self.payload = payload
        self.calls = 0

    def extract(self, text):
        self.calls += 1
        return self.payload


class ConstantScorer:
    def __init__(self, value):
        self.value = value

    def score(self, draft, charter):
        return {k: self.value for k in charter.goal_keys()}


def full_draft(**overrides):
    payload = {
        "title": "Member grocery co-op",
        "summary": "Open a member-owned grocery stocked from local farms.",
        "category": "procurement",
        "budget": {"currency": "USD", "amountRequested": 150000},
        "treasuryPlan": {"localPercent": 70, "nationalPercent": 30, "acceptUC": True},
        "impact": {"leakageReductionUSD": 40000, "jobsCreated": 12, "timeHorizonMonths": 18},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def charter():
    return default_charter("test-coop")


@pytest.fixture
def rule_extractor():
    # fixed classifier keeps extraction deterministic
    return RuleBasedExtractor(classifier=lambda text: ("procurement", 0.9))


@pytest.fixture
def engine(rule_extractor):
    return ProposalEngine(extractor=rule_extractor)


@pytest.fixture
def make_engine():
    def _make(payload=None, extractor=None, scorer=None, **kw):
        ext = extractor or StubExtractor(payload if payload is not None else full_draft())
        return ProposalEngine(extractor=ext, scorer=scorer, **kw)
    return _make
