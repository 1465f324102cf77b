# coopgov/tests/test_audit.py
import pytest

from coopgov.engine.audit import NOT_PERFORMED, REQUIRED_CHECKS, AuditRecorder
from coopgov.schemas import AuditCheck


def test_each_check_recorded_once():
    rec = AuditRecorder("proposal-engine@test")
    rec.record("basic_validation", True)
    with pytest.raises(ValueError):
        rec.record("basic_validation", False)


def test_finalize_fills_unperformed_checks():
    rec = AuditRecorder("proposal-engine@test")
    rec.record("basic_validation", True)
    rec.extend([AuditCheck(name="charter_loaded", passed=True)])
    audit = rec.finalize(charter_version=3)

    assert audit.engineVersion == "proposal-engine@test"
    assert audit.charterVersion == 3
    names = [c.name for c in audit.checks]
    assert sorted(names) == sorted(REQUIRED_CHECKS)
    missing = [c for c in audit.checks if c.name == "goal_scoring"][0]
    assert not missing.passed and missing.note == NOT_PERFORMED


def test_extra_checks_are_kept():
    rec = AuditRecorder("v", required=("a",))
    rec.record("custom", True)
    assert [c.name for c in rec.finalize().checks] == ["custom", "a"]
