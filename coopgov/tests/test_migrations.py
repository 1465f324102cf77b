# coopgov/tests/test_migrations.py
import io
from pathlib import Path

from alembic import command
from alembic.config import Config

ROOT = Path(__file__).resolve().parents[2]


def test_initial_migration_renders_offline():
    buf = io.StringIO()
    # no ini file: leaves the app's logging configuration alone
    cfg = Config(output_buffer=buf)
    cfg.set_main_option("script_location", str(ROOT / "migrations"))

    command.upgrade(cfg, "head", sql=True)
    sql = buf.getvalue()

    for table in ("charter_versions", "charter_changes", "proposals", "events"):
        assert f"CREATE TABLE {table}" in sql
    assert "ix_events_coop_id" in sql
    assert "uq_charter_coop_version" in sql
