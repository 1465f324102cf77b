"""charter versions, proposals and events

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00

"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

ACTIONS = (
    "EVALUATE_PROPOSAL",
    "EVALUATE_COMMENT",
    "SEED_CHARTER",
    "PUBLISH_CHARTER",
    "FAILURE_LOG",
)


def upgrade() -> None:
    op.create_table(
        "charter_versions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coop_id", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("config", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("coop_id", "version", name="uq_charter_coop_version"),
    )
    op.create_index("ix_charter_versions_coop_id", "charter_versions", ["coop_id"])
    op.create_index("ix_charter_versions_is_active", "charter_versions", ["is_active"])

    op.create_table(
        "charter_changes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coop_id", sa.String(), nullable=False),
        sa.Column("from_version", sa.Integer(), nullable=True),
        sa.Column("to_version", sa.Integer(), nullable=False),
        sa.Column("changes", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("actor", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_charter_changes_coop_id", "charter_changes", ["coop_id"])

    op.create_table(
        "proposals",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("coop_id", sa.String(), nullable=False),
        sa.Column("charter_version", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("decision", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("composite", sa.Float(), nullable=False),
        sa.Column("output", sa.Text(), nullable=False),
        sa.Column("engine_version", sa.String(), nullable=True),
        sa.Column("app_version", sa.String(), nullable=True),
        sa.Column("schema_version", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_proposals_coop_id", "proposals", ["coop_id"])
    op.create_index("ix_proposals_decision", "proposals", ["decision"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("proposal_id", sa.String(), nullable=True),
        sa.Column("coop_id", sa.String(), nullable=True),
        sa.Column("action", sa.Enum(*ACTIONS, name="actionenum"), nullable=False),
        sa.Column("actor_type", sa.String(), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("app_version", sa.String(), nullable=True),
        sa.Column("schema_version", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_events_proposal_id", "events", ["proposal_id"])
    op.create_index("ix_events_coop_id", "events", ["coop_id"])


def downgrade() -> None:
    op.drop_index("ix_events_coop_id", table_name="events")
    op.drop_index("ix_events_proposal_id", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_proposals_decision", table_name="proposals")
    op.drop_index("ix_proposals_coop_id", table_name="proposals")
    op.drop_table("proposals")
    op.drop_index("ix_charter_changes_coop_id", table_name="charter_changes")
    op.drop_table("charter_changes")
    op.drop_index("ix_charter_versions_is_active", table_name="charter_versions")
    op.drop_index("ix_charter_versions_coop_id", table_name="charter_versions")
    op.drop_table("charter_versions")
    sa.Enum(name="actionenum").drop(op.get_bind(), checkfirst=True)
