# migrations/env.py
from __future__ import annotations

from logging.config import fileConfig

from alembic import context

# coopgov.db loads .env and resolves DATABASE_URL; alembic.ini puts the
# repo root on sys.path so this import works from the project root.
from coopgov import models  # noqa: F401  registers the tables
from coopgov.db import DATABASE_URL, IS_SQLITE, Base, engine

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# charter/proposal tables get altered in place; SQLite needs batch mode for that
MIGRATION_OPTS = dict(
    target_metadata=Base.metadata,
    compare_type=True,
    render_as_batch=IS_SQLITE,
)


def run_migrations_offline() -> None:
    """Emit SQL for the charter, proposal and event tables without a connection."""
    context.configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **MIGRATION_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # same engine the app uses, so migrations and requests never disagree on the URL
    with engine.connect() as connection:
        context.configure(connection=connection, **MIGRATION_OPTS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
