# scripts/seed_charter.py
import sys

from coopgov import models  # noqa: F401
from coopgov.db import Base, engine, session_scope
from coopgov.registry import ensure_default_charter


def seed_charter(coop_id=None):
    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        charter = ensure_default_charter(db, coop_id)
        goals = ", ".join(f"{g.key}={g.weight:g}" for g in charter.goalDefinitions)
        print(f"Charter {charter.coopId} v{charter.version} active ({goals})")


if __name__ == "__main__":
    seed_charter(sys.argv[1] if len(sys.argv) > 1 else None)
