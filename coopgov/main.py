# coopgov/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import models  # noqa: F401  registers tables on Base.metadata
from .db import Base, engine, session_scope
from .errors import install_error_handlers
from .logging_config import log_event
from .registry import ensure_default_charter
from .routes import charters, dashboard, ops, proposals
from .settings import get_settings

settings = get_settings()


def _ensure_db_ready() -> None:
    # tables + default charter must exist before the first request, tests included
    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        charter = ensure_default_charter(db, settings.DEFAULT_COOP_ID)
    log_event("DB_READY", f"{charter.coopId} charter v{charter.version} active")


_ensure_db_ready()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _ensure_db_ready()
    yield


app = FastAPI(title="coopgov proposal engine", version=settings.APP_VERSION, lifespan=lifespan)
install_error_handlers(app)

app.include_router(proposals.router)
app.include_router(charters.router)
app.include_router(ops.router)
app.include_router(dashboard.router)


@app.get("/")
def health():
    return {"status": "ok", "service": "coopgov", "engine": settings.ENGINE_VERSION}
