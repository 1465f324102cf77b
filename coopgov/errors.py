# coopgov/errors.py
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarHTTP
import logging

from .engine.errors import CharterNotFound, ProposalValidationError

logger = logging.getLogger("coopgov")

def install_error_handlers(app):
    @app.exception_handler(ProposalValidationError)
    async def proposal_invalid(_: Request, exc: ProposalValidationError):
        return JSONResponse({"error": "VALIDATION_ERROR", "fields": exc.errors}, status_code=422)

    @app.exception_handler(ValidationError)
    async def config_invalid(_: Request, exc: ValidationError):
        fields = [
            {"field": ".".join(str(p) for p in e["loc"]) or "body", "message": e["msg"]}
            for e in exc.errors()
        ]
        return JSONResponse({"error": "VALIDATION_ERROR", "fields": fields}, status_code=422)

    @app.exception_handler(CharterNotFound)
    async def charter_missing(_: Request, exc: CharterNotFound):
        return JSONResponse({"error": "CHARTER_NOT_FOUND", "detail": str(exc)}, status_code=404)

    @app.exception_handler(StarHTTP)
    async def http_exc(_: Request, exc: StarHTTP):
        return JSONResponse({"error": f"HTTP_{exc.status_code}", "detail": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled(_: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse({"error": "INTERNAL_ERROR", "detail": "Unexpected error"}, status_code=500)
