"""Exception handlers mapping engine errors to JSON responses.

Every error body has the shape ``{"error": "<message>"}``.  Internal server
errors are logged with their traceback but not exposed to clients.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from acme.moderation.errors import ModerationError

logger = logging.getLogger(__name__)


def format_validation_errors(errors: list) -> str:
    """Render pydantic error dicts as one readable line."""
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query"))
        parts.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else err.get("msg", "invalid"))
    return "; ".join(parts) or "Invalid request"


async def moderation_error_handler(request: Request, exc: ModerationError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Moderation error on %s: %s", request.url.path, exc.message)
    else:
        logger.info(
            "Moderation request rejected: %s (code=%s, status=%d)",
            exc.message,
            exc.error_code,
            exc.status_code,
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": format_validation_errors(exc.errors())})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Moderation API error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ModerationError, moderation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
