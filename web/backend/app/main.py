"""FastAPI application for the ACME moderation service.

Provides the REST surface over the moderation engine:
- Pre-publication moderation and standalone analysis
- Review queue, moderator decisions and queue cleanup
- Per-content history, aggregate stats and live settings
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Ensure the acme package is importable by adding the project root to sys.path.
_project_root = str(Path(__file__).resolve().parents[3])
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from acme import __version__
from acme.utils.log import configure_logging
from web.backend.app.error_handlers import register_error_handlers
from web.backend.app.middleware.auth import get_config
from web.backend.app.routers import moderation


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_config().log_level)
    yield


app = FastAPI(
    title="ACME Moderation API",
    description=(
        "REST API for the automated content moderation engine. "
        "Provides endpoints for moderation, the review queue, "
        "moderator decisions, history, stats and settings."
    ),
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS middleware (allow all origins for development)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------
app.include_router(moderation.router)


# ---------------------------------------------------------------------------
# Root and health-check endpoints
# ---------------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root():
    """Return basic API information."""
    return {
        "name": "ACME Moderation API",
        "version": __version__,
        "description": "Automated content moderation REST API",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


@app.get("/health", tags=["meta"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
