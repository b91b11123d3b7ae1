"""FastAPI application factory for the analysis HTTP API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from tracker.api.routes import api


def create_api_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Route handlers read their collaborators from ``app.state``:
    orchestrator, scanner, rate_gate and cache.
    """
    app = FastAPI(
        title="Crypto Portfolio Tracker Analysis API",
        lifespan=lifespan,
    )
    app.state.scanner = None
    app.include_router(api.router, prefix="/api")
    return app
