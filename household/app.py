"""
FastAPI application entry point for the household backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from household.config import get_settings
from household.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    app = FastAPI(title="Household Backend (FastAPI)", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return app


app = create_app()
