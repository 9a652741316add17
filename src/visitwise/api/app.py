"""FastAPI application with lifespan management."""

from __future__ import annotations

import importlib.metadata
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from visitwise.api.middleware.error_handler import register_error_handlers
from visitwise.api.routes import analyze, health
from visitwise.core.config import APIConfig, AppSettings
from visitwise.core.startup_checks import validate_settings
from visitwise.hooks import setup_logging
from visitwise.pipeline import VisitAnalysisPipeline


def _get_version() -> str:
    """Read package version from installed metadata, with dev fallback."""
    try:
        return importlib.metadata.version("visitwise")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0-dev"


def create_app(
    settings: Optional[AppSettings] = None,
    pipeline: Optional[VisitAnalysisPipeline] = None,
) -> FastAPI:
    """Build the app.  Tests pass a ready pipeline; production builds one from settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        resolved = settings or AppSettings()
        if pipeline is None:
            validate_settings(resolved)
        setup_logging(resolved.observability)
        app.state.settings = resolved
        app.state.pipeline = pipeline or VisitAnalysisPipeline.from_settings(resolved)
        yield

    api_config = settings.api if settings is not None else APIConfig()
    app = FastAPI(
        title=api_config.title,
        description=api_config.description,
        version=_get_version(),
        lifespan=lifespan,
    )
    register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(analyze.router, prefix="/api")
    return app
