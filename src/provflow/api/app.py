# src/provflow/api/app.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from provflow.config import load_settings
from provflow.logging import configure_logging, get_logger

from .registry import RunRegistry
from .routes import router

_LOG = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan handler.

    Responsible for:
    - loading settings
    - configuring logging
    - creating the run registry
    - reporting runs still active on shutdown
    """
    settings = load_settings()
    configure_logging(settings.log_level)

    app.state.settings = settings
    app.state.registry = RunRegistry(settings)

    _LOG.info("Startup complete (max_active_runs=%d).", settings.max_active_runs)

    try:
        yield
    finally:
        registry = getattr(app.state, "registry", None)
        if registry is not None:
            await registry.shutdown()
        _LOG.info("Shutdown complete.")


app = FastAPI(
    title="provflow",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(router)
