# src/provflow/api/__init__.py
"""
API layer for provflow (FastAPI).

- app: FastAPI instance + lifecycle hooks
- routes: REST endpoints for starting and watching runs
- registry: in-memory hosted runs
- deps: dependency injection helpers
"""

from .app import app

__all__ = ["app"]
