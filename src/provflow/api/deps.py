# src/provflow/api/deps.py
from __future__ import annotations

from fastapi import Request

from .registry import RunRegistry


def get_registry(request: Request) -> RunRegistry:
    """
    Per-request access to the RunRegistry stored on app.state during startup.
    """
    return request.app.state.registry  # type: ignore[attr-defined]
