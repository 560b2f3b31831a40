# src/provflow/api/routes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from provflow.domain.errors import ConflictError, FlowBaseError, NotFoundError
from provflow.domain.models import (
    ErrorResponse,
    FlowSpec,
    RunCreateResponse,
    RunListResponse,
    RunView,
)
from provflow.engine.render import render_flow
from provflow.logging import get_logger

from .deps import get_registry
from .registry import RunRegistry

_LOG = get_logger(__name__)
router = APIRouter()


def _error_response(err: FlowBaseError, http_status: int) -> JSONResponse:
    payload = ErrorResponse(
        error=err.message,
        code=err.code,
        details=err.details or {},
    ).model_dump()
    return JSONResponse(status_code=http_status, content=payload)


@router.get("/healthz")
def healthz() -> dict:
    return {"ok": True}


@router.post("/runs", response_model=RunCreateResponse, status_code=201)
async def submit_run(
    spec: FlowSpec,
    registry: RunRegistry = Depends(get_registry),
):
    """
    Start a command flow.

    Notes:
    - The run executes in the background; poll GET /runs/{id}.
    - Check commands are probed before the first task starts.
    - Invalid definitions (duplicate keys, undeclared groups) fail FlowSpec
      validation with 422 before reaching the registry.
    """
    try:
        run = registry.start(spec)
        return RunCreateResponse(id=run.id)
    except ConflictError as e:
        _LOG.warning("Rejected run: %s", e.message)
        return _error_response(e, 409)


@router.get("/runs/{run_id}", response_model=RunView)
def get_run(
    run_id: str,
    registry: RunRegistry = Depends(get_registry),
):
    try:
        return registry.get(run_id).view()
    except NotFoundError as e:
        return _error_response(e, 404)


@router.get("/runs/{run_id}/render", response_class=PlainTextResponse)
def render_run(
    run_id: str,
    show_completed_groups: bool = Query(default=True),
    registry: RunRegistry = Depends(get_registry),
):
    try:
        snapshot = registry.get(run_id).runner.snapshot()
    except NotFoundError as e:
        return _error_response(e, 404)
    return PlainTextResponse(render_flow(snapshot, show_completed_groups=show_completed_groups))


@router.get("/runs", response_model=RunListResponse)
def list_runs(
    limit: int = Query(default=200, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    registry: RunRegistry = Depends(get_registry),
):
    runs, total = registry.list(limit=limit, offset=offset)
    return RunListResponse(runs=[r.view() for r in runs], total=total)
