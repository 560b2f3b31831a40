from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be an int, got: {raw!r}") from e
    return value


def _get_env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw


@dataclass(frozen=True)
class Settings:
    # Runs
    max_active_runs: int
    max_retained_runs: int

    # Command collaborator deadlines
    command_timeout_ms: int
    check_timeout_ms: int

    # Server (used by provflow.main when starting uvicorn programmatically)
    host: str
    port: int
    log_level: str


def load_settings() -> Settings:
    """
    Loads settings from env vars with sane defaults.

    Env vars:
      - PROVFLOW_MAX_ACTIVE_RUNS (default: 1)
      - PROVFLOW_MAX_RETAINED_RUNS (default: 100)
      - PROVFLOW_COMMAND_TIMEOUT_MS (default: 120000)
      - PROVFLOW_CHECK_TIMEOUT_MS (default: 60000)
      - PROVFLOW_HOST (default: 127.0.0.1)
      - PROVFLOW_PORT (default: 8000)
      - PROVFLOW_LOG_LEVEL (default: info)
    """
    max_active_runs = _get_env_int("PROVFLOW_MAX_ACTIVE_RUNS", 1)
    if max_active_runs <= 0:
        raise ValueError("PROVFLOW_MAX_ACTIVE_RUNS must be > 0")

    max_retained_runs = _get_env_int("PROVFLOW_MAX_RETAINED_RUNS", 100)
    if max_retained_runs <= 0:
        raise ValueError("PROVFLOW_MAX_RETAINED_RUNS must be > 0")

    command_timeout_ms = _get_env_int("PROVFLOW_COMMAND_TIMEOUT_MS", 120_000)
    if command_timeout_ms <= 0:
        raise ValueError("PROVFLOW_COMMAND_TIMEOUT_MS must be > 0")

    check_timeout_ms = _get_env_int("PROVFLOW_CHECK_TIMEOUT_MS", 60_000)
    if check_timeout_ms <= 0:
        raise ValueError("PROVFLOW_CHECK_TIMEOUT_MS must be > 0")

    host = _get_env_str("PROVFLOW_HOST", "127.0.0.1")
    port = _get_env_int("PROVFLOW_PORT", 8000)
    if not (1 <= port <= 65535):
        raise ValueError("PROVFLOW_PORT must be between 1 and 65535")

    log_level = _get_env_str("PROVFLOW_LOG_LEVEL", "info").lower()

    return Settings(
        max_active_runs=max_active_runs,
        max_retained_runs=max_retained_runs,
        command_timeout_ms=command_timeout_ms,
        check_timeout_ms=check_timeout_ms,
        host=host,
        port=port,
        log_level=log_level,
    )
