# tests/conftest.py
import importlib
from contextlib import contextmanager
from typing import Iterator, Optional

import pytest
from fastapi.testclient import TestClient

DEFAULT_ENV = {
    "PROVFLOW_MAX_ACTIVE_RUNS": "4",
    "PROVFLOW_COMMAND_TIMEOUT_MS": "5000",
    "PROVFLOW_CHECK_TIMEOUT_MS": "5000",
    "PROVFLOW_LOG_LEVEL": "warning",
    # server host/port are irrelevant for TestClient, but harmless if set elsewhere
}


def _apply_env(monkeypatch: pytest.MonkeyPatch, overrides: Optional[dict[str, str]] = None) -> None:
    for k, v in DEFAULT_ENV.items():
        monkeypatch.setenv(k, v)
    if overrides:
        for k, v in overrides.items():
            monkeypatch.setenv(k, v)


@contextmanager
def _client_ctx(monkeypatch: pytest.MonkeyPatch, *, overrides: Optional[dict[str, str]] = None) -> Iterator[TestClient]:
    _apply_env(monkeypatch, overrides)

    # Import after env is set; reload to avoid cross-test state
    app_mod = importlib.import_module("provflow.api.app")
    importlib.reload(app_mod)

    with TestClient(app_mod.app) as client:
        yield client


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """
    Default integration test client with a fresh run registry per test.
    """
    with _client_ctx(monkeypatch) as c:
        yield c


@pytest.fixture()
def client_factory(monkeypatch: pytest.MonkeyPatch):
    """
    Factory for tests that need custom settings.

    Usage:
      with client_factory(overrides={"PROVFLOW_MAX_ACTIVE_RUNS": "1"}) as client:
          ...
    """

    def _make(*, overrides: Optional[dict[str, str]] = None):
        return _client_ctx(monkeypatch, overrides=overrides)

    return _make
