# tests/test_api.py
import time

import pytest
from fastapi.testclient import TestClient

from provflow.engine.runner import FlowRunner

GROUPS = [{"key": "storage", "title": "Storage"}, {"key": "cache", "title": "Cache"}]


def _wait_for_phase(client: TestClient, run_id: str, phases: set[str], timeout_s: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout_s
    body: dict = {}
    while time.monotonic() < deadline:
        r = client.get(f"/runs/{run_id}")
        if r.status_code == 200:
            body = r.json()
            if body["phase"] in phases:
                return body
        time.sleep(0.05)
    raise AssertionError(f"run {run_id} did not reach {phases}; last seen: {body}")


def _statuses(run: dict) -> dict[str, str]:
    return {t["key"]: t["status"] for t in run["snapshot"]["tasks"]}


def test_healthz(client: TestClient):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_submit_and_complete_run(client: TestClient):
    payload = {
        "name": "setup",
        "groups": GROUPS,
        "tasks": [
            {"key": "bucket", "title": "Create bucket", "group": "storage", "command": "echo ok", "check": "true"},
            {"key": "kv", "title": "Create KV", "group": "cache", "command": "echo kv", "check": "false"},
        ],
    }
    r = client.post("/runs", json=payload)
    assert r.status_code == 201, r.text
    run_id = r.json()["id"]

    run = _wait_for_phase(client, run_id, {"completed"})
    assert run["name"] == "setup"
    assert run["started_at"] is not None and run["finished_at"] is not None
    assert _statuses(run) == {"bucket": "skipped", "kv": "success"}

    snap = run["snapshot"]
    assert snap["is_complete"] is True
    assert snap["error"] is None
    assert snap["current_group"] is None
    assert [g["status"] for g in snap["groups"]] == ["complete", "complete"]
    assert snap["tasks"][0]["message"] == "Already exists"

    r = client.get("/runs")
    assert r.status_code == 200
    j = r.json()
    assert j["total"] == 1
    assert j["runs"][0]["id"] == run_id


def test_halted_run_reports_error(client: TestClient):
    payload = {
        "groups": GROUPS,
        "tasks": [
            {"key": "bucket", "title": "Create bucket", "group": "storage", "command": "exit 1",
             "failure_message": "Failed to create bucket"},
            {"key": "kv", "title": "Create KV", "group": "cache", "command": "echo kv"},
        ],
    }
    r = client.post("/runs", json=payload)
    assert r.status_code == 201, r.text

    run = _wait_for_phase(client, r.json()["id"], {"failed"})
    assert _statuses(run) == {"bucket": "error", "kv": "pending"}
    assert run["snapshot"]["error"] == "Failed to create bucket"
    assert run["snapshot"]["groups"][0]["status"] == "error"


def test_continue_on_error_run_completes(client: TestClient):
    payload = {
        "exit_on_error": False,
        "groups": GROUPS,
        "tasks": [
            {"key": "bucket", "title": "Delete bucket", "group": "storage", "command": "exit 1"},
            {"key": "kv", "title": "Delete KV", "group": "cache", "command": "true"},
        ],
    }
    r = client.post("/runs", json=payload)
    assert r.status_code == 201, r.text

    run = _wait_for_phase(client, r.json()["id"], {"completed"})
    assert _statuses(run) == {"bucket": "error", "kv": "success"}
    assert run["snapshot"]["error"] is None


def test_render_endpoint(client: TestClient):
    payload = {
        "groups": GROUPS,
        "tasks": [{"key": "bucket", "title": "Create bucket", "group": "storage", "command": "true"}],
    }
    run_id = client.post("/runs", json=payload).json()["id"]
    _wait_for_phase(client, run_id, {"completed"})

    r = client.get(f"/runs/{run_id}/render")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert "● Storage → ○ Cache" in r.text
    assert "✓ Create bucket" in r.text


def test_unknown_run_returns_404(client: TestClient):
    r = client.get("/runs/does-not-exist")
    assert r.status_code == 404, r.text
    assert r.json()["code"] == "NOT_FOUND"

    r = client.get("/runs/does-not-exist/render")
    assert r.status_code == 404


def test_undeclared_group_returns_422(client: TestClient):
    r = client.post(
        "/runs",
        json={
            "groups": GROUPS,
            "tasks": [{"key": "x", "title": "X", "group": "nope", "command": "true"}],
        },
    )
    assert r.status_code == 422, r.text


def test_max_active_runs_returns_409(client_factory):
    with client_factory(overrides={"PROVFLOW_MAX_ACTIVE_RUNS": "1"}) as client:
        slow = {
            "groups": GROUPS,
            "tasks": [{"key": "slow", "title": "Slow", "group": "storage", "command": "sleep 1"}],
        }
        r1 = client.post("/runs", json=slow)
        assert r1.status_code == 201, r1.text

        r2 = client.post("/runs", json=slow)
        assert r2.status_code == 409, r2.text
        assert r2.json()["code"] == "CONFLICT"

        _wait_for_phase(client, r1.json()["id"], {"completed"})
        r3 = client.post("/runs", json=slow)
        assert r3.status_code == 201, r3.text


def test_duplicate_task_keys_return_422(client: TestClient):
    r = client.post(
        "/runs",
        json={
            "groups": GROUPS,
            "tasks": [
                {"key": "x", "title": "X", "group": "storage", "command": "true"},
                {"key": "x", "title": "X again", "group": "cache", "command": "true"},
            ],
        },
    )
    assert r.status_code == 422, r.text


def test_crashed_run_is_failed_and_frees_its_slot(client_factory, monkeypatch: pytest.MonkeyPatch):
    original_run = FlowRunner.run
    crashed: list[FlowRunner] = []

    async def _crash_first(self):
        if not crashed:
            crashed.append(self)
            raise RuntimeError("engine blew up")
        return await original_run(self)

    monkeypatch.setattr(FlowRunner, "run", _crash_first)

    with client_factory(overrides={"PROVFLOW_MAX_ACTIVE_RUNS": "1"}) as client:
        payload = {
            "groups": GROUPS,
            "tasks": [{"key": "bucket", "title": "Create bucket", "group": "storage", "command": "true"}],
        }
        r1 = client.post("/runs", json=payload)
        assert r1.status_code == 201, r1.text

        run = _wait_for_phase(client, r1.json()["id"], {"failed"})
        assert run["error"] == "engine blew up"
        assert run["finished_at"] is not None
        assert _statuses(run) == {"bucket": "pending"}

        r2 = client.post("/runs", json=payload)
        assert r2.status_code == 201, r2.text
        run = _wait_for_phase(client, r2.json()["id"], {"completed"})
        assert run["error"] is None
        assert _statuses(run) == {"bucket": "success"}


def test_oldest_finished_runs_are_evicted(client_factory):
    with client_factory(overrides={"PROVFLOW_MAX_RETAINED_RUNS": "2"}) as client:
        payload = {
            "groups": GROUPS,
            "tasks": [{"key": "bucket", "title": "Create bucket", "group": "storage", "command": "true"}],
        }
        ids = []
        for _ in range(3):
            r = client.post("/runs", json=payload)
            assert r.status_code == 201, r.text
            ids.append(r.json()["id"])
            _wait_for_phase(client, ids[-1], {"completed"})

        j = client.get("/runs").json()
        assert j["total"] == 2
        assert [r["id"] for r in j["runs"]] == ids[1:]
        assert client.get(f"/runs/{ids[0]}").status_code == 404
