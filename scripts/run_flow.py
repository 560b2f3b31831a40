#!/usr/bin/env python3
from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from provflow.config import load_settings
from provflow.domain.models import FlowSnapshot, FlowSpec
from provflow.engine.command_flow import build_command_runner, probe_existing
from provflow.engine.render import render_flow
from provflow.logging import configure_logging, get_logger


async def _run(spec: FlowSpec) -> int:
    settings = load_settings()
    log = get_logger("provflow.run_flow")

    runner = build_command_runner(spec, default_timeout_ms=settings.command_timeout_ms)

    def _show(snapshot: FlowSnapshot) -> None:
        log.info("\n%s", render_flow(snapshot))

    runner.subscribe(_show)

    await probe_existing(runner, spec, timeout_ms=settings.check_timeout_ms)
    error = await runner.run()
    if error is not None:
        log.error("Flow halted: %s", error.message)
        return 1
    return 0


def main() -> int:
    """
    Runs a command flow from a JSON file in this process:

      python scripts/run_flow.py flow.json
    """
    settings = load_settings()
    configure_logging(settings.log_level)
    log = get_logger(__name__)

    if len(sys.argv) != 2:
        log.error("usage: run_flow.py <flow.json>")
        return 2

    path = Path(sys.argv[1])
    spec = FlowSpec.model_validate(json.loads(path.read_text(encoding="utf-8")))
    log.info("Loaded flow %s from %s", spec.name or "unnamed", path)
    return asyncio.run(_run(spec))


if __name__ == "__main__":
    raise SystemExit(main())
