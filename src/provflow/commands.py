# src/provflow/commands.py
"""
Async shell command helpers used by command-driven task actions and checks.

All helpers:
- run through the shell with a non-interactive environment so CLIs don't
  emit spinners or colour codes
- always drain stdout and stderr
- own their deadline; the engine has no timer of its own
"""
from __future__ import annotations

import asyncio
import os
import signal
from dataclasses import dataclass
from typing import Optional

from provflow.logging import get_logger

_LOG = get_logger(__name__)

DEFAULT_QUIET_TIMEOUT_MS = 60_000
DEFAULT_OUTPUT_TIMEOUT_MS = 120_000

# How long a timed-out process group gets to exit after SIGTERM before SIGKILL.
KILL_GRACE_S = 0.5


def non_interactive_env() -> dict[str, str]:
    env = dict(os.environ)
    env.update(
        {
            "CI": "true",
            "NO_COLOR": "1",
            "FORCE_COLOR": "0",
            "TERM": "dumb",
        }
    )
    return env


@dataclass(frozen=True)
class CommandResult:
    success: bool
    output: str
    stdout: str = ""
    exit_code: Optional[int] = None
    timed_out: bool = False


async def execute(command: str, timeout_ms: Optional[int] = None) -> CommandResult:
    """
    Runs `command` and collects its output.

    `output` is stdout followed by stderr (many CLIs report progress on
    stderr even when they succeed). On timeout the process is terminated and
    `output` says so.
    """
    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=non_interactive_env(),
            start_new_session=True,
        )
    except OSError as e:
        _LOG.warning("Could not start command %r: %s", command, e)
        return CommandResult(success=False, output=str(e))

    timeout_s = timeout_ms / 1000.0 if timeout_ms is not None else None
    try:
        raw_out, raw_err = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError:
        await _terminate(proc)
        _LOG.warning("Command timed out after %dms: %s", timeout_ms, command)
        return CommandResult(
            success=False,
            output=f"Command timed out after {timeout_ms}ms",
            exit_code=proc.returncode,
            timed_out=True,
        )

    stdout = raw_out.decode("utf-8", errors="replace")
    stderr = raw_err.decode("utf-8", errors="replace")
    combined = stdout + ("\n" + stderr if stderr else "")

    _LOG.debug("Command exited %s: %s", proc.returncode, command)
    return CommandResult(
        success=proc.returncode == 0,
        output=combined,
        stdout=stdout,
        exit_code=proc.returncode,
    )


async def run_quiet(command: str, timeout_ms: int = DEFAULT_QUIET_TIMEOUT_MS) -> Optional[str]:
    """Returns stdout when the command exits 0, otherwise None (failure or timeout)."""
    result = await execute(command, timeout_ms)
    return result.stdout if result.success else None


async def run_command(command: str, timeout_ms: Optional[int] = None) -> bool:
    result = await execute(command, timeout_ms)
    return result.success


async def run_command_with_output(
    command: str, timeout_ms: int = DEFAULT_OUTPUT_TIMEOUT_MS
) -> CommandResult:
    return await execute(command, timeout_ms)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    # The shell may have spawned children holding our pipes; signal the group.
    _signal_group(proc, signal.SIGTERM)
    try:
        await asyncio.wait_for(proc.wait(), timeout=KILL_GRACE_S)
    except asyncio.TimeoutError:
        _LOG.warning("Process group %d ignored SIGTERM; sending SIGKILL", proc.pid)

    # Children that trap SIGTERM can outlive the shell.
    _signal_group(proc, signal.SIGKILL)
    await proc.wait()


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass
    except OSError:
        if proc.returncode is None:
            proc.send_signal(sig)
