"""Shell command execution primitive used by the resolver and telemetry layers."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import subprocess
from typing import Mapping

import psutil  # type: ignore[import-untyped]

from opsengine.errors import CommandFailed, CommandTimeout, ExternalCommandFailure

logger = logging.getLogger(__name__)


def _kill_tree(pid: int) -> None:
    """Kill ``pid`` and every descendant; the shell wrapper alone is not enough."""
    try:
        parent = psutil.Process(pid)
        processes = parent.children(recursive=True) + [parent]
    except psutil.Error:
        return
    for proc in processes:
        with contextlib.suppress(psutil.Error):
            proc.kill()


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        _kill_tree(process.pid)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
    await process.wait()


class CommandRunner:
    """Run platform shell commands with a bounded wall time."""

    def __init__(self, *, env: Mapping[str, str] | None = None, cwd: str | None = None) -> None:
        self._env = dict(env) if env else None
        self._cwd = cwd

    def _exec_env(self) -> dict[str, str] | None:
        if not self._env:
            return None
        exec_env = os.environ.copy()
        exec_env.update(self._env)
        return exec_env

    async def run(self, command: str, timeout: float) -> str:
        """Execute ``command`` through the shell and return its decoded stdout.

        Raises :class:`CommandTimeout` when the command outlives ``timeout``
        seconds and :class:`CommandFailed` on a non-zero exit status.
        """
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self._cwd,
                env=self._exec_env(),
            )
        except OSError as exc:
            raise ExternalCommandFailure(command, f"Failed to spawn ({exc})") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await _terminate(process)
            logger.debug("Command timed out after %.1fs: %s", timeout, command)
            raise CommandTimeout(command, timeout) from None
        except asyncio.CancelledError:
            # an enclosing deadline fired first
            await _terminate(process)
            logger.debug("Command cancelled: %s", command)
            raise

        if process.returncode != 0:
            raise CommandFailed(command, process.returncode, stderr.decode("utf-8", errors="replace"))
        return stdout.decode("utf-8", errors="replace")

    async def launch(self, command: str, *, settle: float = 0.5) -> int:
        """Start an application without waiting for it to exit.

        The process is watched for ``settle`` seconds; exiting non-zero inside
        that period counts as a failed launch. Returns the spawned pid.
        """
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=self._cwd,
                env=self._exec_env(),
                start_new_session=os.name != "nt",
            )
        except OSError as exc:
            raise ExternalCommandFailure(command, f"Failed to spawn ({exc})") from exc

        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=settle)
        except asyncio.TimeoutError:
            logger.debug("Launched pid %s: %s", process.pid, command)
            return process.pid
        if returncode != 0:
            raise CommandFailed(command, returncode)
        return process.pid


__all__ = ["CommandRunner"]
