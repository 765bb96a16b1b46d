from __future__ import annotations

import asyncio
import sys
import time

import psutil
import pytest

from opsengine import sampler
from opsengine.commands import CommandRunner
from opsengine.errors import CommandFailed, CommandTimeout

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="uses POSIX shell commands")


def test_run_returns_stdout() -> None:
    output = asyncio.run(CommandRunner().run("echo hello world", timeout=5))
    assert output.strip() == "hello world"


def test_run_passes_extra_environment() -> None:
    runner = CommandRunner(env={"OPSENGINE_PROBE": "42"})
    output = asyncio.run(runner.run('echo "$OPSENGINE_PROBE"', timeout=5))
    assert output.strip() == "42"


def test_non_zero_exit_raises_command_failed() -> None:
    with pytest.raises(CommandFailed) as excinfo:
        asyncio.run(CommandRunner().run("echo broken >&2; exit 3", timeout=5))
    assert excinfo.value.returncode == 3
    assert "broken" in excinfo.value.stderr


def test_slow_command_times_out() -> None:
    with pytest.raises(CommandTimeout) as excinfo:
        asyncio.run(CommandRunner().run("sleep 5", timeout=0.2))
    assert excinfo.value.timeout == 0.2


def test_launch_returns_pid_for_long_running_process() -> None:
    pid = asyncio.run(CommandRunner().launch("sleep 1", settle=0.1))
    assert pid > 0


def test_launch_reports_immediate_failure() -> None:
    with pytest.raises(CommandFailed):
        asyncio.run(CommandRunner().launch("exit 7", settle=2.0))


def _alive_with_args(*args: str) -> list[psutil.Process]:
    alive = []
    for proc in psutil.process_iter(["cmdline", "status"]):
        if proc.info["status"] == psutil.STATUS_ZOMBIE:
            continue
        if list(proc.info["cmdline"] or [])[-len(args):] == list(args):
            alive.append(proc)
    return alive


def _wait_until_gone(*args: str, deadline: float = 2.0) -> list[psutil.Process]:
    waited = 0.0
    alive = _alive_with_args(*args)
    while alive and waited < deadline:
        time.sleep(0.05)
        waited += 0.05
        alive = _alive_with_args(*args)
    return alive


def test_timed_out_command_leaves_no_child_behind() -> None:
    # the trailing "true" keeps the shell from exec'ing sleep directly
    with pytest.raises(CommandTimeout):
        asyncio.run(CommandRunner().run("sleep 7.31; true", timeout=0.3))
    assert _wait_until_gone("sleep", "7.31") == []


def test_enclosing_deadline_also_kills_the_command() -> None:
    runner = CommandRunner()

    async def query() -> float:
        await runner.run("sleep 7.42; true", timeout=30)
        return 1.0

    window = asyncio.run(sampler.sample(query, window_seconds=0.0, intervals=1, timeout=0.3))
    assert window.valid_count == 0
    assert _wait_until_gone("sleep", "7.42") == []
