"""Tests for command execution.

The Python interpreter stands in for kubectl: the leading "kubectl" of each
command is replaced by ``sys.executable``.
"""

import asyncio
import sys

import pytest

from kubesafe.config.schema import ExecToolConfig
from kubesafe.errors import ExecutionError
from kubesafe.exec.executor import execute_command
from kubesafe.exec.hints import explain_failure


def run(command: str, config: ExecToolConfig | None = None, **kwargs):
    return execute_command(command, config or ExecToolConfig(), binary=sys.executable, **kwargs)


class TestExecuteCommand:
    @pytest.mark.asyncio
    async def test_captures_stdout_and_exit_code(self):
        result = await run("kubectl -c print(42)")
        assert result.success
        assert result.exit_code == 0
        assert result.stdout.strip() == "42"
        assert result.duration_ms >= 0
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_nonzero_exit_and_stderr(self):
        result = await run("kubectl -c 1/0")
        assert not result.success
        assert result.exit_code == 1
        assert "ZeroDivisionError" in result.stderr

    @pytest.mark.asyncio
    async def test_explicit_exit_code(self):
        result = await run("kubectl -c 'raise SystemExit(3)'")
        assert result.exit_code == 3

    @pytest.mark.asyncio
    async def test_output_is_capped(self):
        config = ExecToolConfig(max_output_bytes=100)
        result = await run("kubectl -c print('x'*5000)", config)
        assert result.stdout_truncated
        assert result.stdout.endswith("(truncated, 5001 total bytes)")
        assert result.stdout.startswith("x" * 100)
        assert not result.stderr_truncated

    @pytest.mark.asyncio
    async def test_timeout_kills_child(self):
        config = ExecToolConfig(timeout_seconds=1)
        result = await run("kubectl -c __import__('time').sleep(30)", config)
        assert result.timed_out
        assert result.exit_code == -1
        assert result.duration_ms < 10_000

    @pytest.mark.asyncio
    async def test_interrupt_event_kills_child(self):
        interrupt = asyncio.Event()
        task = asyncio.ensure_future(
            run("kubectl -c __import__('time').sleep(30)", interrupt=interrupt)
        )
        await asyncio.sleep(0.2)
        interrupt.set()
        result = await asyncio.wait_for(task, timeout=10)
        assert result.interrupted
        assert not result.success
        assert result.exit_code is not None

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        task = asyncio.ensure_future(run("kubectl -c __import__('time').sleep(30)"))
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=10)

    @pytest.mark.asyncio
    async def test_rejected_command_raises(self):
        with pytest.raises(ExecutionError, match="rejected"):
            await run("kubectl get pods | grep web")

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self):
        with pytest.raises(ExecutionError, match="not found"):
            await execute_command(
                "kubectl get pods", ExecToolConfig(), binary="/nonexistent/kubectl-binary"
            )


# ── Failure hints ───────────────────────────────────────────────────


class TestExplainFailure:
    @pytest.mark.parametrize("stderr, kind", [
        ('Error from server (NotFound): deployments.apps "nginx" not found', "not found"),
        ('Error from server (Forbidden): pods is forbidden: User "dev" cannot list resource "pods"', "forbidden"),
        ("The connection to the server localhost:8080 was refused - did you specify the right host or port?",
         "unreachable"),
        ("Unable to connect to the server: dial tcp 10.0.0.1:443: i/o timeout", "unreachable"),
        ('error: the server doesn\'t have a resource type "podz"', "unknown type"),
        ('error: resource mapping not found: no matches for kind "Widget" in version "v1"', "unknown type"),
        ("error: current-context is not set", "no context"),
        ("error: You must be logged in to the server (Unauthorized)", "unauthorized"),
        ('Error from server (AlreadyExists): deployments.apps "api" already exists', "already exists"),
        ("error: unknown flag: --replica", "bad arguments"),
    ])
    def test_known_failures(self, stderr, kind):
        assert explain_failure(stderr).kind == kind

    def test_namespace_in_suggestion(self):
        hint = explain_failure('Error from server (NotFound): pods "web" not found', "shop")
        assert hint.suggestion == "kubectl get all -n shop"

    @pytest.mark.parametrize("stderr", ["", "  \n", "something odd happened"])
    def test_unrecognised(self, stderr):
        assert explain_failure(stderr) is None
