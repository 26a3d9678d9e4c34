"""Run approved commands as isolated child processes."""

import asyncio
import time
from contextlib import suppress

from loguru import logger

from kubesafe.config.schema import ExecToolConfig
from kubesafe.errors import ExecutionError
from kubesafe.exec.safety import analyze_command
from kubesafe.exec.types import ExecutionResult

_CHUNK_SIZE = 64 * 1024
_REAP_TIMEOUT_SECONDS = 5.0


class _Capture:
    """Drain a pipe, retaining at most ``limit`` bytes and counting the rest."""

    def __init__(self, limit: int):
        self.limit = limit
        self.chunks: list[bytes] = []
        self.kept = 0
        self.total = 0

    async def drain(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                return
            self.total += len(chunk)
            room = self.limit - self.kept
            if room > 0:
                piece = chunk[:room]
                self.chunks.append(piece)
                self.kept += len(piece)

    @property
    def truncated(self) -> bool:
        return self.total > self.kept

    def text(self) -> str:
        text = b"".join(self.chunks).decode("utf-8", errors="replace")
        if self.truncated:
            text += f"\n... (truncated, {self.total} total bytes)"
        return text


async def _terminate(process: asyncio.subprocess.Process, finished: asyncio.Future) -> None:
    """Kill the child if still running and wait for it and its pipes."""
    if process.returncode is None:
        with suppress(ProcessLookupError):
            process.kill()
    try:
        await asyncio.wait_for(asyncio.shield(finished), timeout=_REAP_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        # A grandchild may still hold the pipes open
        finished.cancel()
        logger.warning(f"Gave up draining output of pid {process.pid}")
        with suppress(ProcessLookupError):
            await process.wait()


async def execute_command(
    command: str,
    config: ExecToolConfig,
    binary: str | None = None,
    interrupt: asyncio.Event | None = None,
) -> ExecutionResult:
    """
    Execute an approved command.

    The command is tokenised and spawned directly (no shell). Both pipes are
    read concurrently with a per-stream cap. When ``timeout_seconds`` passes
    the child is killed and ``timed_out`` is set; when ``interrupt`` is set
    the child is killed and ``interrupted`` is set, keeping whatever output
    was produced. Cancelling the calling task kills the child before the
    cancellation propagates.

    Args:
        command: Full command line, starting with the tool name.
        config: Timeout and output caps.
        binary: Replaces the leading tool name when spawning (e.g. an
            absolute path to kubectl).
        interrupt: Optional event that stops the run early.

    Raises:
        ExecutionError: The command was rejected or could not be spawned.
    """
    analysis = analyze_command(command)
    if not analysis.ok:
        raise ExecutionError(f"Command rejected: {analysis.reason}")

    argv = analysis.argv
    if binary:
        argv[0] = binary

    start = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ExecutionError(f"'{argv[0]}' not found. Is it installed and on PATH?") from e
    except OSError as e:
        raise ExecutionError(f"Could not start '{argv[0]}': {e}") from e

    logger.info(f"Started pid {process.pid}: {command}")

    stdout = _Capture(config.max_output_bytes)
    stderr = _Capture(config.max_output_bytes)
    finished = asyncio.ensure_future(
        asyncio.gather(stdout.drain(process.stdout), stderr.drain(process.stderr), process.wait())
    )
    waiters: set[asyncio.Future] = {finished}
    stop = asyncio.ensure_future(interrupt.wait()) if interrupt is not None else None
    if stop is not None:
        waiters.add(stop)

    try:
        done, _ = await asyncio.wait(
            waiters,
            timeout=config.timeout_seconds,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        await _terminate(process, finished)
        logger.info(f"Execution of pid {process.pid} cancelled")
        raise
    finally:
        if stop is not None:
            stop.cancel()

    timed_out = False
    interrupted = False
    if finished not in done:
        if stop is not None and stop in done:
            interrupted = True
        else:
            timed_out = True
        await _terminate(process, finished)

    duration_ms = int((time.monotonic() - start) * 1000)
    exit_code = -1 if timed_out else process.returncode

    if timed_out:
        logger.warning(f"Command timed out after {config.timeout_seconds} seconds: {command}")
    elif interrupted:
        logger.info(f"Command interrupted (exit {exit_code}): {command}")
    else:
        logger.info(f"Command finished (exit {exit_code}, {duration_ms} ms): {command}")

    return ExecutionResult(
        exit_code=exit_code,
        stdout=stdout.text(),
        stderr=stderr.text(),
        duration_ms=duration_ms,
        stdout_truncated=stdout.truncated,
        stderr_truncated=stderr.truncated,
        timed_out=timed_out,
        interrupted=interrupted,
    )
