"""
Bounded invocation of external commands.

This module provides the CommandRunner class, the only place the monitor
spawns processes. Every invocation carries a timeout and a per-stream output
cap so a hung or runaway external process surfaces as a CommandError instead
of stalling a refresh cycle.

Failure kinds:
    - timeout: process did not exit within the deadline (killed)
    - overflow: stdout or stderr exceeded the output cap (killed)
    - nonzero_exit: process exited with a non-zero status
    - spawn_failure: executable missing or not runnable

Example:
    >>> runner = CommandRunner()
    >>> result = await runner.execute(
    ...     ["openclaw", "cron", "list", "--all", "--json"],
    ...     timeout_ms=30_000,
    ...     max_output_bytes=5 * 1024 * 1024,
    ... )
    >>> data = json.loads(result.stdout)
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from opsmonitor.errors import CommandError, CommandFailure

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_MAX_OUTPUT_BYTES = 5 * 1024 * 1024

_READ_CHUNK = 64 * 1024
_STDERR_EXCERPT = 2000


@dataclass(frozen=True)
class CommandResult:
    """Decoded output of a successful invocation."""

    stdout: str
    stderr: str


class _OutputOverflow(Exception):
    def __init__(self, stream: str) -> None:
        self.stream = stream
        super().__init__(stream)


async def _read_bounded(
    stream: Optional[asyncio.StreamReader],
    limit: int,
    name: str,
) -> bytes:
    """Read a stream to EOF, failing once more than ``limit`` bytes arrive."""
    if stream is None:
        return b""
    chunks = []
    size = 0
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            raise _OutputOverflow(name)
        chunks.append(chunk)
    return b"".join(chunks)


class CommandRunner:
    """
    Runs external commands with a deadline and an output cap.

    Performs no parsing; callers decode stdout themselves.

    Attributes:
        default_timeout_ms: Timeout used when a call does not pass one.
        default_max_output_bytes: Output cap used when a call does not pass one.
    """

    def __init__(
        self,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        default_max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ) -> None:
        self.default_timeout_ms = default_timeout_ms
        self.default_max_output_bytes = default_max_output_bytes

    async def execute(
        self,
        args: Sequence[str],
        timeout_ms: Optional[int] = None,
        max_output_bytes: Optional[int] = None,
    ) -> CommandResult:
        """
        Execute a command and collect its output.

        Args:
            args: argv, executable first. No shell is involved.
            timeout_ms: Deadline for the whole invocation.
            max_output_bytes: Cap applied to stdout and stderr separately.

        Returns:
            CommandResult: Decoded stdout and stderr.

        Raises:
            CommandError: On timeout, overflow, non-zero exit or spawn failure.
        """
        argv = [str(a) for a in args]
        if not argv:
            raise CommandError(CommandFailure.SPAWN_FAILURE, "empty command", argv)

        timeout_s = (timeout_ms or self.default_timeout_ms) / 1000.0
        limit = max_output_bytes or self.default_max_output_bytes

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning("command_spawn_failed", command=argv[0], error=str(e))
            raise CommandError(CommandFailure.SPAWN_FAILURE, str(e), argv) from e

        async def _collect() -> tuple[bytes, bytes, int]:
            readers = [
                asyncio.ensure_future(_read_bounded(proc.stdout, limit, "stdout")),
                asyncio.ensure_future(_read_bounded(proc.stderr, limit, "stderr")),
            ]
            try:
                out, err = await asyncio.gather(*readers)
            except BaseException:
                # A failed or cancelled read must not leave its sibling running
                for reader in readers:
                    reader.cancel()
                await asyncio.gather(*readers, return_exceptions=True)
                raise
            code = await proc.wait()
            return out, err, code

        try:
            stdout_b, stderr_b, returncode = await asyncio.wait_for(_collect(), timeout_s)
        except asyncio.TimeoutError as e:
            await self._kill(proc)
            logger.warning("command_timed_out", command=argv[0], timeout_s=timeout_s)
            raise CommandError(
                CommandFailure.TIMEOUT,
                f"{argv[0]} exceeded {timeout_s:g}s",
                argv,
            ) from e
        except _OutputOverflow as e:
            await self._kill(proc)
            logger.warning(
                "command_output_overflow",
                command=argv[0],
                stream=e.stream,
                max_output_bytes=limit,
            )
            raise CommandError(
                CommandFailure.OVERFLOW,
                f"{argv[0]} {e.stream} exceeded {limit} bytes",
                argv,
            ) from e

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")

        if returncode != 0:
            excerpt = stderr.strip()[-_STDERR_EXCERPT:]
            logger.warning(
                "command_nonzero_exit",
                command=argv[0],
                returncode=returncode,
                stderr=excerpt,
            )
            raise CommandError(
                CommandFailure.NONZERO_EXIT,
                f"{argv[0]} exited with {returncode}" + (f": {excerpt}" if excerpt else ""),
                argv,
                returncode=returncode,
                stderr=excerpt,
            )

        return CommandResult(stdout=stdout, stderr=stderr)

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()
