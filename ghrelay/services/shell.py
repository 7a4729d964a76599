"""
Shell execution capability.

Runs one child process, captures stdout/stderr up to a combined byte cap and
optionally enforces a timeout. Both failure modes surface as ProcessError.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..errors import ProcessError
from ..models import MAX_OUTPUT_BYTES

logger = logging.getLogger(__name__)

_CHUNK = 65536


@dataclass(frozen=True)
class ShellResult:
    """Exit status and decoded output of a finished process."""
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ShellRunner:
    """Implements IShellRunner on top of asyncio subprocesses."""

    def __init__(
        self,
        max_output_bytes: int = MAX_OUTPUT_BYTES,
        timeout: Optional[float] = None,
        encoding: str = "utf-8",
    ):
        self._max_output_bytes = max_output_bytes
        self._timeout = timeout
        self._encoding = encoding

    async def run(self, argv: Sequence[str]) -> ShellResult:
        """
        Run ``argv`` to completion.

        Raises:
            ProcessError: spawn failure, timeout or output over the cap
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProcessError(f"Could not start {argv[0]}: {exc}") from exc

        logger.debug("Spawned %s (pid=%s)", argv[0], process.pid)

        budget = [self._max_output_bytes]
        try:
            stdout, stderr, returncode = await asyncio.wait_for(
                self._collect(process, budget),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            await _kill(process)
            raise ProcessError(
                f"{argv[0]} did not finish within {self._timeout:g}s"
            ) from None
        except _OutputLimitExceeded:
            await _kill(process)
            raise ProcessError(
                f"{argv[0]} output exceeded {self._max_output_bytes} bytes"
            ) from None

        logger.debug("%s exited with code %s", argv[0], returncode)
        return ShellResult(
            returncode=returncode,
            stdout=stdout.decode(self._encoding, errors="replace"),
            stderr=stderr.decode(self._encoding, errors="replace"),
        )

    async def _collect(self, process: asyncio.subprocess.Process, budget: List[int]):
        stdout, stderr = await asyncio.gather(
            _drain(process.stdout, budget),
            _drain(process.stderr, budget),
        )
        returncode = await process.wait()
        return stdout, stderr, returncode


class _OutputLimitExceeded(Exception):
    pass


async def _drain(stream: Optional[asyncio.StreamReader], budget: List[int]) -> bytes:
    if stream is None:
        return b""
    chunks = []
    while True:
        chunk = await stream.read(_CHUNK)
        if not chunk:
            break
        # budget is shared by stdout and stderr
        budget[0] -= len(chunk)
        if budget[0] < 0:
            raise _OutputLimitExceeded()
        chunks.append(chunk)
    return b"".join(chunks)


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()
