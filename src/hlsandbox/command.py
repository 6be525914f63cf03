"""Process handles for the sandbox executable.

:class:`SandboxCommand` mirrors :class:`subprocess.Popen` usage: bind the
standard streams, then ``start()`` and ``wait()``, or ``run()`` for both.
:class:`AsyncSandboxCommand` does the same on top of
``asyncio.create_subprocess_exec``; cancelling the awaiting task kills the
sandbox process.

Neither handle interprets the tool's output or exit code. Spawn failures
(``FileNotFoundError``, ``PermissionError``) propagate unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from collections.abc import Mapping, Sequence
from typing import IO, Any, Union

from hlsandbox.config import get_config
from hlsandbox.errors import SandboxError, SandboxExitError

logger = logging.getLogger(__name__)

_Stream = Union[int, IO[Any], None]


class _CommandBase:
    _process: Any = None

    def __init__(
        self,
        executable: str,
        args: Sequence[str],
        *,
        stdin: _Stream = None,
        stdout: _Stream = None,
        stderr: _Stream = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        self.executable = executable
        self.args = list(args)
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr
        self.env = dict(env) if env is not None else None
        self.cwd = cwd

    @property
    def argv(self) -> list[str]:
        """Full argument vector, executable first."""
        return [self.executable, *self.args]

    def _effective_timeout(self, timeout: float | None) -> float | None:
        return timeout if timeout is not None else get_config().default_timeout

    def _prepare_capture(self) -> None:
        if self._process is not None:
            raise SandboxError("sandbox command already started")
        if self.stdout is not None:
            raise SandboxError("stdout already set")
        self.stdout = subprocess.PIPE
        if self.stderr is None:
            self.stderr = subprocess.PIPE

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.argv!r})"


class SandboxCommand(_CommandBase):
    """Unstarted invocation of the sandbox executable."""

    _process: subprocess.Popen[bytes] | None = None

    @property
    def process(self) -> subprocess.Popen[bytes] | None:
        return self._process

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    def start(self) -> subprocess.Popen[bytes]:
        """Spawn the sandbox executable without waiting for it."""
        if self._process is not None:
            raise SandboxError("sandbox command already started")
        self._process = subprocess.Popen(
            self.argv,
            stdin=self.stdin,
            stdout=self.stdout,
            stderr=self.stderr,
            env=self.env,
            cwd=self.cwd,
        )
        logger.debug("Started sandbox %s (pid %d)", self.executable, self._process.pid)
        return self._process

    def wait(self, timeout: float | None = None) -> int:
        """Wait for the started process and return its exit code.

        On timeout the process is killed and reaped before
        ``subprocess.TimeoutExpired`` is re-raised.
        """
        proc = self._require_started()
        try:
            returncode = proc.wait(timeout=self._effective_timeout(timeout))
        except subprocess.TimeoutExpired:
            logger.warning("Sandbox pid %d timed out; killing", proc.pid)
            proc.kill()
            proc.wait()
            raise
        if returncode != 0:
            logger.info("Sandbox pid %d exited with status %d", proc.pid, returncode)
        return returncode

    def run(self, timeout: float | None = None) -> int:
        """Start, wait, and raise :class:`SandboxExitError` on non-zero exit."""
        self.start()
        returncode = self.wait(timeout)
        if returncode != 0:
            raise SandboxExitError(returncode, self.argv)
        return returncode

    def output(self, timeout: float | None = None) -> bytes:
        """Run with stdout captured and return it.

        Stderr is captured too unless already bound, and attached to the
        :class:`SandboxExitError` raised on non-zero exit.
        """
        self._prepare_capture()
        proc = self.start()
        try:
            out, err = proc.communicate(timeout=self._effective_timeout(timeout))
        except subprocess.TimeoutExpired:
            logger.warning("Sandbox pid %d timed out; killing", proc.pid)
            proc.kill()
            proc.communicate()
            raise
        if proc.returncode != 0:
            logger.info("Sandbox pid %d exited with status %d", proc.pid, proc.returncode)
            raise SandboxExitError(proc.returncode, self.argv, stdout=out, stderr=err)
        return out

    def _require_started(self) -> subprocess.Popen[bytes]:
        if self._process is None:
            raise SandboxError("sandbox command not started")
        return self._process


class AsyncSandboxCommand(_CommandBase):
    """Unstarted invocation of the sandbox executable for asyncio callers."""

    _process: asyncio.subprocess.Process | None = None

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        return self._process

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    async def start(self) -> asyncio.subprocess.Process:
        if self._process is not None:
            raise SandboxError("sandbox command already started")
        self._process = await asyncio.create_subprocess_exec(
            self.executable,
            *self.args,
            stdin=self.stdin,
            stdout=self.stdout,
            stderr=self.stderr,
            env=self.env,
            cwd=self.cwd,
        )
        logger.debug("Started sandbox %s (pid %d)", self.executable, self._process.pid)
        return self._process

    async def wait(self, timeout: float | None = None) -> int:
        """Wait for the started process and return its exit code.

        Cancellation or timeout kills and reaps the process, then re-raises.
        """
        proc = self._require_started()
        try:
            returncode = await asyncio.wait_for(
                proc.wait(), timeout=self._effective_timeout(timeout)
            )
        except (asyncio.CancelledError, asyncio.TimeoutError):
            await _kill(proc)
            raise
        if returncode != 0:
            logger.info("Sandbox pid %d exited with status %d", proc.pid, returncode)
        return returncode

    async def run(self, timeout: float | None = None) -> int:
        await self.start()
        returncode = await self.wait(timeout)
        if returncode != 0:
            raise SandboxExitError(returncode, self.argv)
        return returncode

    async def output(self, timeout: float | None = None) -> bytes:
        self._prepare_capture()
        proc = await self.start()
        try:
            out, err = await asyncio.wait_for(
                proc.communicate(), timeout=self._effective_timeout(timeout)
            )
        except (asyncio.CancelledError, asyncio.TimeoutError):
            await _kill(proc)
            raise
        if proc.returncode != 0:
            logger.info("Sandbox pid %d exited with status %d", proc.pid, proc.returncode)
            raise SandboxExitError(proc.returncode or 0, self.argv, stdout=out, stderr=err)
        return out

    def _require_started(self) -> asyncio.subprocess.Process:
        if self._process is None:
            raise SandboxError("sandbox command not started")
        return self._process


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        logger.warning("Killing sandbox pid %d", proc.pid)
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
