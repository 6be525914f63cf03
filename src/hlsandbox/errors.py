"""Errors raised when invoking the sandbox executable."""

from __future__ import annotations

from collections.abc import Sequence


class SandboxError(RuntimeError):
    """Base error for sandbox invocation failures."""


class SandboxExitError(SandboxError):
    """The sandbox executable exited with a non-zero status.

    The exit code is reported as-is; its meaning is defined by the sandbox
    tool, not by this package.
    """

    def __init__(
        self,
        returncode: int,
        cmd: Sequence[str],
        stdout: bytes | None = None,
        stderr: bytes | None = None,
    ) -> None:
        self.returncode = returncode
        self.cmd = list(cmd)
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"sandbox exited with status {returncode}")
