"""Declarative builder for sandbox tool invocations.

A :class:`Sandbox` accumulates filesystem mappings, environment entries,
resource limits and execution parameters, and renders them into the
argument list understood by the sandbox executable::

    sb = (
        Sandbox("/tmp/sb")
        .add_file("/bin/go", "/bin/go", with_libs=True)
        .add_env("PATH=/usr/bin")
        .set_no_new_net()
        .set_mem_limit(512 * 1024 * 1024)
    )
    proc = sb.command("go", "test", "./...").run()

Nothing is validated here: paths need not exist and limits need not be
sane. The sandbox tool owns all execution semantics.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import IO, Any, Union

from hlsandbox.command import AsyncSandboxCommand, SandboxCommand
from hlsandbox.config import get_sandbox_path

logger = logging.getLogger(__name__)

_Stream = Union[int, IO[Any], None]


@dataclass(frozen=True)
class FileEntry:
    """A host file exposed inside the sandbox."""

    src: str
    dst: str
    with_libs: bool = False  # also copy the ELF's shared library dependencies


@dataclass(frozen=True)
class MountEntry:
    """A host directory mounted inside the sandbox."""

    src: str
    dst: str


class Sandbox:
    """Mutable description of how a program should run inside a sandbox.

    Every setter mutates the instance and returns it so calls can be
    chained. List fields keep insertion order; scalar setters overwrite.
    An empty string or zero leaves the matching flag out of the compiled
    arguments.

    Not safe for concurrent mutation; use one instance per thread or
    synchronize externally.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self.files: list[FileEntry] = []
        self.mount_dirs: list[MountEntry] = []
        self.env: list[str] = []
        self.no_new_net = False
        self.cgroup = ""
        self.cpu_set = ""
        self.mem_limit = 0
        self.save_usage_stat = ""
        self.exec_dir = ""

    def __repr__(self) -> str:
        return f"Sandbox(path={self._path!r}, files={len(self.files)}, mount_dirs={len(self.mount_dirs)})"

    @property
    def path(self) -> str:
        """Sandbox root path, passed as the first positional argument."""
        return self._path

    # ── Configuration ────────────────────────────────────────────────────────

    def add_file(self, src: str, dst: str, with_libs: bool = False) -> Sandbox:
        """Make a host file available inside the sandbox at ``dst``.

        With ``with_libs`` the tool also copies the file's dynamic library
        dependencies. Duplicate destinations are passed through.
        """
        self.files.append(FileEntry(src=src, dst=dst, with_libs=with_libs))
        return self

    def mount_dir(self, src: str, dst: str) -> Sandbox:
        """Make a host directory accessible inside the sandbox at ``dst``."""
        self.mount_dirs.append(MountEntry(src=src, dst=dst))
        return self

    def add_env(self, value: str) -> Sandbox:
        """Add a raw ``KEY=VALUE`` environment entry for the sandboxed process."""
        self.env.append(value)
        return self

    def set_no_new_net(self, value: bool = True) -> Sandbox:
        self.no_new_net = value
        return self

    def set_cgroup(self, name: str) -> Sandbox:
        self.cgroup = name
        return self

    def set_cpu_set(self, cpu_set: str) -> Sandbox:
        self.cpu_set = cpu_set
        return self

    def set_mem_limit(self, limit: int) -> Sandbox:
        """Limit memory of the sandboxed process, in bytes. Zero means no limit."""
        self.mem_limit = limit
        return self

    def set_save_usage_stat(self, filename: str) -> Sandbox:
        """Ask the tool to write execution statistics to ``filename`` on exit."""
        self.save_usage_stat = filename
        return self

    def set_exec_dir(self, directory: str) -> Sandbox:
        """Working directory inside the sandbox for the executed program."""
        self.exec_dir = directory
        return self

    # ── Compilation ──────────────────────────────────────────────────────────

    def build_exec_args(self, path: str, args: Sequence[str] = ()) -> list[str]:
        """Render the configuration into the sandbox tool's argument list.

        The order is fixed by the tool's parser: root path, files, mounts,
        env entries, scalar options, then ``--`` followed by the program
        and its arguments. Returns a new list on every call.
        """
        exec_args = [self._path]

        for f in self.files:
            exec_args.append("--add_elf_file" if f.with_libs else "--add_file")
            exec_args.extend((f.src, f.dst))

        for d in self.mount_dirs:
            exec_args.extend(("--mount_dir", d.src, d.dst))

        for e in self.env:
            exec_args.extend(("--env", e))

        if self.no_new_net:
            exec_args.append("--no_new_net")
        if self.cgroup:
            exec_args.extend(("--cgroup", self.cgroup))
        if self.cpu_set:
            exec_args.extend(("--cpuset", self.cpu_set))
        if self.mem_limit:
            exec_args.extend(("--mem_limit", str(self.mem_limit)))
        if self.save_usage_stat:
            exec_args.extend(("--save_usage_stat", self.save_usage_stat))
        if self.exec_dir:
            exec_args.extend(("--exec_dir", self.exec_dir))

        exec_args.append("--")
        exec_args.append(path)
        exec_args.extend(args)

        logger.debug("Compiled sandbox args: %s", exec_args)
        return exec_args

    # ── Invocation ───────────────────────────────────────────────────────────

    def command(
        self,
        path: str,
        *args: str,
        executable: str | None = None,
        stdin: _Stream = None,
        stdout: _Stream = None,
        stderr: _Stream = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> SandboxCommand:
        """Build an unstarted handle that runs ``path args...`` in the sandbox.

        ``executable`` overrides the process-wide sandbox path from
        :func:`hlsandbox.config.get_sandbox_path`. ``env`` and ``cwd``
        apply to the sandbox tool process itself, not the sandboxed
        program; use :meth:`add_env` and :meth:`set_exec_dir` for that.
        """
        return SandboxCommand(
            executable or get_sandbox_path(),
            self.build_exec_args(path, args),
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            env=env,
            cwd=cwd,
        )

    def command_async(
        self,
        path: str,
        *args: str,
        executable: str | None = None,
        stdin: _Stream = None,
        stdout: _Stream = None,
        stderr: _Stream = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> AsyncSandboxCommand:
        """Like :meth:`command`, but bound to the running event loop.

        Cancelling the task awaiting the handle kills the sandbox process.
        """
        return AsyncSandboxCommand(
            executable or get_sandbox_path(),
            self.build_exec_args(path, args),
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            env=env,
            cwd=cwd,
        )
