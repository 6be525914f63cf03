"""Python client for the Highload sandbox executable.

Builds sandbox tool invocations from a declarative description and spawns
the tool. Isolation and resource accounting are entirely up to the tool:
https://github.com/Highload-fun/sandbox
"""

from .command import AsyncSandboxCommand, SandboxCommand
from .config import (
    DEFAULT_SANDBOX_PATH,
    SandboxProfile,
    ToolConfig,
    configure,
    get_config,
    get_sandbox_path,
    load_profile,
    load_tool_config,
    set_sandbox_path,
)
from .errors import SandboxError, SandboxExitError
from .sandbox import FileEntry, MountEntry, Sandbox

__all__ = [
    "DEFAULT_SANDBOX_PATH",
    "AsyncSandboxCommand",
    "FileEntry",
    "MountEntry",
    "Sandbox",
    "SandboxCommand",
    "SandboxError",
    "SandboxExitError",
    "SandboxProfile",
    "ToolConfig",
    "configure",
    "get_config",
    "get_sandbox_path",
    "load_profile",
    "load_tool_config",
    "set_sandbox_path",
]
