"""Configuration for hlsandbox.

Two kinds of configuration live here:

- :class:`ToolConfig`: process-wide settings for invoking the sandbox
  executable (its path and an optional default timeout). Set once at
  startup via :func:`configure` / :func:`load_tool_config`, then read at
  invocation time.
- :class:`SandboxProfile`: a declarative sandbox shape loaded from YAML,
  turned into a :class:`~hlsandbox.sandbox.Sandbox` builder with
  :meth:`SandboxProfile.to_sandbox`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from hlsandbox.sandbox import Sandbox

logger = logging.getLogger(__name__)

DEFAULT_SANDBOX_PATH = "/usr/bin/sandbox"


# ── Tool config ──────────────────────────────────────────────────────────────


class ToolConfig(BaseModel):
    path: str = DEFAULT_SANDBOX_PATH
    default_timeout: float | None = None  # seconds; None → wait indefinitely


_active = ToolConfig()


def get_config() -> ToolConfig:
    """Return the active process-wide tool configuration."""
    return _active


def configure(**overrides: Any) -> ToolConfig:
    """Replace the active tool configuration.

    Unspecified fields keep their current values. Intended to be called
    once at startup, before sandboxes are invoked concurrently.
    """
    global _active
    _active = ToolConfig(**{**_active.model_dump(), **overrides})
    logger.debug("Sandbox tool config: path=%s timeout=%s", _active.path, _active.default_timeout)
    return _active


def get_sandbox_path() -> str:
    return _active.path


def set_sandbox_path(path: str) -> None:
    configure(path=path)


def load_tool_config(config_path: Path) -> ToolConfig:
    """Load tool configuration from YAML and make it active.

    Settings are read from a top-level ``tool:`` mapping if present,
    otherwise from the document root. ``HLSANDBOX_PATH`` and
    ``HLSANDBOX_DEFAULT_TIMEOUT`` override the file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        pydantic.ValidationError: If the settings are malformed.
        ValueError: If the document or its section is not a mapping.
    """
    section = _read_section(config_path, "tool")

    env_path = os.environ.get("HLSANDBOX_PATH")
    if env_path:
        section["path"] = env_path
    env_timeout = os.environ.get("HLSANDBOX_DEFAULT_TIMEOUT")
    if env_timeout:
        section["default_timeout"] = env_timeout

    config = ToolConfig(**section)
    logger.info("Loaded sandbox tool config from %s: path=%s", config_path, config.path)
    return configure(**config.model_dump())


# ── Sandbox profiles ─────────────────────────────────────────────────────────


class FileSpec(BaseModel):
    src: str
    dst: str
    with_libs: bool = False


class MountSpec(BaseModel):
    src: str
    dst: str


class SandboxProfile(BaseModel):
    """A sandbox shape described in YAML.

    Example::

        sandbox:
          root: /tmp/sb
          files:
            - {src: /usr/local/go/bin/go, dst: /bin/go, with_libs: true}
          mount_dirs:
            - {src: /srv/work, dst: /work}
          env:
            PATH: /bin
          no_new_net: true
          mem_limit: 536870912
          exec_dir: /work

    ``env`` may be a list of raw ``KEY=VALUE`` strings or a mapping; a
    mapping is rendered in its YAML order.
    """

    root: str
    files: list[FileSpec] = Field(default_factory=list)
    mount_dirs: list[MountSpec] = Field(default_factory=list)
    env: list[str] = Field(default_factory=list)
    no_new_net: bool = False
    cgroup: str = ""
    cpuset: str = ""
    mem_limit: int = Field(default=0, ge=0)
    save_usage_stat: str = ""
    exec_dir: str = ""

    @field_validator("env", mode="before")
    @classmethod
    def _render_env_mapping(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return [f"{key}={value}" for key, value in v.items()]
        return v

    def to_sandbox(self) -> Sandbox:
        from hlsandbox.sandbox import Sandbox

        sb = Sandbox(self.root)
        for f in self.files:
            sb.add_file(f.src, f.dst, f.with_libs)
        for d in self.mount_dirs:
            sb.mount_dir(d.src, d.dst)
        for e in self.env:
            sb.add_env(e)
        return (
            sb.set_no_new_net(self.no_new_net)
            .set_cgroup(self.cgroup)
            .set_cpu_set(self.cpuset)
            .set_mem_limit(self.mem_limit)
            .set_save_usage_stat(self.save_usage_stat)
            .set_exec_dir(self.exec_dir)
        )


def load_profile(profile_path: Path) -> SandboxProfile:
    """Load a sandbox profile from YAML.

    The profile is read from a top-level ``sandbox:`` mapping if present,
    otherwise from the document root.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        pydantic.ValidationError: If the profile is malformed.
        ValueError: If the document or its section is not a mapping.
    """
    profile = SandboxProfile(**_read_section(profile_path, "sandbox"))
    logger.info("Loaded sandbox profile from %s: root=%s", profile_path, profile.root)
    return profile


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Expected a mapping at the top of {path}")
    return raw


def _read_section(path: Path, key: str) -> dict[str, Any]:
    raw = _read_yaml(path)
    if key not in raw:
        return raw
    section = raw[key] or {}
    if not isinstance(section, dict):
        raise ValueError(f"Expected a mapping under '{key}' in {path}")
    return section
