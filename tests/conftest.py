"""Shared fixtures: a fake sandbox executable and config isolation."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from hlsandbox.config import configure, get_config

# Prints each argument on its own line, then exits with $FAKE_SANDBOX_EXIT.
_ECHO_SCRIPT = """\
#!/bin/sh
for arg in "$@"; do
    printf '%s\\n' "$arg"
done
printf 'err\\n' >&2
exit "${FAKE_SANDBOX_EXIT:-0}"
"""

_SLEEP_SCRIPT = """\
#!/bin/sh
exec sleep 30
"""


def _write_script(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture(autouse=True)
def _isolate_tool_config():
    saved = get_config()
    yield
    configure(**saved.model_dump())


@pytest.fixture
def fake_sandbox(tmp_path: Path) -> Path:
    return _write_script(tmp_path / "sandbox", _ECHO_SCRIPT)


@pytest.fixture
def slow_sandbox(tmp_path: Path) -> Path:
    return _write_script(tmp_path / "slow-sandbox", _SLEEP_SCRIPT)
