"""Shared fixtures: small Python scripts used as units."""

from __future__ import annotations

import shlex
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

UnitFactory = Callable[..., Path]

_CONFIG_ENV_VARS = (
    "TEST_COMMAND",
    "TEST_DIR",
    "TEST_PATTERN",
    "MAX_WORKERS",
    "UNIT_TIMEOUT",
    "CURRENT_SHARD",
    "NUM_SHARDS",
)

PASSING = "import sys; print('ok'); sys.exit(0)"
FAILING = "import sys; sys.stderr.write('boom'); sys.exit(1)"


@pytest.fixture(autouse=True)
def _clean_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CI environment variables from leaking into config loading."""
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def python_command() -> str:
    """Command template that runs a unit file with the current interpreter."""
    return shlex.quote(sys.executable)


@pytest.fixture
def make_unit(tmp_path: Path) -> UnitFactory:
    """Return a factory writing a Python unit script under ``tmp_path``."""

    def _make(rel: str, body: str = PASSING) -> Path:
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body + "\n", encoding="utf-8")
        return path

    return _make
