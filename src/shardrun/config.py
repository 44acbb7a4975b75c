"""Configuration parsing from ``.shardrun.yml`` with environment fallbacks."""

from __future__ import annotations

import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from shardrun.sharding.parallel_runner import default_worker_count

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".shardrun.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

DEFAULT_TEST_COMMAND = "npx playwright test"
DEFAULT_TEST_DIR = "./tests"
DEFAULT_TEST_PATTERN = "*.test.ts"


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        else:
            result[key] = value
    return result


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else None


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else None


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


@dataclass
class RunConfig:
    """What to run and how many workers to use."""

    command: str = DEFAULT_TEST_COMMAND
    """Command template; each unit is appended (or substituted for ``{unit}``)."""

    test_dir: str = DEFAULT_TEST_DIR
    """Directory scanned for units."""

    pattern: str = DEFAULT_TEST_PATTERN
    """Glob matched against file base names."""

    workers: int = field(default_factory=default_worker_count)
    """Number of concurrent workers (defaults to the CPU count)."""

    timeout: float | None = None
    """Per-unit timeout in seconds (``None`` = no limit)."""

    cwd: str = ""
    """Working directory for unit processes (empty = project root)."""


@dataclass
class ShardConfig:
    """Which slice of the units this machine runs."""

    index: int | None = None
    """One-based shard index (``None`` = run everything)."""

    total: int | None = None
    """Total number of shards."""

    @property
    def enabled(self) -> bool:
        """True when both index and total are set."""
        return self.index is not None and self.total is not None


@dataclass
class ShardrunConfig:
    """Complete configuration from ``.shardrun.yml``."""

    root: str
    """Project root the config was loaded from."""

    run: RunConfig = field(default_factory=RunConfig)
    """Run configuration."""

    shard: ShardConfig = field(default_factory=ShardConfig)
    """Shard configuration."""

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""

    def resolve_path(self, value: str) -> Path:
        """Resolve *value* relative to the project root."""
        path = Path(value)
        return path if path.is_absolute() else Path(self.root) / path


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name, {})
    return section if isinstance(section, dict) else {}


def load_config(root: str | Path) -> ShardrunConfig:
    """Load ``.shardrun.yml`` from *root*.

    Values missing from the file fall back to the ``TEST_COMMAND``,
    ``TEST_DIR``, ``TEST_PATTERN``, ``MAX_WORKERS``, ``UNIT_TIMEOUT``,
    ``CURRENT_SHARD`` and ``NUM_SHARDS`` environment variables, then to
    built-in defaults.

    Raises:
        ValueError: If a numeric setting cannot be parsed.
        yaml.YAMLError: If the file is not valid YAML.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)

    # Parse run section
    run_raw = _section(raw, "run")
    env_workers = _env_int("MAX_WORKERS")
    if env_workers is None:
        env_workers = default_worker_count()

    if "timeout" in run_raw:
        timeout = _optional_float(run_raw["timeout"])
    else:
        timeout = _env_float("UNIT_TIMEOUT")

    run = RunConfig(
        command=str(run_raw.get("command", os.environ.get("TEST_COMMAND", DEFAULT_TEST_COMMAND))),
        test_dir=str(run_raw.get("test_dir", os.environ.get("TEST_DIR", DEFAULT_TEST_DIR))),
        pattern=str(run_raw.get("pattern", os.environ.get("TEST_PATTERN", DEFAULT_TEST_PATTERN))),
        workers=int(run_raw.get("workers", env_workers)),
        timeout=timeout,
        cwd=str(run_raw.get("cwd", "")),
    )

    # Parse shard section
    shard_raw = _section(raw, "shard")
    index = _optional_int(shard_raw["index"]) if "index" in shard_raw else _env_int("CURRENT_SHARD")
    total = _optional_int(shard_raw["total"]) if "total" in shard_raw else _env_int("NUM_SHARDS")
    shard = ShardConfig(index=index, total=total)

    return ShardrunConfig(root=str(root_path), run=run, shard=shard, raw=raw)


def _validate_run_config(run: RunConfig) -> list[str]:
    errors: list[str] = []
    try:
        if not shlex.split(run.command):
            errors.append("run.command must not be empty")
    except ValueError as exc:
        errors.append(f"run.command cannot be parsed: {exc}")
    if not run.pattern:
        errors.append("run.pattern must not be empty")
    if run.workers < 1:
        errors.append(f"run.workers must be >= 1, got {run.workers}")
    if run.timeout is not None and run.timeout <= 0:
        errors.append(f"run.timeout must be positive, got {run.timeout}")
    return errors


def _validate_shard_config(shard: ShardConfig) -> list[str]:
    if shard.index is None and shard.total is None:
        return []
    if shard.index is None or shard.total is None:
        return ["shard.index and shard.total must be set together"]
    if shard.total < 1:
        return [f"shard.total must be >= 1, got {shard.total}"]
    if not 1 <= shard.index <= shard.total:
        return [f"shard.index must be between 1 and {shard.total}, got {shard.index}"]
    return []


def validate_config(config: ShardrunConfig) -> list[str]:
    """Return a list of problems with *config* (empty when it is usable)."""
    errors = _validate_run_config(config.run)
    errors.extend(_validate_shard_config(config.shard))
    return errors
