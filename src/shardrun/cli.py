"""shardrun CLI: top-level command group."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click
import yaml
from rich.logging import RichHandler
from rich.markup import escape

from shardrun import __version__
from shardrun.config import ShardrunConfig, load_config, validate_config
from shardrun.reporters.terminal import reporter
from shardrun.sharding.discovery import DiscoveryError
from shardrun.sharding.parallel_runner import ParallelRunConfig, run_units_parallel, select_units

logger = logging.getLogger(__name__)


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=reporter.console, show_path=False)],
        force=True,
    )


def _load_or_abort(path: str) -> ShardrunConfig:
    try:
        return load_config(path)
    except (ValueError, yaml.YAMLError) as e:
        reporter.print_error(f"Failed to load configuration: {escape(str(e))}")
        raise click.Abort from e


def _apply_overrides(config: ShardrunConfig, overrides: dict[str, Any]) -> None:
    """Apply command-line options on top of the loaded configuration."""
    for option in ("command", "test_dir", "pattern", "workers", "timeout"):
        value = overrides.get(option)
        if value is not None:
            setattr(config.run, option, value)

    if overrides.get("shard_index") is not None:
        config.shard.index = overrides["shard_index"]
    if overrides.get("total_shards") is not None:
        config.shard.total = overrides["total_shards"]


def _validate_or_fail(config: ShardrunConfig) -> None:
    errors = validate_config(config)
    if errors:
        raise click.UsageError("; ".join(errors))


def _select_or_abort(config: ShardrunConfig) -> list[Path]:
    try:
        return select_units(
            config.resolve_path(config.run.test_dir),
            config.run.pattern,
            shard_index=config.shard.index,
            total_shards=config.shard.total,
        )
    except DiscoveryError as e:
        reporter.print_error(escape(str(e)))
        raise click.Abort from e
    except ValueError as e:
        raise click.UsageError(str(e)) from e


_path_option = click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory (where .shardrun.yml lives).",
)


def _selection_options(func: Any) -> Any:
    """Options shared by commands that discover and shard units."""
    options = [
        click.option("--dir", "test_dir", type=str, default=None, help="Directory to scan."),
        click.option("--pattern", type=str, default=None, help="File name glob, e.g. '*.test.ts'."),
        click.option(
            "--shard-index",
            type=int,
            default=None,
            help="One-based shard index for this machine (requires --total-shards).",
        ),
        click.option(
            "--total-shards",
            type=int,
            default=None,
            help="Total number of shards across all machines.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="shardrun")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """shardrun: run test files in parallel workers, sharded across machines."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose=verbose)


@cli.command()
@_path_option
@click.option("--command", type=str, default=None, help="Command used to run each unit.")
@_selection_options
@click.option("--workers", type=int, default=None, help="Concurrent workers (default: CPU count).")
@click.option("--timeout", type=float, default=None, help="Per-unit timeout in seconds.")
def run(**kwargs: Any) -> None:
    """Discover units, keep this shard's slice and run them in parallel.

    Each unit runs in its own process via "<command> <unit>".  Exits with a
    non-zero status when any unit fails or a worker terminates early.
    """
    path: str = kwargs["path"]
    config = _load_or_abort(path)
    _apply_overrides(config, kwargs)
    _validate_or_fail(config)

    reporter.print_header("shardrun run")

    units = _select_or_abort(config)
    if config.shard.enabled:
        reporter.print_info(
            f"Shard {config.shard.index}/{config.shard.total}: {len(units)} units "
            f"matching {escape(config.run.pattern)}"
        )
    else:
        reporter.print_info(f"Found {len(units)} units matching {escape(config.run.pattern)}")

    run_config = ParallelRunConfig(
        max_workers=config.run.workers,
        timeout=config.run.timeout,
        cwd=config.resolve_path(config.run.cwd) if config.run.cwd else Path(config.root),
    )
    reporter.print_info(
        f"Running with {run_config.max_workers} workers: {escape(config.run.command)}"
    )

    try:
        summary = asyncio.run(
            run_units_parallel(
                config.run.command,
                units,
                config=run_config,
                on_result=reporter.print_unit_result,
                shard_index=config.shard.index,
                total_shards=config.shard.total,
            )
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    reporter.print_summary(summary)
    reporter.print_failures(summary)

    if summary.aborted_workers:
        reporter.print_error("Some workers terminated before finishing their batch.")
        raise click.Abort
    if summary.failed:
        reporter.print_error(f"{summary.failed} of {len(summary.results)} units failed.")
        raise click.Abort

    reporter.print_success("All units passed!")


@cli.command()
@_path_option
@_selection_options
def discover(**kwargs: Any) -> None:
    """List the units this machine would run."""
    config = _load_or_abort(kwargs["path"])
    _apply_overrides(config, kwargs)
    _validate_or_fail(config)

    units = _select_or_abort(config)
    for unit in units:
        click.echo(str(unit))


@cli.group("config")
def config_group() -> None:
    """Inspect configuration."""


@config_group.command("show")
@_path_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def config_show(path: str, *, as_json: bool) -> None:
    """Show the effective configuration."""
    config = _load_or_abort(path)
    data = asdict(config)
    data.pop("raw", None)

    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, sort_keys=False).rstrip())


@config_group.command("validate")
@_path_option
def config_validate(path: str) -> None:
    """Validate the effective configuration."""
    config = _load_or_abort(path)
    errors = validate_config(config)
    if errors:
        for error in errors:
            reporter.print_error(escape(error))
        raise click.Abort

    reporter.print_success("Configuration is valid.")
