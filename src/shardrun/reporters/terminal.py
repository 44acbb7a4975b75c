"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from shardrun.models.execution import ExecutionSummary

console = Console()


_PERFECT_RATE = 100.0
_GOOD_RATE = 80.0
_SECONDS_PER_MINUTE = 60.0

_MAX_ERROR_LINES = 5
_MAX_ERROR_LINE_LENGTH = 100


def _pass_rate_color(rate: float) -> str:
    """Return a Rich color name for a given pass-rate percentage."""
    if rate >= _PERFECT_RATE:
        return "green"
    if rate >= _GOOD_RATE:
        return "yellow"
    return "red"


def _format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string."""
    if seconds >= _SECONDS_PER_MINUTE:
        return f"{seconds / _SECONDS_PER_MINUTE:.1f}m"
    return f"{seconds:.1f}s"


def _tail_lines(text: str) -> str:
    """Keep the last few lines of *text*, each clipped to a readable width."""
    lines = [line[:_MAX_ERROR_LINE_LENGTH] for line in text.strip().splitlines()]
    return "\n".join(lines[-_MAX_ERROR_LINES:])


class CLIReporter:
    """Rich terminal output for unit execution."""

    def __init__(self) -> None:
        """Initialize the CLI reporter."""
        self.console = console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def print_unit_result(
        self, worker_id: int, unit: str, exit_code: int, duration_ms: float
    ) -> None:
        """Print one line for a finished unit.

        The signature matches ``ResultSink`` so the method can be handed
        straight to the runner.
        """
        time_str = _format_duration(duration_ms / 1000)
        if exit_code == 0:
            mark = "[green]✓ PASSED[/green]"
        else:
            mark = f"[red]✗ FAILED[/red] [dim](exit {exit_code})[/dim]"
        self.console.print(
            f"  [dim]worker {worker_id}[/dim]  {mark}  {escape(unit)} [dim]({time_str})[/dim]"
        )

    def print_summary(self, summary: ExecutionSummary) -> None:
        """Print the run summary: totals, a pass/fail bar and wall-clock time."""
        shard = ""
        if summary.shard_index is not None:
            shard = f"  [dim]shard {summary.shard_index}/{summary.total_shards}[/dim]"

        self.console.print()
        self.console.print(
            f"  [bold]{summary.total_units}[/bold] units on "
            f"[bold]{summary.workers_used}[/bold] workers{shard}"
        )

        executed = summary.passed + summary.failed
        if executed == 0:
            self.console.print("  [dim]No units executed[/dim]")
        else:
            pass_rate = summary.passed / executed * 100
            rate_color = _pass_rate_color(pass_rate)
            bar = self._build_result_bar(summary.passed, summary.failed)
            self.console.print(
                f"  {bar}  [bold {rate_color}]{pass_rate:.0f}%[/bold {rate_color}] pass rate  "
                f"[dim]⏱ {_format_duration(summary.duration_ms / 1000)}[/dim]"
            )

        parts = [f"[green]✓ {summary.passed} passed[/green]"]
        if summary.failed:
            parts.append(f"[red]✗ {summary.failed} failed[/red]")
        if summary.aborted_workers:
            ids = ", ".join(str(w) for w in summary.aborted_workers)
            parts.append(f"[magenta]⚠ workers terminated early: {ids}[/magenta]")
        self.console.print(f"  {'  '.join(parts)}")
        self.console.print()

    def print_failures(self, summary: ExecutionSummary) -> None:
        """Print a table of failed units with the tail of their stderr."""
        failures = summary.failures
        if not failures:
            return

        table = Table(title=f"Failed Units ({len(failures)})", title_style="bold red")
        table.add_column("Unit", style="bold")
        table.add_column("Worker", justify="right")
        table.add_column("Exit", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Error")

        for result in failures:
            exit_text = "timeout" if result.timed_out else str(result.exit_code)
            table.add_row(
                Text(result.unit),
                str(result.worker_id),
                f"[red]{exit_text}[/red]",
                _format_duration(result.duration_ms / 1000),
                Text(_tail_lines(result.error or "")),
            )

        self.console.print(table)

    def _build_result_bar(self, passed: int, failed: int, width: int = 40) -> str:
        """Build a colored bar string proportional to pass/fail counts."""
        total = passed + failed
        if total == 0:
            return f"[dim]{'░' * width}[/dim]"

        green = round(passed / total * width)
        red = width - green
        bar = ""
        if green:
            bar += f"[green]{'█' * green}[/green]"
        if red:
            bar += f"[red]{'█' * red}[/red]"
        return bar


# Singleton instance for easy import
reporter = CLIReporter()
