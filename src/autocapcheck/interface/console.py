"""
Console rendering for the CLI.

Rich tables and panels for the report, plus the single-line task
progress shown while a remote task is polled.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from autocapcheck.application.capability_service import RunResult
from autocapcheck.domain.errors import ExitCode
from autocapcheck.domain.models import CapabilityStatus
from autocapcheck.infrastructure.prereq_check import CheckResult

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    CapabilityStatus.UNRESTRICTED: "bold green",
    CapabilityStatus.RESTRICTED: "cyan",
    CapabilityStatus.UNSUPPORTED: "yellow",
    CapabilityStatus.FAILED: "bold red",
    CapabilityStatus.NOT_UPDATED: "dim",
}


class ConsoleRenderer:
    """Renders run output to the terminal."""

    def __init__(self, console: Console | None = None, plain: bool = False):
        self.console = console or Console()
        self.plain = plain

    def banner(self, title: str, subtitle: str) -> None:
        if self.plain:
            self.console.print(f"{title} - {subtitle}", markup=False)
            return
        self.console.print(Panel(escape(subtitle), title=f"[bold]{escape(title)}[/bold]", box=box.ROUNDED, expand=False))

    def progress(self, line: str) -> None:
        """Progress callback for task polling."""
        self.console.print(f"  [dim]{escape(line)}[/dim]" if not self.plain else f"  {escape(line)}", highlight=False)

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False)

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)

    def show_report(self, result: RunResult) -> None:
        """Print the per-target report and a one-line summary."""
        if self.plain:
            self.console.print(result.aggregator.render_table(), markup=False, highlight=False)
        else:
            table = Table(title="Capability Report", box=box.ROUNDED, show_header=True, header_style="bold")
            table.add_column("Target", style="cyan", no_wrap=True)
            table.add_column("Status")
            table.add_column("Message", overflow="fold")
            for record in result.records:
                style = STATUS_STYLES.get(record.status, "")
                table.add_row(escape(record.target), f"[{style}]{record.status.value}[/{style}]", escape(record.message))
            self.console.print(table)

        counts = {status: result.aggregator.count(status) for status in CapabilityStatus}
        summary = ", ".join(f"{status.value}: {n}" for status, n in counts.items() if n)
        self.console.print(f"Targets: {len(result.aggregator)} ({summary or 'none'})", highlight=False)

        for failure in result.teardown_failures:
            self.warning(failure)

        style = "green" if result.exit_code is ExitCode.SUCCESS else "red"
        self.console.print(
            f"Exit code: [{style}]{result.exit_code.value} ({result.exit_code.name})[/{style}]",
            highlight=False,
        )

    def show_exports(self, paths: list[Path]) -> None:
        for path in paths:
            self.console.print(f"Report saved: [bold]{escape(str(path))}[/bold]", highlight=False)

    def show_checks(self, results: list[CheckResult]) -> None:
        """Print the precondition check results."""
        table = Table(title="Preconditions", box=box.ROUNDED, header_style="bold")
        table.add_column("Check", style="cyan")
        table.add_column("Result")
        table.add_column("Detail")
        for result in results:
            mark = "[green]OK[/green]" if result.ok else "[red]FAILED[/red]"
            table.add_row(escape(result.name), mark, escape(result.detail))
        self.console.print(table)
