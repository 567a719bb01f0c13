"""
Terminal output helpers for CLI commands.

Messages go through click so they honour ``--color``/``NO_COLOR``; tables
are drawn with rich.
"""

from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from db_importer.migration.importer import ImportSummary

console = Console()

RUN_COLUMNS = ["Table", "Entity", "Read", "Created", "Updated", "Unchanged"]


def echo_success(message: str) -> None:
    click.secho(f"✓ {message}", fg="green")


def echo_error(message: str) -> None:
    click.secho(f"✗ {message}", fg="red", err=True)


def echo_warning(message: str) -> None:
    click.secho(f"⚠ {message}", fg="yellow")


def echo_info(message: str) -> None:
    click.secho(f"ℹ {message}", fg="blue")


def format_duration(seconds: float) -> str:
    """Render a run duration, e.g. ``850ms``, ``12.4s`` or ``1h 02m 05s``."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    return f"{minutes}m {secs:02d}s"


def format_count(count: int) -> str:
    return f"{count:,}"


def print_table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    """Print rows under the given column headers."""
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*[str(cell) for cell in row])
    console.print(table)


def print_run_summary(summary: "ImportSummary", rows: list[list[Any]]) -> None:
    """
    Print the per-table counters of a run followed by its totals.

    Args:
        summary: Finished (completed or failed) run
        rows: Per-table rows matching ``RUN_COLUMNS``
    """
    table = Table(title=f"Import Summary ({summary.status})")
    for column in RUN_COLUMNS:
        table.add_column(column, justify="left" if column in ("Table", "Entity") else "right")
    for row in rows:
        table.add_row(*[str(cell) for cell in row])

    totals = summary.totals()
    table.add_section()
    table.add_row(
        "Total",
        "",
        format_count(totals["rows_read"]),
        format_count(totals["created"]),
        format_count(totals["updated"]),
        format_count(totals["unchanged"]),
        style="bold",
    )
    console.print(table)

    details = [
        f"run {summary.run_id}",
        f"took {format_duration(summary.duration_seconds)}",
        f"{format_count(summary.mapping_count)} ID mappings",
    ]
    if totals["tables_skipped"]:
        details.append(f"{totals['tables_skipped']} reference-only table(s) skipped")
    echo_info(", ".join(details))
