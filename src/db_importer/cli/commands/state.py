"""
State management commands.

This module provides commands for inspecting stored import runs and
the ID mappings they recorded.
"""

from pathlib import Path

import click

from db_importer.cli.context import ImportContext
from db_importer.cli.decorators import handle_errors, pass_context, requires_config
from db_importer.cli.utils import echo_info, echo_success, format_count, print_table
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)


@click.group(name="state")
def state() -> None:
    """Import state commands.

    Inspect stored import runs and their ID mappings.
    """
    pass


@state.command(name="runs")
@click.option("--limit", default=20, show_default=True, type=click.IntRange(min=1))
@pass_context
@requires_config
@handle_errors
def list_runs(ctx: ImportContext, limit: int) -> None:
    """List stored import runs, newest first.

    Examples:

        db-importer state runs --config import.yaml
    """
    runs = ctx.import_state.list_runs(limit=limit)

    if not runs:
        echo_info("No import runs stored")
        return

    rows = [
        [
            run["run_id"],
            run["status"],
            run["started_at"].strftime("%Y-%m-%d %H:%M:%S") if run["started_at"] else "-",
            format_count(run["mappings"]),
            run["error_message"] or "",
        ]
        for run in runs
    ]
    print_table("Import Runs", ["Run ID", "Status", "Started (UTC)", "Mappings", "Error"], rows)


@state.command(name="mappings")
@click.option("--run-id", required=True, help="Run identifier")
@click.option("--entity", "entity_type", help="Only show mappings of this entity type")
@pass_context
@requires_config
@handle_errors
def show_mappings(ctx: ImportContext, run_id: str, entity_type: str | None) -> None:
    """Show the ID mappings recorded by a run.

    Examples:

        db-importer state mappings --run-id 3f2c... --entity users --config import.yaml
    """
    mappings = ctx.import_state.get_mappings(run_id, entity_type=entity_type)

    if not mappings:
        echo_info(f"No mappings recorded for run {run_id}")
        return

    rows = [[m["entity_type"], m["source_id"], m["target_id"]] for m in mappings]
    print_table(
        f"ID Mappings ({format_count(len(rows))})",
        ["Entity Type", "Source ID", "Target ID"],
        rows,
    )


@state.command(name="export")
@click.option("--run-id", required=True, help="Run identifier")
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(path_type=Path),
    help="Output JSON file",
)
@pass_context
@requires_config
@handle_errors
def export_run(ctx: ImportContext, run_id: str, output: Path) -> None:
    """Export a run and its ID mappings to JSON.

    Examples:

        db-importer state export --run-id 3f2c... -o run.json --config import.yaml
    """
    ctx.import_state.export_run(run_id, output)
    echo_success(f"Exported run {run_id} to {output}")
