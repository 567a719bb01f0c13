"""
Import command.

This module provides the command that runs the configured table import
against the source and target databases.
"""

from pathlib import Path

import click

from db_importer.cli.context import ImportContext
from db_importer.cli.decorators import handle_errors, pass_context, requires_config
from db_importer.cli.utils import (
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    format_count,
    format_duration,
    print_run_summary,
)
from db_importer.client.exceptions import DatabaseImportError
from db_importer.migration.importer import ImportEngine, ImportSummary
from db_importer.migration.observer import LoggingObserver
from db_importer.migration.table_spec import build_table_specs, check_table_order
from db_importer.reporting.report import ImportReport, summary_rows
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)


@click.command(name="import")
@click.option(
    "--table",
    "-t",
    "tables",
    multiple=True,
    help="Only import this table (table or database.table). Repeatable; configured order is kept.",
)
@click.option(
    "--report",
    type=click.Path(path_type=Path),
    help="Write a run report (.json or .md)",
)
@click.option(
    "--save-state/--no-save-state",
    default=None,
    help="Persist the run's ID mappings (defaults to state.enabled in the config)",
)
@pass_context
@requires_config
@handle_errors
def import_cmd(
    ctx: ImportContext,
    tables: tuple[str, ...],
    report: Path | None,
    save_state: bool | None,
) -> None:
    """Import the configured tables into the target database.

    Tables are imported in the order they are listed in the configuration.
    Existing target records are matched by each table's natural key and
    updated; everything else is created. The run stops at the first
    failure, keeping the rows already imported.

    Examples:

        # Import every configured table
        db-importer import --config import.yaml

        # Import two tables and write a Markdown report
        db-importer import -c import.yaml -t companies -t users --report run.md
    """
    config = ctx.config
    specs = build_table_specs(config, ctx.registry, only=list(tables) or None)

    for problem in check_table_order(specs):
        echo_warning(f"Table order: {problem}")

    persist = config.state.enabled if save_state is None else save_state

    engine = ImportEngine(
        ctx.row_source,
        ctx.target_store,
        observer=LoggingObserver(),
        progress_interval=config.import_options.progress_interval,
    )

    echo_info(f"Importing {len(specs)} table(s)...")

    try:
        summary = engine.run(specs)
    except DatabaseImportError:
        if engine.summary is not None:
            _finish(ctx, engine, engine.summary, report, persist)
        raise

    _finish(ctx, engine, summary, report, persist)
    click.echo()
    echo_success(
        f"Import completed in {format_duration(summary.duration_seconds)} "
        f"({format_count(summary.mapping_count)} records mapped)"
    )


def _finish(
    ctx: ImportContext,
    engine: ImportEngine,
    summary: ImportSummary,
    report: Path | None,
    persist: bool,
) -> None:
    """Print the summary, write the report and save state for a finished run."""
    click.echo()
    print_run_summary(summary, summary_rows(summary))

    if report:
        ImportReport(summary).save(report)
        echo_info(f"Report written to {report}")

    if persist:
        try:
            count = ctx.import_state.save_run(summary, engine.identity)
            echo_info(f"Saved {format_count(count)} ID mappings for run {summary.run_id}")
        except DatabaseImportError as e:
            # Keep the import's own error as the one reported
            if summary.succeeded:
                raise
            echo_error(f"Could not save import state: {e}")
            logger.error("state_save_failed", run_id=summary.run_id, error=str(e))
