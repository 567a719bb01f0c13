"""
Main CLI entry point for DB Importer.

This module provides the command-line interface for importing rows from
source databases into a target database while remapping foreign keys.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from db_importer import __version__
from db_importer.cli.commands import config as config_commands
from db_importer.cli.commands import import_tables
from db_importer.cli.commands import state as state_commands
from db_importer.cli.context import ImportContext
from db_importer.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="db-importer")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
    envvar="DB_IMPORTER_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Console logging level (overrides logging.level in the configuration)",
    envvar="DB_IMPORTER_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Log file (overrides logging.file in the configuration)",
    envvar="DB_IMPORTER_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """DB Importer - Import database tables and remap their foreign keys.

    Tables are imported in configuration order. Each row is matched to an
    existing target record by natural key, or created, and the source to
    target ID mapping is used to rewrite foreign keys in later tables.

    Examples:

        # Validate configuration
        db-importer config validate --config import.yaml

        # Run the import
        db-importer import --config import.yaml

        # List stored runs
        db-importer state runs --config import.yaml
    """
    # Console only until the configuration is loaded
    configure_logging(
        level=log_level or "WARNING",
        log_file=str(log_file) if log_file else None,
    )

    ctx.obj = ImportContext(
        config_path=config,
        log_level=log_level.upper() if log_level else None,
        log_file=log_file,
    )
    ctx.call_on_close(ctx.obj.cleanup)

    logger.debug(
        "CLI initialized",
        config=str(config) if config else None,
        log_level=log_level,
    )


# Register command groups
cli.add_command(config_commands.config)
cli.add_command(state_commands.state)

# Register standalone commands
cli.add_command(import_tables.import_cmd, name="import")


def main() -> int:
    """Main entry point for CLI."""
    try:
        exit_code = cli(standalone_mode=False)
        return exit_code if isinstance(exit_code, int) else 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except Exception as e:
        logger.error("Unexpected error", error=str(e), exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
