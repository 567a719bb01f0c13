"""
Decorators for CLI commands.

This module provides decorators for error handling, context passing,
and configuration loading.
"""

import functools
from collections.abc import Callable

import click

from db_importer.cli.context import ImportContext
from db_importer.client.exceptions import (
    ConfigurationError,
    ImportFailure,
    StateError,
    StoreError,
)
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)

EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_IMPORT_FAILURE = 3
EXIT_STORE = 4
EXIT_STATE = 5


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass ImportContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: ImportContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        import_ctx: ImportContext = click_ctx.obj
        return f(import_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    Converts exceptions to user-friendly messages and exit codes.

    Exit codes:
        0: Success
        1: Unexpected error
        2: Configuration error
        3: Import failure (missing mapping, dangling foreign key, invalid row...)
        4: Source or target database error
        5: State error
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except click.exceptions.Exit:
            raise

        except click.ClickException:
            raise

        except ConfigurationError as e:
            logger.error("Configuration error", error=str(e))
            click.echo(f"Configuration Error: {e}", err=True)
            click.echo(
                "\nPlease check your configuration file and ensure all required fields are set.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_CONFIGURATION) from e

        except ImportFailure as e:
            logger.error("Import failed", error_type=type(e).__name__, error=str(e))
            click.echo(f"Import Failed ({type(e).__name__}): {e}", err=True)
            click.echo(
                "\nRows imported before the failure were kept. "
                "Fix the cause and run the import again.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_IMPORT_FAILURE) from e

        except StoreError as e:
            logger.error("Database error", error=str(e))
            click.echo(f"Database Error: {e}", err=True)
            raise click.exceptions.Exit(EXIT_STORE) from e

        except StateError as e:
            logger.error("State error", error=str(e))
            click.echo(f"State Error: {e}", err=True)
            click.echo(
                "\nThere was an error accessing the import state database.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_STATE) from e

        except Exception as e:
            logger.error("Unexpected error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_UNEXPECTED) from e

    return wrapper


def requires_config(f: Callable) -> Callable:
    """
    Decorator to ensure configuration is loaded.

    Checks that a configuration file has been provided and loads it
    before executing the command.
    """

    @functools.wraps(f)
    def wrapper(ctx: ImportContext, *args, **kwargs):
        if ctx.config_path is None:
            click.echo(
                "Error: Configuration file required. Use --config option or set DB_IMPORTER_CONFIG.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_CONFIGURATION)

        try:
            _ = ctx.config
        except Exception as e:
            click.echo(f"Error loading configuration: {e}", err=True)
            raise click.exceptions.Exit(EXIT_CONFIGURATION) from e

        ctx.apply_logging_config()

        return f(ctx, *args, **kwargs)

    return wrapper
