"""
Configuration management commands.

This module provides commands for validating and displaying
import configuration.
"""

import click
import yaml
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from db_importer.cli.context import ImportContext
from db_importer.cli.decorators import handle_errors, pass_context, requires_config
from db_importer.cli.utils import echo_error, echo_info, echo_success, echo_warning, print_table
from db_importer.config import ImporterConfig
from db_importer.migration.database import normalize_database_url, validate_database_connection
from db_importer.migration.table_spec import build_table_specs, check_table_order
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)


@click.group(name="config")
def config() -> None:
    """Configuration management commands.

    Validate and inspect import configuration files.
    """
    pass


@config.command(name="validate")
@click.option(
    "--check-connectivity",
    is_flag=True,
    help="Test connectivity to the source and target databases",
)
@pass_context
@requires_config
@handle_errors
def validate(ctx: ImportContext, check_connectivity: bool) -> None:
    """Validate import configuration.

    This command validates the configuration file, checking:
    - Required fields are present
    - Tables only use configured databases and registered entity types
    - Field mappings do not map two source fields onto one target field
    - Foreign keys only reference entity types imported earlier

    If --check-connectivity is provided, it also tests connections to
    the source and target databases.

    Examples:

        # Basic validation
        db-importer config validate --config import.yaml

        # Validate and test connectivity
        db-importer config validate --config import.yaml --check-connectivity
    """
    echo_info(f"Validating configuration: {ctx.config_path}")

    config = ctx.config

    click.echo()
    _display_config_summary(config)

    click.echo()
    echo_info("Validating tables...")
    specs = build_table_specs(config, ctx.registry)
    echo_success(f"{len(specs)} table(s) and {len(ctx.registry)} entity type(s) are valid")

    problems = check_table_order(specs)
    for problem in problems:
        echo_warning(f"Table order: {problem}")

    if check_connectivity:
        click.echo()
        echo_info("Testing connectivity...")
        _test_connectivity(config)

    click.echo()
    if problems:
        echo_warning("Configuration is valid, but the import would fail on the table order above")
    else:
        echo_success("Configuration is valid!")


@config.command(name="show")
@pass_context
@requires_config
@handle_errors
def show(ctx: ImportContext) -> None:
    """Show the loaded configuration as YAML.

    Environment variables are expanded and defaults filled in. Database
    passwords are masked.

    Examples:

        db-importer config show --config import.yaml
    """
    data = ctx.config.model_dump(by_alias=True)

    data["source"]["databases"] = {
        name: _mask_url(url) for name, url in data["source"]["databases"].items()
    }
    data["target"]["url"] = _mask_url(data["target"]["url"])

    click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))


def _test_connectivity(config: ImporterConfig) -> None:
    """Test connections to every configured database."""
    databases = {f"source {name}": url for name, url in config.source.databases.items()}
    databases["target"] = config.target.url

    failed = []
    for label, url in databases.items():
        if validate_database_connection(normalize_database_url(url)):
            echo_success(f"Connected to {label} database")
        else:
            echo_error(f"Cannot connect to {label} database: {_mask_url(url)}")
            failed.append(label)

    if failed:
        raise click.ClickException(f"Connectivity check failed for: {', '.join(failed)}")


def _mask_url(url: str) -> str:
    """Hide the password in a database URL."""
    try:
        return make_url(normalize_database_url(url)).render_as_string(hide_password=True)
    except ArgumentError:
        return url


def _display_config_summary(config: ImporterConfig) -> None:
    """Display configuration summary."""
    rows = [[f"Source: {name}", _mask_url(url)] for name, url in config.source.databases.items()]
    rows.extend(
        [
            ["Target", _mask_url(config.target.url)],
            ["Strict Columns", config.target.strict_columns],
            ["Entity Types", len(config.entities)],
            ["Tables", len(config.tables)],
            ["Default FK Strategy", config.import_options.fk_strategy],
            ["State Enabled", config.state.enabled],
            ["State DB Path", config.state.db_path],
        ]
    )

    print_table(
        "Configuration Summary",
        ["Setting", "Value"],
        rows,
    )
