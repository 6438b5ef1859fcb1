"""
Configuration management commands.

This module provides commands for validating and displaying the
Bot Bridge configuration.
"""

from pathlib import Path

import click

from bot_migration.cli.context import MigrationContext
from bot_migration.cli.decorators import handle_errors, pass_context, requires_config
from bot_migration.cli.utils import echo_error, echo_info, echo_success, echo_warning, print_table
from bot_migration.config import MigrationConfig
from bot_migration.utils.logging import get_logger

logger = get_logger(__name__)


@click.group(name="config")
def config() -> None:
    """Configuration management commands."""
    pass


@config.command(name="validate")
@pass_context
@requires_config
@handle_errors
def validate(ctx: MigrationContext) -> None:
    """Validate the configuration file.

    Checks required fields, URL format and that the import working
    directory can be created.

    Examples:

        bot-bridge --config config.yaml config validate
    """
    echo_info(f"Validating configuration: {ctx.config_path}")
    config = ctx.config

    click.echo()
    _display_config_summary(config)

    click.echo()
    echo_info("Validating paths...")
    _validate_paths(config)

    if not config.target.url.startswith("https://"):
        echo_warning("Target URL does not use HTTPS")
    if config.import_options.strict_references:
        echo_warning("Strict reference checking is enabled")

    click.echo()
    echo_success("Configuration is valid!")


@config.command(name="show")
@pass_context
@requires_config
@handle_errors
def show(ctx: MigrationContext) -> None:
    """Display current configuration with the token masked.

    Examples:

        bot-bridge --config config.yaml config show
    """
    config = ctx.config
    _display_config_summary(config)

    click.echo("\nTarget Configuration:")
    click.echo(f"  URL: {config.target.url}")
    click.echo(f"  Token: {'*' * 40 + ' (masked)' if config.target.token else 'not set'}")
    click.echo(f"  Verify SSL: {config.target.verify_ssl}")
    click.echo(f"  Timeout: {config.target.timeout}s")

    click.echo("\nLogging Configuration:")
    click.echo(f"  Level: {config.logging.level}")
    click.echo(f"  File: {config.logging.file or 'disabled'}")
    click.echo(f"  Log Payloads: {config.logging.log_payloads}")


def _display_config_summary(config: MigrationConfig) -> None:
    rows = [
        ["Target URL", config.target.url],
        ["Import Directory", config.paths.import_dir],
        ["Response Timeout (s)", config.import_options.response_timeout],
        ["Max Concurrent Creations", config.import_options.max_concurrent],
        ["Keep Working Directory", config.import_options.keep_workdir],
        ["Strict References", config.import_options.strict_references],
        ["Rate Limit (req/s)", config.performance.rate_limit],
    ]
    print_table("Configuration Summary", ["Setting", "Value"], rows)


def _validate_paths(config: MigrationConfig) -> None:
    import_dir = Path(config.paths.import_dir)

    if not import_dir.exists():
        try:
            import_dir.mkdir(parents=True, exist_ok=True)
            echo_success(f"Created import directory: {import_dir}")
        except OSError as e:
            echo_error(f"Cannot create import directory: {import_dir}")
            raise click.ClickException(f"Failed to create import directory: {e}") from e
    elif not import_dir.is_dir():
        echo_error(f"Import path is not a directory: {import_dir}")
        raise click.ClickException(f"Invalid import directory: {import_dir}")
    else:
        echo_success(f"Import directory exists: {import_dir}")
