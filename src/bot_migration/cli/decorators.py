"""
Decorators for CLI commands.

This module provides decorators for error handling, context passing,
and configuration loading.
"""

import functools
from collections.abc import Callable

import click

from bot_migration.cli.context import MigrationContext
from bot_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    BundleImportError,
    ConfigurationError,
)
from bot_migration.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

# Exit codes
EXIT_ERROR = 1
EXIT_CONFIGURATION = 2
EXIT_AUTHENTICATION = 3
EXIT_API = 4
EXIT_IMPORT_FAILED = 6
EXIT_TIMEOUT = 7


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass MigrationContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: MigrationContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        migration_ctx: MigrationContext = click_ctx.obj
        return f(migration_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    Exit codes:
        0: Success
        1: General error
        2: Configuration error
        3: Authentication error
        4: API error
        6: Import failed
        7: Import timed out (set by the import command itself)
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

        except AuthenticationError as e:
            logger.error("Authentication error", error=str(e))
            click.echo(f"Authentication Error: {e}", err=True)
            click.echo("\nPlease verify the store token in the configuration file.", err=True)
            raise click.exceptions.Exit(EXIT_AUTHENTICATION) from e

        except APIError as e:
            logger.error("API error", error=str(e))
            click.echo(f"API Error: {e}", err=True)
            if e.status_code:
                click.echo(f"\nResponse status: {e.status_code}", err=True)
            raise click.exceptions.Exit(EXIT_API) from e

        except BundleImportError as e:
            logger.error("Import error", error_type=type(e).__name__, error=str(e))
            click.echo(f"Import Error: {e}", err=True)
            raise click.exceptions.Exit(EXIT_IMPORT_FAILED) from e

        except Exception as e:
            logger.error("Unexpected error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_ERROR) from e

    return wrapper


def requires_config(f: Callable) -> Callable:
    """
    Decorator to ensure configuration is loaded.

    This decorator checks that a configuration file has been provided
    and loads it before executing the command.
    """

    @functools.wraps(f)
    def wrapper(ctx: MigrationContext, *args, **kwargs):
        if ctx.config_path is None:
            click.echo(
                "Error: Configuration file required. Use --config option or set BOT_BRIDGE_CONFIG.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_CONFIGURATION)

        try:
            config = ctx.config
        except Exception as e:
            click.echo(f"Error loading configuration: {e}", err=True)
            raise click.exceptions.Exit(EXIT_CONFIGURATION) from e

        # File logging settings come from the config unless --log-file was given
        if ctx.log_file is None and config.logging.file:
            configure_logging(
                level=ctx.log_level,
                log_format=config.logging.format,
                log_file=config.logging.file,
                file_level=config.logging.file_level,
            )

        return f(ctx, *args, **kwargs)

    return wrapper
