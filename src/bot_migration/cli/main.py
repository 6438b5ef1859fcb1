"""
Main CLI entry point for Bot Bridge.

This module provides the command-line interface for restoring exported
bot archives into a resource store.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from bot_migration import __version__
from bot_migration.cli.commands import config as config_commands
from bot_migration.cli.commands import import_bundle as import_commands
from bot_migration.cli.context import MigrationContext
from bot_migration.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="bot-bridge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
    envvar="BOT_BRIDGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="ERROR",
    help="Set console logging level (file logging stays at DEBUG)",
    envvar="BOT_BRIDGE_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Log file path (default: logs/import.log)",
    envvar="BOT_BRIDGE_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str,
    log_file: Path | None,
) -> None:
    """Bot Bridge - Restore exported bot archives into a resource store.

    The store assigns new identifiers to everything it creates; Bot Bridge
    recreates dictionaries, behavior sets and output sets first, then the
    packages that use them, then the bot, rewriting every reference along
    the way.

    Examples:

        # Validate configuration
        bot-bridge --config config.yaml config validate

        # Import an archive
        bot-bridge --config config.yaml import exported-bot.zip
    """
    effective_log_file = str(log_file) if log_file else "logs/import.log"
    configure_logging(level=log_level, log_file=effective_log_file)

    ctx.obj = MigrationContext(
        config_path=config,
        log_level=log_level,
        log_file=log_file,
    )

    logger.debug(
        "CLI initialized",
        config=str(config) if config else None,
        log_level=log_level,
    )


cli.add_command(config_commands.config)
cli.add_command(import_commands.import_bundle, name="import")


def main() -> int:
    """Main entry point for CLI."""
    try:
        # Without standalone mode click returns the code of an Exit instead of raising it
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
