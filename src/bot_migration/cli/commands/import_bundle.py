"""
Import command.

Restores an exported bot archive into the destination resource store.
"""

import asyncio
import time
from pathlib import Path

import click

from bot_migration.cli.context import MigrationContext
from bot_migration.cli.decorators import (
    EXIT_IMPORT_FAILED,
    EXIT_TIMEOUT,
    handle_errors,
    pass_context,
    requires_config,
)
from bot_migration.cli.utils import (
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    format_duration,
    print_table,
    step_progress,
)
from bot_migration.migration.models import ImportOutcome, ImportStatus
from bot_migration.migration.service import ImportService
from bot_migration.utils.logging import get_logger

logger = get_logger(__name__)


@click.command(name="import")
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds to wait for the outcome (overrides import.response_timeout)",
)
@click.option("--keep-workdir", is_flag=True, help="Keep the extracted archive for inspection")
@click.option(
    "--strict-references",
    is_flag=True,
    help="Fail packages that still contain unresolved references after rewriting",
)
@pass_context
@requires_config
@handle_errors
def import_bundle(
    ctx: MigrationContext,
    archive: Path,
    timeout: float | None,
    keep_workdir: bool,
    strict_references: bool,
) -> None:
    """Import a bot archive into the destination store.

    Every resource in the archive is created anew; references between
    resources are rewritten to the identifiers the store assigns.

    Examples:

        bot-bridge --config config.yaml import exported-bot.zip

        bot-bridge --config config.yaml import exported-bot.zip --timeout 300
    """
    updates: dict[str, object] = {}
    if timeout is not None:
        updates["response_timeout"] = timeout
    if keep_workdir:
        updates["keep_workdir"] = True
    if strict_references:
        updates["strict_references"] = True
    import_config = ctx.config.import_options.model_copy(update=updates)

    async def run_import() -> ImportOutcome:
        try:
            service = ImportService(ctx.store_client, import_config, ctx.config.paths)
            handle = service.import_archive(archive)
            outcome = await handle.wait()
            # The pipeline is not cancelled by a timeout; let it finish before exiting
            await service.drain()
            return outcome
        finally:
            await ctx.aclose()

    echo_info(f"Importing {archive} into {ctx.config.target.url}")
    start_time = time.time()
    with step_progress("Importing bundle"):
        outcome = asyncio.run(run_import())

    _display_outcome(outcome)
    echo_info(f"Finished in {format_duration(time.time() - start_time)}")

    if outcome.status == ImportStatus.TIMEOUT:
        raise click.exceptions.Exit(EXIT_TIMEOUT)
    if outcome.status == ImportStatus.FAILED:
        raise click.exceptions.Exit(EXIT_IMPORT_FAILED)


def _display_outcome(outcome: ImportOutcome) -> None:
    """Print the outcome and, when available, a per-bot summary."""
    if outcome.report is not None and outcome.report.results:
        rows = [
            [
                result.bot_file,
                result.state.value,
                result.new_reference.uri if result.new_reference else "-",
                len(result.created),
                len(result.descriptor_warnings),
            ]
            for result in outcome.report.results
        ]
        print_table(
            "Import Results",
            ["Bot File", "State", "New Reference", "Created", "Descriptor Warnings"],
            rows,
        )

        for result in outcome.report.failures:
            echo_error(f"{result.bot_file}: {result.error_type}: {result.error}")

        orphans = outcome.report.orphans
        if orphans:
            echo_warning(
                f"{len(orphans)} created resource(s) are not used by any created bot "
                "and need manual cleanup:"
            )
            for ref in orphans:
                echo_warning(f"  {ref.uri}")

    if outcome.status == ImportStatus.CREATED:
        echo_success(f"[{outcome.status_code}] Created {outcome.location}")
        for location in outcome.locations[1:]:
            echo_success(f"Created {location}")
    elif outcome.status == ImportStatus.TIMEOUT:
        echo_warning(f"[{outcome.status_code}] {outcome.error}")
        echo_warning("The import kept running after the timeout; check the log for its result.")
    else:
        echo_error(f"[{outcome.status_code}] Import failed: {outcome.error}")
