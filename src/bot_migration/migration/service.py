"""Caller-facing import service.

``ImportService.import_archive`` returns a ``PendingImport`` right away and
runs the pipeline in the background. The handle is settled exactly once:
with the pipeline's outcome, or with a timeout outcome if the pipeline takes
longer than the configured response timeout. The pipeline keeps running
after a timeout; its late outcome is then dropped.
"""

import asyncio
import uuid
from pathlib import Path
from typing import IO

from bot_migration.bundle import create_workdir, extract_archive, remove_workdir
from bot_migration.client.exceptions import ArchiveExtractionError, BotMigrationError
from bot_migration.client.store_client import ResourceStore
from bot_migration.config import ImportConfig, PathConfig
from bot_migration.migration.models import ImportOutcome, ImportStatus
from bot_migration.migration.orchestrator import ImportOrchestrator
from bot_migration.utils.logging import bind_import_context, get_logger, log_error

logger = get_logger(__name__)


class PendingImport:
    """Settle-once handle for one import request.

    Settling an already settled handle is a no-op, so the timeout and the
    pipeline may both try to resume it.
    """

    def __init__(self, import_id: str):
        self.import_id = import_id
        self._future: asyncio.Future[ImportOutcome] = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resume(self, outcome: ImportOutcome) -> bool:
        """Settle the handle. Returns False if it was already settled."""
        if self._future.done():
            logger.info(
                "import_outcome_dropped",
                import_id=self.import_id,
                status=outcome.status.value,
                settled_with=self._future.result().status.value,
            )
            return False
        self._future.set_result(outcome)
        return True

    async def wait(self) -> ImportOutcome:
        """Wait for the outcome. Cancelling the waiter leaves the handle intact."""
        return await asyncio.shield(self._future)


class ImportService:
    """Accepts archives and restores them into the destination store."""

    def __init__(
        self,
        store: ResourceStore,
        import_config: ImportConfig | None = None,
        paths: PathConfig | None = None,
    ):
        self.store = store
        self.config = import_config or ImportConfig()
        self.import_dir = Path((paths or PathConfig()).import_dir)
        self._tasks: set[asyncio.Task] = set()

    def import_archive(self, archive: str | Path | IO[bytes]) -> PendingImport:
        """Start importing ``archive`` and return its pending handle.

        Must be called from within a running event loop.
        """
        import_id = str(uuid.uuid4())
        handle = PendingImport(import_id)
        loop = asyncio.get_running_loop()

        timer = loop.call_later(
            self.config.response_timeout,
            self._time_out,
            handle,
        )
        task = loop.create_task(self._run(archive, handle), name=f"import-{import_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda _: timer.cancel())

        logger.info("import_started", import_id=import_id, timeout=self.config.response_timeout)
        return handle

    async def drain(self) -> None:
        """Wait for every running pipeline, including ones whose caller timed out."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _time_out(self, handle: PendingImport) -> None:
        if handle.resume(ImportOutcome.timed_out(handle.import_id, self.config.response_timeout)):
            logger.warning("import_timed_out", import_id=handle.import_id)

    async def _run(self, archive: str | Path | IO[bytes], handle: PendingImport) -> None:
        bind_import_context(handle.import_id)
        workdir: Path | None = None
        try:
            try:
                workdir = create_workdir(self.import_dir)
            except OSError as e:
                raise ArchiveExtractionError(f"Cannot create working directory: {e}") from e

            bundle_root = await asyncio.to_thread(extract_archive, archive, workdir)

            orchestrator = ImportOrchestrator(
                self.store,
                max_concurrent=self.config.max_concurrent,
                strict_references=self.config.strict_references,
            )
            report = await orchestrator.import_bundle(bundle_root)
            outcome = ImportOutcome.from_report(handle.import_id, report)

        except BotMigrationError as e:
            logger.error(
                "import_failed",
                import_id=handle.import_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            outcome = ImportOutcome.failed(handle.import_id, f"{type(e).__name__}: {e}")

        except Exception as e:
            log_error(logger, e, context="import_archive", import_id=handle.import_id)
            outcome = ImportOutcome.failed(handle.import_id, f"Unexpected error: {e}")

        finally:
            if workdir is not None and not self.config.keep_workdir:
                remove_workdir(workdir)

        if handle.resume(outcome):
            log = logger.info if outcome.status == ImportStatus.CREATED else logger.warning
            log(
                "import_finished",
                import_id=handle.import_id,
                status=outcome.status.value,
                location=outcome.location,
            )
