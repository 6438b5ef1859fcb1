"""Import orchestration: recreate an archived bundle bottom-up.

For every bot in the bundle:

1. For each package the bot references, and for each leaf category
   (dictionaries, behavior sets, output sets): find the category's
   references in the package text, load them, create them, record the
   old->new mapping, migrate their descriptors, rewrite that category's
   references in the package text.
2. Create the package from its rewritten text and migrate its descriptor.
3. Rewrite the bot's package list, create the bot, migrate its descriptor.

The reference mapping is shared by every bot of one archive, so a resource
referenced twice is only created once. A reference whose creation failed
is never sent to the store again during the same import.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel

from bot_migration.bundle import ResourceLoader, deserialize, old_bot_reference
from bot_migration.client.exceptions import (
    BotMigrationError,
    ReferenceRewriteError,
    RemoteCreationError,
)
from bot_migration.client.store_client import ResourceStore
from bot_migration.migration.creator import ResourceCreator
from bot_migration.migration.descriptors import DescriptorMigrator
from bot_migration.migration.models import BotImportResult, ImportReport, ImportState
from bot_migration.references import (
    Reference,
    ReferenceMapping,
    extract,
    rewrite,
    stale_references,
    unresolved_references,
)
from bot_migration.resources import (
    BOT,
    PACKAGE,
    BotConfiguration,
    PackageConfiguration,
    ResourceTypeInfo,
    category_pattern,
    get_leaf_types,
)
from bot_migration.utils.logging import get_logger, log_orphaned_resources

logger = get_logger(__name__)


@dataclass
class _ImportRun:
    """State shared by the bots of one archive."""

    mapping: ReferenceMapping = field(default_factory=ReferenceMapping)
    # old reference -> error of its failed creation
    failed: dict[str, str] = field(default_factory=dict)
    # old package reference -> new references of the package and its leaves
    package_members: dict[str, list[Reference]] = field(default_factory=dict)

    def check_not_failed(self, old: Reference) -> None:
        error = self.failed.get(old.uri)
        if error is not None:
            raise RemoteCreationError(
                f"Creation of {old.uri} already failed in this import: {error}",
                resource_type=old.resource_type,
            )


class ImportOrchestrator:
    """Drives the import of one extracted bundle."""

    def __init__(
        self,
        store: ResourceStore,
        loader: ResourceLoader | None = None,
        max_concurrent: int = 5,
        strict_references: bool = False,
    ):
        """Initialize the orchestrator.

        Args:
            store: Destination resource store
            loader: Bundle reader (a default one is created if omitted)
            max_concurrent: Maximum concurrent leaf creations per category
            strict_references: Fail a package whose text keeps unresolved
                references after rewriting, instead of passing them through
        """
        self.loader = loader or ResourceLoader()
        self.creator = ResourceCreator(store)
        self.descriptors = DescriptorMigrator(store, self.loader)
        self.max_concurrent = max_concurrent
        self.strict_references = strict_references

    async def import_bundle(
        self,
        bundle_root: Path,
        on_bot_complete: Callable[[BotImportResult], None] | None = None,
    ) -> ImportReport:
        """Import every bot found at the root of ``bundle_root``.

        Bots are processed one after another; a failing bot does not stop
        the next one.

        Args:
            bundle_root: Root of the extracted archive
            on_bot_complete: Called with each bot's result as soon as it is known

        Returns:
            ImportReport with one result per bot file
        """
        run = _ImportRun()
        report = ImportReport(bundle_root=bundle_root)

        bot_files = self.loader.find_bot_files(bundle_root)
        logger.info("bundle_scanned", bundle_root=str(bundle_root), bot_count=len(bot_files))
        if not bot_files:
            logger.warning("no_bots_found", bundle_root=str(bundle_root))

        for bot_file in bot_files:
            result = await self._import_bot(bundle_root, bot_file, run)
            report.results.append(result)
            if on_bot_complete is not None:
                on_bot_complete(result)

        log_orphaned_resources(logger, bundle_root.name, [ref.uri for ref in report.orphans])
        logger.info(
            "bundle_import_finished",
            bundle_root=str(bundle_root),
            succeeded=sum(1 for result in report.results if result.succeeded),
            failed=len(report.failures),
            resources_created=len(run.mapping),
        )
        return report

    async def _import_bot(self, bundle_root: Path, bot_file: Path, run: _ImportRun) -> BotImportResult:
        """Import one bot and everything below it.

        Errors are recorded on the returned result rather than raised.
        Resources created before a failure are not rolled back.
        """
        result = BotImportResult(bot_file=bot_file.name)
        log = logger.bind(bot_file=bot_file.name)

        try:
            old_bot = old_bot_reference(bot_file)
            result.old_reference = old_bot
            bot = self.loader.load_model(bundle_root, old_bot, BotConfiguration)
            self._transition(result, ImportState.EXTRACTED)

            for package_ref in self._package_references(bot):
                if package_ref in run.mapping:
                    log.info("package_already_imported", package=package_ref.uri)
                else:
                    run.check_not_failed(package_ref)
                    await self._import_package(bundle_root, package_ref, run, result)
                result.reached.extend(run.package_members[package_ref.uri])

            bot.packages = [run.mapping.resolve(uri) for uri in bot.packages]
            self._transition(result, ImportState.TOP_LEVEL_REWRITTEN)

            new_bot = await self.creator.create(BOT, bot)
            run.mapping.add(old_bot, new_bot)
            result.created.append(new_bot)
            result.reached.append(new_bot)
            result.new_reference = new_bot
            self._transition(result, ImportState.TOP_LEVEL_CREATED)

            # The bot's own reference is not embedded anywhere; its old id comes from the file name
            await self._migrate_descriptor(bundle_root, old_bot, new_bot, result)
            self._transition(result, ImportState.DESCRIPTORS_MIGRATED)
            self._transition(result, ImportState.COMPLETED)

            log.info("bot_imported", old=old_bot.uri, new=new_bot.uri)

        except BotMigrationError as e:
            last_state = result.state
            result.fail(e)
            log.error(
                "bot_import_failed",
                last_state=last_state.value,
                error_type=type(e).__name__,
                error=str(e),
            )

        return result

    async def _import_package(
        self,
        bundle_root: Path,
        package_ref: Reference,
        run: _ImportRun,
        result: BotImportResult,
    ) -> Reference:
        """Recreate one package and its leaves.

        Each category's references are extracted from the text as archived
        and only those references are rewritten afterwards, so a later
        category never sees tokens produced by an earlier one.

        Raises:
            ResourceReadError: If the package or one of its leaves is missing
            DeserializationError: If a body is malformed
            RemoteCreationError: If the store rejects a creation
            ReferenceRewriteError: On malformed references, or unresolved
                ones in strict mode
        """
        package_file = self.loader.find_package_file(bundle_root, package_ref)
        package_dir = package_file.parent
        text = self.loader.load(package_dir, package_ref)
        members: list[Reference] = []

        for leaf in get_leaf_types():
            references = extract(text, category_pattern(leaf.name))
            await self._create_leaves(package_dir, leaf, references, run, result)
            text = rewrite(text, run.mapping, only=references)
            members.extend(run.mapping.get(ref) for ref in dict.fromkeys(references))
            self._transition(result, ImportState.LEAVES_CREATED, category=leaf.name)

        self._check_references(package_ref, text, run.mapping)
        self._transition(result, ImportState.MID_LEVEL_REWRITTEN, package=package_ref.uri)

        package = deserialize(text, PackageConfiguration, source=str(package_file))
        try:
            new_package = await self.creator.create_once(package_ref, package, run.mapping)
        except RemoteCreationError as e:
            run.failed[package_ref.uri] = str(e)
            raise
        result.created.append(new_package)
        run.package_members[package_ref.uri] = [*members, new_package]
        self._transition(result, ImportState.MID_LEVEL_CREATED, package=package_ref.uri)

        await self._migrate_descriptor(package_dir, package_ref, new_package, result)
        return new_package

    async def _create_leaves(
        self,
        package_dir: Path,
        leaf: ResourceTypeInfo,
        references: list[Reference],
        run: _ImportRun,
        result: BotImportResult,
    ) -> None:
        """Create the not yet mapped ``references`` of one leaf category.

        Every body is loaded before the first creation, so a missing or
        malformed file aborts the category without touching the store.
        Duplicates are collapsed first; mapping writes happen on the event
        loop after each creation returns. When some creations fail, the
        descriptors of the others are still migrated before the first
        error is raised.
        """
        pending = [ref for ref in dict.fromkeys(references) if ref not in run.mapping]
        if not pending:
            return

        for ref in pending:
            run.check_not_failed(ref)
        bodies = [(ref, self.loader.load_model(package_dir, ref, leaf.model)) for ref in pending]
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def create_one(old: Reference, body: BaseModel) -> Reference:
            async with semaphore:
                new = await self.creator.create(leaf.name, body)
            run.mapping.add(old, new)
            result.created.append(new)
            return new

        outcomes = await asyncio.gather(
            *(create_one(ref, body) for ref, body in bodies), return_exceptions=True
        )

        errors = []
        for (old, _), outcome in zip(bodies, outcomes):
            if isinstance(outcome, BaseException):
                run.failed[old.uri] = str(outcome)
                errors.append(outcome)
            else:
                await self._migrate_descriptor(package_dir, old, outcome, result)

        if errors:
            raise errors[0]
        logger.info("leaves_created", category=leaf.name, count=len(pending))

    async def _migrate_descriptor(
        self, directory: Path, old: Reference, new: Reference, result: BotImportResult
    ) -> None:
        error = await self.descriptors.migrate(directory, old, new)
        if error is not None:
            result.descriptor_warnings.append(str(error))

    def _check_references(self, package_ref: Reference, text: str, mapping: ReferenceMapping) -> None:
        stale = stale_references(text, mapping)
        if stale:
            # Every extracted reference was rewritten, so this means a bug rather than bad input
            raise ReferenceRewriteError(f"{package_ref.uri} still references {stale}")

        unresolved = unresolved_references(text, mapping)
        if not unresolved:
            return
        if self.strict_references:
            raise ReferenceRewriteError(
                f"{package_ref.uri} has unresolved references: {', '.join(unresolved)}"
            )
        logger.warning("unresolved_references", package=package_ref.uri, references=unresolved)

    def _package_references(self, bot: BotConfiguration) -> list[Reference]:
        references = []
        for uri in dict.fromkeys(bot.packages):
            try:
                reference = Reference.parse(uri)
            except ValueError as e:
                raise ReferenceRewriteError(str(e)) from e
            if reference.resource_type != PACKAGE:
                raise ReferenceRewriteError(f"Bot lists a non-package reference: {uri}")
            references.append(reference)
        return references

    def _transition(self, result: BotImportResult, state: ImportState, **context) -> None:
        result.state = state
        logger.debug("import_state_changed", bot_file=result.bot_file, state=state.value, **context)
