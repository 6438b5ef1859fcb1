"""Descriptor migration.

The store gives every newly created resource an empty descriptor. The
archived name and description are copied over with a ``SET`` patch.
Failures here are cosmetic: they are logged and returned, never raised,
so ``migrate`` has no error path that could abort an import.
"""

from pathlib import Path

from bot_migration.bundle import ResourceLoader
from bot_migration.client.exceptions import (
    APIError,
    DescriptorMigrationError,
    DeserializationError,
    NetworkError,
    ResourceReadError,
)
from bot_migration.client.store_client import ResourceStore
from bot_migration.references import Reference
from bot_migration.utils.logging import get_logger

logger = get_logger(__name__)

PATCH_OPERATION_SET = "SET"


class DescriptorMigrator:
    def __init__(self, store: ResourceStore, loader: ResourceLoader | None = None):
        self.store = store
        self.loader = loader or ResourceLoader()

    async def migrate(
        self, directory: Path, old: Reference, new: Reference
    ) -> DescriptorMigrationError | None:
        """Copy the archived descriptor of ``old`` onto ``new``.

        Args:
            directory: Directory holding ``<old.id>.descriptor.json``
            old: Reference of the archived resource
            new: Reference assigned by the destination

        Returns:
            None on success, otherwise the (already logged) failure
        """
        try:
            descriptor = self.loader.read_descriptor(directory, old.id)
        except (ResourceReadError, DeserializationError) as e:
            return self._failed(old, new, e)

        instruction = {
            "operation": PATCH_OPERATION_SET,
            "document": descriptor.model_dump(mode="json", by_alias=True, exclude_unset=True),
        }
        try:
            await self.store.patch_descriptor(new.id, new.version, instruction)
        except (APIError, NetworkError) as e:
            return self._failed(old, new, e)

        logger.info("descriptor_migrated", old=old.uri, new=new.uri, name=descriptor.name)
        return None

    def _failed(self, old: Reference, new: Reference, cause: Exception) -> DescriptorMigrationError:
        error = DescriptorMigrationError(f"Descriptor of {old.uri} not migrated to {new.uri}: {cause}")
        logger.warning(
            "descriptor_migration_failed",
            old=old.uri,
            new=new.uri,
            error_type=type(cause).__name__,
            error=str(cause),
        )
        return error
