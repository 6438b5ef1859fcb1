"""Resource creation against the destination store."""

from typing import Any

from pydantic import BaseModel

from bot_migration.client.exceptions import APIError, NetworkError, RemoteCreationError
from bot_migration.client.store_client import ResourceStore
from bot_migration.references import Reference, ReferenceMapping
from bot_migration.utils.logging import get_logger

logger = get_logger(__name__)


class ResourceCreator:
    """Creates resources one at a time and reports the store-assigned reference.

    There is no batching and no retry. Whatever the store says in its
    ``Location`` header is the new reference; nothing is invented locally.
    """

    def __init__(self, store: ResourceStore):
        self.store = store

    async def create(self, resource_type: str, content: BaseModel | dict[str, Any]) -> Reference:
        """Create one resource.

        Args:
            resource_type: Registered resource type name
            content: Deserialized body (model or plain dict)

        Returns:
            Reference assigned by the destination

        Raises:
            RemoteCreationError: If the store rejects the call, cannot be
                reached, or answers without a usable location
        """
        if isinstance(content, BaseModel):
            payload = content.model_dump(mode="json", by_alias=True, exclude_unset=True)
        else:
            payload = content

        try:
            response = await self.store.create_resource(resource_type, payload)
        except APIError as e:
            raise RemoteCreationError(
                f"Store rejected {resource_type}: {e}",
                resource_type=resource_type,
                status_code=e.status_code,
            ) from e
        except NetworkError as e:
            raise RemoteCreationError(
                f"Store unreachable while creating {resource_type}: {e}",
                resource_type=resource_type,
            ) from e

        location = response.headers.get("Location")
        if not location:
            raise RemoteCreationError(
                f"Store created {resource_type} without returning a location",
                resource_type=resource_type,
                status_code=response.status_code,
            )

        try:
            reference = Reference.from_location(resource_type, location)
        except ValueError as e:
            raise RemoteCreationError(
                f"Unusable location for {resource_type}: {e}",
                resource_type=resource_type,
                status_code=response.status_code,
            ) from e

        logger.info(
            "resource_created",
            resource_type=resource_type,
            resource_id=reference.id,
            version=reference.version,
        )
        return reference

    async def create_once(
        self,
        old: Reference,
        content: BaseModel | dict[str, Any],
        mapping: ReferenceMapping,
    ) -> Reference:
        """Create ``old`` anew unless this import already did, and record the mapping."""
        existing = mapping.get(old)
        if existing is not None:
            logger.debug("resource_already_recreated", old=old.uri, new=existing.uri)
            return existing

        new = await self.create(old.resource_type, content)
        mapping.add(old, new)
        return new
