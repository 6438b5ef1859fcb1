"""Client for the destination resource store.

The store exposes one collection endpoint per resource type plus the
descriptor store. Only two operation shapes are used: create a resource
(the store answers with the assigned location) and patch a descriptor.
"""

from typing import Any, Protocol, runtime_checkable

import httpx

from bot_migration.client.base_client import BaseAPIClient
from bot_migration.config import PerformanceConfig, TargetConfig
from bot_migration.resources import DESCRIPTOR_ENDPOINT, VERSION_QUERY_PARAM, get_resource_type
from bot_migration.utils.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class ResourceStore(Protocol):
    """Operations the import pipeline needs from a destination store."""

    async def create_resource(self, resource_type: str, data: dict[str, Any]) -> httpx.Response:
        ...

    async def patch_descriptor(
        self, resource_id: str, version: int, instruction: dict[str, Any]
    ) -> None:
        ...


class ResourceStoreClient(BaseAPIClient):
    """Client for the destination resource store.

    Identifiers and versions are always assigned by the store; this client
    never sends one on creation.
    """

    def __init__(
        self,
        config: TargetConfig,
        performance: PerformanceConfig | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the resource store client.

        Args:
            config: Destination store configuration
            performance: HTTP tuning (rate limit, pool sizes)
            log_payloads: Enable request/response payload logging
            max_payload_size: Maximum payload size to log before truncation
            transport: Optional httpx transport (used by tests)
        """
        performance = performance or PerformanceConfig()
        super().__init__(
            base_url=config.url,
            token=config.token,
            verify_ssl=config.verify_ssl,
            timeout=config.timeout,
            rate_limit=performance.rate_limit,
            max_connections=performance.http_max_connections,
            max_keepalive_connections=performance.http_max_keepalive_connections,
            log_payloads=log_payloads,
            max_payload_size=max_payload_size,
            transport=transport,
        )

    async def create_resource(self, resource_type: str, data: dict[str, Any]) -> httpx.Response:
        """POST ``data`` to the collection endpoint of ``resource_type``.

        Args:
            resource_type: Registered resource type name (e.g. 'package')
            data: Resource body

        Returns:
            The store's response; its ``Location`` header names the new resource
        """
        info = get_resource_type(resource_type)
        response = await self.send("POST", info.endpoint, json_data=data)
        logger.debug(
            "resource_create_response",
            resource_type=resource_type,
            status_code=response.status_code,
            location=response.headers.get("Location"),
        )
        return response

    async def patch_descriptor(
        self,
        resource_id: str,
        version: int,
        instruction: dict[str, Any],
    ) -> None:
        """Apply a patch instruction to the descriptor of one resource version.

        Args:
            resource_id: Id of the resource owning the descriptor
            version: Resource version
            instruction: ``{"operation": ..., "document": {...}}``
        """
        await self.send(
            "PATCH",
            f"{DESCRIPTOR_ENDPOINT}/{resource_id}",
            params={VERSION_QUERY_PARAM: version},
            json_data=instruction,
        )
        logger.debug("descriptor_patched", resource_id=resource_id, version=version)
