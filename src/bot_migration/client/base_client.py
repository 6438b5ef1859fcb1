"""Base HTTP client for Bot Bridge.

Async httpx client with a shared connection pool, a simple request-rate
limiter and mapping of error responses to exceptions. Nothing here
retries: every call is sent once and its failure is reported as is.
"""

import asyncio
import time
from typing import Any

import httpx

from bot_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from bot_migration.utils.logging import (
    get_logger,
    log_api_request,
    sanitize_payload,
    should_log_payloads,
    truncate_payload,
)

logger = get_logger(__name__)

# Status code -> (exception class, message prefix)
_STATUS_ERRORS: dict[int, tuple[type[APIError], str]] = {
    401: (AuthenticationError, "Authentication failed"),
    403: (AuthorizationError, "Authorization failed"),
    404: (NotFoundError, "Resource not found"),
    409: (ConflictError, "Resource conflict"),
}


class BaseAPIClient:
    """Base async HTTP client.

    Subclasses build on ``send``, which returns the raw ``httpx.Response``
    so callers can read headers such as ``Location``.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        verify_ssl: bool = True,
        timeout: int = 30,
        rate_limit: int = 20,
        max_connections: int = 50,
        max_keepalive_connections: int = 20,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Base URL for API requests
            token: Optional bearer token
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            rate_limit: Maximum requests per second (0 disables limiting)
            max_connections: Maximum number of connections in pool
            max_keepalive_connections: Maximum keep-alive connections
            log_payloads: Log request/response bodies at DEBUG level
            max_payload_size: Maximum logged body size before truncation
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.log_payloads = log_payloads
        self.max_payload_size = max_payload_size

        self._min_interval = 1.0 / rate_limit if rate_limit > 0 else 0.0
        self._next_slot = 0.0
        self._rate_lock = asyncio.Lock()

        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=10.0),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            verify=verify_ssl,
            # A 201 carries the Location of the new resource; it must not be followed
            follow_redirects=False,
            transport=transport,
        )

        logger.info(
            "client_initialized",
            base_url=self.base_url,
            rate_limit=rate_limit,
            max_connections=max_connections,
        )

    async def _throttle(self) -> None:
        """Space requests at least ``1 / rate_limit`` seconds apart."""
        if not self._min_interval:
            return
        async with self._rate_lock:
            delay = self._next_slot - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            self._next_slot = time.monotonic() + self._min_interval

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        """Raise the exception matching an error response."""
        status_code = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = response.text

        if isinstance(body, dict):
            detail = str(body.get("detail") or body.get("message") or "Unknown error")
            error_data = body
        else:
            detail = str(body) if body else "Unknown error"
            error_data = {"detail": detail}

        if status_code in _STATUS_ERRORS:
            error_class, message = _STATUS_ERRORS[status_code]
            raise error_class(message, status_code=status_code, response=error_data)
        if status_code == 429:
            retry_after = response.headers.get("Retry-After", "")
            raise RateLimitError(
                "Rate limit exceeded",
                status_code=status_code,
                response=error_data,
                retry_after=int(retry_after) if retry_after.isdigit() else None,
            )
        if status_code >= 500:
            raise ServerError(
                f"Server error: {detail}", status_code=status_code, response=error_data
            )
        raise APIError(f"API error: {detail}", status_code=status_code, response=error_data)

    async def send(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
    ) -> httpx.Response:
        """Send one request and return the successful (status < 400) response.

        Args:
            method: HTTP method
            endpoint: Path relative to the base URL
            params: Query parameters
            json_data: JSON request body

        Raises:
            NetworkError: On timeouts and transport failures
            APIError: Or a subclass, for error responses
        """
        path = "/" + endpoint.lstrip("/")
        payloads = should_log_payloads(self.log_payloads)

        await self._throttle()

        if payloads and json_data is not None:
            logger.debug(
                "api_request_payload",
                method=method,
                path=path,
                payload=truncate_payload(sanitize_payload(json_data), self.max_payload_size),
            )

        started = time.monotonic()
        try:
            response = await self.client.request(method, path, params=params, json=json_data)
        except httpx.TimeoutException as e:
            logger.error("timeout_error", method=method, path=path, error=str(e))
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            logger.error("network_error", method=method, path=path, error=str(e))
            raise NetworkError(f"Network error: {e}") from e

        log_api_request(
            logger,
            method=method,
            url=str(response.request.url),
            status_code=response.status_code,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        if payloads and response.text:
            logger.debug(
                "api_response_payload",
                method=method,
                path=path,
                status_code=response.status_code,
                payload=response.text[: self.max_payload_size],
            )

        if response.is_error:
            self._raise_for_status(response)
        return response

    async def close(self) -> None:
        """Close the HTTP client and its connection pool."""
        await self.client.aclose()
        logger.info("client_closed", base_url=self.base_url)

    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
