"""Custom exceptions for Bot Bridge.

This module defines exception classes for handling the error conditions
that can occur while restoring a bot bundle: archive problems, unreadable
or malformed resources, rejected creations and HTTP API failures.

Resource integrity errors (everything except ``DescriptorMigrationError``)
are raised and abort the subtree being imported. Descriptor failures are
cosmetic and are returned to the caller instead of raised.
"""


class BotMigrationError(Exception):
    """Base exception for all Bot Bridge errors."""

    pass


class APIError(BotMigrationError):
    """Base class for API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class AuthenticationError(APIError):
    """Raised when authentication fails (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when authorization fails (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a resource is not found (404 Not Found)."""

    pass


class ConflictError(APIError):
    """Raised when a resource conflict occurs (409 Conflict)."""

    pass


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (429 Too Many Requests)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        retry_after: int | None = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
            retry_after: Seconds to wait before retrying (from Retry-After header)
        """
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class NetworkError(BotMigrationError):
    """Raised when network-related errors occur (timeouts, connection failures)."""

    pass


class ConfigurationError(BotMigrationError):
    """Raised when configuration is invalid or missing."""

    pass


class BundleImportError(BotMigrationError):
    """Base class for failures of the import pipeline itself."""

    pass


class ArchiveExtractionError(BundleImportError):
    """Raised when the uploaded archive cannot be extracted.

    Aborts the whole import before any resource is created.
    """

    pass


class ResourceReadError(BundleImportError):
    """Raised when a resource file is missing or unreadable in the bundle.

    Attributes:
        path: Path that was expected to hold the resource
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class DeserializationError(BundleImportError):
    """Raised when a resource body is not valid JSON or does not fit its model."""

    pass


class RemoteCreationError(BundleImportError):
    """Raised when the destination store rejects or fails a create call.

    Attributes:
        resource_type: Type of resource that failed to be created
        status_code: HTTP status code, when the store answered at all
    """

    def __init__(
        self,
        message: str,
        resource_type: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.resource_type = resource_type
        self.status_code = status_code


class ReferenceRewriteError(BundleImportError):
    """Raised when a reference pattern is malformed or references stay unresolved in strict mode."""

    pass


class MappingConflictError(BundleImportError):
    """Raised when an old reference would be remapped a second time."""

    pass


class DescriptorMigrationError(BundleImportError):
    """Describes a failed descriptor migration.

    This error is never raised by the descriptor migrator. It is returned
    and logged; the new resource keeps its default descriptor.
    """

    pass
