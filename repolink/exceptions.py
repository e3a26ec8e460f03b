"""RepoLink exception classes.

Every failure that leaves the connector is one of these. Each error carries
its canonical ``ErrorKind``, a retryable flag and, for rate limits, the
number of seconds the caller should wait.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Canonical error kinds surfaced to callers."""

    INVALID_TOKEN = "INVALID_TOKEN"
    AUTH_FAILED = "AUTH_FAILED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    REPOSITORY_NOT_FOUND = "REPOSITORY_NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_URL = "INVALID_URL"
    STORAGE_ERROR = "STORAGE_ERROR"
    UNKNOWN = "UNKNOWN"


RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMIT,
        ErrorKind.TIMEOUT,
        ErrorKind.NETWORK_ERROR,
        ErrorKind.STORAGE_ERROR,
    }
)


class ConnectorError(Exception):
    """Base exception for all RepoLink errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        retryable: bool | None = None,
        retry_after: int | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        self.message = message
        self.retryable = self.kind in RETRYABLE_KINDS if retryable is None else retryable
        self.retry_after = retry_after
        self.status_code = status_code
        self.details = details
        super().__init__(f"[{self.kind.value}] {message}")

    @property
    def code(self) -> str:
        """The error kind as a plain string."""
        return self.kind.value

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the error envelope shown by the UI layer."""
        data: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            data["retryAfterSeconds"] = self.retry_after
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        if self.details:
            data["details"] = self.details
        return data


class InvalidTokenError(ConnectorError):
    """Raised when a personal access token is empty or rejected."""

    kind = ErrorKind.INVALID_TOKEN


class AuthenticationError(ConnectorError):
    """Raised when the provider rejects the request credentials (401)."""

    kind = ErrorKind.AUTH_FAILED


class PermissionDeniedError(ConnectorError):
    """Raised when access is denied (403 without quota exhaustion)."""

    kind = ErrorKind.PERMISSION_DENIED


class NotFoundError(ConnectorError):
    """Raised when a resource is not found."""

    kind = ErrorKind.NOT_FOUND


class RemoteFileNotFoundError(NotFoundError):
    """Raised when a file is missing on the requested branch."""

    kind = ErrorKind.FILE_NOT_FOUND


class RepositoryNotFoundError(NotFoundError):
    """Raised when a repository is unknown or inaccessible."""

    kind = ErrorKind.REPOSITORY_NOT_FOUND


class RateLimitedError(ConnectorError):
    """Raised when rate limited."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str,
        retry_after: int,
        *,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(
            message,
            retry_after=retry_after,
            status_code=status_code,
            details=details,
        )


class RequestTimeoutError(ConnectorError):
    """Raised when a request times out or the connection is aborted."""

    kind = ErrorKind.TIMEOUT


class NetworkError(ConnectorError):
    """Raised on DNS failures and refused connections."""

    kind = ErrorKind.NETWORK_ERROR


class InvalidUrlError(ConnectorError):
    """Raised for malformed repository URLs and unsupported providers."""

    kind = ErrorKind.INVALID_URL


class StorageError(ConnectorError):
    """Raised when the secret store or cache cannot be read or written."""

    kind = ErrorKind.STORAGE_ERROR


class UnknownError(ConnectorError):
    """Raised for failures that match no other kind."""

    kind = ErrorKind.UNKNOWN


class ConfigurationError(ConnectorError):
    """Raised when connector configuration is invalid or missing."""

    kind = ErrorKind.UNKNOWN
