"""RepoLink - remote Git repository connector."""

from repolink.auth import CredentialAuthenticator
from repolink.cache import ContentCache
from repolink.client import RepoLinkClient
from repolink.clients import GitHubClient
from repolink.clock import Clock, SystemClock
from repolink.config import ConnectorConfig, ProviderSettings
from repolink.connectivity import ConnectivityChecker
from repolink.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectorError,
    ErrorKind,
    InvalidTokenError,
    InvalidUrlError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    RemoteFileNotFoundError,
    RepositoryNotFoundError,
    RequestTimeoutError,
    StorageError,
    UnknownError,
)
from repolink.logging import configure_logging, get_logger
from repolink.orchestrator import RepositoryOrchestrator
from repolink.rate_limit import RateGovernor, RetryConfig
from repolink.storage import (
    EncryptedFileSecretStorage,
    InMemorySecretStorage,
    KeyringSecretStorage,
    SecretStorage,
)
from repolink.transport import HTTPTransport
from repolink.urls import Provider, normalize_repository_url, parse_repository_url

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Main Client
    "RepoLinkClient",
    # Components
    "HTTPTransport",
    "RateGovernor",
    "RetryConfig",
    "GitHubClient",
    "CredentialAuthenticator",
    "RepositoryOrchestrator",
    "ContentCache",
    "ConnectivityChecker",
    # Configuration
    "ConnectorConfig",
    "ProviderSettings",
    "Provider",
    "Clock",
    "SystemClock",
    # Secret storage
    "SecretStorage",
    "InMemorySecretStorage",
    "KeyringSecretStorage",
    "EncryptedFileSecretStorage",
    # URLs
    "normalize_repository_url",
    "parse_repository_url",
    # Exceptions
    "ErrorKind",
    "ConnectorError",
    "InvalidTokenError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "RemoteFileNotFoundError",
    "RepositoryNotFoundError",
    "RateLimitedError",
    "RequestTimeoutError",
    "NetworkError",
    "InvalidUrlError",
    "StorageError",
    "UnknownError",
    "ConfigurationError",
    # Logging
    "configure_logging",
    "get_logger",
]
