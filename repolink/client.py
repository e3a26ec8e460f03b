"""
RepoLink main client.

Wires the transport, rate governor, GitHub client, cache, authenticator,
connectivity checker and repository orchestrator together.
"""

from collections.abc import Callable
from typing import Any

import httpx

from repolink.auth import CredentialAuthenticator
from repolink.cache import ContentCache
from repolink.clients import GitHubClient
from repolink.clock import Clock, SystemClock
from repolink.config import ConnectorConfig
from repolink.connectivity import ConnectivityChecker
from repolink.orchestrator import RepositoryOrchestrator
from repolink.rate_limit import RateGovernor
from repolink.storage import KeyringSecretStorage, SecretStorage
from repolink.transport import HTTPTransport


class RepoLinkClient:
    """
    Main client for connecting to remote Git repositories.

    Example:
        ```python
        import asyncio
        from repolink import RepoLinkClient

        async def main():
            async with RepoLinkClient.from_env() as client:
                await client.auth.authenticate_with_secret("github", "ghp_...")
                repo = await client.repositories.connect(
                    "https://github.com/owner/docs", auth_method="pat"
                )
                tree = await client.repositories.fetch_tree(
                    repo.repository_id, markdown_only=True
                )
                readme = await client.repositories.fetch_file(
                    repo.repository_id, "README.md"
                )

        asyncio.run(main())
        ```
    """

    def __init__(
        self,
        config: ConnectorConfig | None = None,
        secret_storage: SecretStorage | None = None,
        clock: Clock | None = None,
        http_client: httpx.AsyncClient | None = None,
        open_external: Callable[[str], Any] | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Connector configuration (default: ConnectorConfig())
            secret_storage: Secret storage (default: OS keyring)
            clock: Time source (default: system clock)
            http_client: Pre-built httpx client, e.g. one using httpx.MockTransport
            open_external: Opens the device-flow verification URI (default: browser)
        """
        self.config = config or ConnectorConfig()
        self.secret_storage = secret_storage or KeyringSecretStorage()
        self.clock = clock or SystemClock()

        self.rate_governor = RateGovernor(self.config.retry, clock=self.clock)
        self.transport = HTTPTransport(
            timeout=self.config.timeout,
            user_agent=self.config.user_agent,
            rate_governor=self.rate_governor,
            clock=self.clock,
            client=http_client,
        )
        self.github = GitHubClient(
            self.transport,
            base_url=self.config.github.api_base_url,
            rate_governor=self.rate_governor,
        )
        self.cache = ContentCache(
            cache_dir=self.config.cache_dir,
            max_repository_bytes=self.config.max_repository_cache_bytes,
            max_total_bytes=self.config.max_total_cache_bytes,
            clock=self.clock,
        )
        self.auth = CredentialAuthenticator(
            self.transport,
            self.github,
            self.secret_storage,
            self.config,
            clock=self.clock,
            open_external=open_external,
        )
        self.connectivity = ConnectivityChecker(
            self.github,
            timeout=self.config.connectivity_timeout,
        )
        self.repositories = RepositoryOrchestrator(
            self.transport,
            self.github,
            self.secret_storage,
            self.config,
            cache=self.cache,
            clock=self.clock,
        )

    @classmethod
    def from_env(cls, secret_storage: SecretStorage | None = None) -> "RepoLinkClient":
        """
        Create a client configured from ``REPOLINK_*`` environment variables.

        See ConnectorConfig.from_env for the variables read.

        Raises:
            ConfigurationError: If an environment variable is invalid
        """
        return cls(config=ConnectorConfig.from_env(), secret_storage=secret_storage)

    async def load_cache(self) -> None:
        """Load the persisted cache index (no-op without a cache directory)."""
        await self.cache.load()

    async def aclose(self) -> None:
        """Close the client and release resources."""
        await self.transport.close()

    async def __aenter__(self) -> "RepoLinkClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit - closes the client."""
        await self.aclose()
