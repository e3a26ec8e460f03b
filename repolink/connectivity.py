"""Provider reachability checks."""

import asyncio
import time
from typing import TYPE_CHECKING

from repolink.exceptions import ConnectorError
from repolink.logging import get_logger
from repolink.types.connectivity import ConnectivityResult
from repolink.urls import Provider

if TYPE_CHECKING:
    from repolink.clients.github import GitHubClient

logger = get_logger("connectivity")


class ConnectivityChecker:
    """Probes providers with a lightweight unauthenticated request."""

    def __init__(self, github: "GitHubClient", timeout: float = 5.0) -> None:
        self.github = github
        self.timeout = timeout

    async def check_provider_reachable(self, provider: Provider | str) -> ConnectivityResult:
        """
        Check whether a provider's API answers.

        Args:
            provider: Provider tag

        Returns:
            ConnectivityResult; failures are reported, never raised
        """
        provider = Provider.parse(provider)
        started = time.monotonic()
        try:
            match provider:
                case Provider.GITHUB:
                    await self.github.ping(timeout=self.timeout)
        except ConnectorError as e:
            logger.info("%s is unreachable: %s", provider.value, e.message)
            return ConnectivityResult(provider=provider, is_reachable=False, error=e.message)

        return ConnectivityResult(
            provider=provider,
            is_reachable=True,
            response_time_ms=(time.monotonic() - started) * 1000,
        )

    async def check_all(self) -> dict[Provider, ConnectivityResult]:
        """Check every supported provider concurrently."""
        providers = list(Provider)
        results = await asyncio.gather(
            *(self.check_provider_reachable(provider) for provider in providers)
        )
        return dict(zip(providers, results))
