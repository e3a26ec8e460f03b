"""
RepoLink configuration.

Configuration is plain dataclasses. ``ConnectorConfig.from_env`` builds one
from ``REPOLINK_*`` environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from repolink.exceptions import ConfigurationError
from repolink.rate_limit import RetryConfig
from repolink.urls import Provider

# Public OAuth App client id; only the client id is needed for the device flow.
DEFAULT_GITHUB_CLIENT_ID = "Ov23liWG79zW29xRrTPN"


@dataclass
class ProviderSettings:
    """Endpoints and OAuth client for one Git hosting provider."""

    provider: Provider = Provider.GITHUB
    web_host: str = "github.com"
    api_base_url: str = "https://api.github.com"
    oauth_base_url: str = "https://github.com"
    client_id: str = DEFAULT_GITHUB_CLIENT_ID

    def __post_init__(self) -> None:
        self.api_base_url = self.api_base_url.rstrip("/")
        self.oauth_base_url = self.oauth_base_url.rstrip("/")

    @property
    def api_host(self) -> str:
        return (urlparse(self.api_base_url).hostname or "").lower()

    @property
    def oauth_host(self) -> str:
        return (urlparse(self.oauth_base_url).hostname or "").lower()

    @property
    def device_code_url(self) -> str:
        return f"{self.oauth_base_url}/login/device/code"

    @property
    def access_token_url(self) -> str:
        return f"{self.oauth_base_url}/login/oauth/access_token"

    def matches_host(self, host: str) -> bool:
        """Check whether requests to ``host`` belong to this provider."""
        host = host.lower()
        return (
            host in {self.api_host, self.web_host.lower(), self.oauth_host}
            or self.provider.value in host
        )


@dataclass
class ConnectorConfig:
    """Top-level connector configuration."""

    github: ProviderSettings = field(default_factory=ProviderSettings)
    timeout: float = 30.0
    connectivity_timeout: float = 5.0
    user_agent: str = "RepoLink-Git-Client"
    retry: RetryConfig = field(default_factory=RetryConfig)
    cache_dir: Path | None = None
    max_repository_cache_bytes: int = 100 * 1024 * 1024
    max_total_cache_bytes: int = 5 * 1024 * 1024 * 1024
    device_flow_grace_seconds: float = 300.0
    default_scopes: tuple[str, ...] = ("repo", "user:email")

    @property
    def providers(self) -> list[ProviderSettings]:
        """All configured providers."""
        return [self.github]

    def provider_settings(self, provider: Provider | str) -> ProviderSettings:
        """Settings for one provider."""
        provider = Provider.parse(provider)
        match provider:
            case Provider.GITHUB:
                return self.github

    @classmethod
    def from_env(cls) -> "ConnectorConfig":
        """
        Create a configuration from environment variables.

        Environment variables (all optional):
            REPOLINK_GITHUB_CLIENT_ID: OAuth App client id for the device flow
            REPOLINK_GITHUB_API_URL: REST API base URL (GitHub Enterprise)
            REPOLINK_GITHUB_WEB_HOST: Host of repository web URLs
            REPOLINK_GITHUB_OAUTH_URL: Base URL of the OAuth endpoints
            REPOLINK_TIMEOUT: Request timeout in seconds
            REPOLINK_CACHE_DIR: Directory for persistent content cache

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        defaults = ProviderSettings()
        github = ProviderSettings(
            client_id=os.environ.get("REPOLINK_GITHUB_CLIENT_ID", defaults.client_id),
            api_base_url=os.environ.get("REPOLINK_GITHUB_API_URL", defaults.api_base_url),
            web_host=os.environ.get("REPOLINK_GITHUB_WEB_HOST", defaults.web_host),
            oauth_base_url=os.environ.get(
                "REPOLINK_GITHUB_OAUTH_URL", defaults.oauth_base_url
            ),
        )

        timeout_raw = os.environ.get("REPOLINK_TIMEOUT")
        timeout = cls.timeout
        if timeout_raw:
            try:
                timeout = float(timeout_raw)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid REPOLINK_TIMEOUT: {timeout_raw}. Must be a number of seconds"
                ) from None
            if timeout <= 0:
                raise ConfigurationError("REPOLINK_TIMEOUT must be positive")

        cache_dir_raw = os.environ.get("REPOLINK_CACHE_DIR")
        cache_dir = Path(cache_dir_raw).expanduser() if cache_dir_raw else None

        return cls(github=github, timeout=timeout, cache_dir=cache_dir)
