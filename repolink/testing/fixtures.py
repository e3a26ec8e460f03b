"""
Pytest fixtures for RepoLink testing.

Provides a mock provider API, a virtual clock, in-memory secret storage and
a fully wired RepoLinkClient, plus helpers that build GitHub-shaped payloads.
"""

import base64
from typing import Any, Generator

import pytest

from repolink.client import RepoLinkClient
from repolink.config import ConnectorConfig, ProviderSettings
from repolink.rate_limit import RetryConfig
from repolink.storage import InMemorySecretStorage
from repolink.testing.mock import FakeClock, MockProviderAPI


# ============================================================================
# Payload helpers
# ============================================================================


def create_repository_payload(
    owner: str = "acme",
    name: str = "docs",
    default_branch: str = "main",
    private: bool = False,
) -> dict[str, Any]:
    """GitHub ``GET /repos/{owner}/{name}`` response."""
    return {
        "name": name,
        "owner": {"login": owner},
        "default_branch": default_branch,
        "private": private,
        "description": None,
        "html_url": f"https://github.com/{owner}/{name}",
    }


def create_branches_payload(*names: str) -> list[dict[str, Any]]:
    """GitHub ``GET /repos/{owner}/{name}/branches`` response."""
    return [{"name": name, "commit": {"sha": f"sha-{name}"}} for name in names]


def create_tree_payload(*entries: tuple[str, str], truncated: bool = False) -> dict[str, Any]:
    """
    GitHub recursive tree response.

    Args:
        entries: (path, type) pairs where type is "blob" or "tree"
    """
    return {
        "sha": "tree-sha",
        "truncated": truncated,
        "tree": [
            {
                "path": path,
                "type": kind,
                "sha": f"sha-{path}",
                **({"size": len(path)} if kind == "blob" else {}),
            }
            for path, kind in entries
        ],
    }


def create_file_payload(path: str, content: str, sha: str = "file-sha") -> dict[str, Any]:
    """GitHub contents response with a base64 body."""
    encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
    return {
        "type": "file",
        "path": path,
        "name": path.rsplit("/", 1)[-1],
        "sha": sha,
        "size": len(content.encode("utf-8")),
        "encoding": "base64",
        "content": encoded,
    }


def create_user_payload(login: str = "octocat") -> dict[str, Any]:
    """GitHub ``GET /user`` response."""
    return {
        "login": login,
        "email": f"{login}@example.com",
        "avatar_url": f"https://avatars.example/{login}",
    }


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def mock_api() -> Generator[MockProviderAPI, None, None]:
    """
    Provide a MockProviderAPI for testing.

    Example:
        ```python
        def test_my_feature(mock_api, repolink_client):
            mock_api.on("GET", "/repos/acme/docs", json=create_repository_payload())
            ...
            assert mock_api.was_called("GET", "/repos/acme/docs")
        ```
    """
    api = MockProviderAPI()
    yield api
    api.reset()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a virtual clock."""
    return FakeClock()


@pytest.fixture
def secret_storage() -> InMemorySecretStorage:
    """Provide empty in-memory secret storage."""
    return InMemorySecretStorage()


@pytest.fixture
def connector_config() -> ConnectorConfig:
    """Provide a configuration for the ``provider.example`` test host."""
    return ConnectorConfig(
        github=ProviderSettings(
            web_host="provider.example",
            api_base_url="https://api.provider.example",
            oauth_base_url="https://provider.example",
            client_id="test-client-id",
        ),
        retry=RetryConfig(max_attempts=5, base_delay=1.0),
    )


@pytest.fixture
def repolink_client(
    mock_api: MockProviderAPI,
    fake_clock: FakeClock,
    secret_storage: InMemorySecretStorage,
    connector_config: ConnectorConfig,
) -> RepoLinkClient:
    """
    Provide a RepoLinkClient wired to the mock API and the virtual clock.

    The browser opener is replaced by one that reports success.
    """
    return RepoLinkClient(
        config=connector_config,
        secret_storage=secret_storage,
        clock=fake_clock,
        http_client=mock_api.client(),
        open_external=lambda uri: True,
    )
