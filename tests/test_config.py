"""
Tests for connector configuration.

Feature: repolink
"""

from pathlib import Path

import pytest

from repolink.config import DEFAULT_GITHUB_CLIENT_ID, ConnectorConfig, ProviderSettings
from repolink.exceptions import ConfigurationError
from repolink.urls import Provider

ENV_VARS = [
    "REPOLINK_GITHUB_CLIENT_ID",
    "REPOLINK_GITHUB_API_URL",
    "REPOLINK_GITHUB_WEB_HOST",
    "REPOLINK_GITHUB_OAUTH_URL",
    "REPOLINK_TIMEOUT",
    "REPOLINK_CACHE_DIR",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults() -> None:
    config = ConnectorConfig()

    assert config.timeout == 30.0
    assert config.connectivity_timeout == 5.0
    assert config.user_agent == "RepoLink-Git-Client"
    assert config.retry.max_attempts == 5
    assert config.default_scopes == ("repo", "user:email")
    assert config.device_flow_grace_seconds == 300
    assert config.github.client_id == DEFAULT_GITHUB_CLIENT_ID
    assert config.github.device_code_url == "https://github.com/login/device/code"
    assert config.github.access_token_url == "https://github.com/login/oauth/access_token"


def test_from_env_defaults(clean_env) -> None:
    config = ConnectorConfig.from_env()

    assert config.github == ProviderSettings()
    assert config.timeout == 30.0
    assert config.cache_dir is None


def test_from_env_overrides(clean_env, tmp_path: Path) -> None:
    clean_env.setenv("REPOLINK_GITHUB_CLIENT_ID", "my-client")
    clean_env.setenv("REPOLINK_GITHUB_API_URL", "https://ghe.example/api/v3/")
    clean_env.setenv("REPOLINK_GITHUB_WEB_HOST", "ghe.example")
    clean_env.setenv("REPOLINK_GITHUB_OAUTH_URL", "https://ghe.example")
    clean_env.setenv("REPOLINK_TIMEOUT", "12.5")
    clean_env.setenv("REPOLINK_CACHE_DIR", str(tmp_path))

    config = ConnectorConfig.from_env()

    assert config.github.client_id == "my-client"
    assert config.github.api_base_url == "https://ghe.example/api/v3"
    assert config.github.web_host == "ghe.example"
    assert config.timeout == 12.5
    assert config.cache_dir == tmp_path


@pytest.mark.parametrize("value", ["soon", "0", "-3"])
def test_from_env_invalid_timeout(clean_env, value: str) -> None:
    clean_env.setenv("REPOLINK_TIMEOUT", value)

    with pytest.raises(ConfigurationError):
        ConnectorConfig.from_env()


def test_provider_settings_lookup() -> None:
    config = ConnectorConfig()

    assert config.provider_settings("github") is config.github
    assert config.provider_settings(Provider.GITHUB) is config.github
    assert config.providers == [config.github]


def test_matches_host() -> None:
    settings = ProviderSettings(
        web_host="provider.example",
        api_base_url="https://api.provider.example",
        oauth_base_url="https://login.provider.example",
    )

    assert settings.matches_host("provider.example")
    assert settings.matches_host("API.provider.example")
    assert settings.matches_host("login.provider.example")
    assert settings.matches_host("raw.githubusercontent.com")
    assert not settings.matches_host("gitlab.com")
