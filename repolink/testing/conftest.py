"""
Pytest plugin for RepoLink testing fixtures.

This module re-exports all fixtures from fixtures.py so they can be
automatically discovered by pytest when this package is installed.

To use these fixtures in your tests, add this to your conftest.py:

    pytest_plugins = ["repolink.testing.conftest"]

Or import the fixtures directly:

    from repolink.testing.fixtures import mock_api, repolink_client
"""

# Re-export all fixtures for pytest auto-discovery
from repolink.testing.fixtures import (
    connector_config,
    fake_clock,
    mock_api,
    repolink_client,
    secret_storage,
)

__all__ = [
    "mock_api",
    "fake_clock",
    "secret_storage",
    "connector_config",
    "repolink_client",
]
