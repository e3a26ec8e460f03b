"""Shared pytest configuration."""

pytest_plugins = ["repolink.testing.conftest"]
