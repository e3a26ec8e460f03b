"""Connectivity probe data models."""

from dataclasses import dataclass

from repolink.urls import Provider


@dataclass
class ConnectivityResult:
    """Reachability of one provider."""

    provider: Provider
    is_reachable: bool
    response_time_ms: float | None = None
    error: str | None = None
