"""Remote API clients."""

from repolink.clients.github import GitHubClient, build_tree

__all__ = [
    "GitHubClient",
    "build_tree",
]
