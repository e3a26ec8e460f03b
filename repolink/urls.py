"""Provider tags, repository URL normalization and parsing."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from repolink.exceptions import InvalidUrlError

if TYPE_CHECKING:
    from repolink.config import ProviderSettings


class Provider(str, Enum):
    """Supported Git hosting providers."""

    GITHUB = "github"

    @classmethod
    def parse(cls, value: "str | Provider") -> "Provider":
        """Coerce a provider tag, rejecting unsupported ones."""
        if isinstance(value, Provider):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidUrlError(
                f"Unsupported Git provider: {value}",
                details="Only GitHub is currently supported.",
            ) from None


_MARKDOWN_RE = re.compile(r"\.(md|markdown|mdown)$", re.IGNORECASE)


def is_markdown_path(path: str) -> bool:
    """Check whether a repository path names a markdown document."""
    return _MARKDOWN_RE.search(path) is not None


@dataclass(frozen=True)
class ParsedRepositoryUrl:
    """Provider, owner and name extracted from a repository URL."""

    provider: Provider
    owner: str
    name: str

    @property
    def display_name(self) -> str:
        return f"{self.owner}/{self.name}"


def normalize_repository_url(raw_url: str) -> str:
    """
    Normalize a repository URL.

    Trims whitespace, upgrades ``http://`` to ``https://``, removes trailing
    slashes and a ``.git`` suffix.

    Example:
        ``normalize_repository_url("http://github.com/user/repo.git/")``
        returns ``"https://github.com/user/repo"``.
    """
    normalized = raw_url.strip()

    if normalized.startswith("http://"):
        normalized = "https://" + normalized[len("http://"):]

    normalized = normalized.rstrip("/")

    if normalized.endswith(".git"):
        normalized = normalized[:-4]

    return normalized


def parse_repository_url(
    url: str,
    providers: "list[ProviderSettings]",
) -> ParsedRepositoryUrl:
    """
    Parse a repository URL into provider, owner and name.

    Args:
        url: Raw or normalized repository URL
        providers: Configured providers; the URL host must match one of their web hosts

    Returns:
        ParsedRepositoryUrl

    Raises:
        InvalidUrlError: If the URL is malformed or the host is not a supported provider
    """
    normalized = normalize_repository_url(url)
    parsed = urlparse(normalized)

    if parsed.scheme != "https" or not parsed.hostname:
        raise InvalidUrlError(f"Invalid repository URL: {url}")

    host = parsed.hostname.lower()
    for settings in providers:
        if host != settings.web_host.lower():
            continue
        parts = [part for part in parsed.path.split("/") if part]
        if len(parts) < 2:
            raise InvalidUrlError(
                f"Invalid {settings.provider.value} repository URL: {url}",
                details="Expected a URL of the form https://host/owner/name",
            )
        return ParsedRepositoryUrl(
            provider=settings.provider,
            owner=parts[0],
            name=parts[1].removesuffix(".git"),
        )

    raise InvalidUrlError(
        f"Unsupported Git provider: {host}",
        details="Only GitHub repositories are supported.",
    )
