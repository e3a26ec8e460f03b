"""Repository-related data models."""

from dataclasses import dataclass, field
from enum import Enum

from repolink.urls import Provider


class AuthMethod(str, Enum):
    """How a repository connection authenticates."""

    OAUTH = "oauth"
    PAT = "pat"


@dataclass
class BranchInfo:
    """Branch name, head commit and default marker."""

    name: str
    sha: str
    is_default: bool = False


@dataclass
class Repository:
    """A connected repository, owned by the orchestrator for the session."""

    id: str
    provider: Provider
    url: str  # normalized
    raw_url: str
    owner: str
    name: str
    default_branch: str
    current_branch: str
    auth_method: AuthMethod
    created_at: float  # epoch seconds
    last_accessed: float
    is_online: bool = True

    @property
    def display_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class RepositoryMetadata:
    """Repository metadata as reported by the provider."""

    owner: str
    name: str
    default_branch: str
    private: bool = False
    description: str | None = None
    html_url: str | None = None


@dataclass
class ConnectResult:
    """Response from connecting to a repository."""

    repository_id: str
    url: str
    display_name: str
    default_branch: str
    current_branch: str
    branches: list[BranchInfo] = field(default_factory=list)
    provider: Provider = Provider.GITHUB


@dataclass
class RepositoryInfo:
    """Repository metadata fetched before connecting (branch selection)."""

    display_name: str
    default_branch: str
    branches: list[BranchInfo]
    provider: Provider


@dataclass
class ListBranchesResult:
    """Branches of a connected repository."""

    branches: list[BranchInfo]
    current_branch: str


@dataclass
class SwitchBranchResult:
    """Response from switching the current branch."""

    current_branch: str
    sha: str
    file_exists_on_new_branch: bool | None = None
