"""GitHub REST v3 resource client.

One method per domain operation; each translates to a single provider call
(or a paginated series) and decodes the payload into neutral types.
"""

import base64
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import quote

from repolink.exceptions import NotFoundError, UnknownError
from repolink.logging import get_logger
from repolink.types.auth import GitUser
from repolink.types.files import FileContent, NodeType, TreeNode
from repolink.types.repos import BranchInfo, RepositoryMetadata
from repolink.urls import is_markdown_path

if TYPE_CHECKING:
    from repolink.rate_limit import RateGovernor
    from repolink.transport import HTTPTransport

T = TypeVar("T")

logger = get_logger("github")

_PAGE_SIZE = 100


def build_tree(
    entries: list[dict[str, Any]],
    markdown_only: bool = False,
) -> list[TreeNode]:
    """
    Rebuild a hierarchy from a flat recursive tree listing.

    Each entry is attached to its immediate parent directory when that
    parent has already been seen; otherwise it becomes a top-level node.
    With ``markdown_only``, non-markdown files are skipped while directories
    are always kept.

    Args:
        entries: Provider entries with ``path``, ``type`` ("blob"/"tree"), ``sha``, ``size``
        markdown_only: Drop non-markdown files

    Returns:
        Top-level nodes in listing order
    """
    roots: list[TreeNode] = []
    by_path: dict[str, TreeNode] = {}

    for item in entries:
        path = item["path"]
        is_directory = item.get("type") == "tree"
        is_markdown = not is_directory and is_markdown_path(path)

        if markdown_only and not is_directory and not is_markdown:
            continue

        node = TreeNode(
            path=path,
            type=NodeType.DIRECTORY if is_directory else NodeType.FILE,
            size=item.get("size") or 0,
            sha=item.get("sha", ""),
            is_markdown=is_markdown,
            children=[] if is_directory else None,
        )
        by_path[path] = node

        parent_path = path.rpartition("/")[0]
        parent = by_path.get(parent_path) if parent_path else None
        if parent is not None and parent.children is not None:
            parent.children.append(node)
        else:
            roots.append(node)

    return roots


class GitHubClient:
    """Client for GitHub repository operations."""

    def __init__(
        self,
        transport: "HTTPTransport",
        base_url: str = "https://api.github.com",
        rate_governor: "RateGovernor | None" = None,
    ) -> None:
        """
        Initialize the GitHub client.

        Args:
            transport: HTTP transport for making requests
            base_url: REST API base URL
            rate_governor: Wraps calls made with a resource key
        """
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.rate_governor = rate_governor

    def _repo_url(self, owner: str, name: str) -> str:
        return f"{self.base_url}/repos/{quote(owner, safe='')}/{quote(name, safe='')}"

    async def _governed(
        self,
        resource_key: str | None,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        if resource_key is None or self.rate_governor is None:
            return await operation()
        return await self.rate_governor.with_rate_limit(resource_key, operation)

    async def _get(
        self,
        url: str,
        resource_key: str | None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        async def call() -> Any:
            return await self.transport.get(url, params=params, resource_key=resource_key)

        return await self._governed(resource_key, call)

    async def list_branches(
        self,
        owner: str,
        name: str,
        resource_key: str | None = None,
    ) -> list[BranchInfo]:
        """
        List all branches in a repository.

        Args:
            owner: Repository owner/organization
            name: Repository name
            resource_key: Rate-limit resource (usually the repository id)

        Returns:
            Branches with ``is_default`` unset; the caller marks the default
        """
        branches: list[BranchInfo] = []
        page = 1
        while True:
            data = await self._get(
                f"{self._repo_url(owner, name)}/branches",
                resource_key,
                params={"per_page": _PAGE_SIZE, "page": page},
            )
            items = data or []
            branches.extend(
                BranchInfo(name=b["name"], sha=b.get("commit", {}).get("sha", ""))
                for b in items
            )
            if len(items) < _PAGE_SIZE:
                return branches
            page += 1

    async def get_repository(
        self,
        owner: str,
        name: str,
        resource_key: str | None = None,
    ) -> RepositoryMetadata:
        """Get repository metadata."""
        data = await self._get(self._repo_url(owner, name), resource_key)
        return RepositoryMetadata(
            owner=data.get("owner", {}).get("login", owner),
            name=data.get("name", name),
            default_branch=data["default_branch"],
            private=data.get("private", False),
            description=data.get("description"),
            html_url=data.get("html_url"),
        )

    async def get_default_branch(
        self,
        owner: str,
        name: str,
        resource_key: str | None = None,
    ) -> str:
        """Get the default branch name of a repository."""
        metadata = await self.get_repository(owner, name, resource_key)
        return metadata.default_branch

    async def get_file_content(
        self,
        owner: str,
        name: str,
        path: str,
        ref: str | None = None,
        resource_key: str | None = None,
    ) -> FileContent:
        """
        Get file content from a repository.

        Args:
            owner: Repository owner/organization
            name: Repository name
            path: File path relative to the repository root
            ref: Branch or commit sha (default branch when omitted)
            resource_key: Rate-limit resource

        Returns:
            FileContent with base64 payloads decoded as UTF-8
        """
        url = f"{self._repo_url(owner, name)}/contents/{quote(path.lstrip('/'))}"
        params = {"ref": ref} if ref else None
        data = await self._get(url, resource_key, params=params)

        if not isinstance(data, dict):
            # Directories come back as a list of entries
            raise UnknownError(f"Not a file: {path}")

        content = data.get("content") or ""
        if data.get("encoding") == "base64":
            content = base64.b64decode(content).decode("utf-8", errors="replace")

        return FileContent(
            content=content,
            sha=data.get("sha", ""),
            size=data.get("size", 0),
        )

    async def get_repository_tree(
        self,
        owner: str,
        name: str,
        branch: str = "main",
        markdown_only: bool = False,
        resource_key: str | None = None,
    ) -> list[TreeNode]:
        """
        Get the repository file tree (recursive).

        Args:
            owner: Repository owner/organization
            name: Repository name
            branch: Branch name
            markdown_only: Keep only markdown files (directories are always kept)
            resource_key: Rate-limit resource

        Returns:
            Top-level tree nodes with children populated
        """
        url = f"{self._repo_url(owner, name)}/git/trees/{quote(branch, safe='')}"
        data = await self._get(url, resource_key, params={"recursive": "1"})

        if data.get("truncated"):
            logger.warning(
                "Tree listing for %s/%s@%s was truncated by the provider",
                owner,
                name,
                branch,
            )

        return build_tree(data.get("tree", []), markdown_only=markdown_only)

    async def file_exists(
        self,
        owner: str,
        name: str,
        path: str,
        branch: str,
        resource_key: str | None = None,
    ) -> bool:
        """
        Check if a file exists at a path and branch.

        Returns:
            False on NotFound; every other failure is re-raised
        """
        url = f"{self._repo_url(owner, name)}/contents/{quote(path.lstrip('/'))}"
        try:
            await self._get(url, resource_key, params={"ref": branch})
        except NotFoundError:
            return False
        return True

    async def get_authenticated_user(
        self,
        token: str | None = None,
    ) -> tuple[GitUser, list[str] | None]:
        """
        Get the identity of the token owner.

        Args:
            token: Explicit bearer token; the token supplier is used when omitted

        Returns:
            The user and the granted OAuth scopes (None when not reported)
        """
        response = await self.transport.send("GET", f"{self.base_url}/user", token=token)
        data = response.body or {}

        scopes_header = response.headers.get("x-oauth-scopes")
        scopes = (
            [scope.strip() for scope in scopes_header.split(",") if scope.strip()]
            if scopes_header is not None
            else None
        )

        user = GitUser(
            username=data.get("login", ""),
            email=data.get("email"),
            avatar_url=data.get("avatar_url"),
        )
        return user, scopes

    async def check_repository_access(self, owner: str, name: str, token: str) -> None:
        """Probe a repository with an explicit token; raises on any failure."""
        await self.transport.send("GET", self._repo_url(owner, name), token=token)

    async def ping(self, timeout: float | None = None) -> None:
        """Unauthenticated lightweight request used for reachability checks."""
        await self.transport.send(
            "GET",
            f"{self.base_url}/zen",
            authenticate=False,
            timeout=timeout,
        )
