"""
Repository orchestrator.

Owns connected repositories and the content cache, and supplies the bearer
token for every outbound request. All remote calls for a connected
repository are rate-governed under its repository id.
"""

import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from repolink.cache import ContentCache
from repolink.clock import Clock, SystemClock
from repolink.exceptions import (
    NotFoundError,
    RemoteFileNotFoundError,
    RepositoryNotFoundError,
    StorageError,
)
from repolink.logging import get_logger
from repolink.types.files import FetchFileResult, TreeResult, count_files
from repolink.types.repos import (
    AuthMethod,
    BranchInfo,
    ConnectResult,
    ListBranchesResult,
    Repository,
    RepositoryInfo,
    SwitchBranchResult,
)
from repolink.urls import (
    ParsedRepositoryUrl,
    is_markdown_path,
    normalize_repository_url,
    parse_repository_url,
)

if TYPE_CHECKING:
    from repolink.clients.github import GitHubClient
    from repolink.config import ConnectorConfig
    from repolink.storage import SecretStorage
    from repolink.transport import HTTPTransport

logger = get_logger("repositories")

FILE_MOVED_GUIDANCE = (
    "This file may have been moved, renamed, or deleted. "
    "Please refresh the file tree to see the latest files."
)


def _mark_default(branches: list[BranchInfo], default_branch: str) -> list[BranchInfo]:
    for branch in branches:
        branch.is_default = branch.name == default_branch
    return branches


class RepositoryOrchestrator:
    """Connects repositories and fetches their files and trees."""

    def __init__(
        self,
        transport: "HTTPTransport",
        github: "GitHubClient",
        secret_storage: "SecretStorage",
        config: "ConnectorConfig",
        cache: ContentCache | None = None,
        clock: Clock | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """
        Initialize the orchestrator and register it as the transport's token supplier.

        Args:
            transport: HTTP transport shared with the GitHub client
            github: GitHub client
            secret_storage: Where provider secrets are read from
            config: Connector configuration (provider hosts)
            cache: Content cache; an in-memory one is created when omitted
            clock: Time source for fetch and access timestamps
            id_factory: Generates repository ids
        """
        self.github = github
        self.secret_storage = secret_storage
        self.config = config
        self.clock = clock or SystemClock()
        self.cache = cache or ContentCache(clock=self.clock)
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))
        self._repositories: dict[str, Repository] = {}

        transport.set_token_provider(self)

    async def token_for(self, url: str) -> str | None:
        """Stored secret of the provider serving ``url``, or None."""
        host = urlparse(url).hostname
        if not host:
            return None
        for settings in self.config.providers:
            if not settings.matches_host(host):
                continue
            try:
                return await self.secret_storage.get_token(settings.provider.value)
            except Exception as e:
                logger.warning("Could not read token for %s: %s", settings.provider.value, e)
                return None
        return None

    def get_repository(self, repository_id: str) -> Repository | None:
        """Connected repository by id."""
        return self._repositories.get(repository_id)

    def list_repositories(self) -> list[Repository]:
        """All repositories connected in this session."""
        return list(self._repositories.values())

    def _require(self, repository_id: str) -> Repository:
        repository = self._repositories.get(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(f"Repository not found: {repository_id}")
        repository.last_accessed = self.clock.now()
        return repository

    async def _lookup_branches(
        self,
        parsed: ParsedRepositoryUrl,
        resource_key: str,
    ) -> tuple[str, list[BranchInfo]]:
        default_branch = await self.github.get_default_branch(
            parsed.owner, parsed.name, resource_key=resource_key
        )
        branches = await self.github.list_branches(
            parsed.owner, parsed.name, resource_key=resource_key
        )
        return default_branch, _mark_default(branches, default_branch)

    async def connect(
        self,
        url: str,
        auth_method: AuthMethod | str,
        initial_branch: str | None = None,
    ) -> ConnectResult:
        """
        Connect to a repository.

        Args:
            url: Repository URL (``https://host/owner/name``, optionally ``.git``)
            auth_method: How the stored secret was obtained
            initial_branch: Branch to start on; falls back to the default branch
                when it does not exist

        Returns:
            ConnectResult with the new repository id and its branches

        Raises:
            InvalidUrlError: If the URL is malformed or the host is unsupported
        """
        parsed = parse_repository_url(url, self.config.providers)
        repository_id = self._new_id()

        default_branch, branches = await self._lookup_branches(parsed, repository_id)

        current_branch = default_branch
        if initial_branch:
            if any(branch.name == initial_branch for branch in branches):
                current_branch = initial_branch
            else:
                logger.warning(
                    "Branch %s not found in %s, using default branch %s",
                    initial_branch,
                    parsed.display_name,
                    default_branch,
                )

        now = self.clock.now()
        repository = Repository(
            id=repository_id,
            provider=parsed.provider,
            url=normalize_repository_url(url),
            raw_url=url,
            owner=parsed.owner,
            name=parsed.name,
            default_branch=default_branch,
            current_branch=current_branch,
            auth_method=AuthMethod(auth_method),
            created_at=now,
            last_accessed=now,
        )
        self._repositories[repository_id] = repository
        logger.info("Connected to %s (%s)", repository.display_name, repository_id)

        return ConnectResult(
            repository_id=repository_id,
            url=repository.url,
            display_name=repository.display_name,
            default_branch=default_branch,
            current_branch=current_branch,
            branches=branches,
            provider=parsed.provider,
        )

    async def fetch_repository_info(
        self,
        url: str,
        auth_method: AuthMethod | str,
    ) -> RepositoryInfo:
        """Fetch default branch and branches without connecting."""
        parsed = parse_repository_url(url, self.config.providers)
        logger.debug(
            "Fetching repository info for %s (%s)",
            parsed.display_name,
            AuthMethod(auth_method).value,
        )
        resource_key = f"{parsed.provider.value}:{parsed.display_name}"
        default_branch, branches = await self._lookup_branches(parsed, resource_key)
        return RepositoryInfo(
            display_name=parsed.display_name,
            default_branch=default_branch,
            branches=branches,
            provider=parsed.provider,
        )

    async def fetch_file(
        self,
        repository_id: str,
        path: str,
        branch: str | None = None,
        force_refresh: bool = False,
    ) -> FetchFileResult:
        """
        Fetch a file, serving it from the cache unless ``force_refresh`` is set.

        Args:
            repository_id: Connected repository id
            path: File path relative to the repository root
            branch: Branch (default: the repository's current branch)
            force_refresh: Bypass the cache

        Returns:
            FetchFileResult; cache hits have ``cached=True`` and an empty sha

        Raises:
            RepositoryNotFoundError: If the repository is not connected
            RemoteFileNotFoundError: If the file does not exist on the branch
        """
        repository = self._require(repository_id)
        branch = branch or repository.current_branch
        is_markdown = is_markdown_path(path)

        if not force_refresh:
            hit = await self.cache.get(repository_id, path, branch)
            if hit is not None:
                logger.debug("Cache hit for %s@%s:%s", repository.display_name, branch, path)
                return FetchFileResult(
                    path=path,
                    content=hit.content,
                    size=len(hit.content.encode("utf-8")),
                    sha="",
                    is_markdown=is_markdown,
                    cached=True,
                    fetched_at=hit.fetched_at,
                    branch=branch,
                )

        try:
            file = await self.github.get_file_content(
                repository.owner,
                repository.name,
                path,
                ref=branch,
                resource_key=repository_id,
            )
        except NotFoundError as e:
            raise RemoteFileNotFoundError(
                f"File not found: {path}",
                status_code=404,
                details=FILE_MOVED_GUIDANCE,
            ) from e

        fetched_at = self.clock.now()
        try:
            await self.cache.set(repository_id, path, branch, file.content)
        except StorageError as e:
            logger.warning("Failed to cache %s: %s", path, e.message)

        return FetchFileResult(
            path=path,
            content=file.content,
            size=file.size,
            sha=file.sha,
            is_markdown=is_markdown,
            cached=False,
            fetched_at=fetched_at,
            branch=branch,
        )

    async def fetch_tree(
        self,
        repository_id: str,
        branch: str | None = None,
        markdown_only: bool = False,
    ) -> TreeResult:
        """
        Fetch the repository tree from the provider.

        The result is also written to the tree cache for offline use.

        Args:
            repository_id: Connected repository id
            branch: Branch (default: the repository's current branch)
            markdown_only: Keep only markdown files (directories are kept)

        Returns:
            TreeResult with file and markdown counts over the whole hierarchy
        """
        repository = self._require(repository_id)
        branch = branch or repository.current_branch

        tree = await self.github.get_repository_tree(
            repository.owner,
            repository.name,
            branch=branch,
            markdown_only=markdown_only,
            resource_key=repository_id,
        )
        file_count, markdown_count = count_files(tree)
        result = TreeResult(
            tree=tree,
            file_count=file_count,
            markdown_file_count=markdown_count,
            branch=branch,
            fetched_at=self.clock.now(),
        )

        try:
            await self.cache.set_tree(repository_id, branch, result.to_dict())
        except StorageError as e:
            logger.warning("Failed to cache tree of %s: %s", repository.display_name, e.message)

        return result

    async def get_cached_tree(
        self,
        repository_id: str,
        branch: str | None = None,
    ) -> TreeResult | None:
        """Last tree written to the cache, or None (unknown repository or miss)."""
        repository = self._repositories.get(repository_id)
        if repository is None:
            return None
        branch = branch or repository.current_branch

        data = await self.cache.get_tree(repository_id, branch)
        if data is None:
            return None
        try:
            return TreeResult.from_dict(data, from_cache=True)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed cached tree: %s", e)
            return None

    async def list_branches(self, repository_id: str) -> ListBranchesResult:
        """List branches of a connected repository."""
        repository = self._require(repository_id)
        branches = await self.github.list_branches(
            repository.owner, repository.name, resource_key=repository_id
        )
        return ListBranchesResult(
            branches=_mark_default(branches, repository.default_branch),
            current_branch=repository.current_branch,
        )

    async def switch_branch(
        self,
        repository_id: str,
        branch_name: str,
        preserve_file_path: str | None = None,
    ) -> SwitchBranchResult:
        """
        Make ``branch_name`` the repository's current branch.

        Args:
            repository_id: Connected repository id
            branch_name: Branch to switch to
            preserve_file_path: File the caller has open; reports whether it exists
                on the new branch

        Raises:
            NotFoundError: If the branch does not exist
        """
        repository = self._require(repository_id)
        branches = await self.github.list_branches(
            repository.owner, repository.name, resource_key=repository_id
        )
        target = next((branch for branch in branches if branch.name == branch_name), None)
        if target is None:
            raise NotFoundError(f"Branch not found: {branch_name}", status_code=404)

        repository.current_branch = branch_name

        file_exists = None
        if preserve_file_path:
            file_exists = await self.github.file_exists(
                repository.owner,
                repository.name,
                preserve_file_path,
                branch_name,
                resource_key=repository_id,
            )

        logger.info("Switched %s to branch %s", repository.display_name, branch_name)
        return SwitchBranchResult(
            current_branch=branch_name,
            sha=target.sha,
            file_exists_on_new_branch=file_exists,
        )

    async def clear_cache(self, repository_id: str, branch: str | None = None) -> None:
        """Drop cached files and trees of a repository (optionally one branch)."""
        await self.cache.clear(repository_id, branch)

