"""
Tests for the repository orchestrator.

Feature: repolink
"""

import pytest

from repolink.cache import ContentCache
from repolink.exceptions import (
    InvalidUrlError,
    NotFoundError,
    RemoteFileNotFoundError,
    RepositoryNotFoundError,
    StorageError,
)
from repolink.orchestrator import FILE_MOVED_GUIDANCE
from repolink.testing import (
    MockProviderAPI,
    create_branches_payload,
    create_file_payload,
    create_repository_payload,
    create_tree_payload,
)
from repolink.types import AuthMethod

REPO_URL = "https://provider.example/acme/docs"


def route_repository(api: MockProviderAPI, default_branch: str = "main") -> None:
    api.on("GET", "/repos/acme/docs", json=create_repository_payload(default_branch=default_branch))
    api.on("GET", "/repos/acme/docs/branches", json=create_branches_payload("main", "dev"))


class FailingCache(ContentCache):
    async def set(self, repository_id, path, branch, content) -> None:
        raise StorageError("disk full")

    async def set_tree(self, repository_id, branch, tree) -> None:
        raise StorageError("disk full")


# ============================================================================
# connect / fetch_repository_info
# ============================================================================


@pytest.mark.asyncio
async def test_connect_uses_default_branch(repolink_client, mock_api) -> None:
    route_repository(mock_api)

    result = await repolink_client.repositories.connect(REPO_URL, AuthMethod.PAT)

    assert result.default_branch == "main"
    assert result.current_branch == "main"
    assert result.display_name == "acme/docs"
    assert result.url == REPO_URL
    assert [branch.name for branch in result.branches if branch.is_default] == ["main"]

    repository = repolink_client.repositories.get_repository(result.repository_id)
    assert repository is not None
    assert repository.current_branch == "main"
    assert repolink_client.repositories.list_repositories() == [repository]


@pytest.mark.asyncio
async def test_connect_with_initial_branch(repolink_client, mock_api) -> None:
    route_repository(mock_api)

    result = await repolink_client.repositories.connect(
        REPO_URL + ".git", "oauth", initial_branch="dev"
    )

    assert result.current_branch == "dev"
    assert result.default_branch == "main"
    assert result.url == REPO_URL


@pytest.mark.asyncio
async def test_connect_unknown_initial_branch_falls_back(repolink_client, mock_api) -> None:
    route_repository(mock_api)

    result = await repolink_client.repositories.connect(
        REPO_URL, "pat", initial_branch="does-not-exist"
    )

    assert result.current_branch == "main"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url",
    ["https://elsewhere.example/acme/docs", "https://provider.example/acme", "not a url"],
)
async def test_connect_rejects_invalid_urls(repolink_client, mock_api, url: str) -> None:
    with pytest.raises(InvalidUrlError):
        await repolink_client.repositories.connect(url, "pat")

    assert mock_api.get_calls() == []


@pytest.mark.asyncio
async def test_connect_sends_stored_token(repolink_client, mock_api, secret_storage) -> None:
    await secret_storage.store_token("github", "ghp_stored")
    route_repository(mock_api)

    await repolink_client.repositories.connect(REPO_URL, "pat")

    assert all(call.authorization == "Bearer ghp_stored" for call in mock_api.get_calls())


@pytest.mark.asyncio
async def test_fetch_repository_info_does_not_register(repolink_client, mock_api) -> None:
    route_repository(mock_api, default_branch="dev")

    info = await repolink_client.repositories.fetch_repository_info(REPO_URL, "pat")

    assert info.display_name == "acme/docs"
    assert info.default_branch == "dev"
    assert [branch.name for branch in info.branches if branch.is_default] == ["dev"]
    assert repolink_client.repositories.list_repositories() == []


# ============================================================================
# fetch_file
# ============================================================================


@pytest.mark.asyncio
async def test_second_fetch_is_served_from_cache(repolink_client, mock_api, fake_clock) -> None:
    route_repository(mock_api)
    mock_api.on(
        "GET",
        "/repos/acme/docs/contents/docs/b.md",
        json=create_file_payload("docs/b.md", "# B\n", sha="sha-b"),
    )
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    first = await repolink_client.repositories.fetch_file(repo.repository_id, "docs/b.md")
    fake_clock.advance(60)
    second = await repolink_client.repositories.fetch_file(repo.repository_id, "docs/b.md")

    assert first.cached is False
    assert first.sha == "sha-b"
    assert first.is_markdown is True
    assert first.branch == "main"
    assert second.cached is True
    assert second.content == first.content
    assert second.sha == ""
    assert second.size == len("# B\n".encode("utf-8"))
    assert second.fetched_at == first.fetched_at
    assert mock_api.call_count("GET", "/repos/acme/docs/contents/docs/b.md") == 1


@pytest.mark.asyncio
async def test_force_refresh_bypasses_cache(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    mock_api.on("GET", "/repos/acme/docs/contents/a.md", json=create_file_payload("a.md", "v1"))
    mock_api.on("GET", "/repos/acme/docs/contents/a.md", json=create_file_payload("a.md", "v2"))
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    await repolink_client.repositories.fetch_file(repo.repository_id, "a.md")
    refreshed = await repolink_client.repositories.fetch_file(
        repo.repository_id, "a.md", force_refresh=True
    )
    cached = await repolink_client.repositories.fetch_file(repo.repository_id, "a.md")

    assert refreshed.cached is False
    assert refreshed.content == "v2"
    assert cached.cached is True
    assert cached.content == "v2"


@pytest.mark.asyncio
async def test_cache_is_keyed_by_branch(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    mock_api.on("GET", "/repos/acme/docs/contents/a.md", json=create_file_payload("a.md", "x"))
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    await repolink_client.repositories.fetch_file(repo.repository_id, "a.md", branch="main")
    other = await repolink_client.repositories.fetch_file(repo.repository_id, "a.md", branch="dev")

    assert other.cached is False
    assert mock_api.call_count("GET", "/repos/acme/docs/contents/a.md") == 2


@pytest.mark.asyncio
async def test_branch_names_with_slashes_are_cached_apart(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    mock_api.on(
        "GET",
        "/repos/acme/docs/contents/x/a.md",
        json=create_file_payload("x/a.md", "FROM feature"),
    )
    mock_api.on(
        "GET",
        "/repos/acme/docs/contents/a.md",
        json=create_file_payload("a.md", "FROM feature/x"),
    )
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    await repolink_client.repositories.fetch_file(repo.repository_id, "x/a.md", branch="feature")
    second = await repolink_client.repositories.fetch_file(
        repo.repository_id, "a.md", branch="feature/x"
    )

    assert second.cached is False
    assert second.content == "FROM feature/x"
    assert mock_api.call_count("GET", "/repos/acme/docs/contents/a.md") == 1


@pytest.mark.asyncio
async def test_missing_file_has_guidance(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    with pytest.raises(RemoteFileNotFoundError) as exc_info:
        await repolink_client.repositories.fetch_file(repo.repository_id, "gone.md")

    assert exc_info.value.code == "FILE_NOT_FOUND"
    assert exc_info.value.details == FILE_MOVED_GUIDANCE


@pytest.mark.asyncio
async def test_unknown_repository(repolink_client) -> None:
    with pytest.raises(RepositoryNotFoundError):
        await repolink_client.repositories.fetch_file("no-such-id", "a.md")


@pytest.mark.asyncio
async def test_cache_write_failure_is_not_raised(repolink_client, mock_api, fake_clock) -> None:
    route_repository(mock_api)
    mock_api.on("GET", "/repos/acme/docs/contents/a.md", json=create_file_payload("a.md", "x"))
    mock_api.on(
        "GET",
        "/repos/acme/docs/git/trees/main",
        json=create_tree_payload(("a.md", "blob")),
    )
    repolink_client.repositories.cache = FailingCache(clock=fake_clock)
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    result = await repolink_client.repositories.fetch_file(repo.repository_id, "a.md")
    tree = await repolink_client.repositories.fetch_tree(repo.repository_id)

    assert result.content == "x"
    assert tree.file_count == 1


# ============================================================================
# Trees
# ============================================================================


@pytest.mark.asyncio
async def test_fetch_tree_counts_and_caches(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    mock_api.on(
        "GET",
        "/repos/acme/docs/git/trees/main",
        json=create_tree_payload(
            ("a.md", "blob"), ("docs", "tree"), ("docs/b.md", "blob"), ("logo.png", "blob")
        ),
    )
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    tree = await repolink_client.repositories.fetch_tree(repo.repository_id, markdown_only=True)

    assert [node.path for node in tree.tree] == ["a.md", "docs"]
    assert [child.path for child in tree.tree[1].children] == ["docs/b.md"]
    assert (tree.file_count, tree.markdown_file_count) == (2, 2)
    assert tree.from_cache is False
    assert tree.branch == "main"

    cached = await repolink_client.repositories.get_cached_tree(repo.repository_id)
    assert cached is not None
    assert cached.from_cache is True
    assert cached.tree == tree.tree
    assert (cached.file_count, cached.markdown_file_count) == (2, 2)


@pytest.mark.asyncio
async def test_get_cached_tree_misses(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    assert await repolink_client.repositories.get_cached_tree(repo.repository_id) is None
    assert await repolink_client.repositories.get_cached_tree("no-such-id") is None


@pytest.mark.asyncio
async def test_clear_cache(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    mock_api.on("GET", "/repos/acme/docs/contents/a.md", json=create_file_payload("a.md", "x"))
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")
    await repolink_client.repositories.fetch_file(repo.repository_id, "a.md")

    await repolink_client.repositories.clear_cache(repo.repository_id)
    again = await repolink_client.repositories.fetch_file(repo.repository_id, "a.md")

    assert again.cached is False


# ============================================================================
# Branches
# ============================================================================


@pytest.mark.asyncio
async def test_list_branches(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    repo = await repolink_client.repositories.connect(REPO_URL, "pat", initial_branch="dev")

    result = await repolink_client.repositories.list_branches(repo.repository_id)

    assert result.current_branch == "dev"
    assert {branch.name: branch.is_default for branch in result.branches} == {
        "main": True,
        "dev": False,
    }


@pytest.mark.asyncio
async def test_switch_branch(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    mock_api.on("GET", "/repos/acme/docs/contents/a.md", json=create_file_payload("a.md", "x"))
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    result = await repolink_client.repositories.switch_branch(
        repo.repository_id, "dev", preserve_file_path="a.md"
    )

    assert result.current_branch == "dev"
    assert result.sha == "sha-dev"
    assert result.file_exists_on_new_branch is True
    assert mock_api.get_calls("GET", "/repos/acme/docs/contents/a.md")[0].params == {"ref": "dev"}
    assert repolink_client.repositories.get_repository(repo.repository_id).current_branch == "dev"


@pytest.mark.asyncio
async def test_switch_to_unknown_branch(repolink_client, mock_api) -> None:
    route_repository(mock_api)
    repo = await repolink_client.repositories.connect(REPO_URL, "pat")

    with pytest.raises(NotFoundError):
        await repolink_client.repositories.switch_branch(repo.repository_id, "nope")

    assert repolink_client.repositories.get_repository(repo.repository_id).current_branch == "main"


# ============================================================================
# Token supplier
# ============================================================================


@pytest.mark.asyncio
async def test_token_for_matches_provider_hosts(repolink_client, secret_storage) -> None:
    await secret_storage.store_token("github", "ghp_stored")
    orchestrator = repolink_client.repositories

    assert await orchestrator.token_for("https://api.provider.example/user") == "ghp_stored"
    assert await orchestrator.token_for("https://provider.example/acme/docs") == "ghp_stored"
    assert await orchestrator.token_for("https://api.github.com/user") == "ghp_stored"
    assert await orchestrator.token_for("https://elsewhere.example/x") is None


@pytest.mark.asyncio
async def test_token_for_without_stored_secret(repolink_client) -> None:
    assert await repolink_client.repositories.token_for("https://api.provider.example/") is None
