"""
Content cache for fetched files and tree snapshots.

Entries are keyed by (repository id, branch, path), never by content hash,
so moving a branch invalidates by key. Least-recently-accessed entries are
evicted when a per-repository or total size limit would be exceeded.
Optionally persists entries to a directory for offline access.
"""

import asyncio
import hashlib
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from repolink.clock import Clock, SystemClock
from repolink.exceptions import StorageError
from repolink.logging import get_logger

logger = get_logger("cache")

TREE_PATH = "__TREE__"
_METADATA_FILE = "metadata.json"


@dataclass
class CacheEntry:
    """Metadata of one cached blob."""

    key: str
    repository_id: str
    path: str
    branch: str
    size: int
    fetched_at: float
    last_accessed_at: float


@dataclass
class CacheHit:
    """Cached content and the time it was fetched from the provider."""

    content: str
    fetched_at: float


def cache_key(repository_id: str, branch: str, path: str) -> str:
    return json.dumps(["file", repository_id, branch, path])


def tree_key(repository_id: str, branch: str) -> str:
    return json.dumps(["tree", repository_id, branch])


def _blob_path(cache_dir: Path, key: str) -> Path:
    # Blob files are named by the sha256 of their key
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return cache_dir / "blobs" / digest[:2] / digest


def _write_blob(cache_dir: Path, key: str, content: str) -> None:
    target = _blob_path(cache_dir, key)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


def _delete_blob(cache_dir: Path, key: str) -> None:
    _blob_path(cache_dir, key).unlink(missing_ok=True)


def _read_metadata(cache_dir: Path) -> list[CacheEntry]:
    metadata_path = cache_dir / _METADATA_FILE
    if not metadata_path.exists():
        return []
    try:
        raw = json.loads(metadata_path.read_text(encoding="utf-8"))
        return [CacheEntry(**item) for item in raw.get("entries", [])]
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Ignoring unreadable cache metadata: %s", e)
        return []


def _write_metadata(cache_dir: Path, entries: list[dict[str, Any]]) -> None:
    cache_dir.mkdir(parents=True, exist_ok=True)
    (cache_dir / _METADATA_FILE).write_text(
        json.dumps({"entries": entries}),
        encoding="utf-8",
    )


class ContentCache:
    """LRU cache of file contents and tree snapshots."""

    def __init__(
        self,
        cache_dir: Path | None = None,
        max_repository_bytes: int = 100 * 1024 * 1024,
        max_total_bytes: int = 5 * 1024 * 1024 * 1024,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the cache.

        Args:
            cache_dir: Persist entries under this directory; memory only when None
            max_repository_bytes: Size limit per repository
            max_total_bytes: Size limit across all repositories
            clock: Time source for fetch/access timestamps
        """
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.max_repository_bytes = max_repository_bytes
        self.max_total_bytes = max_total_bytes
        self.clock = clock or SystemClock()

        self._entries: dict[str, CacheEntry] = {}
        self._blobs: dict[str, str] = {}
        self._total_size = 0
        self._repository_sizes: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        """Load persisted metadata; entries whose files are missing are dropped lazily."""
        if self.cache_dir is None:
            return
        async with self._lock:
            entries = await asyncio.to_thread(_read_metadata, self.cache_dir)
            self._entries = {entry.key: entry for entry in entries}
            self._recount()

    async def get(self, repository_id: str, path: str, branch: str) -> CacheHit | None:
        """Cached file content, or None on a miss."""
        return await self._get(cache_key(repository_id, branch, path))

    async def set(self, repository_id: str, path: str, branch: str, content: str) -> None:
        """Store file content."""
        await self._set(cache_key(repository_id, branch, path), repository_id, path, branch, content)

    async def get_tree(self, repository_id: str, branch: str) -> dict[str, Any] | None:
        """Cached tree snapshot (as a plain dict), or None on a miss."""
        key = tree_key(repository_id, branch)
        hit = await self._get(key)
        if hit is None:
            return None
        try:
            return json.loads(hit.content)
        except ValueError:
            logger.warning("Discarding corrupt tree cache for %s@%s", repository_id, branch)
            async with self._lock:
                await self._remove(key)
                await self._persist_metadata()
            return None

    async def set_tree(self, repository_id: str, branch: str, tree: dict[str, Any]) -> None:
        """Store a tree snapshot."""
        await self._set(
            tree_key(repository_id, branch), repository_id, TREE_PATH, branch, json.dumps(tree)
        )

    async def clear(self, repository_id: str, branch: str | None = None) -> None:
        """Remove a repository's entries, optionally only for one branch."""
        async with self._lock:
            doomed = [
                key
                for key, entry in self._entries.items()
                if entry.repository_id == repository_id
                and (branch is None or entry.branch == branch)
            ]
            for key in doomed:
                await self._remove(key)
            await self._persist_metadata()

    def stats(self) -> dict[str, Any]:
        """Cache statistics."""
        return {
            "totalSize": self._total_size,
            "totalEntries": len(self._entries),
            "repositorySizes": dict(self._repository_sizes),
        }

    async def _get(self, key: str) -> CacheHit | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            content = self._blobs.get(key)
            if content is None and self.cache_dir is not None:
                try:
                    content = await asyncio.to_thread(
                        _blob_path(self.cache_dir, key).read_text, "utf-8"
                    )
                except OSError:
                    content = None
            if content is None:
                await self._remove(key)
                return None

            entry.last_accessed_at = self.clock.now()
            return CacheHit(content=content, fetched_at=entry.fetched_at)

    async def _set(
        self, key: str, repository_id: str, path: str, branch: str, content: str
    ) -> None:
        size = len(content.encode("utf-8"))
        now = self.clock.now()

        async with self._lock:
            if key in self._entries:
                await self._remove(key)
            await self._ensure_space(repository_id, size)

            if self.cache_dir is not None:
                try:
                    await asyncio.to_thread(_write_blob, self.cache_dir, key, content)
                except OSError as e:
                    raise StorageError("Failed to write cache entry", details=str(e)) from e
            else:
                self._blobs[key] = content

            self._entries[key] = CacheEntry(
                key=key,
                repository_id=repository_id,
                path=path,
                branch=branch,
                size=size,
                fetched_at=now,
                last_accessed_at=now,
            )
            self._total_size += size
            self._repository_sizes[repository_id] = (
                self._repository_sizes.get(repository_id, 0) + size
            )
            await self._persist_metadata()

    async def _ensure_space(self, repository_id: str, needed: int) -> None:
        repo_size = self._repository_sizes.get(repository_id, 0)
        if repo_size + needed > self.max_repository_bytes:
            await self._evict_lru(repository_id, repo_size + needed - self.max_repository_bytes)
        if self._total_size + needed > self.max_total_bytes:
            await self._evict_lru(None, self._total_size + needed - self.max_total_bytes)

    async def _evict_lru(self, repository_id: str | None, bytes_to_free: int) -> None:
        candidates = sorted(
            (
                entry
                for entry in self._entries.values()
                if repository_id is None or entry.repository_id == repository_id
            ),
            key=lambda entry: entry.last_accessed_at,
        )
        freed = 0
        for entry in candidates:
            if freed >= bytes_to_free:
                break
            freed += entry.size
            await self._remove(entry.key)
        if freed:
            logger.debug("Evicted %d bytes from cache", freed)

    async def _remove(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        self._blobs.pop(key, None)
        if entry is None:
            return
        self._total_size -= entry.size
        self._repository_sizes[entry.repository_id] = (
            self._repository_sizes.get(entry.repository_id, 0) - entry.size
        )
        if self.cache_dir is not None:
            await asyncio.to_thread(_delete_blob, self.cache_dir, key)

    def _recount(self) -> None:
        self._total_size = sum(entry.size for entry in self._entries.values())
        self._repository_sizes = {}
        for entry in self._entries.values():
            self._repository_sizes[entry.repository_id] = (
                self._repository_sizes.get(entry.repository_id, 0) + entry.size
            )

    async def _persist_metadata(self) -> None:
        if self.cache_dir is None:
            return
        entries = [asdict(entry) for entry in self._entries.values()]
        try:
            await asyncio.to_thread(_write_metadata, self.cache_dir, entries)
        except OSError as e:
            raise StorageError("Failed to write cache metadata", details=str(e)) from e
