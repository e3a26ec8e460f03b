"""File and tree data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NodeType(str, Enum):
    """Kind of tree entry."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class TreeNode:
    """One entry of a repository tree snapshot."""

    path: str  # relative to the repository root
    type: NodeType
    size: int = 0
    sha: str = ""
    is_markdown: bool = False
    children: list["TreeNode"] | None = None  # directories only

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def is_directory(self) -> bool:
        return self.type is NodeType.DIRECTORY

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "type": self.type.value,
            "size": self.size,
            "sha": self.sha,
            "isMarkdown": self.is_markdown,
        }
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TreeNode":
        children = data.get("children")
        return cls(
            path=data["path"],
            type=NodeType(data["type"]),
            size=data.get("size", 0),
            sha=data.get("sha", ""),
            is_markdown=data.get("isMarkdown", False),
            children=[cls.from_dict(child) for child in children]
            if children is not None
            else None,
        )


@dataclass
class FileContent:
    """Decoded file content returned by the provider."""

    content: str
    sha: str
    size: int


@dataclass
class FetchFileResult:
    """Response from fetching a file through the orchestrator."""

    path: str
    content: str
    size: int
    sha: str  # empty for cache hits
    is_markdown: bool
    cached: bool
    fetched_at: float
    branch: str


@dataclass
class TreeResult:
    """Response from fetching a repository tree."""

    tree: list[TreeNode]
    file_count: int
    markdown_file_count: int
    branch: str
    fetched_at: float
    from_cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "tree": [node.to_dict() for node in self.tree],
            "fileCount": self.file_count,
            "markdownFileCount": self.markdown_file_count,
            "branch": self.branch,
            "fetchedAt": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], from_cache: bool = False) -> "TreeResult":
        return cls(
            tree=[TreeNode.from_dict(node) for node in data.get("tree", [])],
            file_count=data.get("fileCount", 0),
            markdown_file_count=data.get("markdownFileCount", 0),
            branch=data["branch"],
            fetched_at=data.get("fetchedAt", 0.0),
            from_cache=from_cache,
        )


def count_files(nodes: list[TreeNode]) -> tuple[int, int]:
    """Count file nodes and markdown file nodes in a hierarchy."""
    file_count = 0
    markdown_count = 0
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if node.type is NodeType.FILE:
            file_count += 1
            if node.is_markdown:
                markdown_count += 1
        if node.children:
            stack.extend(node.children)
    return file_count, markdown_count
