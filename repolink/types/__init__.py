"""RepoLink type definitions.

This module exports all data model types used by the connector.
"""

from repolink.types.auth import (
    DeviceFlowSession,
    DeviceFlowStart,
    DeviceFlowState,
    DeviceFlowStatus,
    GitUser,
    SecretAuthResult,
    SecretAuthState,
)
from repolink.types.connectivity import ConnectivityResult
from repolink.types.files import (
    FetchFileResult,
    FileContent,
    NodeType,
    TreeNode,
    TreeResult,
    count_files,
)
from repolink.types.repos import (
    AuthMethod,
    BranchInfo,
    ConnectResult,
    ListBranchesResult,
    Repository,
    RepositoryInfo,
    RepositoryMetadata,
    SwitchBranchResult,
)

__all__ = [
    # Repository types
    "AuthMethod",
    "BranchInfo",
    "Repository",
    "RepositoryMetadata",
    "ConnectResult",
    "RepositoryInfo",
    "ListBranchesResult",
    "SwitchBranchResult",
    # File and tree types
    "NodeType",
    "TreeNode",
    "FileContent",
    "FetchFileResult",
    "TreeResult",
    "count_files",
    # Authentication types
    "GitUser",
    "SecretAuthState",
    "SecretAuthResult",
    "DeviceFlowState",
    "DeviceFlowStart",
    "DeviceFlowStatus",
    "DeviceFlowSession",
    # Connectivity types
    "ConnectivityResult",
]
