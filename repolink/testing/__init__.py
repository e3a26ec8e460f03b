"""RepoLink testing utilities.

Provides a mock provider API, a virtual clock and fixtures for testing
applications that use RepoLink.
"""

from repolink.testing.fixtures import (
    create_branches_payload,
    create_file_payload,
    create_repository_payload,
    create_tree_payload,
    create_user_payload,
)
from repolink.testing.mock import FakeClock, MockCall, MockProviderAPI, MockResponse

__all__ = [
    # Mock API
    "MockProviderAPI",
    "MockCall",
    "MockResponse",
    "FakeClock",
    # Payload helpers
    "create_repository_payload",
    "create_branches_payload",
    "create_tree_payload",
    "create_file_payload",
    "create_user_payload",
]
