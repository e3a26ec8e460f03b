#!/usr/bin/env python3
"""
Basic RepoLink usage example.

Authenticates with a personal access token (or the device flow when no token
is set), connects to a repository and prints its markdown tree.

Run with: REPOLINK_TOKEN=ghp_... python examples/basic_usage.py https://github.com/owner/repo
"""

import asyncio
import logging
import os
import sys

from repolink import ConnectorError, InMemorySecretStorage, RepoLinkClient, configure_logging


def print_tree(nodes, indent: int = 0) -> None:
    for node in nodes:
        marker = "/" if node.is_directory else ""
        print(f"{'  ' * indent}{node.name}{marker}")
        if node.children:
            print_tree(node.children, indent + 1)


async def authenticate(client: RepoLinkClient) -> str:
    token = os.environ.get("REPOLINK_TOKEN")
    if token:
        result = await client.auth.authenticate_with_secret("github", token)
        print(f"Authenticated as {result.user.username} (scopes: {result.scopes})")
        return "pat"

    start = await client.auth.initiate_device_flow("github")
    print(f"Open {start.verification_uri} and enter the code {start.user_code}")

    interval = start.interval
    while True:
        await asyncio.sleep(interval)
        status = await client.auth.check_device_flow_status(start.session_id)
        if status.is_complete:
            if not status.is_success:
                raise SystemExit(f"Device flow ended: {status.error}")
            print(f"Authenticated as {status.user.username}")
            return "oauth"
        interval = status.interval or interval


async def main(url: str) -> None:
    configure_logging(level=logging.WARNING)

    async with RepoLinkClient.from_env(secret_storage=InMemorySecretStorage()) as client:
        reachable = await client.connectivity.check_provider_reachable("github")
        if not reachable.is_reachable:
            raise SystemExit(f"GitHub is unreachable: {reachable.error}")

        auth_method = await authenticate(client)

        repo = await client.repositories.connect(url, auth_method=auth_method)
        print(f"\nConnected to {repo.display_name} on {repo.current_branch}")
        print(f"Branches: {', '.join(branch.name for branch in repo.branches)}\n")

        tree = await client.repositories.fetch_tree(repo.repository_id, markdown_only=True)
        print_tree(tree.tree)
        print(f"\n{tree.markdown_file_count} markdown files")

        try:
            readme = await client.repositories.fetch_file(repo.repository_id, "README.md")
        except ConnectorError as e:
            print(f"\nNo README: {e.message}")
        else:
            print(f"\nREADME.md ({readme.size} bytes):\n{readme.content[:500]}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        raise SystemExit(__doc__)
    asyncio.run(main(sys.argv[1]))
