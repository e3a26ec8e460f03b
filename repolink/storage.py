"""
Secret storage for provider tokens.

Every implementation stores at most one secret per provider and raises
``StorageError`` when the backing store fails.
"""

import asyncio
import json
import os
import threading
from pathlib import Path
from typing import Any, Protocol

import keyring
from cryptography.fernet import Fernet, InvalidToken
from keyring.errors import KeyringError, PasswordDeleteError

from repolink.exceptions import StorageError
from repolink.logging import get_logger

logger = get_logger("storage")

DEFAULT_SERVICE_NAME = "repolink"


class SecretStorage(Protocol):
    """Secret storage collaborator."""

    async def store_token(self, provider: str, secret: str) -> None:
        ...

    async def get_token(self, provider: str) -> str | None:
        ...

    async def delete_token(self, provider: str) -> None:
        ...


class InMemorySecretStorage:
    """Process-local secret storage."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._secrets: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    async def store_token(self, provider: str, secret: str) -> None:
        with self._lock:
            self._secrets[provider] = secret

    async def get_token(self, provider: str) -> str | None:
        with self._lock:
            return self._secrets.get(provider)

    async def delete_token(self, provider: str) -> None:
        with self._lock:
            self._secrets.pop(provider, None)


class KeyringSecretStorage:
    """
    Secret storage backed by the OS credential manager.

    Uses the ``keyring`` package (Keychain, Windows Credential Manager,
    Secret Service). Blocking keyring calls run in a worker thread.
    """

    def __init__(
        self,
        service_name: str = DEFAULT_SERVICE_NAME,
        keyring_module: Any = keyring,
    ) -> None:
        self.service_name = service_name
        self.keyring_module = keyring_module

    async def store_token(self, provider: str, secret: str) -> None:
        try:
            await asyncio.to_thread(
                self.keyring_module.set_password, self.service_name, provider, secret
            )
        except KeyringError as e:
            raise StorageError(
                "Failed to store authentication token securely",
                details=str(e),
            ) from e

    async def get_token(self, provider: str) -> str | None:
        try:
            return await asyncio.to_thread(
                self.keyring_module.get_password, self.service_name, provider
            )
        except KeyringError as e:
            raise StorageError("Failed to read authentication token", details=str(e)) from e

    async def delete_token(self, provider: str) -> None:
        try:
            await asyncio.to_thread(
                self.keyring_module.delete_password, self.service_name, provider
            )
        except PasswordDeleteError:
            # Nothing stored for this provider
            return
        except KeyringError as e:
            raise StorageError("Failed to delete authentication token", details=str(e)) from e


class EncryptedFileSecretStorage:
    """
    Secret storage in a Fernet-encrypted JSON file.

    Intended for machines without an OS keyring. The key lives next to the
    secrets file and both are created with owner-only permissions.
    """

    def __init__(self, path: Path, key_path: Path | None = None) -> None:
        self.path = Path(path)
        self.key_path = Path(key_path) if key_path else self.path.with_suffix(".key")
        self._lock = threading.Lock()

    def _fernet(self) -> Fernet:
        if not self.key_path.exists():
            self.key_path.parent.mkdir(parents=True, exist_ok=True)
            self.key_path.write_bytes(Fernet.generate_key())
            os.chmod(self.key_path, 0o600)
        return Fernet(self.key_path.read_bytes())

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        decrypted = self._fernet().decrypt(self.path.read_bytes())
        return json.loads(decrypted.decode("utf-8"))

    def _save(self, secrets: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        token = self._fernet().encrypt(json.dumps(secrets).encode("utf-8"))
        self.path.write_bytes(token)
        os.chmod(self.path, 0o600)

    def _update(self, provider: str, secret: str | None) -> None:
        with self._lock:
            secrets = self._load()
            if secret is None:
                secrets.pop(provider, None)
            else:
                secrets[provider] = secret
            self._save(secrets)

    def _read(self, provider: str) -> str | None:
        with self._lock:
            return self._load().get(provider)

    async def store_token(self, provider: str, secret: str) -> None:
        try:
            await asyncio.to_thread(self._update, provider, secret)
        except (OSError, InvalidToken, ValueError) as e:
            raise StorageError(
                "Failed to store authentication token securely",
                details=str(e),
            ) from e

    async def get_token(self, provider: str) -> str | None:
        try:
            return await asyncio.to_thread(self._read, provider)
        except (OSError, InvalidToken, ValueError) as e:
            raise StorageError("Failed to read authentication token", details=str(e)) from e

    async def delete_token(self, provider: str) -> None:
        try:
            await asyncio.to_thread(self._update, provider, None)
        except (OSError, InvalidToken, ValueError) as e:
            raise StorageError("Failed to delete authentication token", details=str(e)) from e


__all__ = [
    "SecretStorage",
    "InMemorySecretStorage",
    "KeyringSecretStorage",
    "EncryptedFileSecretStorage",
]
