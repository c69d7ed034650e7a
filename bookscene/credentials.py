"""Secure credential storage for provider API keys.

Responsibilities:
- Persist LLM and image provider API keys in the OS keyring.
- Report whether a usable keyring backend exists before reading or writing.
- Never log or echo secret values.

Key types:
- `CredentialStore`: interface for provider credential persistence.
- `KeyringCredentialStore`: `keyring`-backed implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

_DEFAULT_SERVICE_NAME = "bookscene"
CREDENTIAL_ACCOUNTS = {
    "llm_api_key": "llm_api_key",
    "image_api_key": "image_api_key",
}


class CredentialStore(Protocol):
    """Interface for secure provider credential operations."""

    def is_available(self) -> bool:
        """Return whether secure credential operations are available."""

    def get_api_key(self, key_name: str) -> str | None:
        """Load one stored API key, or `None` when missing."""

    def set_api_key(self, key_name: str, api_key: str) -> None:
        """Persist one API key."""

    def clear_api_key(self, key_name: str) -> bool:
        """Delete one stored API key and return whether it existed."""


@dataclass(slots=True)
class KeyringCredentialStore:
    """Secure credential store backed by the `keyring` package."""

    service_name: str = _DEFAULT_SERVICE_NAME

    def is_available(self) -> bool:
        """Return `False` when keyring resolved to its always-failing backend."""

        return not isinstance(keyring.get_keyring(), fail.Keyring)

    def get_api_key(self, key_name: str) -> str | None:
        """Return the normalized stored key, or `None` when missing or unavailable."""

        if not self.is_available():
            return None
        value = keyring.get_password(self.service_name, _account(key_name))
        if value is None or not value.strip():
            return None
        return value.strip()

    def set_api_key(self, key_name: str, api_key: str) -> None:
        """Persist a normalized API key or raise when secure storage is unavailable."""

        normalized = api_key.strip()
        if not normalized:
            raise ValueError("API key must be a non-empty string.")
        if not self.is_available():
            raise RuntimeError(
                "Secure credential storage is unavailable: no usable keyring backend."
            )
        try:
            keyring.set_password(self.service_name, _account(key_name), normalized)
        except KeyringError as exc:
            raise RuntimeError(f"Secure credential storage failed: {exc}") from exc

    def clear_api_key(self, key_name: str) -> bool:
        """Remove one stored key and report whether it was present."""

        if self.get_api_key(key_name) is None:
            return False
        try:
            keyring.delete_password(self.service_name, _account(key_name))
        except PasswordDeleteError:
            return False
        return True

    def load_all(self) -> dict[str, str]:
        """Return every stored key by config field name, for precedence resolution."""

        stored: dict[str, str] = {}
        for key_name in CREDENTIAL_ACCOUNTS:
            value = self.get_api_key(key_name)
            if value is not None:
                stored[key_name] = value
        return stored


def _account(key_name: str) -> str:
    account = CREDENTIAL_ACCOUNTS.get(key_name)
    if account is None:
        raise ValueError(f"Unknown credential `{key_name}`.")
    return account


def create_credential_store() -> KeyringCredentialStore:
    """Create the default secure credential store implementation."""

    return KeyringCredentialStore()
