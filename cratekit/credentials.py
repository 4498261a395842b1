"""Secure credential storage for package source passwords.

Responsibilities:
- Persist source passwords in an OS-backed secure credential store.
- Keep secrets out of the sources file and out of log output.

Key types:
- `CredentialStore`: interface for source credential persistence.
- `KeyringCredentialStore`: keyring-backed secure credential storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import keyring
from keyring.errors import NoKeyringError


_DEFAULT_SERVICE_NAME = "cratekit"


class CredentialStore:
    """Interface for secure source credential operations."""

    def get_password(self, source_name: str) -> str | None:
        """Load the stored password for a source, when present."""

        raise NotImplementedError

    def set_password(self, source_name: str, password: str) -> None:
        """Persist a password for a source."""

        raise NotImplementedError

    def clear_password(self, source_name: str) -> bool:
        """Delete a stored password and return whether one existed."""

        raise NotImplementedError


@dataclass(slots=True)
class KeyringCredentialStore(CredentialStore):
    """Secure credential store backed by the `keyring` package."""

    service_name: str = _DEFAULT_SERVICE_NAME
    backend: Any = field(default=keyring)

    def _account(self, source_name: str) -> str:
        normalized = source_name.strip().lower()
        if not normalized:
            raise ValueError("Source name must be a non-empty string.")
        return f"source:{normalized}"

    def get_password(self, source_name: str) -> str | None:
        """Get a stored password, returning `None` when missing or blank."""

        value = self.backend.get_password(self.service_name, self._account(source_name))
        if value is None or not value.strip():
            return None
        return value

    def set_password(self, source_name: str, password: str) -> None:
        """Persist a non-empty password for a source."""

        if not password:
            raise ValueError("Password must be a non-empty string.")
        self.backend.set_password(self.service_name, self._account(source_name), password)

    def clear_password(self, source_name: str) -> bool:
        """Remove a stored password and report if one was present.

        Without any keyring backend nothing can be stored, so there is nothing
        to clear.
        """

        try:
            stored = self.get_password(source_name)
        except NoKeyringError:
            return False
        if stored is None:
            return False
        self.backend.delete_password(self.service_name, self._account(source_name))
        return True


def create_credential_store() -> CredentialStore:
    """Create the default secure credential store implementation."""

    return KeyringCredentialStore()
