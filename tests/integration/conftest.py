"""Integration-test fixtures isolating the CLI from the user's environment."""

from __future__ import annotations

from pathlib import Path

import pytest

from cratekit.credentials import KeyringCredentialStore


class InMemoryKeyring:
    """Keyring backend keeping secrets in a dictionary for the test's lifetime."""

    def __init__(self) -> None:
        self.storage: dict[tuple[str, str], str] = {}

    def get_password(self, service_name: str, account_name: str) -> str | None:
        return self.storage.get((service_name, account_name))

    def set_password(self, service_name: str, account_name: str, value: str) -> None:
        self.storage[(service_name, account_name)] = value

    def delete_password(self, service_name: str, account_name: str) -> None:
        self.storage.pop((service_name, account_name), None)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Point default settings at the test directory and clear retry overrides."""

    monkeypatch.setenv("CRATEKIT_SOURCES_FILE", str(tmp_path / "default-sources.yaml"))
    monkeypatch.delenv("CRATEKIT_RETRY_ATTEMPTS", raising=False)
    monkeypatch.delenv("CRATEKIT_RETRY_DELAY_SECONDS", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def keyring_backend(monkeypatch: pytest.MonkeyPatch) -> InMemoryKeyring:
    """Route CLI credential storage to an in-memory keyring."""

    backend = InMemoryKeyring()
    monkeypatch.setattr(
        "cratekit.cli.create_credential_store",
        lambda: KeyringCredentialStore(backend=backend),
    )
    return backend
