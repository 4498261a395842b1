"""Configuration model and settings loaders for cratekit.

Responsibilities:
- Define the configuration object graph commands populate before compiling arguments.
- Define file-system tunables and load them from YAML and environment sources.
- Resolve tunables with deterministic precedence: CLI > env > YAML > defaults.

Key types:
- `CrateConfiguration`: root configuration read by the argument compiler.
- `FileSystemSettings`: retry attempts and delay for `ResilientFileSystem`.
- `SettingsLoader`: static construction helpers for `FileSystemSettings`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import enum
import math
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .filesystem.retry import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_DELAY_SECONDS, RetryPolicy
from .parsing import normalize_optional_string


class SourceCommandType(enum.Enum):
    """Subcommands accepted by the `source` command."""

    LIST = "list"
    ADD = "add"
    REMOVE = "remove"
    ENABLE = "enable"
    DISABLE = "disable"


@dataclass(slots=True)
class ApiKeyCommandConfiguration:
    """Settings for API-key aware tool invocations.

    Attributes:
        key: API key passed to the wrapped tool.
        source: Source URL the key belongs to.
    """

    key: str = ""
    source: str = ""


@dataclass(slots=True)
class PackCommandConfiguration:
    """Settings for the `pack` command.

    Attributes:
        properties: Manifest replacement tokens passed as `key=value` pairs.
    """

    properties: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class SourceCommandConfiguration:
    """Settings for the `source` command.

    Attributes:
        command: Selected subcommand.
        name: Source name.
        username: Optional source user name.
        password: Optional source password.
        priority: Source priority (0 means unset).
    """

    command: SourceCommandType = SourceCommandType.LIST
    name: str = ""
    username: str = ""
    password: str = ""
    priority: int = 0


@dataclass(frozen=True, slots=True)
class FileSystemSettings:
    """Tunables for resilient file-system operations.

    Attributes:
        retry_attempts: Total attempts per mutating call, including the first.
        retry_delay_seconds: Fixed delay between attempts.
    """

    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS

    def validate(self) -> None:
        if isinstance(self.retry_attempts, bool) or self.retry_attempts < 1:
            raise ValueError("`retry_attempts` must be a positive integer.")
        if self.retry_delay_seconds < 0 or not math.isfinite(self.retry_delay_seconds):
            raise ValueError("`retry_delay_seconds` must be finite and not negative.")

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy described by these settings."""

        self.validate()
        return RetryPolicy(
            attempts=self.retry_attempts,
            delay_seconds=self.retry_delay_seconds,
        )


@dataclass(slots=True)
class CrateConfiguration:
    """Configuration object graph for one command invocation.

    Commands populate this before compiling arguments; the compiler only reads it.

    Attributes:
        command_name: Invoked command name.
        input: Positional input (for example a package manifest path).
        sources: Source location(s) for the wrapped tool.
        version: Package version override.
        output_directory: Directory for produced artifacts.
        verbose: Verbose tool output.
        debug: Debug tool output.
        prerelease: Include prerelease packages.
        force: Force the operation.
        noop: Dry-run mode.
        api_key_command: API-key related settings.
        pack_command: Pack-specific settings.
        source_command: Source-management settings.
        file_system: File-system tunables.
    """

    command_name: str = ""
    input: str = ""
    sources: str = ""
    version: str = ""
    output_directory: str = ""
    verbose: bool = False
    debug: bool = False
    prerelease: bool = False
    force: bool = False
    noop: bool = False
    api_key_command: ApiKeyCommandConfiguration = field(default_factory=ApiKeyCommandConfiguration)
    pack_command: PackCommandConfiguration = field(default_factory=PackCommandConfiguration)
    source_command: SourceCommandConfiguration = field(default_factory=SourceCommandConfiguration)
    file_system: FileSystemSettings = field(default_factory=FileSystemSettings)


class SettingsLoader:
    """Factory methods for creating `FileSystemSettings` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset({"retry_attempts", "retry_delay_seconds"})
    _ENV_ATTEMPTS = "CRATEKIT_RETRY_ATTEMPTS"
    _ENV_DELAY = "CRATEKIT_RETRY_DELAY_SECONDS"

    @staticmethod
    def from_yaml(path: Path) -> FileSystemSettings:
        """Create validated settings from a YAML file.

        The file may hold the keys at top level or under a `file_system` mapping.
        """

        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML `{path}` must contain a top-level mapping/object.")
        nested = payload.get("file_system")
        if isinstance(nested, Mapping):
            payload = nested
        return SettingsLoader.from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(
        env: Mapping[str, str] | None = None,
        base: FileSystemSettings | None = None,
    ) -> FileSystemSettings:
        """Create validated settings from environment variables over `base`."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        defaults = base or FileSystemSettings()

        attempts_raw = normalize_optional_string(env_map.get(SettingsLoader._ENV_ATTEMPTS))
        delay_raw = normalize_optional_string(env_map.get(SettingsLoader._ENV_DELAY))
        settings = FileSystemSettings(
            retry_attempts=(
                SettingsLoader._parse_positive_int(attempts_raw, f"Environment variable `{SettingsLoader._ENV_ATTEMPTS}`")
                if attempts_raw is not None
                else defaults.retry_attempts
            ),
            retry_delay_seconds=(
                SettingsLoader._parse_non_negative_float(delay_raw, f"Environment variable `{SettingsLoader._ENV_DELAY}`")
                if delay_raw is not None
                else defaults.retry_delay_seconds
            ),
        )
        settings.validate()
        return settings

    @staticmethod
    def from_mapping(payload: Mapping[str, Any], source_label: str) -> FileSystemSettings:
        """Create validated settings from a parsed mapping."""

        unknown = sorted(str(key) for key in payload if key not in SettingsLoader._SUPPORTED_YAML_KEYS)
        if unknown:
            supported = ", ".join(sorted(SettingsLoader._SUPPORTED_YAML_KEYS))
            raise ValueError(
                f"{source_label} has unsupported keys: {', '.join(unknown)}. Supported: {supported}."
            )

        defaults = FileSystemSettings()
        attempts = defaults.retry_attempts
        delay = defaults.retry_delay_seconds
        if payload.get("retry_attempts") is not None:
            attempts = SettingsLoader._parse_positive_int(
                payload["retry_attempts"], f"{source_label} field `retry_attempts`"
            )
        if payload.get("retry_delay_seconds") is not None:
            delay = SettingsLoader._parse_non_negative_float(
                payload["retry_delay_seconds"], f"{source_label} field `retry_delay_seconds`"
            )
        settings = FileSystemSettings(retry_attempts=attempts, retry_delay_seconds=delay)
        settings.validate()
        return settings

    @staticmethod
    def resolve(
        settings_path: Path | None = None,
        env: Mapping[str, str] | None = None,
        retry_attempts: int | None = None,
        retry_delay_seconds: float | None = None,
    ) -> FileSystemSettings:
        """Resolve settings with precedence CLI > env > YAML > defaults."""

        base = SettingsLoader.from_yaml(settings_path) if settings_path is not None else None
        settings = SettingsLoader.from_env(env, base)
        if retry_attempts is None and retry_delay_seconds is None:
            return settings
        resolved = FileSystemSettings(
            retry_attempts=settings.retry_attempts if retry_attempts is None else retry_attempts,
            retry_delay_seconds=(
                settings.retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
            ),
        )
        resolved.validate()
        return resolved

    @staticmethod
    def _parse_positive_int(value: object, label: str) -> int:
        if isinstance(value, bool):
            raise ValueError(f"{label} must be a positive integer.")
        try:
            parsed = int(str(value).strip()) if not isinstance(value, int) else value
        except ValueError as exc:
            raise ValueError(f"{label} must be a positive integer.") from exc
        if parsed <= 0:
            raise ValueError(f"{label} must be a positive integer.")
        return parsed

    @staticmethod
    def _parse_non_negative_float(value: object, label: str) -> float:
        if isinstance(value, bool):
            raise ValueError(f"{label} must be a finite non-negative number.")
        try:
            parsed = float(str(value).strip()) if not isinstance(value, (int, float)) else float(value)
        except ValueError as exc:
            raise ValueError(f"{label} must be a finite non-negative number.") from exc
        if parsed < 0 or not math.isfinite(parsed):
            raise ValueError(f"{label} must be a finite non-negative number.")
        return parsed
