"""`source` command: manage package sources.

Responsibilities:
- Parse the subcommand (`list`, `add`, `remove`, `enable`, `disable`).
- Validate that the selected subcommand has the options it needs.
- Dispatch to a `SourceService`; `FileSourceService` keeps sources in a YAML
  file written through `ResilientFileSystem` and passwords in the credential store.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Protocol

import yaml

from ..config import CrateConfiguration, SourceCommandType
from ..credentials import CredentialStore
from ..errors import CommandError
from ..filesystem.options import FileOperationOptions
from ..filesystem.resilient import ResilientFileSystem
from ..telemetry.logger import OperationLogger


_SOURCE_ENTRY_KEYS = frozenset({"name", "value", "username", "priority", "disabled"})


@dataclass(slots=True)
class SourceEntry:
    """One configured package source.

    Attributes:
        name: Unique source name (compared case-insensitively).
        value: Source location (URL or directory).
        username: Optional user name.
        priority: Source priority (0 means unset).
        disabled: Whether the source is skipped by package operations.
    """

    name: str
    value: str
    username: str = ""
    priority: int = 0
    disabled: bool = False


class SourceService(Protocol):
    """Operations the `source` command dispatches to."""

    def list_sources(self, configuration: CrateConfiguration) -> list[SourceEntry]: ...

    def add_source(self, configuration: CrateConfiguration) -> None: ...

    def remove_source(self, configuration: CrateConfiguration) -> None: ...

    def enable_source(self, configuration: CrateConfiguration) -> None: ...

    def disable_source(self, configuration: CrateConfiguration) -> None: ...

    def dry_run(self, configuration: CrateConfiguration) -> None: ...


class SourceCommand:
    """Parse, validate and dispatch `source` subcommands."""

    command_names = ("source", "sources")

    def __init__(self, service: SourceService) -> None:
        self.service = service

    def parse_additional_arguments(
        self,
        unparsed_arguments: list[str],
        configuration: CrateConfiguration,
    ) -> None:
        """Select the subcommand from the single positional argument.

        Unknown or blank values select `list`.
        """

        if len(unparsed_arguments) > 1:
            raise CommandError(
                "A single sources command must be listed. Please see the help menu for those commands",
                command="source",
            )

        token = unparsed_arguments[0].strip().lower() if unparsed_arguments else ""
        try:
            configuration.source_command.command = SourceCommandType(token)
        except ValueError:
            configuration.source_command.command = SourceCommandType.LIST

    def validate(self, configuration: CrateConfiguration) -> None:
        """Require `--name` for every non-list subcommand and `--source` for `add`."""

        subcommand = configuration.source_command.command
        if subcommand is SourceCommandType.LIST:
            return
        if not configuration.source_command.name.strip():
            raise CommandError(
                f"When specifying the subcommand '{subcommand.value}', you must also specify --name.",
                command="source",
            )
        if subcommand is SourceCommandType.ADD and not configuration.sources.strip():
            raise CommandError(
                f"When specifying the subcommand '{subcommand.value}', you must also specify --source.",
                command="source",
            )

    def dry_run(self, configuration: CrateConfiguration) -> None:
        self.service.dry_run(configuration)

    def run(self, configuration: CrateConfiguration) -> list[SourceEntry] | None:
        """Dispatch the selected subcommand; `list` returns the configured sources."""

        subcommand = configuration.source_command.command
        if subcommand is SourceCommandType.LIST:
            return self.service.list_sources(configuration)

        handlers: dict[SourceCommandType, Callable[[CrateConfiguration], None]] = {
            SourceCommandType.ADD: self.service.add_source,
            SourceCommandType.REMOVE: self.service.remove_source,
            SourceCommandType.ENABLE: self.service.enable_source,
            SourceCommandType.DISABLE: self.service.disable_source,
        }
        handlers[subcommand](configuration)
        return None

    def list_sources(self, configuration: CrateConfiguration) -> list[SourceEntry]:
        return self.service.list_sources(configuration)


class FileSourceService:
    """Source service backed by a YAML sources file."""

    def __init__(
        self,
        file_system: ResilientFileSystem,
        sources_file: Path,
        credentials: CredentialStore | None = None,
        logger: OperationLogger | None = None,
        options: FileOperationOptions | None = None,
    ) -> None:
        self.file_system = file_system
        self.sources_file = sources_file
        self.credentials = credentials
        self.logger = logger or file_system.logger
        self.options = options or FileOperationOptions()

    def load(self) -> list[SourceEntry]:
        """Load configured sources; a missing file means no sources."""

        if not self.file_system.file_exists(self.sources_file):
            return []
        payload = yaml.safe_load(self.file_system.read_file(self.sources_file))
        if payload is None:
            return []
        raw_sources = payload.get("sources") if isinstance(payload, dict) else None
        if not isinstance(raw_sources, list):
            raise ValueError(f"Sources file `{self.sources_file}` must contain a `sources` list.")
        return [self._parse_entry(item, index) for index, item in enumerate(raw_sources)]

    def save(self, entries: list[SourceEntry]) -> None:
        payload = {"sources": [asdict(entry) for entry in entries]}
        self.file_system.write_file(
            self.sources_file,
            yaml.safe_dump(payload, sort_keys=True),
            options=self.options,
        )

    def list_sources(self, configuration: CrateConfiguration) -> list[SourceEntry]:
        return self.load()

    def add_source(self, configuration: CrateConfiguration) -> None:
        """Add a source, or update it in place when the name already exists."""

        settings = configuration.source_command
        entries = self.load()
        entry = SourceEntry(
            name=settings.name,
            value=configuration.sources,
            username=settings.username,
            priority=settings.priority,
        )
        existing = self._find(entries, settings.name)
        if existing is None:
            entries.append(entry)
        else:
            entries[entries.index(existing)] = entry
        self.save(entries)

        if settings.password and self.credentials is not None:
            self.credentials.set_password(settings.name, settings.password)
        self.logger.log_command("source", "added", name=settings.name)

    def remove_source(self, configuration: CrateConfiguration) -> None:
        name = configuration.source_command.name
        entries = self.load()
        existing = self._find(entries, name)
        if existing is None:
            self.logger.log_command("source", "missing", name=name)
            return
        entries.remove(existing)
        self.save(entries)
        if self.credentials is not None:
            self.credentials.clear_password(name)
        self.logger.log_command("source", "removed", name=name)

    def enable_source(self, configuration: CrateConfiguration) -> None:
        self._set_disabled(configuration.source_command.name, False)

    def disable_source(self, configuration: CrateConfiguration) -> None:
        self._set_disabled(configuration.source_command.name, True)

    def dry_run(self, configuration: CrateConfiguration) -> None:
        self.logger.log_command(
            "source",
            "dry_run",
            subcommand=configuration.source_command.command.value,
            name=configuration.source_command.name,
        )

    def _set_disabled(self, name: str, disabled: bool) -> None:
        entries = self.load()
        existing = self._find(entries, name)
        if existing is None:
            raise CommandError(
                f"Source `{name}` is not configured.",
                command="source",
                hint="Run `cratekit source list` to see configured sources.",
            )
        if existing.disabled != disabled:
            existing.disabled = disabled
            self.save(entries)
        self.logger.log_command("source", "disabled" if disabled else "enabled", name=name)

    def _parse_entry(self, item: object, index: int) -> SourceEntry:
        label = f"Sources file `{self.sources_file}` entry {index}"
        if not isinstance(item, dict):
            raise ValueError(f"{label} must be a mapping/object.")
        unknown = sorted(str(key) for key in item if key not in _SOURCE_ENTRY_KEYS)
        if unknown:
            supported = ", ".join(sorted(_SOURCE_ENTRY_KEYS))
            raise ValueError(f"{label} has unsupported keys: {', '.join(unknown)}. Supported: {supported}.")
        missing = [key for key in ("name", "value") if not str(item.get(key) or "").strip()]
        if missing:
            raise ValueError(f"{label} is missing required keys: {', '.join(missing)}.")
        return SourceEntry(**item)

    @staticmethod
    def _find(entries: list[SourceEntry], name: str) -> SourceEntry | None:
        folded = name.strip().casefold()
        for entry in entries:
            if entry.name.casefold() == folded:
                return entry
        return None
