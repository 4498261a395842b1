"""Unit tests for the `source` command and its YAML-backed service."""

from __future__ import annotations

import io
from pathlib import Path

import pytest
import yaml

from cratekit.commands.source import FileSourceService, SourceCommand, SourceEntry
from cratekit.config import CrateConfiguration, SourceCommandType
from cratekit.errors import CommandError
from cratekit.filesystem.resilient import ResilientFileSystem


class RecordingSourceService:
    """Source service stub recording which operation was dispatched."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def list_sources(self, configuration: CrateConfiguration) -> list[SourceEntry]:
        self.calls.append("list")
        return [SourceEntry(name="main", value="https://feed")]

    def add_source(self, configuration: CrateConfiguration) -> None:
        self.calls.append("add")

    def remove_source(self, configuration: CrateConfiguration) -> None:
        self.calls.append("remove")

    def enable_source(self, configuration: CrateConfiguration) -> None:
        self.calls.append("enable")

    def disable_source(self, configuration: CrateConfiguration) -> None:
        self.calls.append("disable")

    def dry_run(self, configuration: CrateConfiguration) -> None:
        self.calls.append("dry_run")


class FakeCredentialStore:
    """In-memory credential store keyed by lowercase source name."""

    def __init__(self) -> None:
        self.passwords: dict[str, str] = {}

    def get_password(self, source_name: str) -> str | None:
        return self.passwords.get(source_name.lower())

    def set_password(self, source_name: str, password: str) -> None:
        self.passwords[source_name.lower()] = password

    def clear_password(self, source_name: str) -> bool:
        return self.passwords.pop(source_name.lower(), None) is not None


@pytest.fixture
def service() -> RecordingSourceService:
    """Provide a recording source service."""

    return RecordingSourceService()


@pytest.fixture
def command(service: RecordingSourceService) -> SourceCommand:
    """Provide a source command over the recording service."""

    return SourceCommand(service)


def _configuration(subcommand: SourceCommandType, name: str = "", source: str = "") -> CrateConfiguration:
    configuration = CrateConfiguration(sources=source)
    configuration.source_command.command = subcommand
    configuration.source_command.name = name
    return configuration


@pytest.mark.parametrize(
    ("arguments", "expected"),
    [
        ([], SourceCommandType.LIST),
        (["list"], SourceCommandType.LIST),
        (["  ADD "], SourceCommandType.ADD),
        (["Remove"], SourceCommandType.REMOVE),
        (["enable"], SourceCommandType.ENABLE),
        (["disable"], SourceCommandType.DISABLE),
        (["unknown"], SourceCommandType.LIST),
        ([""], SourceCommandType.LIST),
    ],
)
def test_parse_selects_subcommand(
    command: SourceCommand,
    arguments: list[str],
    expected: SourceCommandType,
) -> None:
    """Subcommands parse case-insensitively; anything else lists."""

    configuration = CrateConfiguration()

    command.parse_additional_arguments(arguments, configuration)

    assert configuration.source_command.command is expected


def test_parse_rejects_multiple_subcommands(command: SourceCommand) -> None:
    """Only one subcommand may be given."""

    with pytest.raises(CommandError) as exc_info:
        command.parse_additional_arguments(["list", "wtf"], CrateConfiguration())

    assert exc_info.value.detail == (
        "A single sources command must be listed. Please see the help menu for those commands"
    )


def test_list_needs_no_name(command: SourceCommand) -> None:
    """Listing validates without any options."""

    command.validate(_configuration(SourceCommandType.LIST))


@pytest.mark.parametrize(
    "subcommand",
    [
        SourceCommandType.ADD,
        SourceCommandType.REMOVE,
        SourceCommandType.ENABLE,
        SourceCommandType.DISABLE,
    ],
)
def test_non_list_subcommands_require_name(command: SourceCommand, subcommand: SourceCommandType) -> None:
    """Every mutating subcommand needs `--name`."""

    with pytest.raises(CommandError) as exc_info:
        command.validate(_configuration(subcommand, source="https://feed"))

    assert exc_info.value.detail == (
        f"When specifying the subcommand '{subcommand.value}', you must also specify --name."
    )


def test_add_requires_source(command: SourceCommand) -> None:
    """`add` additionally needs `--source`."""

    with pytest.raises(CommandError) as exc_info:
        command.validate(_configuration(SourceCommandType.ADD, name="main"))

    assert exc_info.value.detail == (
        "When specifying the subcommand 'add', you must also specify --source."
    )


@pytest.mark.parametrize(
    "subcommand",
    [SourceCommandType.REMOVE, SourceCommandType.ENABLE, SourceCommandType.DISABLE],
)
def test_other_subcommands_do_not_require_source(
    command: SourceCommand,
    subcommand: SourceCommandType,
) -> None:
    """Only `add` needs a source value."""

    command.validate(_configuration(subcommand, name="main"))


@pytest.mark.parametrize(
    ("subcommand", "call"),
    [
        (SourceCommandType.ADD, "add"),
        (SourceCommandType.REMOVE, "remove"),
        (SourceCommandType.ENABLE, "enable"),
        (SourceCommandType.DISABLE, "disable"),
    ],
)
def test_run_dispatches_to_service(
    command: SourceCommand,
    service: RecordingSourceService,
    subcommand: SourceCommandType,
    call: str,
) -> None:
    """Each subcommand invokes exactly one service operation."""

    assert command.run(_configuration(subcommand, name="main", source="x")) is None
    assert service.calls == [call]


def test_run_list_returns_entries(command: SourceCommand, service: RecordingSourceService) -> None:
    """`list` returns the service's entries."""

    entries = command.run(_configuration(SourceCommandType.LIST))

    assert entries == [SourceEntry(name="main", value="https://feed")]
    assert service.calls == ["list"]
    assert command.list_sources(_configuration(SourceCommandType.LIST))[0].name == "main"


def test_dry_run_delegates_to_service(command: SourceCommand, service: RecordingSourceService) -> None:
    """Dry runs never touch the real operations."""

    command.dry_run(_configuration(SourceCommandType.ADD, name="main", source="x"))

    assert service.calls == ["dry_run"]


def test_file_service_add_list_and_update(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Adding twice under the same name updates the entry in place."""

    sources_file = tmp_path / "config" / "sources.yaml"
    credentials = FakeCredentialStore()
    service = FileSourceService(file_system, sources_file, credentials=credentials)

    assert service.list_sources(CrateConfiguration()) == []

    first = _configuration(SourceCommandType.ADD, name="Main", source="https://old")
    first.source_command.username = "me"
    first.source_command.password = "pw"
    service.add_source(first)
    service.add_source(_configuration(SourceCommandType.ADD, name="local", source=str(tmp_path)))
    service.add_source(_configuration(SourceCommandType.ADD, name="main", source="https://new"))

    entries = service.list_sources(CrateConfiguration())
    assert [(entry.name, entry.value) for entry in entries] == [
        ("main", "https://new"),
        ("local", str(tmp_path)),
    ]
    assert credentials.passwords == {"main": "pw"}

    document = yaml.safe_load(sources_file.read_text(encoding="utf-8"))
    assert "password" not in document["sources"][0]


def test_file_service_disable_enable_and_remove(
    tmp_path: Path,
    file_system: ResilientFileSystem,
    log_sink: io.StringIO,
) -> None:
    """Sources can be toggled and removed; credentials follow removal."""

    credentials = FakeCredentialStore()
    credentials.set_password("main", "pw")
    service = FileSourceService(file_system, tmp_path / "sources.yaml", credentials=credentials)
    service.add_source(_configuration(SourceCommandType.ADD, name="main", source="https://feed"))

    service.disable_source(_configuration(SourceCommandType.DISABLE, name="MAIN"))
    assert service.load()[0].disabled is True

    service.enable_source(_configuration(SourceCommandType.ENABLE, name="main"))
    assert service.load()[0].disabled is False

    service.remove_source(_configuration(SourceCommandType.REMOVE, name="main"))
    assert service.load() == []
    assert credentials.passwords == {}

    service.remove_source(_configuration(SourceCommandType.REMOVE, name="main"))
    assert "op=source event=missing name=main" in log_sink.getvalue()


def test_file_service_rejects_toggling_unknown_source(
    tmp_path: Path,
    file_system: ResilientFileSystem,
) -> None:
    """Enabling an unknown source is a command error."""

    service = FileSourceService(file_system, tmp_path / "sources.yaml")

    with pytest.raises(CommandError, match="is not configured"):
        service.enable_source(_configuration(SourceCommandType.ENABLE, name="ghost"))


def test_file_service_rejects_malformed_sources_file(
    tmp_path: Path,
    file_system: ResilientFileSystem,
) -> None:
    """A sources file without a `sources` list is invalid."""

    sources_file = tmp_path / "sources.yaml"
    sources_file.write_text("sources: nope\n", encoding="utf-8")
    service = FileSourceService(file_system, sources_file)

    with pytest.raises(ValueError, match="must contain a `sources` list"):
        service.load()


@pytest.mark.parametrize(
    ("entry", "message"),
    [
        ("{name: main, value: https://feed, url: x}", "entry 0 has unsupported keys: url"),
        ("{name: main}", "entry 0 is missing required keys: value"),
        ("just-a-string", "entry 0 must be a mapping"),
    ],
)
def test_file_service_rejects_malformed_source_entries(
    tmp_path: Path,
    file_system: ResilientFileSystem,
    entry: str,
    message: str,
) -> None:
    """Bad entries fail with a labelled `ValueError` instead of a `TypeError`."""

    sources_file = tmp_path / "sources.yaml"
    sources_file.write_text(f"sources:\n  - {entry}\n", encoding="utf-8")
    service = FileSourceService(file_system, sources_file)

    with pytest.raises(ValueError, match=message):
        service.load()
