"""Command-line interface for cratekit.

Responsibilities:
- Expose user-facing `pack`, `source` and `args` commands.
- Convert CLI options into `CrateConfiguration` and dispatch to command objects.
- Build the shared `ResilientFileSystem` from resolved settings.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Annotated, Any, Mapping

import typer
from keyring.errors import KeyringError
import yaml

from .cli_rendering import echo_command_line, echo_source_list, exit_with_command_error
from .commands.arguments import ArgumentTable
from .commands.compiler import ArgumentCompiler
from .commands.pack import DEFAULT_PACK_TOOL, PackCommand
from .commands.source import FileSourceService, SourceCommand
from .config import CrateConfiguration, FileSystemSettings, SettingsLoader
from .credentials import create_credential_store
from .errors import CommandError
from .filesystem.options import FileOperationOptions
from .filesystem.resilient import ResilientFileSystem
from .telemetry.logger import OperationLogger, configure_cli_logging

app = typer.Typer(
    name="cratekit",
    no_args_is_help=True,
    help="cratekit CLI.",
)


@dataclass(slots=True)
class CliState:
    """Objects shared by all commands of one CLI invocation."""

    settings: FileSystemSettings
    file_system: ResilientFileSystem
    options: FileOperationOptions


def _default_sources_file() -> Path:
    override = os.environ.get("CRATEKIT_SOURCES_FILE", "").strip()
    if override:
        return Path(override)
    return Path.home() / ".cratekit" / "sources.yaml"


def _state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    if not isinstance(state, CliState):
        state = _build_state(None, None, False)
        ctx.obj = state
    return state


def _build_state(settings_path: Path | None, retry_attempts: int | None, silent: bool) -> CliState:
    """Resolve settings and construct the shared file system."""

    try:
        settings = SettingsLoader.resolve(settings_path=settings_path, retry_attempts=retry_attempts)
    except FileNotFoundError as exc:
        raise CommandError(
            f"Settings file not found: `{settings_path}`.",
            command="settings",
            hint="Provide an existing path via `--settings <path.yaml>`.",
        ) from exc
    except (ValueError, yaml.YAMLError) as exc:
        raise CommandError(
            f"Invalid settings: {exc}",
            command="settings",
            hint="Fix settings values and rerun.",
        ) from exc

    configure_cli_logging()
    file_system = ResilientFileSystem(
        retry_policy=settings.retry_policy(),
        logger=OperationLogger(),
    )
    return CliState(
        settings=settings,
        file_system=file_system,
        options=FileOperationOptions(silent=silent),
    )


@app.callback()
def configure(
    ctx: typer.Context,
    settings: Annotated[
        Path | None,
        typer.Option("--settings", help="YAML file with file-system settings."),
    ] = None,
    retry_attempts: Annotated[
        int | None,
        typer.Option("--retry-attempts", min=1, help="Attempts per file operation."),
    ] = None,
    silent: Annotated[
        bool,
        typer.Option("--silent", help="Suppress retry and fallback log lines."),
    ] = False,
) -> None:
    """Resolve global settings shared by every command."""

    try:
        ctx.obj = _build_state(settings, retry_attempts, silent)
    except CommandError as exc:
        exit_with_command_error("cratekit", exc)


@app.command()
def pack(
    ctx: typer.Context,
    arguments: Annotated[
        list[str] | None,
        typer.Argument(help="Manifest path followed by optional key=value properties."),
    ] = None,
    version: Annotated[str | None, typer.Option("--version", help="Package version override.")] = None,
    output_directory: Annotated[
        str | None,
        typer.Option("--output-directory", "--outputdirectory", help="Directory for the package."),
    ] = None,
    tool: Annotated[str, typer.Option("--tool", help="Pack tool executable.")] = DEFAULT_PACK_TOOL,
    verbose: Annotated[bool, typer.Option("--verbose", help="Verbose tool output.")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", "--noop", help="Print the command line only.")] = False,
) -> None:
    """Build a package with the wrapped pack tool."""

    state = _state(ctx)
    configuration = CrateConfiguration(
        command_name="pack",
        version=version or "",
        output_directory=output_directory or "",
        verbose=verbose,
        noop=dry_run,
        file_system=state.settings,
    )
    command = PackCommand(state.file_system, tool=tool, options=state.options)

    try:
        command.parse_additional_arguments(list(arguments or []), configuration)
        if dry_run:
            command.validate(configuration)
            echo_command_line(command.dry_run(configuration))
            return
        result = command.run(configuration)
    except (CommandError, OSError) as exc:
        exit_with_command_error("pack", exc)

    if result.stdout:
        typer.echo(result.stdout.rstrip())


@app.command()
def source(
    ctx: typer.Context,
    subcommand: Annotated[
        list[str] | None,
        typer.Argument(help="One of: list, add, remove, enable, disable."),
    ] = None,
    name: Annotated[str, typer.Option("--name", "-n", help="Source name.")] = "",
    source_value: Annotated[str, typer.Option("--source", "-s", help="Source location.")] = "",
    user: Annotated[str, typer.Option("--user", "-u", help="Source user name.")] = "",
    password: Annotated[str, typer.Option("--password", "-p", help="Source password.")] = "",
    priority: Annotated[int, typer.Option("--priority", min=0, help="Source priority.")] = 0,
    sources_file: Annotated[
        Path | None,
        typer.Option("--sources-file", help="YAML file holding configured sources."),
    ] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", "--noop", help="Validate only.")] = False,
) -> None:
    """Manage package sources."""

    state = _state(ctx)
    configuration = CrateConfiguration(command_name="source", sources=source_value, noop=dry_run)
    configuration.source_command.name = name
    configuration.source_command.username = user
    configuration.source_command.password = password
    configuration.source_command.priority = priority

    service = FileSourceService(
        state.file_system,
        sources_file or _default_sources_file(),
        credentials=create_credential_store(),
        options=state.options,
    )
    command = SourceCommand(service)

    try:
        command.parse_additional_arguments(list(subcommand or []), configuration)
        command.validate(configuration)
        if dry_run:
            command.dry_run(configuration)
            return
        entries = command.run(configuration)
    except (CommandError, OSError, ValueError, KeyringError) as exc:
        exit_with_command_error("source", exc)

    if entries is not None:
        echo_source_list(entries)


@app.command("args")
def compile_args(
    table_file: Annotated[Path, typer.Argument(help="YAML argument table.")],
    configuration_file: Annotated[Path, typer.Argument(help="YAML configuration values.")],
) -> None:
    """Compile a YAML configuration against a YAML argument table and print the result."""

    try:
        table = ArgumentTable.from_mapping(_load_yaml_mapping(table_file))
        configuration = _load_yaml_mapping(configuration_file)
        echo_command_line(ArgumentCompiler().compile(configuration, table))
    except (OSError, ValueError, KeyError, yaml.YAMLError) as exc:
        exit_with_command_error("args", exc)


def _load_yaml_mapping(path: Path) -> Mapping[str, Any]:
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"YAML `{path}` must contain a top-level mapping/object.")
    return payload


def main() -> None:
    """Run the cratekit CLI application."""

    app()


if __name__ == "__main__":
    main()
