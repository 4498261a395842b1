"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
source listings and compiled command lines.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from .errors import CommandError

if TYPE_CHECKING:
    from .commands.source import SourceEntry


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, CommandError):
        typer.secho(f"{command_name} failed: {exc.detail}", fg=typer.colors.RED, err=True)
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_source_list(entries: list[SourceEntry]) -> None:
    """Print deterministic source rows sorted by priority then name."""

    if not entries:
        typer.echo("No sources configured.")
        return

    ordered = sorted(entries, key=lambda item: (item.priority, item.name.casefold()))
    for entry in ordered:
        state = " [disabled]" if entry.disabled else ""
        user = f" (user: {entry.username})" if entry.username else ""
        typer.echo(f"{entry.name} - {entry.value} | priority {entry.priority}{user}{state}")


def echo_command_line(command_line: str) -> None:
    typer.echo(command_line)
