"""External tool invocation for compiled argument strings.

Responsibilities:
- Resolve the wrapped tool through the file-system executable lookup.
- Spawn the tool with the compiled argument string passed through verbatim.
- Map non-zero exits and missing binaries to `CommandError`.
"""

from __future__ import annotations

from dataclasses import dataclass
import shlex
import subprocess

from ..errors import CommandError
from ..filesystem.paths import is_windows
from ..filesystem.resilient import ResilientFileSystem
from ..parsing import normalize_optional_string


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Captured outcome of one external tool run."""

    command_line: str
    exit_code: int
    stdout: str
    stderr: str


class ExternalToolRunner:
    """Run one wrapped executable with compiled argument strings."""

    def __init__(self, executable: str, file_system: ResilientFileSystem) -> None:
        """Initialize the runner for a tool name or path."""

        self.executable = executable
        self.file_system = file_system

    def command_line(self, arguments: str) -> str:
        """Return the display form of the full command line."""

        resolved = self.file_system.get_executable_path(self.executable)
        quoted = f'"{resolved}"' if any(character.isspace() for character in resolved) else resolved
        return f"{quoted} {arguments}".rstrip()

    def run(self, arguments: str, *, command: str = "", cwd: str | None = None) -> ToolResult:
        """Run the tool and return captured output.

        Raises:
            CommandError: If the executable is missing or exits with non-zero status.
        """

        resolved = self.file_system.get_executable_path(self.executable)
        if is_windows():
            invocation: str | list[str] = f'"{resolved}" {arguments}'.rstrip()
        else:
            invocation = [resolved, *shlex.split(arguments)]

        try:
            completed = subprocess.run(
                invocation,
                check=True,
                capture_output=True,
                text=True,
                cwd=cwd,
            )
        except FileNotFoundError as exc:
            raise CommandError(
                f"Executable `{self.executable}` was not found.",
                command=command,
                hint="Install the tool or place it next to cratekit or on PATH.",
            ) from exc
        except subprocess.CalledProcessError as exc:
            stderr = normalize_optional_string(exc.stderr) or "no stderr output"
            raise CommandError(
                f"`{self.executable}` exited with code {exc.returncode}: {stderr}",
                command=command,
                hint="Re-run with the printed command line to inspect the tool output.",
            ) from exc

        return ToolResult(
            command_line=self.command_line(arguments),
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
