"""Path canonicalization and executable resolution helpers.

Responsibilities:
- Combine and canonicalize path fragments.
- Resolve executables against the current directory, the program directory and `PATH`.
- Prefix over-long absolute paths on Windows so OS calls accept them.
"""

from __future__ import annotations

import os
from pathlib import Path
import sys
import tempfile
from typing import Mapping

_WINDOWS_LONG_PATH_PREFIX = "\\\\?\\"
_WINDOWS_UNC_LONG_PATH_PREFIX = "\\\\?\\UNC\\"
_WINDOWS_MAX_DIRECTORY_PATH = 248


def is_windows() -> bool:
    """Return whether the host uses Windows path semantics."""

    return os.name == "nt"


class PathResolver:
    """Canonicalize paths and locate executables deterministically."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        program_directory: Path | None = None,
    ) -> None:
        """Initialize resolver with optional environment and program-directory overrides."""

        self._environ = environ
        self._program_directory = program_directory

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    @staticmethod
    def combine_paths(left_item: str | Path, *right_items: str | Path) -> str:
        """Combine path segments, tolerating leading separators on right segments.

        Unlike `os.path.join`, a right segment beginning with a separator does not
        discard everything before it.
        """

        if left_item is None:
            raise ValueError("`left_item` must not be None.")
        combined = str(left_item)
        for item in right_items:
            segment = str(item).lstrip("\\/")
            if not segment:
                continue
            combined = os.path.join(combined, segment) if combined else segment
        return combined

    @staticmethod
    def get_full_path(path: str | Path) -> str:
        """Return an absolute, normalized path."""

        return os.path.abspath(os.path.expanduser(str(path)))

    @staticmethod
    def get_temp_path() -> str:
        return tempfile.gettempdir()

    @staticmethod
    def get_directory_separator() -> str:
        return os.sep

    @staticmethod
    def get_current_directory() -> str:
        return os.getcwd()

    def get_current_executable_path(self) -> str:
        """Return the directory containing the running program.

        Frozen builds (for example PyInstaller) report the bundled executable's
        directory; regular runs report the interpreter's script directory.
        """

        if self._program_directory is not None:
            return str(self._program_directory)
        if getattr(sys, "frozen", False):
            return str(Path(sys.executable).resolve().parent)
        script = sys.argv[0] if sys.argv and sys.argv[0] else sys.executable
        return str(Path(script).resolve().parent)

    def get_executable_path(self, executable_name: str) -> str:
        """Resolve an executable name to a full path.

        Resolution order:
        1. Current directory.
        2. Directory containing the running program.
        3. Each `PATH` entry in order.

        Every candidate directory is tried with each `PATHEXT` extension
        (bare name first). Returns the raw name when nothing matches so that
        process spawning raises the native missing-binary error.
        """

        normalized = executable_name.strip() if executable_name else ""
        if not normalized:
            return executable_name

        if os.path.dirname(normalized) and self._is_executable_file(normalized):
            return self.get_full_path(normalized)

        for directory in self._search_directories():
            for name in self._candidate_names(normalized):
                candidate = os.path.join(directory, name)
                if self._is_executable_file(candidate):
                    return self.get_full_path(candidate)

        return normalized

    def _search_directories(self) -> list[str]:
        """Return candidate directories in lookup precedence order."""

        directories = [self.get_current_directory(), self.get_current_executable_path()]
        raw_path = self.environ.get("PATH", "")
        for entry in raw_path.split(os.pathsep):
            cleaned = entry.strip().strip('"')
            if cleaned:
                directories.append(cleaned)
        return directories

    def _candidate_names(self, executable_name: str) -> list[str]:
        """Return the bare name followed by each `PATHEXT` variant not already present."""

        names = [executable_name]
        lowered = executable_name.lower()
        for extension in self._path_extensions():
            if lowered.endswith(extension.lower()):
                continue
            names.append(f"{executable_name}{extension}")
        return names

    def _path_extensions(self) -> list[str]:
        raw = self.environ.get("PATHEXT", "")
        return [item.strip() for item in raw.split(os.pathsep) if item.strip()]

    @staticmethod
    def _is_executable_file(candidate: str) -> bool:
        if not os.path.isfile(candidate):
            return False
        if is_windows():
            return True
        return os.access(candidate, os.X_OK)


def to_long_path(path: str | Path) -> str:
    """Return a path string accepted by OS calls regardless of its length.

    On Windows, absolute paths at or beyond the legacy length limit are
    rewritten with the extended-length prefix. Other hosts return the path as-is.
    """

    text = str(path)
    if not is_windows():
        return text
    if text.startswith(_WINDOWS_LONG_PATH_PREFIX):
        return text
    if len(text) < _WINDOWS_MAX_DIRECTORY_PATH:
        return text
    absolute = os.path.abspath(text)
    if absolute.startswith("\\\\"):
        return _WINDOWS_UNC_LONG_PATH_PREFIX + absolute[2:]
    return _WINDOWS_LONG_PATH_PREFIX + absolute
