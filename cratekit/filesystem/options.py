"""Per-call toggles for mutating file-system operations."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class FileOperationOptions:
    """Options accepted by every mutating `ResilientFileSystem` call.

    Attributes:
        silent: Suppress retry and fallback log lines.
        overwrite: Allow copy/move to replace existing destination files.
        recursive: Allow directory deletion to remove contents.
        override_attributes: Clear read-only/hidden/system flags before deleting or overwriting.
        use_fallback: Allow directory moves to fall back to per-file moves.
    """

    silent: bool = False
    overwrite: bool = False
    recursive: bool = False
    override_attributes: bool = False
    use_fallback: bool = True

    def with_changes(self, **changes: bool) -> FileOperationOptions:
        """Return a copy with selected toggles replaced."""

        return replace(self, **changes)


DEFAULT_OPTIONS = FileOperationOptions()
