"""File metadata records and attribute probes.

Key types:
- `FileAttribute`: portable flag set for read-only, hidden, system and encrypted entries.
- `FileMetadata`: one-shot snapshot of the metadata consumed by callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import enum
import os
from pathlib import Path
import stat

from .paths import is_windows

# Windows attribute bits, also exposed by `stat` on Windows builds only.
_WIN_READONLY = 0x1
_WIN_HIDDEN = 0x2
_WIN_SYSTEM = 0x4
_WIN_ENCRYPTED = 0x4000
_WIN_NORMAL = 0x80


class FileAttribute(enum.Flag):
    """File-system attributes that can block naive delete or overwrite."""

    NONE = 0
    READ_ONLY = enum.auto()
    HIDDEN = enum.auto()
    SYSTEM = enum.auto()
    ENCRYPTED = enum.auto()


_WINDOWS_ATTRIBUTE_BITS = {
    FileAttribute.READ_ONLY: _WIN_READONLY,
    FileAttribute.HIDDEN: _WIN_HIDDEN,
    FileAttribute.SYSTEM: _WIN_SYSTEM,
    FileAttribute.ENCRYPTED: _WIN_ENCRYPTED,
}


@dataclass(frozen=True, slots=True)
class FileMetadata:
    """Metadata snapshot for one file or directory.

    Attributes:
        path: Queried path.
        size: Size in bytes (0 for directories).
        modified: Last modification timestamp (local time).
        created: Creation timestamp when the host reports one, else `None`.
        attributes: Attribute flags present on the entry.
    """

    path: Path
    size: int
    modified: datetime
    created: datetime | None
    attributes: FileAttribute

    @property
    def is_read_only(self) -> bool:
        return bool(self.attributes & FileAttribute.READ_ONLY)

    @property
    def is_hidden(self) -> bool:
        return bool(self.attributes & FileAttribute.HIDDEN)

    @property
    def is_system(self) -> bool:
        return bool(self.attributes & FileAttribute.SYSTEM)

    @property
    def is_encrypted(self) -> bool:
        return bool(self.attributes & FileAttribute.ENCRYPTED)

    @property
    def oldest_date(self) -> datetime:
        """Return the earlier of creation and modification timestamps."""

        if self.created is None:
            return self.modified
        return min(self.created, self.modified)


def read_metadata(path: str | Path, os_path: str | None = None) -> FileMetadata:
    """Stat a path once and build its metadata snapshot."""

    target = Path(path)
    result = os.stat(os_path or str(target))
    return FileMetadata(
        path=target,
        size=0 if stat.S_ISDIR(result.st_mode) else result.st_size,
        modified=datetime.fromtimestamp(result.st_mtime),
        created=_creation_time(result),
        attributes=attributes_from_stat(target, result),
    )


def attributes_from_stat(path: Path, result: os.stat_result) -> FileAttribute:
    """Translate a stat result into portable attribute flags."""

    windows_bits = getattr(result, "st_file_attributes", None)
    if windows_bits is not None:
        attributes = FileAttribute.NONE
        for flag, bit in _WINDOWS_ATTRIBUTE_BITS.items():
            if windows_bits & bit:
                attributes |= flag
        return attributes

    attributes = FileAttribute.NONE
    if not result.st_mode & stat.S_IWUSR:
        attributes |= FileAttribute.READ_ONLY
    hidden_flag = getattr(stat, "UF_HIDDEN", 0)
    if path.name.startswith(".") or (hidden_flag and getattr(result, "st_flags", 0) & hidden_flag):
        attributes |= FileAttribute.HIDDEN
    return attributes


def apply_attributes(path: str, current: os.stat_result, attributes: FileAttribute, *, add: bool) -> None:
    """Add or remove attribute flags on one path.

    On POSIX hosts only `READ_ONLY` (owner write bit) and `HIDDEN` (`UF_HIDDEN`,
    where `os.chflags` exists) can be changed; other flags are ignored.
    """

    windows_bits = getattr(current, "st_file_attributes", None)
    if windows_bits is not None and is_windows():
        updated = windows_bits
        for flag, bit in _WINDOWS_ATTRIBUTE_BITS.items():
            if flag is FileAttribute.ENCRYPTED or not attributes & flag:
                continue
            updated = updated | bit if add else updated & ~bit
        if updated != windows_bits:
            _set_windows_attributes(path, updated or _WIN_NORMAL)
        return

    if attributes & FileAttribute.READ_ONLY:
        mode = stat.S_IMODE(current.st_mode)
        new_mode = mode & ~stat.S_IWUSR if add else mode | stat.S_IWUSR
        if new_mode != mode:
            os.chmod(path, new_mode)

    hidden_flag = getattr(stat, "UF_HIDDEN", 0)
    if attributes & FileAttribute.HIDDEN and hidden_flag and hasattr(os, "chflags"):
        flags = getattr(current, "st_flags", 0)
        new_flags = flags | hidden_flag if add else flags & ~hidden_flag
        if new_flags != flags:
            os.chflags(path, new_flags)


def _set_windows_attributes(path: str, bits: int) -> None:
    import ctypes

    if not ctypes.windll.kernel32.SetFileAttributesW(path, bits):
        raise ctypes.WinError()


def _creation_time(result: os.stat_result) -> datetime | None:
    birth_time = getattr(result, "st_birthtime", None)
    if birth_time is not None:
        return datetime.fromtimestamp(birth_time)
    if is_windows():
        return datetime.fromtimestamp(result.st_ctime)
    return None


def read_file_version(path: str) -> str:
    """Return the embedded file version string, or `""` when unavailable.

    Only Windows binaries carry a version resource; every other host returns `""`.
    """

    if not is_windows():
        return ""

    import ctypes
    from ctypes import wintypes

    version_api = ctypes.windll.version
    size = version_api.GetFileVersionInfoSizeW(path, None)
    if not size:
        return ""
    buffer = ctypes.create_string_buffer(size)
    if not version_api.GetFileVersionInfoW(path, 0, size, buffer):
        return ""

    value = ctypes.c_void_p()
    length = wintypes.UINT()
    if not version_api.VerQueryValueW(buffer, "\\", ctypes.byref(value), ctypes.byref(length)):
        return ""
    if not length.value:
        return ""

    words = ctypes.cast(value, ctypes.POINTER(wintypes.DWORD * 4)).contents
    # VS_FIXEDFILEINFO: signature, struct version, then file version MS/LS.
    file_version_ms, file_version_ls = words[2], words[3]
    return ".".join(
        str(part)
        for part in (
            file_version_ms >> 16,
            file_version_ms & 0xFFFF,
            file_version_ls >> 16,
            file_version_ls & 0xFFFF,
        )
    )
