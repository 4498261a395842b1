"""Unit tests for resilient directory operations."""

from __future__ import annotations

import errno
import io
import os
from pathlib import Path

import pytest

from cratekit.filesystem.metadata import FileAttribute
from cratekit.filesystem.options import FileOperationOptions
from cratekit.filesystem.resilient import ResilientFileSystem


def _build_tree(root: Path) -> None:
    (root / "lib" / "net48").mkdir(parents=True)
    (root / "tools").mkdir()
    (root / "pkg.nuspec").write_text("<package/>", encoding="utf-8")
    (root / "lib" / "net48" / "pkg.dll").write_bytes(b"dll")
    (root / "tools" / "install.ps1").write_text("Write-Host hi", encoding="utf-8")


def _relative_files(root: Path) -> list[str]:
    return sorted(str(path.relative_to(root)) for path in root.rglob("*") if path.is_file())


def _refuse_rename(source: str, destination: str) -> None:
    raise OSError(errno.EXDEV, "Invalid cross-device link")


def test_create_directory_is_idempotent(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Creating an existing directory is not an error."""

    target = tmp_path / "a" / "b"

    file_system.create_directory(target)
    file_system.create_directory(target)
    file_system.ensure_directory_exists(target)

    assert file_system.directory_exists(target) is True


def test_get_directories_lists_subdirectories(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Directory listings honour recursion and return sorted paths."""

    _build_tree(tmp_path)

    assert file_system.get_directories(tmp_path) == [
        os.path.join(str(tmp_path), "lib"),
        os.path.join(str(tmp_path), "tools"),
    ]
    assert os.path.join(str(tmp_path), "lib", "net48") in file_system.get_directories(tmp_path, recursive=True)
    assert file_system.get_directories(tmp_path, "t*") == [os.path.join(str(tmp_path), "tools")]


def test_get_directory_info_reports_directory(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Directory metadata has zero size."""

    assert file_system.get_directory_info(tmp_path).size == 0


def test_delete_directory_requires_recursive_for_non_empty(
    tmp_path: Path,
    file_system: ResilientFileSystem,
) -> None:
    """Non-recursive deletes only remove empty directories."""

    root = tmp_path / "pkg"
    _build_tree(root)

    with pytest.raises(OSError):
        file_system.delete_directory(root)

    file_system.delete_directory(root, FileOperationOptions(recursive=True))
    assert not root.exists()


def test_delete_directory_clears_attributes_when_overriding(
    tmp_path: Path,
    file_system: ResilientFileSystem,
) -> None:
    """Read-only entries do not block an overriding recursive delete."""

    root = tmp_path / "pkg"
    _build_tree(root)
    file_system.ensure_file_attribute_set(root / "pkg.nuspec", FileAttribute.READ_ONLY)

    file_system.delete_directory(root, FileOperationOptions(recursive=True, override_attributes=True))

    assert not root.exists()


def test_delete_directory_checked_is_idempotent(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Deleting an absent directory succeeds."""

    root = tmp_path / "pkg"
    _build_tree(root)
    options = FileOperationOptions(recursive=True)

    file_system.delete_directory_checked(root, options)
    file_system.delete_directory_checked(root, options)

    assert not root.exists()


def test_delete_directory_raises_for_missing_directory(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """The unchecked delete reports a missing directory."""

    with pytest.raises(FileNotFoundError):
        file_system.delete_directory(tmp_path / "missing")


def test_copy_directory_copies_tree(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Copies reproduce the whole tree and keep the source."""

    source = tmp_path / "src"
    destination = tmp_path / "dst"
    _build_tree(source)

    file_system.copy_directory(source, destination)

    assert _relative_files(destination) == _relative_files(source)
    assert (destination / "lib" / "net48" / "pkg.dll").read_bytes() == b"dll"


def test_copy_directory_honours_overwrite(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Existing files block the copy unless overwrite is set."""

    source = tmp_path / "src"
    destination = tmp_path / "dst"
    _build_tree(source)
    destination.mkdir()
    (destination / "pkg.nuspec").write_text("stale", encoding="utf-8")

    with pytest.raises(FileExistsError):
        file_system.copy_directory(source, destination)

    file_system.copy_directory(source, destination, FileOperationOptions(overwrite=True))
    assert (destination / "pkg.nuspec").read_text(encoding="utf-8") == "<package/>"


def test_copy_directory_requires_source(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Copying a missing directory fails."""

    with pytest.raises(FileNotFoundError):
        file_system.copy_directory(tmp_path / "missing", tmp_path / "dst")


def test_move_directory_renames_natively(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """A plain move renames the directory into a new parent."""

    source = tmp_path / "src"
    destination = tmp_path / "lib" / "pkg.1.0"
    _build_tree(source)
    expected = _relative_files(source)

    file_system.move_directory(source, destination)

    assert not source.exists()
    assert _relative_files(destination) == expected


def test_move_directory_falls_back_to_per_file_moves(
    tmp_path: Path,
    file_system: ResilientFileSystem,
    monkeypatch: pytest.MonkeyPatch,
    log_sink: io.StringIO,
) -> None:
    """A refused rename moves every file individually and removes the source."""

    source = tmp_path / "src"
    destination = tmp_path / "dst"
    _build_tree(source)
    expected = _relative_files(source)
    monkeypatch.setattr(file_system, "_rename_directory", _refuse_rename)

    file_system.move_directory(source, destination)

    assert not source.exists()
    assert _relative_files(destination) == expected
    assert (destination / "tools" / "install.ps1").read_text(encoding="utf-8") == "Write-Host hi"
    assert "op=move_directory event=fallback" in log_sink.getvalue()


def test_move_directory_fallback_merges_into_existing_destination(
    tmp_path: Path,
    file_system: ResilientFileSystem,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Fallback moves overwrite clashing files and keep unrelated ones."""

    source = tmp_path / "src"
    destination = tmp_path / "dst"
    _build_tree(source)
    destination.mkdir()
    (destination / "pkg.nuspec").write_text("stale", encoding="utf-8")
    (destination / "keep.txt").write_text("keep", encoding="utf-8")
    monkeypatch.setattr(file_system, "_rename_directory", _refuse_rename)

    file_system.move_directory(source, destination)

    assert (destination / "pkg.nuspec").read_text(encoding="utf-8") == "<package/>"
    assert (destination / "keep.txt").read_text(encoding="utf-8") == "keep"
    assert not source.exists()


def test_move_directory_without_fallback_reraises_rename_error(
    tmp_path: Path,
    file_system: ResilientFileSystem,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """With fallback disabled the original rename error propagates."""

    source = tmp_path / "src"
    _build_tree(source)
    error = OSError(errno.EXDEV, "Invalid cross-device link")

    def _refuse(source_path: str, destination_path: str) -> None:
        raise error

    monkeypatch.setattr(file_system, "_rename_directory", _refuse)

    with pytest.raises(OSError) as exc_info:
        file_system.move_directory(source, tmp_path / "dst", FileOperationOptions(use_fallback=False))

    assert exc_info.value is error
    assert source.exists()


def test_move_directory_requires_source(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Moving a missing directory fails before touching the destination."""

    with pytest.raises(FileNotFoundError):
        file_system.move_directory(tmp_path / "missing", tmp_path / "dst")

    assert not (tmp_path / "dst").exists()


@pytest.mark.parametrize("nested", ["inner", "."])
def test_move_directory_into_itself_fails_without_fallback(
    tmp_path: Path,
    file_system: ResilientFileSystem,
    log_sink: io.StringIO,
    nested: str,
) -> None:
    """A destination inside the source is rejected before any file moves."""

    source = tmp_path / "src"
    _build_tree(source)
    expected = _relative_files(source)

    with pytest.raises(OSError) as exc_info:
        file_system.move_directory(source, source / nested)

    assert exc_info.value.errno == errno.EINVAL
    assert _relative_files(source) == expected
    assert not (source / "inner").exists()
    assert "event=fallback" not in log_sink.getvalue()


def test_copy_directory_into_itself_is_rejected(tmp_path: Path, file_system: ResilientFileSystem) -> None:
    """Copying into a subdirectory of the source would never terminate."""

    source = tmp_path / "src"
    _build_tree(source)

    with pytest.raises(OSError) as exc_info:
        file_system.copy_directory(source, source / "backup")

    assert exc_info.value.errno == errno.EINVAL
    assert not (source / "backup").exists()
