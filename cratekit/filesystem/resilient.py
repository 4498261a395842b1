"""Resilient file-system operations for package workflows.

Responsibilities:
- Expose the file and directory primitives install, pack and cleanup steps need.
- Retry transient lock contention (scanners, indexers) with a bounded policy.
- Clear blocking attributes on request, and keep over-long Windows paths usable.
- Fall back to per-file moves when a native directory rename is refused.

Key types:
- `ResilientFileSystem`: stateless service; construct once, call per operation.
"""

from __future__ import annotations

from datetime import datetime
import errno
import fnmatch
import os
from pathlib import Path
import shutil
import tempfile
from typing import BinaryIO, Callable, Iterable

from ..telemetry.logger import OperationLogger
from .metadata import (
    FileAttribute,
    FileMetadata,
    apply_attributes,
    read_file_version,
    read_metadata,
)
from .options import DEFAULT_OPTIONS, FileOperationOptions
from .paths import PathResolver, is_windows, to_long_path
from .retry import RetryPolicy

PathLike = str | Path

_BLOCKING_ATTRIBUTES = FileAttribute.READ_ONLY | FileAttribute.HIDDEN | FileAttribute.SYSTEM
_COPY_CHUNK_BYTES = 1024 * 1024


class ResilientFileSystem:
    """File and directory operations hardened against locks, attributes and long paths."""

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        logger: OperationLogger | None = None,
        resolver: PathResolver | None = None,
    ) -> None:
        """Initialize with optional retry policy, logger and path resolver."""

        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logger or OperationLogger()
        self.resolver = resolver or PathResolver()

    # Path

    def combine_paths(self, left_item: PathLike, *right_items: PathLike) -> str:
        return self.resolver.combine_paths(left_item, *right_items)

    def get_full_path(self, path: PathLike) -> str:
        return self.resolver.get_full_path(path)

    def get_temp_path(self) -> str:
        return self.resolver.get_temp_path()

    def get_directory_separator(self) -> str:
        return self.resolver.get_directory_separator()

    def get_current_directory(self) -> str:
        return self.resolver.get_current_directory()

    def get_current_executable_path(self) -> str:
        return self.resolver.get_current_executable_path()

    def get_executable_path(self, executable_name: str) -> str:
        return self.resolver.get_executable_path(executable_name)

    # File queries

    def get_files(
        self,
        directory_path: PathLike,
        pattern: str = "*",
        recursive: bool = False,
    ) -> list[str]:
        """List files matching a glob pattern, sorted for deterministic output."""

        return sorted(
            path
            for path in self._walk_entries(directory_path, recursive, files=True)
            if fnmatch.fnmatch(os.path.basename(path), pattern)
        )

    def get_files_with_extensions(
        self,
        directory_path: PathLike,
        extensions: Iterable[str],
        recursive: bool = False,
    ) -> list[str]:
        """List files whose names end with any of the given extensions (case-insensitive).

        Extensions may be written as `.nupkg`, `nupkg` or `*.nupkg`.
        """

        suffixes = tuple(
            "." + item.lstrip("*").lstrip(".").lower() for item in extensions if item.strip("*. ")
        )
        if not suffixes:
            return []
        return sorted(
            path
            for path in self._walk_entries(directory_path, recursive, files=True)
            if path.lower().endswith(suffixes)
        )

    def file_exists(self, file_path: PathLike) -> bool:
        return os.path.isfile(to_long_path(file_path))

    @staticmethod
    def get_file_name(file_path: PathLike) -> str:
        return os.path.basename(str(file_path))

    @staticmethod
    def get_file_name_without_extension(file_path: PathLike) -> str:
        return os.path.splitext(os.path.basename(str(file_path)))[0]

    @staticmethod
    def get_file_extension(file_path: PathLike) -> str:
        return os.path.splitext(str(file_path))[1]

    @staticmethod
    def get_directory_name(file_path: PathLike) -> str:
        return os.path.dirname(str(file_path))

    def get_file_size(self, file_path: PathLike) -> int:
        return os.path.getsize(to_long_path(file_path))

    def get_file_modified_date(self, file_path: PathLike) -> datetime:
        return datetime.fromtimestamp(os.path.getmtime(to_long_path(file_path)))

    def get_file_version(self, file_path: PathLike) -> str:
        """Return the embedded version string, or `""` when the file carries none."""

        if not self.file_exists(file_path):
            return ""
        return read_file_version(to_long_path(self.get_full_path(file_path)))

    def get_file_info(self, file_path: PathLike) -> FileMetadata:
        """Return a metadata snapshot for a file or directory."""

        return read_metadata(file_path, to_long_path(file_path))

    @staticmethod
    def is_system_file(metadata: FileMetadata) -> bool:
        return metadata.is_system

    @staticmethod
    def is_read_only_file(metadata: FileMetadata) -> bool:
        return metadata.is_read_only

    @staticmethod
    def is_hidden_file(metadata: FileMetadata) -> bool:
        return metadata.is_hidden

    @staticmethod
    def is_encrypted_file(metadata: FileMetadata) -> bool:
        return metadata.is_encrypted

    @staticmethod
    def get_file_date(metadata: FileMetadata) -> datetime:
        """Return the oldest of the creation and modification timestamps."""

        return metadata.oldest_date

    # File mutations

    def move_file(
        self,
        file_path: PathLike,
        new_file_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Move a file, creating the destination directory when needed.

        Raises:
            FileExistsError: If the destination exists and `overwrite` is off.
        """

        source = to_long_path(file_path)
        destination = to_long_path(new_file_path)
        self._guard_destination(destination, options)
        self._ensure_parent(new_file_path, options)

        self.retry_policy.run(
            lambda: shutil.move(source, destination),
            operation="move_file",
            logger=self.logger,
            silent=options.silent,
        )

    def copy_file(
        self,
        source_file_path: PathLike,
        destination_file_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Copy a file with metadata, creating the destination directory when needed.

        Raises:
            FileExistsError: If the destination exists and `overwrite` is off.
        """

        source = to_long_path(source_file_path)
        destination = to_long_path(destination_file_path)
        self._guard_destination(destination, options)
        self._ensure_parent(destination_file_path, options)

        self.retry_policy.run(
            lambda: shutil.copy2(source, destination),
            operation="copy_file",
            logger=self.logger,
            silent=options.silent,
        )

    def copy_file_unsafe(
        self,
        source_file_path: PathLike,
        destination_file_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> bool:
        """Best-effort copy that reports failure as `False` instead of raising."""

        try:
            self.copy_file(source_file_path, destination_file_path, options)
        except OSError as exc:
            self.logger.log_failure("copy_file_unsafe", exc, path=destination_file_path)
            return False
        return True

    def replace_file(
        self,
        source_file_path: PathLike,
        destination_file_path: PathLike,
        backup_file_path: PathLike | None = None,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Replace a destination file with a source file, optionally keeping a backup.

        The source is consumed. When the destination does not exist yet the source
        is simply moved into place and no backup is written.
        """

        source = to_long_path(source_file_path)
        destination = to_long_path(destination_file_path)
        if not os.path.isfile(source):
            raise FileNotFoundError(errno.ENOENT, "Source file not found", str(source_file_path))

        if options.override_attributes and os.path.exists(destination):
            self.ensure_file_attribute_removed(destination_file_path, _BLOCKING_ATTRIBUTES)

        def _replace() -> None:
            if backup_file_path is not None and os.path.exists(destination):
                os.replace(destination, to_long_path(backup_file_path))
            os.replace(source, destination)

        self._ensure_parent(destination_file_path, options)
        self.retry_policy.run(
            _replace,
            operation="replace_file",
            logger=self.logger,
            silent=options.silent,
        )

    def delete_file(
        self,
        file_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Delete a file; a missing file is left as-is."""

        path = to_long_path(file_path)
        if not os.path.lexists(path):
            return
        if options.override_attributes:
            self.ensure_file_attribute_removed(file_path, _BLOCKING_ATTRIBUTES)

        self.retry_policy.run(
            lambda: os.remove(path),
            operation="delete_file",
            logger=self.logger,
            silent=options.silent,
        )

    def create_file(self, file_path: PathLike) -> BinaryIO:
        """Create (or truncate) a file and return a writable binary handle."""

        self._ensure_parent(file_path, DEFAULT_OPTIONS)
        return open(to_long_path(file_path), "w+b")

    def read_file(self, file_path: PathLike, encoding: str = "utf-8") -> str:
        path = to_long_path(file_path)
        return self.retry_policy.run(
            lambda: Path(path).read_text(encoding=encoding),
            operation="read_file",
            logger=self.logger,
        )

    def read_file_bytes(self, file_path: PathLike) -> bytes:
        path = to_long_path(file_path)
        return self.retry_policy.run(
            lambda: Path(path).read_bytes(),
            operation="read_file_bytes",
            logger=self.logger,
        )

    def open_file_readonly(self, file_path: PathLike) -> BinaryIO:
        return open(to_long_path(file_path), "rb")

    def open_file_exclusive(self, file_path: PathLike) -> BinaryIO:
        """Open (or create) a file for read/write while holding an exclusive lock.

        The lock is advisory on POSIX; another exclusive open fails with
        `BlockingIOError` until the returned handle is closed.
        """

        self._ensure_parent(file_path, DEFAULT_OPTIONS)
        descriptor = os.open(to_long_path(file_path), os.O_RDWR | os.O_CREAT | getattr(os, "O_BINARY", 0))
        try:
            _lock_exclusive(descriptor)
        except OSError:
            os.close(descriptor)
            raise
        return os.fdopen(descriptor, "r+b")

    def write_file(
        self,
        file_path: PathLike,
        file_text: str,
        encoding: str = "utf-8",
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Write whole-file text atomically using the requested encoding."""

        payload = file_text.encode(encoding)

        def _write(handle: BinaryIO) -> None:
            handle.write(payload)

        self._atomic_write(file_path, _write, options)

    def write_file_from(
        self,
        file_path: PathLike,
        get_stream: Callable[[], BinaryIO],
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Write whole-file content from a deferred byte-stream producer.

        `get_stream` is called once, after the destination is prepared; the stream
        it returns is closed afterwards.
        """

        def _write(handle: BinaryIO) -> None:
            with get_stream() as stream:
                shutil.copyfileobj(stream, handle, _COPY_CHUNK_BYTES)

        self._atomic_write(file_path, _write, options)

    # Directory operations

    def get_directories(
        self,
        directory_path: PathLike,
        pattern: str = "*",
        recursive: bool = False,
    ) -> list[str]:
        """List subdirectories matching a glob pattern, sorted for deterministic output."""

        return sorted(
            path
            for path in self._walk_entries(directory_path, recursive, files=False)
            if fnmatch.fnmatch(os.path.basename(path), pattern)
        )

    def directory_exists(self, directory_path: PathLike) -> bool:
        return os.path.isdir(to_long_path(directory_path))

    def get_directory_info(self, directory_path: PathLike) -> FileMetadata:
        return read_metadata(directory_path, to_long_path(directory_path))

    def create_directory(
        self,
        directory_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Create a directory and any missing parents; existing directories are fine."""

        path = to_long_path(directory_path)
        self.retry_policy.run(
            lambda: os.makedirs(path, exist_ok=True),
            operation="create_directory",
            logger=self.logger,
            silent=options.silent,
        )

    def ensure_directory_exists(self, directory_path: PathLike) -> None:
        if not self.directory_exists(directory_path):
            self.create_directory(directory_path)

    def move_directory(
        self,
        directory_path: PathLike,
        new_directory_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Move a directory, renaming natively first.

        When the rename is refused (for example across volumes or onto an existing
        directory) and `use_fallback` is on, every file is moved individually and
        the emptied source tree is removed afterwards. With `use_fallback` off the
        rename error propagates unchanged. A destination equal to or inside the
        source is rejected with `EINVAL` before anything is touched.
        """

        source = to_long_path(directory_path)
        destination = to_long_path(new_directory_path)
        if not os.path.isdir(source):
            raise FileNotFoundError(errno.ENOENT, "Directory not found", str(directory_path))
        if _is_same_or_nested(source, destination):
            raise OSError(
                errno.EINVAL,
                "Cannot move a directory into itself",
                str(directory_path),
                None,
                str(new_directory_path),
            )

        parent = os.path.dirname(os.path.abspath(str(new_directory_path)))
        if parent:
            self.create_directory(parent, options)

        try:
            self.retry_policy.run(
                lambda: self._rename_directory(source, destination),
                operation="move_directory",
                logger=self.logger,
                silent=options.silent,
            )
            return
        except OSError:
            if not options.use_fallback:
                raise

        self.logger.log_fallback("move_directory", directory_path, silent=options.silent)
        self._move_directory_by_files(directory_path, new_directory_path, options)

    def copy_directory(
        self,
        source_directory_path: PathLike,
        destination_directory_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Recursively copy a directory tree, honouring `overwrite` per file."""

        source_root = str(source_directory_path)
        if not self.directory_exists(source_root):
            raise FileNotFoundError(errno.ENOENT, "Directory not found", source_root)
        if _is_same_or_nested(to_long_path(source_root), to_long_path(destination_directory_path)):
            raise OSError(
                errno.EINVAL,
                "Cannot copy a directory into itself",
                source_root,
                None,
                str(destination_directory_path),
            )

        self.create_directory(destination_directory_path, options)
        for current, directories, files in os.walk(to_long_path(source_root)):
            target_root = _target_root(destination_directory_path, current, to_long_path(source_root))
            for directory in directories:
                self.create_directory(os.path.join(target_root, directory), options)
            for name in files:
                self.copy_file(
                    os.path.join(current, name),
                    os.path.join(target_root, name),
                    options,
                )

    def delete_directory(
        self,
        directory_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Delete a directory.

        Without `recursive` only an empty directory can be removed. With
        `override_attributes`, read-only/hidden/system flags are cleared on every
        entry first so they cannot block the delete.
        """

        path = to_long_path(directory_path)
        if options.override_attributes:
            self._clear_tree_attributes(directory_path)

        def _delete() -> None:
            if options.recursive:
                shutil.rmtree(path)
            else:
                os.rmdir(path)

        self.retry_policy.run(
            _delete,
            operation="delete_directory",
            logger=self.logger,
            silent=options.silent,
        )

    def delete_directory_checked(
        self,
        directory_path: PathLike,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Delete a directory when present; an absent directory counts as deleted."""

        if not self.directory_exists(directory_path):
            return
        self.delete_directory(directory_path, options)

    # Attributes

    def ensure_file_attribute_set(self, path: PathLike, attributes: FileAttribute) -> None:
        target = to_long_path(path)
        apply_attributes(target, os.stat(target), attributes, add=True)

    def ensure_file_attribute_removed(self, path: PathLike, attributes: FileAttribute) -> None:
        target = to_long_path(path)
        apply_attributes(target, os.stat(target), attributes, add=False)

    # Internals

    @staticmethod
    def _rename_directory(source: str, destination: str) -> None:
        os.rename(source, destination)

    def _move_directory_by_files(
        self,
        directory_path: PathLike,
        new_directory_path: PathLike,
        options: FileOperationOptions,
    ) -> None:
        source_root = to_long_path(directory_path)
        file_options = options.with_changes(overwrite=True)
        self.create_directory(new_directory_path, options)
        for current, directories, files in os.walk(source_root):
            target_root = _target_root(new_directory_path, current, source_root)
            for directory in directories:
                self.create_directory(os.path.join(target_root, directory), options)
            for name in files:
                source_file = os.path.join(current, name)
                self.copy_file(source_file, os.path.join(target_root, name), file_options)
                self.delete_file(source_file, file_options)

        self.delete_directory_checked(
            directory_path,
            options.with_changes(recursive=True),
        )

    def _walk_entries(self, directory_path: PathLike, recursive: bool, *, files: bool) -> Iterable[str]:
        root = str(directory_path)
        if not recursive:
            with os.scandir(to_long_path(root)) as entries:
                for entry in entries:
                    is_match = entry.is_file() if files else entry.is_dir()
                    if is_match:
                        yield os.path.join(root, entry.name)
            return

        for current, directories, file_names in os.walk(to_long_path(root)):
            relative = os.path.relpath(current, to_long_path(root))
            base = root if relative == os.curdir else os.path.join(root, relative)
            for name in file_names if files else directories:
                yield os.path.join(base, name)

    def _clear_tree_attributes(self, directory_path: PathLike) -> None:
        root = to_long_path(directory_path)
        if not os.path.isdir(root):
            return
        self.ensure_file_attribute_removed(root, _BLOCKING_ATTRIBUTES)
        for current, directories, files in os.walk(root):
            for name in directories + files:
                entry = os.path.join(current, name)
                if os.path.islink(entry):
                    continue
                self.ensure_file_attribute_removed(entry, _BLOCKING_ATTRIBUTES)

    def _guard_destination(self, destination: str, options: FileOperationOptions) -> None:
        if not os.path.exists(destination):
            return
        if not options.overwrite:
            raise FileExistsError(errno.EEXIST, "Destination file already exists", destination)
        if options.override_attributes:
            self.ensure_file_attribute_removed(destination, _BLOCKING_ATTRIBUTES)

    def _ensure_parent(self, file_path: PathLike, options: FileOperationOptions) -> None:
        parent = os.path.dirname(os.path.abspath(str(file_path)))
        if parent and not self.directory_exists(parent):
            self.create_directory(parent, options)

    def _atomic_write(
        self,
        file_path: PathLike,
        write: Callable[[BinaryIO], None],
        options: FileOperationOptions,
    ) -> None:
        self._ensure_parent(file_path, options)
        destination = to_long_path(file_path)
        if options.override_attributes and os.path.exists(destination):
            self.ensure_file_attribute_removed(destination, _BLOCKING_ATTRIBUTES)

        directory = os.path.dirname(os.path.abspath(destination))
        temp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=directory,
                prefix=os.path.basename(destination) + ".",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_path = handle.name
                write(handle)
                handle.flush()
                os.fsync(handle.fileno())
            _match_destination_mode(temp_path, destination)
            self.retry_policy.run(
                lambda: os.replace(temp_path, destination),
                operation="write_file",
                logger=self.logger,
                silent=options.silent,
            )
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                os.remove(temp_path)


def _match_destination_mode(temp_path: str, destination: str) -> None:
    """Give the temp file the mode of the file it replaces, or the umask default."""

    if is_windows():
        return
    if os.path.exists(destination):
        shutil.copymode(destination, temp_path)
        return
    umask = os.umask(0)
    os.umask(umask)
    os.chmod(temp_path, 0o666 & ~umask)


def _is_same_or_nested(source: str, destination: str) -> bool:
    root = os.path.normcase(os.path.realpath(source))
    target = os.path.normcase(os.path.realpath(destination))
    try:
        return os.path.commonpath([root, target]) == root
    except ValueError:
        return False


def _lock_exclusive(descriptor: int) -> None:
    if is_windows():
        import msvcrt

        msvcrt.locking(descriptor, msvcrt.LK_NBLCK, 1)
        return

    import fcntl

    fcntl.flock(descriptor, fcntl.LOCK_EX | fcntl.LOCK_NB)


def _target_root(destination_root: PathLike, current: str, source_root: str) -> str:
    relative = os.path.relpath(current, source_root)
    if relative == os.curdir:
        return str(destination_root)
    return os.path.join(str(destination_root), relative)
