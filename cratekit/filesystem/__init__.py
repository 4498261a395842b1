"""Resilient file-system layer.

This package contains path resolution, metadata probes, the bounded retry
policy, and the `ResilientFileSystem` service built on them.
"""

from .metadata import FileAttribute, FileMetadata
from .options import DEFAULT_OPTIONS, FileOperationOptions
from .paths import PathResolver
from .resilient import ResilientFileSystem
from .retry import RetryPolicy, is_transient_error

__all__ = [
    "DEFAULT_OPTIONS",
    "FileAttribute",
    "FileMetadata",
    "FileOperationOptions",
    "PathResolver",
    "ResilientFileSystem",
    "RetryPolicy",
    "is_transient_error",
]
