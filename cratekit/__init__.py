"""Top-level package for cratekit.

This package provides the execution substrate of a command-line package
manager: a resilient file-system layer and a declarative argument compiler for
wrapped external tools. The main entry points are `ResilientFileSystem` and
`ArgumentCompiler`.
"""

from .commands.arguments import ArgumentDescriptor, ArgumentTable
from .commands.compiler import ArgumentCompiler
from .filesystem.resilient import ResilientFileSystem

__all__ = [
    "ArgumentCompiler",
    "ArgumentDescriptor",
    "ArgumentTable",
    "ResilientFileSystem",
    "__version__",
]

__version__ = "0.3.2"
