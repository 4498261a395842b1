"""Argument compilation and the thin command layer built on it.

This package contains the descriptor model, the property accessor maps, the
`ArgumentCompiler`, and the `pack` and `source` commands that consume them.
"""

from .accessors import UNRESOLVED, PropertyAccessorMap
from .arguments import ArgumentDescriptor, ArgumentTable
from .compiler import ArgumentCompiler, compile_arguments, render_value

__all__ = [
    "ArgumentCompiler",
    "ArgumentDescriptor",
    "ArgumentTable",
    "PropertyAccessorMap",
    "UNRESOLVED",
    "compile_arguments",
    "render_value",
]
