"""Compile configuration objects into external-command argument strings.

Responsibilities:
- Walk an `ArgumentTable` in order and resolve each descriptor against a configuration.
- Apply the skip/required, boolean-switch, override and quoting rules.
- Return one space-joined argument string; the configuration is never mutated.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath
from typing import Any, Mapping

from .accessors import UNRESOLVED, PropertyAccessorMap
from .arguments import ArgumentDescriptor, ArgumentTable


def render_value(value: Any) -> str:
    """Render a resolved configuration value as argument text."""

    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, Mapping):
        return ";".join(f"{key}={render_value(item)}" for key, item in value.items())
    if isinstance(value, (list, tuple, set, frozenset)):
        return ";".join(render_value(item) for item in value)
    return str(value)


def _needs_quotes(value: str) -> bool:
    return any(character.isspace() for character in value)


class ArgumentCompiler:
    """Pure compiler from `(configuration, table)` to an argument string."""

    def compile(
        self,
        configuration: Any,
        table: ArgumentTable,
        accessors: PropertyAccessorMap | None = None,
    ) -> str:
        """Build the argument string for one external-tool invocation.

        Args:
            configuration: Object graph read through dotted property paths.
            table: Ordered descriptors; output follows table order.
            accessors: Optional explicit accessor map; derived from the configuration
                type when omitted.

        Returns:
            Tokens joined by single spaces, or `""` when nothing is emitted.
        """

        resolved_accessors = accessors or PropertyAccessorMap.for_configuration(configuration)
        tokens: list[str] = []
        for path, descriptor in table.items():
            value = resolved_accessors.resolve(configuration, path, ignore_case=table.ignore_case)
            token = self._build_token(descriptor, value)
            if token:
                tokens.append(token)
        return " ".join(tokens)

    @staticmethod
    def _build_token(descriptor: ArgumentDescriptor, value: Any) -> str | None:
        """Return the token for one descriptor, or `None` when it is skipped."""

        if value is UNRESOLVED:
            if not descriptor.required:
                return None
            value = None

        if isinstance(value, bool):
            if value or descriptor.required:
                return descriptor.option
            return None

        if descriptor.value is not None:
            effective_value = descriptor.value
        else:
            effective_value = render_value(value)

        if not effective_value and not descriptor.required:
            return None

        if descriptor.quote_value or _needs_quotes(effective_value):
            effective_value = f'"{effective_value}"'

        if descriptor.use_value_only:
            return effective_value
        return f"{descriptor.option}{effective_value}"


def compile_arguments(configuration: Any, table: ArgumentTable) -> str:
    """Compile arguments with a default `ArgumentCompiler`."""

    return ArgumentCompiler().compile(configuration, table)
