"""Descriptor model mapping configuration properties to command-line tokens.

Key types:
- `ArgumentDescriptor`: how one configuration property renders as one token.
- `ArgumentTable`: ordered, optionally case-insensitive mapping of property paths
  to descriptors; insertion order is output order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping


@dataclass(frozen=True, slots=True)
class ArgumentDescriptor:
    """Rendering rule for one configuration property.

    Attributes:
        option: Literal text emitted before the value (for example `-source ` or
            `-verbose`); callers embed any separating space. Never quoted.
        value: Optional literal value that replaces the configuration value.
        required: Emit the token even when the property is absent or empty.
        quote_value: Always wrap the value in double quotes.
        use_value_only: Emit only the value, dropping the option text.
    """

    option: str = ""
    value: str | None = None
    required: bool = False
    quote_value: bool = False
    use_value_only: bool = False


class ArgumentTable:
    """Ordered mapping from dotted property paths to argument descriptors.

    Keys compare case-sensitively unless `ignore_case` is set. A case-insensitive
    table also resolves its property paths against the configuration without
    regard to case.
    """

    def __init__(
        self,
        entries: dict[str, ArgumentDescriptor] | None = None,
        *,
        ignore_case: bool = False,
    ) -> None:
        """Initialize the table, optionally seeding it with ordered entries."""

        self.ignore_case = ignore_case
        self._entries: dict[str, tuple[str, ArgumentDescriptor]] = {}
        for key, descriptor in (entries or {}).items():
            self.add(key, descriptor)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> ArgumentTable:
        """Build a table from a parsed document.

        Expected shape: `{"ignore_case": bool, "arguments": [{"path": ..., "option": ...,
        "value": ..., "required": ..., "quote_value": ..., "use_value_only": ...}]}`.
        """

        raw_arguments = payload.get("arguments")
        if not isinstance(raw_arguments, list):
            raise ValueError("Argument table must contain an `arguments` list.")

        table = cls(ignore_case=bool(payload.get("ignore_case", False)))
        for index, item in enumerate(raw_arguments):
            if not isinstance(item, Mapping) or not str(item.get("path") or "").strip():
                raise ValueError(f"Argument entry {index} must be a mapping with a non-empty `path`.")
            raw_value = item.get("value")
            table.add(
                str(item["path"]).strip(),
                ArgumentDescriptor(
                    option=str(item.get("option") or ""),
                    value=None if raw_value is None else str(raw_value),
                    required=bool(item.get("required", False)),
                    quote_value=bool(item.get("quote_value", False)),
                    use_value_only=bool(item.get("use_value_only", False)),
                ),
            )
        return table

    def _normalize(self, key: str) -> str:
        return key.casefold() if self.ignore_case else key

    def add(self, key: str, descriptor: ArgumentDescriptor) -> None:
        """Append a descriptor.

        Raises:
            KeyError: If an equal key (under this table's comparison) already exists.
        """

        normalized = self._normalize(key)
        if normalized in self._entries:
            raise KeyError(f"An argument for `{key}` has already been added.")
        self._entries[normalized] = (key, descriptor)

    def clear(self) -> None:
        self._entries.clear()

    def items(self) -> Iterator[tuple[str, ArgumentDescriptor]]:
        """Yield `(property_path, descriptor)` pairs in insertion order."""

        return iter(self._entries.values())

    def __getitem__(self, key: str) -> ArgumentDescriptor:
        return self._entries[self._normalize(key)][1]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._normalize(key) in self._entries

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        keys = ", ".join(self)
        return f"ArgumentTable([{keys}], ignore_case={self.ignore_case})"
