"""Typed accessor maps for dotted configuration property paths.

Responsibilities:
- Build, once per configuration type, a table from dotted path to getter.
- Resolve a path to a value with exact or case-insensitive path matching.
- Report unresolved paths as a distinct outcome rather than an error.
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from functools import lru_cache
from typing import Any, Callable, Mapping, get_type_hints

Getter = Callable[[Any], Any]


class _Unresolved:
    """Marker for property paths that do not exist on a configuration."""

    _instance: _Unresolved | None = None

    def __new__(cls) -> _Unresolved:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED = _Unresolved()


class PropertyAccessorMap:
    """Mapping from dotted property path to a getter over one configuration shape."""

    def __init__(self, accessors: Mapping[str, Getter]) -> None:
        """Initialize from explicit `path -> getter` accessors."""

        self._accessors: dict[str, Getter] = dict(accessors)
        self._folded: dict[str, str] = {}
        for path in self._accessors:
            self._folded.setdefault(path.casefold(), path)

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(self._accessors)

    def resolve(self, configuration: Any, path: str, *, ignore_case: bool = False) -> Any:
        """Return the value at `path`, or `UNRESOLVED` when the path does not exist."""

        canonical = path if path in self._accessors else None
        if canonical is None and ignore_case:
            canonical = self._folded.get(path.casefold())
        if canonical is None:
            return UNRESOLVED
        return self._accessors[canonical](configuration)

    @classmethod
    def for_configuration(cls, configuration: Any) -> PropertyAccessorMap:
        """Return the accessor map for a configuration instance.

        Dataclass configurations reuse a map cached per type; mapping
        configurations get a map built from their current keys.
        """

        if is_dataclass(configuration) and not isinstance(configuration, type):
            return cls.for_dataclass(type(configuration))
        if isinstance(configuration, Mapping):
            return cls(_mapping_accessors(configuration))
        return cls({})

    @staticmethod
    @lru_cache(maxsize=None)
    def for_dataclass(configuration_type: type) -> PropertyAccessorMap:
        """Build (once) the accessor map for a dataclass configuration type.

        Nested dataclass fields contribute their own paths under a dotted prefix;
        every other field, mappings included, is a leaf.
        """

        return PropertyAccessorMap(_dataclass_accessors(configuration_type))


def _dataclass_accessors(configuration_type: type, prefix: str = "", parent: Getter | None = None) -> dict[str, Getter]:
    accessors: dict[str, Getter] = {}
    hints = get_type_hints(configuration_type)
    for field_info in fields(configuration_type):
        path = f"{prefix}{field_info.name}"
        getter = _chain(parent, field_info.name)
        accessors[path] = getter
        field_type = hints.get(field_info.name)
        if isinstance(field_type, type) and is_dataclass(field_type):
            accessors.update(_dataclass_accessors(field_type, f"{path}.", getter))
    return accessors


def _mapping_accessors(mapping: Mapping[str, Any], prefix: str = "", parent: Getter | None = None) -> dict[str, Getter]:
    accessors: dict[str, Getter] = {}
    for key, value in mapping.items():
        path = f"{prefix}{key}"
        getter = _chain_item(parent, key)
        accessors[path] = getter
        if isinstance(value, Mapping):
            accessors.update(_mapping_accessors(value, f"{path}.", getter))
    return accessors


def _chain(parent: Getter | None, name: str) -> Getter:
    if parent is None:
        return lambda configuration: getattr(configuration, name)

    def _get(configuration: Any) -> Any:
        owner = parent(configuration)
        if owner is None:
            return None
        return getattr(owner, name)

    return _get


def _chain_item(parent: Getter | None, key: str) -> Getter:
    if parent is None:
        return lambda configuration: configuration[key]
    return lambda configuration: parent(configuration)[key]
