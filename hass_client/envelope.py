"""Typed, immutable views over decoded hub payloads.

Subclasses of ``Envelope`` declare the fields they expose:

    class EntityState(Envelope):
        entity_id = field("entity_id")
        device_class = optional_field("attributes", "device_class")

A required field raises ``MissingFieldError`` when any key along its path is
absent. An optional field returns None when only the last key is absent; the
parent path must still exist.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any, ClassVar

from .errors import MissingFieldError


class FrozenDict(Mapping[str, Any]):
    """Read-only, hashable mapping."""

    __slots__ = ("_data", "_hash")

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = dict(data)
        self._hash: int | None = None

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._data.items()))
        return self._hash

    def __repr__(self) -> str:
        return f"FrozenDict({self._data!r})"


def freeze(value: Any) -> Any:
    """Return a recursively immutable copy of a decoded JSON value.

    Mappings become ``FrozenDict`` and lists become tuples; scalars are
    returned as is.
    """
    if isinstance(value, FrozenDict):
        return value
    if isinstance(value, Mapping):
        return FrozenDict({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(item) for item in value)
    return value


def _normalize_path(path: tuple[str, ...]) -> tuple[str, ...]:
    if len(path) == 1 and "." in path[0]:
        path = tuple(path[0].split("."))
    if not path or not all(path):
        raise ValueError(f"Invalid field path: {path!r}")
    return path


class Field:
    """Descriptor extracting one value from an envelope's payload."""

    def __init__(
        self,
        path: tuple[str, ...],
        *,
        wrap: Callable[[Any], Any] | None = None,
        required: bool = True,
    ) -> None:
        self.path = _normalize_path(path)
        self.wrap = wrap
        self.required = required
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Envelope | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        cache = instance._field_cache
        if self.name not in cache:
            cache[self.name] = self.extract(instance.payload)
        return cache[self.name]

    def __set__(self, instance: Envelope, value: Any) -> None:
        raise AttributeError(f"Field {self.name!r} is read-only")

    def extract(self, payload: Mapping[str, Any]) -> Any:
        """Walk ``payload`` along this field's path and wrap the result."""
        *parents, last = self.path
        node: Any = payload
        for key in parents:
            node = self._step(node, key, payload)

        if not self.required and isinstance(node, Mapping) and last not in node:
            return None

        return self._apply_wrap(self._step(node, last, payload))

    def _step(self, node: Any, key: str, payload: Mapping[str, Any]) -> Any:
        if isinstance(node, Mapping) and key in node:
            return node[key]
        raise MissingFieldError(self.path, key, payload)

    def _apply_wrap(self, value: Any) -> Any:
        if self.wrap is None or value is None:
            return value
        if isinstance(value, tuple):
            return tuple(self.wrap(item) for item in value)
        return self.wrap(value)

    def __repr__(self) -> str:
        kind = "field" if self.required else "optional_field"
        return f"{kind}({'.'.join(self.path)!r})"


def field(*path: str, wrap: Callable[[Any], Any] | None = None) -> Any:
    """Declare a required field at ``path`` (keys or one dotted string)."""
    return Field(path, wrap=wrap, required=True)


def optional_field(*path: str, wrap: Callable[[Any], Any] | None = None) -> Any:
    """Declare a field whose last key may be absent."""
    return Field(path, wrap=wrap, required=False)


class Envelope:
    """Immutable wrapper around one decoded payload."""

    _field_names: ClassVar[tuple[str, ...]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        own = [name for name, value in vars(cls).items() if isinstance(value, Field)]
        inherited = [name for name in cls._field_names if name not in own]
        cls._field_names = tuple(inherited + own)

    def __init__(self, payload: Mapping[str, Any]) -> None:
        if not isinstance(payload, Mapping):
            raise TypeError(
                f"{type(self).__name__} expects a mapping, got {type(payload).__name__}"
            )
        object.__setattr__(self, "_payload", freeze(payload))
        object.__setattr__(self, "_field_cache", {})

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> Envelope:
        """Wrap a decoded hub message."""
        return cls(message)

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        """Declared field names, inherited ones first."""
        return cls._field_names

    @property
    def payload(self) -> FrozenDict:
        return self._payload  # type: ignore[attr-defined,no-any-return]

    def describe(self) -> dict[str, Any]:
        """Return each declared field name mapped to its extracted value."""
        return {name: getattr(self, name) for name in self.field_names()}

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.payload == other.payload  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.payload))

    def __repr__(self) -> str:
        parts = []
        for name in self.field_names():
            try:
                value = getattr(self, name)
            except MissingFieldError as err:
                parts.append(f"{name}=<missing {err.key!r}>")
            else:
                parts.append(f"{name}={value!r}")
        return f"{type(self).__name__}({', '.join(parts)})"
