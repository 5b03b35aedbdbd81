"""Request keys: structural identity for one cached read."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

Primitive = str | int | float | bool | None

_PRIMITIVE_TYPES = (str, int, float, bool, type(None))


def _freeze_value(name: str, value: Any) -> Any:
    if isinstance(value, _PRIMITIVE_TYPES):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        frozen: list[Primitive] = []
        for item in items:
            if not isinstance(item, _PRIMITIVE_TYPES):
                raise TypeError(f"filter {name!r} holds unsupported value {item!r}")
            frozen.append(item)
        return tuple(frozen)
    raise TypeError(f"filter {name!r} holds unsupported value {value!r}")


@dataclass(frozen=True)
class Filters:
    """Frozen filter mapping inside a request key."""

    items: tuple[tuple[str, Any], ...]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Filters:
        frozen = [(str(name), _freeze_value(str(name), value)) for name, value in mapping.items()]
        return cls(items=tuple(sorted(frozen, key=lambda item: item[0])))

    def as_dict(self) -> dict[str, Any]:
        return dict(self.items)

    def query_params(self) -> list[tuple[str, str]]:
        """Query parameters for the set filters, in key order."""
        params: list[tuple[str, str]] = []
        for name, value in self.items:
            values = value if isinstance(value, tuple) else (value,)
            for item in values:
                if item is None or item == "":
                    continue
                params.append((name, _format_scalar(item)))
        return params


KeyPart = Primitive | Filters


def _format_scalar(value: Primitive) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _freeze_part(part: Any) -> KeyPart:
    if isinstance(part, Filters):
        return part
    if isinstance(part, Mapping):
        return Filters.from_mapping(part)
    if isinstance(part, _PRIMITIVE_TYPES):
        return part
    raise TypeError(f"request key parts must be primitives or mappings, got {part!r}")


@dataclass(frozen=True)
class RequestKey:
    """Ordered sequence of primitive values identifying one logical read.

    The first part is the endpoint path. Further scalar parts become extra path
    segments (``("/api/ordenes", 5)`` reads ``/api/ordenes/5``), mapping parts
    become query parameters and ``None`` parts are skipped when building the
    URL but still take part in equality.
    """

    parts: tuple[KeyPart, ...]

    def __post_init__(self) -> None:
        if not self.parts:
            raise ValueError("request key must have at least one part")
        if not isinstance(self.parts[0], str) or not self.parts[0]:
            raise ValueError("request key must start with a non-empty path")

    @classmethod
    def of(cls, *parts: Any) -> RequestKey:
        return cls(parts=tuple(_freeze_part(part) for part in parts))

    @classmethod
    def coerce(cls, value: RequestKey | str | Sequence[Any]) -> RequestKey:
        if isinstance(value, RequestKey):
            return value
        if isinstance(value, str):
            return cls.of(value)
        return cls.of(*value)

    @property
    def path(self) -> str:
        return str(self.parts[0])

    def __len__(self) -> int:
        return len(self.parts)

    def __str__(self) -> str:
        return self.to_url()

    def matches_prefix(self, prefix: RequestKey | str | Sequence[Any]) -> bool:
        """True when ``prefix`` parts equal the leading parts of this key."""
        other = RequestKey.coerce(prefix)
        if len(other.parts) > len(self.parts):
            return False
        return self.parts[: len(other.parts)] == other.parts

    def url_parts(self) -> tuple[str, list[tuple[str, str]]]:
        """Split the key into a URL path and query parameters."""
        segments: list[str] = []
        params: list[tuple[str, str]] = []
        for index, part in enumerate(self.parts):
            if part is None:
                continue
            if isinstance(part, Filters):
                params.extend(part.query_params())
                continue
            if index == 0:
                segments.append(str(part).rstrip("/") or "/")
            else:
                segments.append(quote(_format_scalar(part), safe=""))
        return "/".join(segments), params

    def to_url(self) -> str:
        path, params = self.url_parts()
        if not params:
            return path
        query = "&".join(
            f"{quote(name, safe='')}={quote(value, safe='')}" for name, value in params
        )
        return f"{path}?{query}"


def keys_matching(
    keys: Iterable[RequestKey], prefix: RequestKey | str | Sequence[Any]
) -> list[RequestKey]:
    """Filter ``keys`` down to the ones under ``prefix``."""
    resolved = RequestKey.coerce(prefix)
    return [key for key in keys if key.matches_prefix(resolved)]
