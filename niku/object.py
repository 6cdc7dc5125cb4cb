"""Objects that peers share through the backend."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

_MAX_SIZE = 2**64 - 1


class ObjectKind(Enum):
    """The kind of a shared object."""

    FILE = "File"
    FOLDER = "Folder"

    def __str__(self) -> str:
        return self.name.lower()


def _field(data: Any, name: str) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError("expected a JSON object")
    try:
        return data[name]
    except KeyError:
        raise ValueError(f"missing field `{name}`") from None


def _str_field(data: Any, name: str) -> str:
    value = _field(data, name)
    if not isinstance(value, str):
        raise ValueError(f"invalid type for field `{name}`: expected a string")
    return value


def _check_size(size: Any) -> int:
    if isinstance(size, bool) or not isinstance(size, int):
        raise ValueError("invalid type for field `size`: expected an integer")
    if not 0 <= size <= _MAX_SIZE:
        raise ValueError(f"object size out of range: {size}")
    return size


@dataclass(frozen=True)
class ObjectEntry:
    """Data needed to download an object from the peer hosting it."""

    node_address: str
    file_hash: str
    name: str
    kind: ObjectKind
    size: int

    def __post_init__(self) -> None:
        _check_size(self.size)
        if not isinstance(self.kind, ObjectKind):
            raise ValueError(f"invalid object kind: {self.kind!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_address": self.node_address,
            "file_hash": self.file_hash,
            "name": self.name,
            "kind": self.kind.value,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ObjectEntry:
        kind_value = _str_field(data, "kind")
        try:
            kind = ObjectKind(kind_value)
        except ValueError:
            raise ValueError(f"unknown variant `{kind_value}`") from None
        return cls(
            node_address=_str_field(data, "node_address"),
            file_hash=_str_field(data, "file_hash"),
            name=_str_field(data, "name"),
            kind=kind,
            size=_check_size(_field(data, "size")),
        )