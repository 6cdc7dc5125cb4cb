"""Messages exchanged with the discovery backend server."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


def _str_field(data: Any, name: str) -> str:
    if not isinstance(data, Mapping):
        raise ValueError("expected a JSON object")
    try:
        value = data[name]
    except KeyError:
        raise ValueError(f"missing field `{name}`") from None
    if not isinstance(value, str):
        raise ValueError(f"invalid type for field `{name}`: expected a string")
    return value


@dataclass(frozen=True)
class RegisteredObjectData:
    """State of an object registered on the backend server."""

    id: str
    keep_alive_key: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "keep_alive_key": self.keep_alive_key}

    @classmethod
    def from_dict(cls, data: Any) -> RegisteredObjectData:
        return cls(
            id=_str_field(data, "id"),
            keep_alive_key=_str_field(data, "keep_alive_key"),
        )


@dataclass(frozen=True)
class ObjectKeepAliveRequest:
    """Request asking the backend server not to delete an object entry."""

    keep_alive_key: str

    def to_dict(self) -> dict[str, str]:
        return {"keep_alive_key": self.keep_alive_key}

    @classmethod
    def from_dict(cls, data: Any) -> ObjectKeepAliveRequest:
        return cls(keep_alive_key=_str_field(data, "keep_alive_key"))


class ErrorResponse(Exception):
    """Error reported by the backend server."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def __repr__(self) -> str:
        return f"ErrorResponse(code={self.code!r}, message={self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ErrorResponse):
            return NotImplemented
        return (self.code, self.message) == (other.code, other.message)

    def __hash__(self) -> int:
        return hash((self.code, self.message))

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}

    @classmethod
    def from_dict(cls, data: Any) -> ErrorResponse:
        return cls(code=_str_field(data, "code"), message=_str_field(data, "message"))