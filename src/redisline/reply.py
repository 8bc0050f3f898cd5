"""Module containing typed reply values."""

from __future__ import annotations

import collections.abc
import dataclasses
import enum
import typing

__all__: collections.abc.Sequence[str] = (
    "ReplyType",
    "Status",
    "Integer",
    "Bulk",
    "MultiBulk",
    "Reply",
)


class ReplyType(bytes, enum.Enum):
    """The sigil that leads every reply."""

    STATUS = b"+"
    ERROR = b"-"
    INTEGER = b":"
    BULK = b"$"
    MULTI_BULK = b"*"


@dataclasses.dataclass(frozen=True, slots=True)
class Status:
    """A one-line confirmation, e.g. ``OK`` or ``PONG``."""

    text: str


@dataclasses.dataclass(frozen=True, slots=True)
class Integer:
    """A signed integer.

    Some commands use negative values to signal failures. These are kept
    as-is; translating them is up to the command that issued the request.
    """

    value: int


@dataclasses.dataclass(frozen=True, slots=True)
class Bulk:
    """A length-prefixed payload. ``None`` means the key was not found."""

    value: bytes | None

    @property
    def is_null(self) -> bool:
        """Whether the key was not found."""
        return self.value is None


@dataclasses.dataclass(frozen=True, slots=True)
class MultiBulk:
    """An aggregate of sub-replies. ``None`` means the aggregate is absent."""

    items: list[Reply] | None

    @property
    def is_null(self) -> bool:
        """Whether the aggregate is absent."""
        return self.items is None

    def __iter__(self) -> collections.abc.Iterator[Reply]:
        return iter(self.items or ())

    def __len__(self) -> int:
        return len(self.items or ())


Reply: typing.TypeAlias = Status | Integer | Bulk | MultiBulk
