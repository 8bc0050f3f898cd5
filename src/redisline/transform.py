"""Module containing data transformers for high-level Redis commands."""

import collections.abc
import typing

from redisline import error, reply

__all__: collections.abc.Sequence[str] = (
    "unwrap",
    "expect_ok",
    "to_bool",
    "to_list",
    "to_set",
    "parse_info",
)


def unwrap(data: reply.Reply) -> typing.Any:  # noqa: ANN401
    """Turn a typed reply into plain Python values.

    Status replies become ``str``, integers ``int``, bulk replies ``bytes``
    and multi-bulk replies ``list``. Absent bulk and multi-bulk replies
    become ``None``.
    """
    if isinstance(data, reply.Status):
        return data.text

    if isinstance(data, reply.Integer):
        return data.value

    if isinstance(data, reply.Bulk):
        return data.value

    if isinstance(data, reply.MultiBulk):
        if data.items is None:
            return None
        return [unwrap(item) for item in data.items]

    msg = f"Unexpected reply {data!r}."
    raise error.ProtocolError(msg)


def expect_ok(data: reply.Reply) -> bool:
    """Return whether the reply is the ``OK`` status."""
    return data == reply.Status("OK")


def to_bool(data: reply.Reply) -> bool:
    """Return whether the reply is the integer ``1``."""
    return data == reply.Integer(1)


def to_list(data: reply.Reply) -> list[typing.Any]:
    """Unwrap a multi-bulk reply, treating an absent one as empty."""
    return unwrap(data) or []


def to_set(data: reply.Reply) -> set[typing.Any]:
    """Unwrap a multi-bulk reply into a set, treating an absent one as empty."""
    return set(to_list(data))


def parse_info(data: reply.Reply) -> dict[str, str]:
    """Transform the ``INFO`` payload into a mapping of field to value."""
    # Payload is of shape
    #
    # redis_version:0.100\r\n
    # connected_clients:1\r\n
    # ...
    text = unwrap(data) or b""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")

    info: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            info[key.strip()] = value.strip()

    return info
