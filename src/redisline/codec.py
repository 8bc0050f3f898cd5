"""Module containing the wire codec.

Commands go out as a single line, with an optional length-prefixed bulk
argument::

    SET foo 3\\r\\nbar\\r\\n

Replies come back led by a one-byte sigil (see ``reply.ReplyType``). Error
replies are raised as ``error.ResponseError``, never returned.
"""

import collections.abc
import logging
import re
import typing

from redisline import command, error, protocol, reply

__all__: collections.abc.Sequence[str] = ("encode", "encode_command", "read_reply")


_LOGGER = logging.getLogger(__name__)

_LINE_NOISE = (b"\r", b"\n")

_INTEGER: typing.Final = re.compile(rb"-?[0-9]+")


def encode(cmd: protocol.CommandProto, /) -> bytes:
    """Serialize a command to wire bytes."""
    return cmd.encode()


def encode_command(
    verb: command.ArgT,
    *args: command.ArgT,
    bulk: command.ArgT | None = None,
) -> bytes:
    """Build a command from a verb and arguments and serialize it."""
    cmd = command.Command(verb, *args)
    if bulk is not None:
        cmd.bulk(bulk)

    return cmd.encode()


def _read_line(source: protocol.ReaderProto) -> bytes:
    line = source.readline()
    if not line.endswith(b"\n"):
        msg = f"Expected a line terminator, got {line!r}."
        raise error.ProtocolError(msg)

    return line.rstrip(b"\r\n")


def _read_int(source: protocol.ReaderProto, what: str) -> int:
    line = _read_line(source)
    if not _INTEGER.fullmatch(line):
        msg = f"Expected an integer {what}, got {line!r}."
        raise error.ProtocolError(msg)

    return int(line)


def _read_sigil(source: protocol.ReaderProto, logger: logging.Logger) -> bytes:
    while (byte := source.read(1)) in _LINE_NOISE:
        logger.debug("Discarding stray %r before reply", byte)

    return byte


def read_reply(  # noqa: PLR0911
    source: protocol.ReaderProto,
    *,
    logger: logging.Logger = _LOGGER,
) -> reply.Reply:
    """Read and decode one complete reply from ``source``."""
    byte = _read_sigil(source, logger)
    logger.debug("Reply type is %r", byte)

    if byte == reply.ReplyType.STATUS:
        return reply.Status(_read_line(source).decode("utf-8", errors="replace"))

    if byte == reply.ReplyType.ERROR:
        raise error.ResponseError.from_response(_read_line(source))

    if byte == reply.ReplyType.INTEGER:
        return reply.Integer(_read_int(source, "reply"))

    if byte == reply.ReplyType.BULK:
        length = _read_int(source, "bulk length")
        if length < 0:
            return reply.Bulk(None)

        data = source.read(length + 2)
        if data[-2:] != command.CRLF:
            msg = f"Bulk reply of {length} bytes is not followed by CRLF."
            raise error.ProtocolError(msg)

        logger.debug("Bulk reply read %i bytes", length)
        return reply.Bulk(data[:-2])

    if byte == reply.ReplyType.MULTI_BULK:
        count = _read_int(source, "multi-bulk count")
        if count < 0:
            return reply.MultiBulk(None)

        return _read_multi_bulk(source, count, logger)

    msg = f"Unknown reply sigil {byte!r}."
    raise error.ProtocolError(msg)


def _read_multi_bulk(
    source: protocol.ReaderProto,
    count: int,
    logger: logging.Logger,
) -> reply.MultiBulk:
    items: list[reply.Reply] = []
    failure: error.ResponseError | None = None

    # Every sub-reply is read even after an error, so the stream stays in sync.
    for _ in range(count):
        try:
            items.append(read_reply(source, logger=logger))

        except error.ResponseError as exc:
            if failure is None:
                failure = exc

    if failure is not None:
        raise failure

    return reply.MultiBulk(items)
