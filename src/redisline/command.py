"""Module containing command implementation."""

import collections.abc
import dataclasses
import typing

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Command", "ArgT")


ArgT: typing.TypeAlias = str | bytes | int | float

CRLF: typing.Final = b"\r\n"

_WHITESPACE: typing.Final = frozenset(b" \t\r\n\v\f")


def _to_bytes(value: ArgT) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode()
    if isinstance(value, int | float):
        return str(value).encode()

    msg = f"Cannot send a value of type {type(value).__name__!r} to redis."
    raise TypeError(msg)


@dataclasses.dataclass(slots=True)
class Command:
    """A redis command.

    A command is a verb followed by space-separated inline arguments, and
    optionally a single trailing bulk argument. Inline arguments cannot
    contain whitespace; anything binary (or containing spaces and line
    endings) has to be sent as the bulk argument, which is prefixed by its
    byte length on the wire.
    """

    arguments: list[bytes]
    payload: bytes | None

    def __init__(self, name: ArgT, *args: ArgT) -> None:
        self.arguments = []
        self.payload = None

        self.arg(name)
        for arg in args:
            self.arg(arg)

    @property
    def name(self) -> bytes:
        """The command verb."""
        return self.arguments[0]

    def arg(self, value: ArgT) -> "typing_extensions.Self":
        """Add an inline argument to this command."""
        value = _to_bytes(value)
        if not value or _WHITESPACE.intersection(value):
            msg = (
                f"Inline argument {value!r} must be non-empty and contain no whitespace,"
                " use bulk()."
            )
            raise ValueError(msg)

        if self.payload is not None:
            msg = "Cannot add inline arguments after the bulk argument."
            raise ValueError(msg)

        self.arguments.append(value)
        return self

    def args(self, values: collections.abc.Iterable[ArgT]) -> "typing_extensions.Self":
        """Add several inline arguments to this command."""
        for value in values:
            self.arg(value)
        return self

    def bulk(self, value: ArgT) -> "typing_extensions.Self":
        """Set the trailing bulk argument of this command."""
        if self.payload is not None:
            msg = "A command can only carry one bulk argument."
            raise ValueError(msg)

        self.payload = _to_bytes(value)
        return self

    def encode(self) -> bytes:
        """Serialize this command to wire bytes."""
        line = b" ".join(self.arguments)
        if self.payload is None:
            return line + CRLF

        return b"%b %i\r\n%b\r\n" % (line, len(self.payload), self.payload)

    def __bytes__(self) -> bytes:
        return self.encode()

    def __str__(self) -> str:
        parts = [arg.decode("utf-8", errors="replace") for arg in self.arguments]
        if self.payload is not None:
            parts.append(f"<{len(self.payload)} bytes>")
        return " ".join(parts)

    def __len__(self) -> int:
        return len(self.arguments) + (self.payload is not None)

    def __iter__(self) -> collections.abc.Iterator[bytes]:
        yield from self.arguments
        if self.payload is not None:
            yield self.payload
