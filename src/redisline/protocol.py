"""Module containing protocols that prescribe redisline implementations."""

import collections.abc
import typing

if typing.TYPE_CHECKING:
    from redisline import reply

__all__: collections.abc.Sequence[str] = ("CommandProto", "ReaderProto", "ConnectionProto")


class CommandProto(typing.Protocol):
    """Redis command protocol."""

    def encode(self) -> bytes:
        """Serialize this command to wire bytes."""
        ...

    def __iter__(self) -> typing.Iterator[bytes]: ...

    def __len__(self) -> int: ...


class ReaderProto(typing.Protocol):
    """Anything replies can be decoded from."""

    def read(self, n: int, /) -> bytes:
        """Read exactly ``n`` bytes."""
        ...

    def readline(self) -> bytes:
        """Read up to and including the next line feed."""
        ...


class ConnectionProto(ReaderProto, typing.Protocol):
    """Redis connection protocol."""

    def close(self) -> None:
        """Close the connection with Redis."""
        ...

    def write_raw(self, data: bytes, /) -> None:
        """Write already encoded bytes to the connected Redis instance."""
        ...

    def write_command(self, command: CommandProto, /) -> None:
        """Write a command to the connected Redis instance.

        ``read_reply`` *must* be called after this.
        """
        ...

    def read_reply(self) -> "reply.Reply":
        """Read the reply to a previously written command."""
        ...
