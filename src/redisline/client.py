"""Module containing Redis client implementation."""

from __future__ import annotations

import collections.abc
import dataclasses
import logging
import types
import typing
import urllib.parse

from redisline import command, connection, error, pipeline, reply, transform

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Redis",)


# Integer replies some commands use to report failures instead of an error
# reply. They only mean this for the commands checked below.
_NO_SUCH_KEY: typing.Final = -1
_WRONG_TYPE: typing.Final = -2
_SAME_KEYS: typing.Final = -3


def _check_sentinel(data: reply.Reply, key: command.ArgT) -> int:
    value = typing.cast(int, transform.unwrap(data))

    if value == _NO_SUCH_KEY:
        msg = f"key: {key!r} does not exist"
        raise error.CommandError(msg)

    if value == _WRONG_TYPE:
        msg = f"key: {key!r} holds the wrong kind of value"
        raise error.CommandError(msg)

    return value


@dataclasses.dataclass(slots=True)
class Redis:
    """Redis client implementation.

    Wraps a single ``Connection`` and offers one method per command. No
    connection is made until the first command is sent.
    """

    host: str = connection.DEFAULT_HOST
    port: int = connection.DEFAULT_PORT
    db: int = 0
    timeout: float = connection.DEFAULT_TIMEOUT
    retry_delay: float = 0.0
    max_attempts: int | None = None
    logger: logging.Logger | None = dataclasses.field(default=None, repr=False)

    connection: connection.Connection = dataclasses.field(init=False, repr=False)

    def __post_init__(self) -> None:
        kwargs: dict[str, typing.Any] = {}
        if self.logger is not None:
            kwargs["logger"] = self.logger

        self.connection = connection.Connection(
            self.host,
            self.port,
            self.timeout,
            retry_delay=self.retry_delay,
            max_attempts=self.max_attempts,
            **kwargs,
        )

    @classmethod
    def from_url(cls, url: str, **kwargs: typing.Any) -> "Redis":  # noqa: ANN401
        """Create a Redis client from a Redis url.

        Urls look like ``redis://host:port/db``; every part after the scheme
        is optional. This does *not* make any connections, nor does it send
        ``SELECT``.
        """
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme != "redis":
            msg = "Only urls of scheme 'redis://host:port/db' are supported"
            raise ValueError(msg)

        db = parsed.path.strip("/") or "0"
        if not db.isdigit():
            msg = f"Invalid database index {db!r} in url."
            raise ValueError(msg)

        return cls(
            parsed.hostname or connection.DEFAULT_HOST,
            parsed.port or connection.DEFAULT_PORT,
            int(db),
            **kwargs,
        )

    def __str__(self) -> str:
        return str(self.connection)

    def __enter__(self) -> "typing_extensions.Self":
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the connection to Redis."""
        self.connection.close()

    def execute(self, cmd: command.Command, /) -> reply.Reply:
        """Send a command and return its typed reply."""
        return self.connection.execute(cmd)

    def call(
        self,
        verb: command.ArgT,
        *args: command.ArgT,
        bulk: command.ArgT | None = None,
    ) -> reply.Reply:
        """Build a command from a verb and arguments, send it and return its reply."""
        cmd = command.Command(verb, *args)
        if bulk is not None:
            cmd.bulk(bulk)

        return self.execute(cmd)

    def pipeline(self) -> pipeline.Pipeline:
        """Start a new pipeline; use it as a context manager."""
        return self.connection.pipeline()

    def pipelined(
        self,
        body: collections.abc.Callable[[pipeline.Pipeline], object],
        /,
    ) -> list[reply.Reply]:
        """Queue commands in ``body`` and return all their replies in order."""
        return self.connection.pipelined(body)

    # Connection

    def ping(self) -> bool:
        """Check that the server answers ``PONG``."""
        return self.call(b"PING") == reply.Status("PONG")

    def select(self, index: int) -> bool:
        """Switch to another logical database."""
        ok = transform.expect_ok(self.call(b"SELECT", index))
        if ok:
            self.db = index
        return ok

    def quit(self) -> None:
        """Ask the server to close the connection, then close it locally."""
        self.connection.write_command(command.Command(b"QUIT"))
        self.close()

    # Server

    def flushdb(self) -> bool:
        """Remove every key from the selected database."""
        return transform.expect_ok(self.call(b"FLUSHDB"))

    def dbsize(self) -> int:
        """Return the number of keys in the selected database."""
        return transform.unwrap(self.call(b"DBSIZE"))

    def lastsave(self) -> int:
        """Return the unix time of the last successful save."""
        return transform.unwrap(self.call(b"LASTSAVE"))

    def bgsave(self) -> bool:
        """Ask the server to save the dataset in the background."""
        return transform.expect_ok(self.call(b"BGSAVE"))

    def info(self) -> dict[str, str]:
        """Return the server information fields."""
        return transform.parse_info(self.call(b"INFO"))

    # Keys

    def exists(self, key: command.ArgT) -> bool:
        """Return whether ``key`` exists."""
        return transform.to_bool(self.call(b"EXISTS", key))

    def delete(self, key: command.ArgT) -> bool:
        """Delete ``key``; return whether it existed."""
        return transform.to_bool(self.call(b"DEL", key))

    def type(self, key: command.ArgT) -> str:
        """Return the kind of value stored at ``key``."""
        return transform.unwrap(self.call(b"TYPE", key))

    def keys(self, pattern: command.ArgT) -> list[bytes]:
        """Return the keys matching ``pattern``."""
        data = self.call(b"KEYS", pattern)

        # Older servers send a single space-separated bulk reply.
        if isinstance(data, reply.Bulk):
            return (data.value or b"").split()

        return transform.to_list(data)

    def randomkey(self) -> bytes | str | None:
        """Return a random key, or ``None`` if the database is empty."""
        return transform.unwrap(self.call(b"RANDOMKEY"))

    def rename(self, old: command.ArgT, new: command.ArgT) -> bool:
        """Rename ``old`` to ``new``, overwriting ``new`` if it exists."""
        return transform.expect_ok(self.call(b"RENAME", old, new))

    def renamenx(self, old: command.ArgT, new: command.ArgT) -> bool:
        """Rename ``old`` to ``new``, only if ``new`` does not exist.

        Raises ``RenameError`` describing why the rename was refused.
        """
        value = transform.unwrap(self.call(b"RENAMENX", old, new))

        if value == _NO_SUCH_KEY:
            msg = f"source key: {old!r} does not exist"
            raise error.RenameError(msg)

        if value == 0:
            msg = f"target key: {new!r} already exists"
            raise error.RenameError(msg)

        if value == _SAME_KEYS:
            msg = "source and destination keys are the same"
            raise error.RenameError(msg)

        return value == 1

    def expire(self, key: command.ArgT, seconds: int) -> bool:
        """Expire ``key`` after ``seconds``; return whether the key exists."""
        return transform.to_bool(self.call(b"EXPIRE", key, seconds))

    # Strings

    def get(self, key: command.ArgT) -> bytes | None:
        """Return the value of ``key``, or ``None`` if it does not exist."""
        return transform.unwrap(self.call(b"GET", key))

    def mget(self, *keys: command.ArgT) -> list[bytes | None]:
        """Return the values of ``keys``, ``None`` for missing ones."""
        return transform.to_list(self.call(b"MGET", *keys))

    def set(self, key: command.ArgT, value: command.ArgT, expiry: int | None = None) -> bool:
        """Set ``key`` to ``value``, optionally expiring it after ``expiry`` seconds."""
        ok = transform.expect_ok(self.call(b"SET", key, bulk=value))
        if ok and expiry:
            return self.expire(key, expiry)
        return ok

    def setnx(self, key: command.ArgT, value: command.ArgT) -> bool:
        """Set ``key`` to ``value`` unless it already exists."""
        return transform.to_bool(self.call(b"SETNX", key, bulk=value))

    def incr(self, key: command.ArgT, amount: int | None = None) -> int:
        """Increment ``key`` by one, or by ``amount``, and return the new value."""
        if amount is None:
            return transform.unwrap(self.call(b"INCR", key))
        return transform.unwrap(self.call(b"INCRBY", key, amount))

    def decr(self, key: command.ArgT, amount: int | None = None) -> int:
        """Decrement ``key`` by one, or by ``amount``, and return the new value."""
        if amount is None:
            return transform.unwrap(self.call(b"DECR", key))
        return transform.unwrap(self.call(b"DECRBY", key, amount))

    # Lists

    def rpush(self, key: command.ArgT, value: command.ArgT) -> str | int:
        """Append ``value`` to the list at ``key``."""
        return transform.unwrap(self.call(b"RPUSH", key, bulk=value))

    def lpush(self, key: command.ArgT, value: command.ArgT) -> str | int:
        """Prepend ``value`` to the list at ``key``."""
        return transform.unwrap(self.call(b"LPUSH", key, bulk=value))

    def lpop(self, key: command.ArgT) -> bytes | None:
        """Remove and return the first element of the list at ``key``."""
        return transform.unwrap(self.call(b"LPOP", key))

    def rpop(self, key: command.ArgT) -> bytes | None:
        """Remove and return the last element of the list at ``key``."""
        return transform.unwrap(self.call(b"RPOP", key))

    def llen(self, key: command.ArgT) -> int:
        """Return the length of the list at ``key``."""
        return _check_sentinel(self.call(b"LLEN", key), key)

    def lrange(self, key: command.ArgT, start: int, end: int) -> list[bytes]:
        """Return the elements of the list at ``key`` from ``start`` to ``end`` inclusive."""
        return transform.to_list(self.call(b"LRANGE", key, start, end))

    def ltrim(self, key: command.ArgT, start: int, end: int) -> bool:
        """Trim the list at ``key`` to the range ``start`` to ``end``."""
        return transform.expect_ok(self.call(b"LTRIM", key, start, end))

    def lindex(self, key: command.ArgT, index: int) -> bytes | None:
        """Return the element at ``index`` in the list at ``key``."""
        return transform.unwrap(self.call(b"LINDEX", key, index))

    def lset(self, key: command.ArgT, index: int, value: command.ArgT) -> bool:
        """Set the element at ``index`` in the list at ``key``."""
        return transform.expect_ok(self.call(b"LSET", key, index, bulk=value))

    def lrem(self, key: command.ArgT, count: int, value: command.ArgT) -> int:
        """Remove ``count`` occurrences of ``value``; return how many were removed."""
        return _check_sentinel(self.call(b"LREM", key, count, bulk=value), key)

    # Sets

    def sadd(self, key: command.ArgT, member: command.ArgT) -> bool:
        """Add ``member`` to the set at ``key``; return whether it was new."""
        return _check_sentinel(self.call(b"SADD", key, bulk=member), key) == 1

    def srem(self, key: command.ArgT, member: command.ArgT) -> bool:
        """Remove ``member`` from the set at ``key``; return whether it was there."""
        return _check_sentinel(self.call(b"SREM", key, bulk=member), key) == 1

    def scard(self, key: command.ArgT) -> int:
        """Return the number of members in the set at ``key``."""
        return _check_sentinel(self.call(b"SCARD", key), key)

    def sismember(self, key: command.ArgT, member: command.ArgT) -> bool:
        """Return whether ``member`` is in the set at ``key``."""
        return _check_sentinel(self.call(b"SISMEMBER", key, bulk=member), key) == 1

    def smembers(self, key: command.ArgT) -> set[bytes]:
        """Return the members of the set at ``key``."""
        return transform.to_set(self.call(b"SMEMBERS", key))

    def smove(self, src: command.ArgT, dest: command.ArgT, member: command.ArgT) -> bool:
        """Move ``member`` from the set at ``src`` to the set at ``dest``."""
        return transform.to_bool(self.call(b"SMOVE", src, dest, bulk=member))

    def sinter(self, *keys: command.ArgT) -> set[bytes]:
        """Return the intersection of the sets at ``keys``."""
        return transform.to_set(self.call(b"SINTER", *keys))

    def sinterstore(self, dest: command.ArgT, *keys: command.ArgT) -> int:
        """Store the intersection of the sets at ``keys`` in ``dest``; return its size."""
        return transform.unwrap(self.call(b"SINTERSTORE", dest, *keys))

    def sunion(self, *keys: command.ArgT) -> set[bytes]:
        """Return the union of the sets at ``keys``."""
        return transform.to_set(self.call(b"SUNION", *keys))

    def sunionstore(self, dest: command.ArgT, *keys: command.ArgT) -> int:
        """Store the union of the sets at ``keys`` in ``dest``; return its size."""
        return transform.unwrap(self.call(b"SUNIONSTORE", dest, *keys))

    def sdiff(self, *keys: command.ArgT) -> set[bytes]:
        """Return the members of the first set not in the other sets."""
        return transform.to_set(self.call(b"SDIFF", *keys))

    def sdiffstore(self, dest: command.ArgT, *keys: command.ArgT) -> int:
        """Store the difference of the sets at ``keys`` in ``dest``; return its size."""
        return transform.unwrap(self.call(b"SDIFFSTORE", dest, *keys))

    def sort(
        self,
        key: command.ArgT,
        *,
        by: command.ArgT | None = None,
        get: command.ArgT | None = None,
        order: str | None = None,
        limit: tuple[int, int] | None = None,
    ) -> list[bytes | None]:
        """Sort the list or set at ``key``.

        ``order`` takes the raw sort modifiers, e.g. ``"DESC"`` or
        ``"ALPHA"``; ``limit`` is an ``(offset, count)`` pair.
        """
        cmd = command.Command(b"SORT", key)

        if by is not None:
            cmd.arg(b"BY").arg(by)

        if get is not None:
            cmd.arg(b"GET").arg(get)

        if order is not None:
            cmd.args(order.split())

        if limit is not None:
            cmd.arg(b"LIMIT").args(limit)

        return transform.to_list(self.execute(cmd))
