"""Module containing the connection implementation."""

from __future__ import annotations

import collections.abc
import dataclasses
import enum
import errno
import logging
import socket
import time
import types
import typing

from redisline import codec, error, pipeline, protocol, reply, transport

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Connection", "ConnectionState")


_LOGGER = logging.getLogger(__name__)

DEFAULT_HOST: typing.Final = "localhost"
DEFAULT_PORT: typing.Final = 6379
DEFAULT_TIMEOUT: typing.Final = 10.0

T = typing.TypeVar("T")

# Errors after which the whole operation is retried on a fresh socket.
_TRANSIENT_ERRORS: typing.Final = (
    ConnectionResetError,
    ConnectionAbortedError,
    BrokenPipeError,
    ConnectionRefusedError,
    TimeoutError,
)

# Errors after which a connect attempt is repeated once right away.
_RECONNECT_ERRORS: typing.Final = (ConnectionRefusedError, BrokenPipeError)

_NOT_CONNECTED_ERRNOS: typing.Final = frozenset({errno.EBADF, errno.ENOTCONN})


class ConnectionState(str, enum.Enum):
    """Lifecycle state of a ``Connection``."""

    NOT_CONNECTED = "NOT CONNECTED"
    CONNECTED = "CONNECTED"
    DEAD = "DEAD"


@dataclasses.dataclass(slots=True)
class Connection:
    """Low-level connection implementation.

    Owns a single socket to a redis server, connecting lazily on first use.

    A host that fails to connect is marked dead, and no new attempt is made
    until ``retry_delay`` seconds have passed. Resets, broken pipes, refusals
    and timeouts during an operation close the socket and retry the whole
    operation, at most ``max_attempts`` times if set.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    retry_delay: float = 0.0
    max_attempts: int | None = None
    logger: logging.Logger = dataclasses.field(default=_LOGGER, repr=False)
    clock: collections.abc.Callable[[], float] = dataclasses.field(
        default=time.monotonic,
        repr=False,
    )

    state: ConnectionState = dataclasses.field(default=ConnectionState.NOT_CONNECTED, init=False)
    status: str = dataclasses.field(default=ConnectionState.NOT_CONNECTED.value, init=False)
    retry_not_before: float | None = dataclasses.field(default=None, init=False)
    last_error: BaseException | None = dataclasses.field(default=None, init=False, repr=False)
    _socket: transport.TimedSocket | None = dataclasses.field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.host:
            msg = "No host specified."
            raise ValueError(msg)

        if not self.port:
            msg = "No port specified."
            raise ValueError(msg)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def __del__(self) -> None:
        if getattr(self, "_socket", None):
            self._drop_socket()

    def __enter__(self) -> "typing_extensions.Self":
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()

    def is_alive(self) -> bool:
        """Check whether this connection has a live socket."""
        return (
            self.state is ConnectionState.CONNECTED
            and self._socket is not None
            and self._socket.is_alive()
        )

    def _drop_socket(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()

    def _open_socket(self) -> transport.TimedSocket:
        sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        except BaseException:
            sock.close()
            raise

        return transport.TimedSocket(sock, self.timeout)

    def _mark_dead(self, exc: OSError) -> None:
        self._drop_socket()
        self.state = ConnectionState.DEAD
        self.last_error = exc
        self.retry_not_before = self.clock() + self.retry_delay

        reason = f"{type(exc).__name__}: {exc}"
        self.status = f"{self} DEAD ({reason}), will retry in {self.retry_delay}s"
        self.logger.warning(self.status)

    def acquire_socket(self) -> transport.TimedSocket:
        """Return a live socket, connecting if needed.

        Raises ``ConnectionUnavailable`` if the host is cooling down after
        being marked dead, or if connecting fails.
        """
        if self.state is ConnectionState.CONNECTED and self._socket is not None:
            if self._socket.is_alive():
                return self._socket

            self.logger.debug("Socket to %s failed liveness check, reconnecting", self)
            self._drop_socket()
            self.state = ConnectionState.NOT_CONNECTED

        if (
            self.state is ConnectionState.DEAD
            and self.retry_not_before is not None
            and self.clock() < self.retry_not_before
        ):
            raise error.ConnectionUnavailable(self.status)

        sock = self._connect()
        self._socket = sock
        self.retry_not_before = None
        self.last_error = None
        self.state = ConnectionState.CONNECTED
        self.status = ConnectionState.CONNECTED.value
        self.logger.debug("Connected to %s", self)
        return sock

    def _connect(self) -> transport.TimedSocket:
        try:
            return self._open_socket()

        except _RECONNECT_ERRORS as exc:
            self._drop_socket()
            self.logger.debug("Connecting to %s failed (%r), retrying", self, exc)

        except OSError as exc:
            self._mark_dead(exc)
            raise error.ConnectionUnavailable(self.status) from exc

        try:
            return self._open_socket()

        except OSError as exc:
            self._mark_dead(exc)
            raise error.ConnectionUnavailable(self.status) from exc

    def with_socket(self, op: collections.abc.Callable[[transport.TimedSocket], T], /) -> T:
        """Run ``op`` on a live socket, retrying it on transient socket errors."""
        attempts = 0
        while True:
            sock = self.acquire_socket()
            try:
                return op(sock)

            except _TRANSIENT_ERRORS as exc:
                self.close()
                attempts += 1
                self.logger.debug("Disconnected from %s: %r", self, exc)

                if self.max_attempts is not None and attempts >= self.max_attempts:
                    msg = f"Giving up on '{self}' after {attempts} attempts: {exc}"
                    raise error.ConnectionUnavailable(msg) from exc

            except OSError as exc:
                self.close()
                if exc.errno in _NOT_CONNECTED_ERRNOS:
                    msg = f"Tried to use a connection to '{self}' that is not connected."
                else:
                    msg = f"Socket error on '{self}': {exc}"

                raise error.ConnectionUnavailable(msg) from exc

    def close(self) -> None:
        """Close the connection with Redis. Closing twice is harmless."""
        self._drop_socket()
        self.state = ConnectionState.NOT_CONNECTED
        self.status = ConnectionState.NOT_CONNECTED.value
        self.retry_not_before = None

    def read(self, n: int, /) -> bytes:
        """Read exactly ``n`` bytes."""
        data = self.with_socket(lambda sock: sock.read(n))
        self.logger.debug("read(%i) is %r", n, data)
        return data

    def readline(self) -> bytes:
        """Read up to and including the next line feed."""
        return self.with_socket(transport.TimedSocket.readline)

    def write_raw(self, data: bytes, /) -> None:
        """Write already encoded bytes to the connected Redis instance."""
        self.logger.debug("writing: %r", data)
        self.with_socket(lambda sock: sock.write(data))

    def write_command(self, command: protocol.CommandProto, /) -> None:
        """Write a command to the connected Redis instance.

        ``read_reply`` *must* be called after this.
        """
        self.write_raw(codec.encode(command))

    def read_reply(self) -> reply.Reply:
        """Read the reply to a previously written command.

        Malformed replies leave the stream in an unknown state, so they
        close the connection before propagating.
        """
        try:
            return codec.read_reply(self, logger=self.logger)

        except error.ProtocolError:
            self.close()
            raise

    def execute(self, command: protocol.CommandProto, /) -> reply.Reply:
        """Write a command and read its reply."""
        self.write_command(command)
        return self.read_reply()

    def pipeline(self) -> pipeline.Pipeline:
        """Start a new pipeline on this connection."""
        return pipeline.Pipeline(self)

    def pipelined(
        self,
        body: collections.abc.Callable[[pipeline.Pipeline], object],
        /,
    ) -> list[reply.Reply]:
        """Queue commands in ``body``, then send them all and read every reply.

        Replies are returned in the order their commands were queued.
        """
        return self.pipeline().run(body)
