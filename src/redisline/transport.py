"""Module containing the timed socket wrapper."""

import collections.abc
import select
import socket
import time
import typing

__all__: collections.abc.Sequence[str] = ("TimedSocket",)


_CHUNK_SIZE: typing.Final = 8192


class TimedSocket:
    """A connected socket where every read, line-read and write has a deadline.

    The deadline is ``timeout`` seconds from the start of each operation, not
    from each individual ``recv`` call. Expiry raises ``TimeoutError``; the
    peer closing the connection raises ``ConnectionResetError``.
    """

    __slots__ = ("_buffer", "_sock", "timeout")

    def __init__(self, sock: socket.socket, timeout: float) -> None:
        self._sock = sock
        self._buffer = bytearray()
        self.timeout = timeout

    @property
    def closed(self) -> bool:
        """Whether the underlying socket has been closed."""
        return self._sock.fileno() == -1

    def fileno(self) -> int:
        """Return the file descriptor of the underlying socket."""
        return self._sock.fileno()

    def close(self) -> None:
        """Close the socket and drop any buffered data."""
        self._buffer.clear()
        self._sock.close()

    def is_alive(self) -> bool:
        """Check without blocking whether the peer is still there.

        Any failure while probing, a timeout included, counts as dead.
        """
        if self.closed:
            return False

        if self._buffer:
            return True

        try:
            readable, _, _ = select.select([self._sock], [], [], 0)
            if not readable:
                return True

            # Readable with nothing to read means the peer hung up.
            return bool(self._sock.recv(1, socket.MSG_PEEK))

        except (OSError, ValueError):
            return False

    def _fill(self, deadline: float) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            msg = f"Timed out after {self.timeout}s reading from socket."
            raise TimeoutError(msg)

        self._sock.settimeout(remaining)
        chunk = self._sock.recv(_CHUNK_SIZE)
        if not chunk:
            msg = "Connection closed by server."
            raise ConnectionResetError(msg)

        self._buffer += chunk

    def read(self, n: int) -> bytes:
        """Read exactly ``n`` bytes."""
        deadline = time.monotonic() + self.timeout
        while len(self._buffer) < n:
            self._fill(deadline)

        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        return data

    def readline(self) -> bytes:
        """Read up to and including the next line feed."""
        deadline = time.monotonic() + self.timeout
        while (end := self._buffer.find(b"\n")) == -1:
            self._fill(deadline)

        data = bytes(self._buffer[: end + 1])
        del self._buffer[: end + 1]
        return data

    def write(self, data: bytes) -> None:
        """Write all of ``data``."""
        # sendall applies the timeout to the whole call.
        self._sock.settimeout(self.timeout)
        self._sock.sendall(data)
