"""Shared fixtures: an in-process server speaking the inline protocol."""

import fnmatch
import socketserver
import threading

import pytest

from redisline import client, connection

# Commands whose last argument is sent as a length-prefixed bulk.
BULK_COMMANDS = frozenset(
    {b"SET", b"SETNX", b"RPUSH", b"LPUSH", b"LSET", b"LREM"}
    | {b"SADD", b"SREM", b"SISMEMBER", b"SMOVE"},
)


def bulk(value: bytes | None) -> bytes:
    if value is None:
        return b"$-1\r\n"
    return b"$%i\r\n%b\r\n" % (len(value), value)


def integer(value: int) -> bytes:
    return b":%i\r\n" % value


def multi_bulk(values) -> bytes:
    return b"*%i\r\n" % len(values) + b"".join(bulk(value) for value in values)


class _Handler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        server: FakeServer = self.server  # type: ignore[assignment]
        server.connections += 1

        while True:
            line = self.rfile.readline()
            if not line:
                return

            parts = line.rstrip(b"\r\n").split(b" ")
            parts[0] = parts[0].upper()
            if parts[0] in BULK_COMMANDS:
                length = int(parts.pop())
                parts.append(self.rfile.read(length))
                self.rfile.read(2)

            with server.lock:
                server.received.append(parts)
                response = server.respond(parts)

            if parts[0] == b"QUIT":
                return

            try:
                self.wfile.write(response)
            except OSError:
                return


class FakeServer(socketserver.ThreadingTCPServer):
    """A tiny in-memory store answering a handful of commands."""

    allow_reuse_address = True
    daemon_threads = True
    block_on_close = False

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), _Handler)
        self.lock = threading.Lock()
        self.store: dict[bytes, object] = {}
        self.received: list[list[bytes]] = []
        self.canned: dict[bytes, bytes] = {}
        self.connections = 0

    @property
    def port(self) -> int:
        return self.server_address[1]

    @property
    def verbs(self) -> list[bytes]:
        with self.lock:
            return [parts[0] for parts in self.received]

    def _add(self, key: bytes, amount: int) -> bytes:
        value = int(self.store.get(key, b"0")) + amount  # type: ignore[arg-type]
        self.store[key] = str(value).encode()
        return integer(value)

    def respond(self, parts: list[bytes]) -> bytes:  # noqa: C901, PLR0911, PLR0912
        verb, args = parts[0], parts[1:]
        if verb in self.canned:
            return self.canned[verb]

        store = self.store
        if verb == b"PING":
            return b"+PONG\r\n"
        if verb in (b"SELECT", b"FLUSHDB", b"QUIT"):
            if verb == b"FLUSHDB":
                store.clear()
            return b"+OK\r\n"
        if verb == b"GET":
            return bulk(store.get(args[0]))  # type: ignore[arg-type]
        if verb == b"MGET":
            return multi_bulk([store.get(key) for key in args])
        if verb == b"SET":
            store[args[0]] = args[1]
            return b"+OK\r\n"
        if verb == b"SETNX":
            if args[0] in store:
                return integer(0)
            store[args[0]] = args[1]
            return integer(1)
        if verb == b"INCR":
            return self._add(args[0], 1)
        if verb == b"INCRBY":
            return self._add(args[0], int(args[1]))
        if verb == b"DECR":
            return self._add(args[0], -1)
        if verb == b"DECRBY":
            return self._add(args[0], -int(args[1]))
        if verb == b"EXISTS":
            return integer(args[0] in store)
        if verb == b"DEL":
            return integer(store.pop(args[0], None) is not None)
        if verb == b"EXPIRE":
            return integer(args[0] in store)
        if verb == b"DBSIZE":
            return integer(len(store))
        if verb == b"KEYS":
            pattern = args[0].decode()
            matches = [key for key in store if fnmatch.fnmatch(key.decode(), pattern)]
            return multi_bulk(sorted(matches))
        if verb == b"RENAMENX":
            old, new = args
            if old not in store:
                return integer(-1)
            if old == new:
                return integer(-3)
            if new in store:
                return integer(0)
            store[new] = store.pop(old)
            return integer(1)
        if verb == b"RPUSH":
            value = store.setdefault(args[0], [])
            if not isinstance(value, list):
                return b"-ERR Operation against a key holding the wrong kind of value\r\n"
            value.append(args[1])
            return b"+OK\r\n"
        if verb == b"LLEN":
            value = store.get(args[0], [])
            if not isinstance(value, list):
                return integer(-2)
            return integer(len(value))
        if verb == b"LRANGE":
            value = store.get(args[0], [])
            start, end = int(args[1]), int(args[2])
            return multi_bulk(value[start : None if end == -1 else end + 1])  # type: ignore[index]
        if verb == b"SADD":
            value = store.setdefault(args[0], set())
            if not isinstance(value, set):
                return integer(-2)
            added = args[1] not in value
            value.add(args[1])
            return integer(added)
        if verb == b"SMEMBERS":
            return multi_bulk(sorted(store.get(args[0], set())))  # type: ignore[arg-type]
        if verb == b"TYPE":
            value = store.get(args[0])
            kind = {list: b"list", set: b"set", bytes: b"string"}.get(type(value), b"none")
            return b"+%b\r\n" % kind
        if verb == b"INFO":
            return bulk(b"redis_version:0.100\r\nconnected_clients:1\r\n")
        return b"-ERR unknown command\r\n"


@pytest.fixture
def server():
    srv = FakeServer()
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()

    yield srv

    srv.shutdown()
    srv.server_close()


@pytest.fixture
def conn(server):
    con = connection.Connection("127.0.0.1", server.port, timeout=2.0)
    yield con
    con.close()


@pytest.fixture
def redis(server):
    with client.Redis("127.0.0.1", server.port, timeout=2.0) as redis:
        yield redis
