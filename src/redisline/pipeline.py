"""Module containing the command pipeline."""

import collections.abc
import dataclasses
import types
import typing

from redisline import codec, command, error, protocol, reply

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Pipeline",)


@dataclasses.dataclass(slots=True)
class Pipeline:
    """A batch of commands sent together, with their replies read afterwards.

    Commands can only be queued; nothing is written until ``finish``. A
    pipeline is finished exactly once, after which it cannot be reused.

    While commands are being queued, either inside ``run`` or inside a
    ``with`` block, ``finish`` is refused. When used as a context manager the
    batch is finished on a clean exit and the replies are available on
    ``replies``. If the block raises, nothing is sent.
    """

    _connection: protocol.ConnectionProto
    replies: list[reply.Reply] = dataclasses.field(default_factory=list, init=False)
    _commands: list[protocol.CommandProto] = dataclasses.field(default_factory=list, init=False)
    _finished: bool = dataclasses.field(default=False, init=False)
    _queueing: bool = dataclasses.field(default=False, init=False)

    def _ensure_open(self) -> None:
        if self._finished:
            msg = "This pipeline has already been finished."
            raise error.StateError(msg)

    def _discard(self) -> None:
        self._finished = True
        self._commands.clear()

    def enqueue(self, cmd: protocol.CommandProto, /) -> "typing_extensions.Self":
        """Queue a command to be sent when the pipeline finishes."""
        self._ensure_open()
        self._commands.append(cmd)
        return self

    def call(
        self,
        verb: command.ArgT,
        *args: command.ArgT,
        bulk: command.ArgT | None = None,
    ) -> "typing_extensions.Self":
        """Build a command from a verb and arguments and queue it."""
        cmd = command.Command(verb, *args)
        if bulk is not None:
            cmd.bulk(bulk)

        return self.enqueue(cmd)

    def run(self, body: collections.abc.Callable[["Pipeline"], object], /) -> list[reply.Reply]:
        """Let ``body`` queue commands, then finish the pipeline."""
        self._ensure_open()
        self._queueing = True
        try:
            body(self)

        except BaseException:
            self._discard()
            raise

        finally:
            self._queueing = False

        return self.finish()

    def finish(self) -> list[reply.Reply]:
        """Send all queued commands, then read one reply per command.

        An error reply is raised as soon as it is read; replies after it are
        left unread and the connection is closed.
        """
        if self._queueing:
            msg = "Cannot finish a pipeline while its commands are being queued."
            raise error.StateError(msg)

        self._ensure_open()
        self._finished = True
        commands, self._commands = self._commands, []

        if not commands:
            return self.replies

        self._connection.write_raw(b"".join(codec.encode(cmd) for cmd in commands))

        try:
            for _ in commands:
                self.replies.append(self._connection.read_reply())

        except error.ResponseError:
            # Unread replies would be handed to the next command.
            self._connection.close()
            raise

        return self.replies

    def __len__(self) -> int:
        return len(self._commands)

    def __enter__(self) -> "typing_extensions.Self":
        self._ensure_open()
        self._queueing = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        self._queueing = False
        if exc_type is None:
            self.finish()
        else:
            self._discard()
