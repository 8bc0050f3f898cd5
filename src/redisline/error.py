import collections.abc
import dataclasses

__all__: collections.abc.Sequence[str] = (
    "RedisError",
    "ConnectionUnavailable",
    "ProtocolError",
    "StateError",
    "ResponseError",
    "CommandError",
    "RenameError",
)


class RedisError(Exception):
    ...


class ConnectionUnavailable(RedisError):
    ...


class ProtocolError(RedisError):
    ...


class StateError(RedisError):
    ...


@dataclasses.dataclass
class ResponseError(RedisError):
    code: str
    message: str

    def __str__(self) -> str:
        return self.text

    @property
    def text(self) -> str:
        """The error line as sent by the server."""
        if not self.message:
            return self.code
        return f"{self.code} {self.message}"

    @classmethod
    def from_response(cls, response: bytes) -> "ResponseError":
        code, _, message = response.decode("utf-8", errors="replace").partition(" ")
        return cls(code, message)


class CommandError(RedisError):
    ...


class RenameError(CommandError):
    ...
