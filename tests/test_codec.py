import io
import logging

import pytest

from redisline import codec, error, reply


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._io = io.BytesIO(data)

    def read(self, n: int) -> bytes:
        return self._io.read(n)

    def readline(self) -> bytes:
        return self._io.readline()

    def rest(self) -> bytes:
        return self._io.read()


def _decode(data: bytes) -> reply.Reply:
    return codec.read_reply(_Reader(data))


def test_status():
    assert _decode(b"+OK\r\n") == reply.Status("OK")


def test_error_is_raised():
    with pytest.raises(error.ResponseError) as exc_info:
        _decode(b"-ERR no such key\r\n")

    assert str(exc_info.value) == "ERR no such key"
    assert exc_info.value.code == "ERR"
    assert exc_info.value.message == "no such key"


def test_error_without_message():
    with pytest.raises(error.ResponseError, match="^ERR$"):
        _decode(b"-ERR\r\n")


@pytest.mark.parametrize(("data", "value"), [(b":0\r\n", 0), (b":42\r\n", 42), (b":-2\r\n", -2)])
def test_integer(data, value):
    assert _decode(data) == reply.Integer(value)


def test_bulk():
    reader = _Reader(b"$3\r\nfoo\r\n:1\r\n")

    assert codec.read_reply(reader) == reply.Bulk(b"foo")
    # The terminator is consumed and nothing past it.
    assert reader.rest() == b":1\r\n"


def test_bulk_with_embedded_line_endings():
    assert _decode(b"$6\r\na\r\nb\nc\r\n") == reply.Bulk(b"a\r\nb\nc")


def test_empty_bulk_is_not_null():
    result = _decode(b"$0\r\n\r\n")

    assert result == reply.Bulk(b"")
    assert not result.is_null


def test_null_bulk():
    result = _decode(b"$-1\r\n")

    assert result == reply.Bulk(None)
    assert result.is_null


def test_bulk_without_terminator():
    with pytest.raises(error.ProtocolError, match="CRLF"):
        _decode(b"$3\r\nfooXY")


def test_multi_bulk():
    assert _decode(b"*2\r\n$3\r\nfoo\r\n$3\r\nbar\r\n") == reply.MultiBulk(
        [reply.Bulk(b"foo"), reply.Bulk(b"bar")],
    )


def test_multi_bulk_mixed_and_nested():
    data = b"*4\r\n:1\r\n$-1\r\n+OK\r\n*2\r\n$1\r\na\r\n*0\r\n"

    assert _decode(data) == reply.MultiBulk(
        [
            reply.Integer(1),
            reply.Bulk(None),
            reply.Status("OK"),
            reply.MultiBulk([reply.Bulk(b"a"), reply.MultiBulk([])]),
        ],
    )


def test_null_multi_bulk_is_not_empty():
    result = _decode(b"*-1\r\n")

    assert result == reply.MultiBulk(None)
    assert result != reply.MultiBulk([])
    assert result.is_null


def test_error_inside_multi_bulk_is_raised():
    with pytest.raises(error.ResponseError):
        _decode(b"*2\r\n:1\r\n-ERR boom\r\n")


def test_stray_line_endings_before_sigil_are_skipped():
    assert _decode(b"\r\n\n+PONG\r\n") == reply.Status("PONG")


@pytest.mark.parametrize("data", [b"?what\r\n", b""])
def test_unknown_sigil(data):
    with pytest.raises(error.ProtocolError, match="Unknown reply sigil"):
        _decode(data)


@pytest.mark.parametrize("data", [b":abc\r\n", b"$x\r\n", b"*\r\n"])
def test_non_integer_header(data):
    with pytest.raises(error.ProtocolError, match="Expected an integer"):
        _decode(data)


def test_truncated_line():
    with pytest.raises(error.ProtocolError, match="line terminator"):
        _decode(b"+OK")


def test_decoding_logs_to_given_logger(caplog):
    logger = logging.getLogger("redisline.tests.codec")

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        codec.read_reply(_Reader(b"\n:1\r\n"), logger=logger)

    assert any("Discarding stray" in record.getMessage() for record in caplog.records)


def test_error_inside_multi_bulk_consumes_every_sub_reply():
    reader = _Reader(b"*3\r\n-ERR boom\r\n*1\r\n-ERR nested\r\n:8\r\n+NEXT\r\n")

    with pytest.raises(error.ResponseError, match="ERR boom"):
        codec.read_reply(reader)

    assert reader.rest() == b"+NEXT\r\n"


@pytest.mark.parametrize(
    "data",
    [b":4_2\r\n", b": 42\r\n", b":42 \r\n", b":+42\r\n", b"$ 3\r\nfoo\r\n"],
)
def test_integer_must_be_plain_digits(data):
    with pytest.raises(error.ProtocolError, match="Expected an integer"):
        _decode(data)
