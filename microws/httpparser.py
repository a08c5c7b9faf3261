"""Incremental HTTP/1.1 request parser with fixed-length and chunked bodies."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Callable, Iterator, Optional

from microws.proxy import ProxyParser
from microws.request import MAX_HEADERS, HttpRequest

MAX_FALLBACK_SIZE = 4 * 1024
MAX_CONTENT_LENGTH_DIGITS = 9
MAX_CHUNK_SIZE = (1 << 30) - 1

_CR = 0x0D
_LF = 0x0A
_SP = 0x20
_TAB = 0x09
_COLON = 0x3A
_SLASH = 0x2F
_SEMICOLON = 0x3B

# Appended behind the data: a CR stops every scan, the byte after it is not LF.
_FENCE = b"\ra"
_VERSION = b" HTTP/1.1\r\n"

_FIELD_NAME_BYTES = frozenset(
    b"-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
)
_HEX_VALUES = {ord(c): int(c, 16) for c in "0123456789abcdefABCDEF"}

RequestHandler = Callable[[Any, HttpRequest], Any]
DataHandler = Callable[[Any, bytes, bool], Any]


class HttpParserError(Exception):
    """A request could not be parsed; status is the HTTP error to answer with."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"{status} {HTTPStatus(status).phrase}")


def _parse_content_length(text: str) -> int:
    """Parse a content-length of at most nine decimal digits."""
    if len(text) > MAX_CONTENT_LENGTH_DIGITS or not all("0" <= c <= "9" for c in text):
        raise HttpParserError(400)
    return int(text)


class _ChunkDecoder:
    """Stateful decoder of a chunked transfer-coded body."""

    _SIZE, _EXTENSION, _SIZE_LF, _DATA, _DATA_CR, _DATA_LF, _TRAILER, _TRAILER_LF = range(8)

    def __init__(self) -> None:
        self._state = self._SIZE
        self._size = 0
        self._digits = 0
        self._line_length = 0
        self.invalid = False
        self.done = False
        self.consumed = 0

    def feed(self, data: bytes) -> Iterator[bytes]:
        """Yield body pieces found in data; the end of the body yields b""."""
        pos = 0
        end = len(data)
        while pos < end and not self.done and not self.invalid:
            state = self._state
            byte = data[pos]
            if state == self._SIZE:
                value = _HEX_VALUES.get(byte)
                if value is not None:
                    self._size = self._size * 16 + value
                    self._digits += 1
                    if self._size > MAX_CHUNK_SIZE:
                        self.invalid = True
                        break
                elif self._digits and byte == _CR:
                    self._state = self._SIZE_LF
                elif self._digits and byte in (_SP, _TAB, _SEMICOLON):
                    self._state = self._EXTENSION
                else:
                    self.invalid = True
                    break
                pos += 1
            elif state == self._EXTENSION:
                if byte == _CR:
                    self._state = self._SIZE_LF
                elif byte == _LF:
                    self.invalid = True
                    break
                pos += 1
            elif state == self._SIZE_LF:
                if byte != _LF:
                    self.invalid = True
                    break
                pos += 1
                if self._size:
                    self._state = self._DATA
                else:
                    self._state = self._TRAILER
                    self._line_length = 0
            elif state == self._DATA:
                take = min(self._size, end - pos)
                piece = data[pos:pos + take]
                pos += take
                self._size -= take
                if not self._size:
                    self._state = self._DATA_CR
                self.consumed = pos
                yield piece
            elif state == self._DATA_CR:
                if byte != _CR:
                    self.invalid = True
                    break
                pos += 1
                self._state = self._DATA_LF
            elif state == self._DATA_LF:
                if byte != _LF:
                    self.invalid = True
                    break
                pos += 1
                self._size = 0
                self._digits = 0
                self._state = self._SIZE
            elif state == self._TRAILER:
                if byte == _CR:
                    self._state = self._TRAILER_LF
                elif byte == _LF:
                    self.invalid = True
                    break
                else:
                    self._line_length += 1
                pos += 1
            else:
                if byte != _LF:
                    self.invalid = True
                    break
                pos += 1
                if self._line_length:
                    self._line_length = 0
                    self._state = self._TRAILER
                else:
                    self.done = True
                    self.consumed = pos
                    yield b""
        self.consumed = pos


class HttpParser:
    """Parses the request stream of one connection, fed in arbitrary pieces.

    The request handler is called as request_handler(user, request) and the
    data handler as data_handler(user, chunk, fin). Both return user to keep
    going; anything else stops parsing and is returned from consume, after
    which this parser must not be used again. Set proxy to a ProxyParser to
    accept a PROXY v2 header in front of requests.
    """

    def __init__(self) -> None:
        self.proxy: Optional[ProxyParser] = None
        self._fallback = bytearray()
        self._remaining = 0
        self._chunked: Optional[_ChunkDecoder] = None

    @property
    def _streaming(self) -> bool:
        return self._chunked is not None or self._remaining > 0

    def _parse_head(self, buf: bytes, pos: int, end: int):
        """Parse one request head at pos; None when incomplete or malformed."""
        if self.proxy is not None:
            done, offset = self.proxy.parse(buf[pos:end])
            if not done:
                return None
            pos += offset

        method_start = pos
        while buf[pos] > 32:
            pos += 1
        if buf[pos] != _SP or buf[pos + 1] != _SLASH:
            raise HttpParserError(505)
        method = buf[method_start:pos]
        pos += 1
        target_start = pos
        while buf[pos] > 32:
            pos += 1
        target = buf[target_start:pos]
        if buf[pos:pos + len(_VERSION)] != _VERSION:
            raise HttpParserError(505)
        pos += len(_VERSION)

        headers: list[tuple[str, str]] = []
        for _ in range(1, MAX_HEADERS - 1):
            key_start = pos
            while buf[pos] in _FIELD_NAME_BYTES:
                pos += 1
            key = buf[key_start:pos].lower()
            if buf[pos] != _COLON:
                return None
            pos += 1

            value_start = pos
            while True:
                while buf[pos] > 31:
                    pos += 1
                if buf[pos] == _CR:
                    break
                if buf[pos] == _TAB:
                    pos += 1
                    continue
                return None
            if buf[pos + 1] != _LF:
                return None
            value = buf[value_start:pos].strip(b" \t")
            pos += 2
            headers.append((key.decode("latin-1"), value.decode("latin-1")))

            if buf[pos] == _CR:
                if buf[pos + 1] == _LF:
                    return pos + 2, method.decode("latin-1"), target.decode("latin-1"), headers
                return None
        return None

    def _feed_chunked(self, data: bytes, user: Any, data_handler: DataHandler) -> bytes:
        decoder = self._chunked
        assert decoder is not None
        for piece in decoder.feed(data):
            data_handler(user, piece, not piece)
        if decoder.invalid:
            raise HttpParserError(400)
        if decoder.done:
            self._chunked = None
        return data[decoder.consumed:]

    def _stream_body(self, data: bytes, user: Any,
                     data_handler: DataHandler) -> tuple[Optional[bytes], Any]:
        """Feed body bytes; returns (rest, returned) where rest None means stop."""
        if self._chunked is not None:
            return self._feed_chunked(data, user, data_handler), user
        remaining = self._remaining
        if remaining >= len(data):
            returned = data_handler(user, data, remaining == len(data))
            self._remaining -= len(data)
            return None, returned
        returned = data_handler(user, data[:remaining], True)
        self._remaining = 0
        return data[remaining:], returned

    def _consume_requests(self, data: bytes, user: Any, request: HttpRequest,
                          request_handler: RequestHandler, data_handler: DataHandler,
                          minimal: bool) -> tuple[int, Any]:
        buf = data + _FENCE
        end = len(data)
        pos = 0
        while pos < end:
            head = self._parse_head(buf, pos, end)
            if head is None:
                break
            pos, method, target, headers = head
            request._load(method, target, headers)

            if request.header("host") is None:
                raise HttpParserError(400)
            transfer_encoding = request.header("transfer-encoding")
            content_length = request.header("content-length")
            if transfer_encoding and content_length:
                raise HttpParserError(400)

            returned = request_handler(user, request)
            if returned is not user:
                return pos, returned

            if transfer_encoding:
                self._chunked = _ChunkDecoder()
                if not minimal:
                    rest = self._feed_chunked(data[pos:end], user, data_handler)
                    pos = end - len(rest)
            elif content_length:
                self._remaining = _parse_content_length(content_length)
                if not minimal:
                    emittable = min(self._remaining, end - pos)
                    data_handler(user, data[pos:pos + emittable], emittable == self._remaining)
                    self._remaining -= emittable
                    pos += emittable
            else:
                data_handler(user, b"", True)

            if minimal:
                break
        return pos, user

    def consume(self, data: bytes, user: Any, request_handler: RequestHandler,
                data_handler: DataHandler) -> Any:
        """Parse the next piece of the stream; returns user, or what a handler returned instead."""
        data = bytes(data)
        request = HttpRequest()

        if self._streaming:
            rest, returned = self._stream_body(data, user, data_handler)
            if rest is None or returned is not user:
                return returned
            data = rest
        elif self._fallback:
            had = len(self._fallback)
            self._fallback += data[:MAX_FALLBACK_SIZE - had]
            consumed, returned = self._consume_requests(
                bytes(self._fallback), user, request, request_handler, data_handler, True
            )
            if returned is not user:
                return returned
            if not consumed:
                if len(self._fallback) == MAX_FALLBACK_SIZE:
                    raise HttpParserError(431)
                return user
            self._fallback.clear()
            data = data[consumed - had:]
            if self._streaming:
                rest, returned = self._stream_body(data, user, data_handler)
                if rest is None or returned is not user:
                    return returned
                data = rest

        consumed, returned = self._consume_requests(
            data, user, request, request_handler, data_handler, False
        )
        if returned is not user:
            return returned
        data = data[consumed:]
        if data:
            if len(data) < MAX_FALLBACK_SIZE:
                self._fallback += data
            else:
                raise HttpParserError(431)
        return user