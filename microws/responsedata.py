"""Per-response state kept alongside an HTTP connection."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Optional

from microws.httpparser import HttpParser
from microws.proxy import ProxyParser


class ResponseState(enum.IntFlag):
    """Progress bits of a response being written."""

    NONE = 0
    STATUS_CALLED = 1
    WRITE_CALLED = 2
    END_CALLED = 4
    RESPONSE_PENDING = 8
    CONNECTION_CLOSE = 16


WritableHandler = Callable[[int], bool]


def _placeholder(offset: int) -> bool:
    return True


@dataclass(eq=False)
class HttpResponseData:
    """Handlers, write offset, state bits and the request parser of a connection."""

    parser: HttpParser = field(default_factory=HttpParser)
    on_writable: Optional[WritableHandler] = None
    on_aborted: Optional[Callable[[], None]] = None
    in_stream: Optional[Callable[[bytes, bool], None]] = None
    offset: int = 0
    received_bytes_per_timeout: int = 0
    state: ResponseState = ResponseState.NONE
    proxy_parser: Optional[ProxyParser] = None

    def mark_done(self) -> None:
        """Drop the abort and writable handlers and clear the pending bit."""
        self.on_aborted = None
        self.on_writable = None
        self.state &= ~ResponseState.RESPONSE_PENDING

    def call_on_writable(self, offset: int) -> bool:
        """Call the writable handler, which may itself call mark_done."""
        borrowed = self.on_writable
        if borrowed is None:
            raise RuntimeError("no writable handler is set")
        self.on_writable = _placeholder
        result = borrowed(offset)
        if self.on_writable is not None:
            self.on_writable = borrowed
        return result