"""Header block parser shared by HTTP-style and multipart messages."""

from __future__ import annotations

from typing import Optional

MAX_HEADERS = 10

_CR = 0x0D
_LF = 0x0A
_COLON = 0x3A


def parse_headers(buffer: bytes) -> Optional[tuple[int, list[tuple[str, str]]]]:
    """Parse header lines up to the empty line ending the block.

    Returns (consumed, headers) with keys lower-cased, or None when the
    buffer holds no complete, valid header block.
    """
    buf = bytes(buffer)
    end = len(buf)
    pos = 0
    headers: list[tuple[str, str]] = []

    for _ in range(MAX_HEADERS):
        key_start = pos
        while pos < end and buf[pos] != _COLON and buf[pos] > 32:
            pos += 1
        if pos >= end:
            return None

        if buf[pos] == _CR:
            if pos + 1 < end and buf[pos + 1] == _LF:
                return pos + 2, headers
            return None

        key = bytes(b | 32 for b in buf[key_start:pos])

        pos += 1
        while pos < end and (buf[pos] == _COLON or buf[pos] < 33) and buf[pos] != _CR:
            pos += 1
        value_start = pos

        cr = buf.find(b"\r", pos)
        if cr == -1 or cr + 1 >= end or buf[cr + 1] != _LF:
            return None

        headers.append((key.decode("latin-1"), buf[value_start:cr].decode("latin-1")))
        pos = cr + 2

    return None