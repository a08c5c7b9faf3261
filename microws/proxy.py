"""Parser for the PROXY protocol version 2 header."""

from __future__ import annotations

_SIGNATURE = b"\r\n\r\n\x00\r\nQUIT\n"
_HEADER_SIZE = 16
_ADDRESS_SIZE = 36


class ProxyParser:
    """Reads a PROXY v2 header in front of a connection's HTTP data."""

    def __init__(self) -> None:
        self.family = 0
        self._address = bytearray(_ADDRESS_SIZE)

    @property
    def source_address(self) -> bytes:
        """The 4 or 16 byte source address, or empty when none was reported."""
        if self.family == 0:
            return b""
        if (self.family & 0xF0) >> 4 == 1:
            return bytes(self._address[:4])
        return bytes(self._address[:16])

    def parse(self, data: bytes) -> tuple[bool, int]:
        """Return (done, consumed); done is False when more data is needed or it is invalid."""
        data = bytes(data)
        if len(data) < 4:
            return False, 0

        # HTTP never starts with an empty line, PROXY always does.
        if data[:4] != b"\r\n\r\n":
            return True, 0

        if len(data) < _HEADER_SIZE:
            return False, 0

        if data[:12] != _SIGNATURE:
            return False, 0

        version = (data[12] & 0xF0) >> 4
        if version != 2:
            return False, 0

        length = int.from_bytes(data[14:16], "big")
        if len(data) < _HEADER_SIZE + length:
            return False, 0
        if length > _ADDRESS_SIZE:
            return False, 0

        self.family = data[13]
        self._address[:length] = data[_HEADER_SIZE:_HEADER_SIZE + length]
        return True, _HEADER_SIZE + length