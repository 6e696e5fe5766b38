"""Little-endian byte reading and length-prefixed message framing."""

from __future__ import annotations

import struct

NETWORK_VERSION_NUMBER = bytes((0, 0, 6))
"""Version bytes a client sends first when it connects to the relay server."""

LONG_MESSAGE_WARNING = 3000
"""Messages whose announced length exceeds this are reported on stdout."""

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_F32 = struct.Struct("<f")


class DecodeError(ValueError):
    """Raised when bytes do not form a valid message."""


class ByteReader:
    """Sequential reader of little-endian values from a byte string."""

    def __init__(self, data):
        self._data = bytes(data)
        self._pos = 0

    def __len__(self) -> int:
        return len(self._data) - self._pos

    def rest(self) -> bytes:
        """Return every unread byte and mark them as read."""
        out = self._data[self._pos:]
        self._pos = len(self._data)
        return out

    def take(self, count: int) -> bytes:
        """Return the next ``count`` bytes."""
        if count < 0 or count > len(self):
            raise DecodeError(f"needed {count} bytes, only {len(self)} left")
        start = self._pos
        self._pos += count
        return self._data[start:self._pos]

    def skip(self, count: int) -> None:
        """Advance past ``count`` bytes."""
        self.take(count)

    def _read(self, layout: struct.Struct):
        return layout.unpack(self.take(layout.size))[0]

    def u8(self) -> int:
        return self._read(_U8)

    def u16(self) -> int:
        return self._read(_U16)

    def u32(self) -> int:
        return self._read(_U32)

    def f32(self) -> float:
        return self._read(_F32)


def dequeue_msg(buffer) -> tuple[int, int] | None:
    """Locate the first complete length-prefixed message in ``buffer``.

    Returns ``(begin, end)`` of the payload, or None while the message is
    still incomplete.
    """
    if len(buffer) < _U32.size:
        return None
    (msg_len,) = _U32.unpack_from(buffer, 0)
    if msg_len > LONG_MESSAGE_WARNING:
        print(f"long message: {msg_len}")
    end = msg_len + _U32.size
    if len(buffer) < end:
        return None
    return _U32.size, end