"""Messages that clients relay to each other through the server."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from muco.codec import ByteReader, DecodeError
from muco.player_data_msg import PlayerDataMsg


class InterClientKind(IntEnum):
    """Message kind; the value is its wire index."""

    PLAYER_DATA = 0
    PING = 1
    ALL_PLAYER_DATA = 2
    DIFF = 3


@dataclass(frozen=True)
class InterClientMsg:
    """A client-to-client message.

    ``payload`` is a PlayerDataMsg for PLAYER_DATA, raw bytes for
    ALL_PLAYER_DATA and DIFF, and None for PING.
    """

    kind: InterClientKind
    payload: PlayerDataMsg | bytes | None = None

    @classmethod
    def decode(cls, data) -> InterClientMsg:
        reader = ByteReader(data)
        index = reader.u32()
        match index:
            case InterClientKind.PLAYER_DATA:
                return cls(InterClientKind.PLAYER_DATA, PlayerDataMsg.decode(reader))
            case InterClientKind.PING:
                return cls(InterClientKind.PING)
            case InterClientKind.ALL_PLAYER_DATA | InterClientKind.DIFF:
                return cls(InterClientKind(index), reader.rest())
            case _:
                raise DecodeError(f"unsupported inter client msg type: {index}")

    def pack(self) -> bytes:
        head = struct.pack("<I", self.kind)
        match self.kind:
            case InterClientKind.PLAYER_DATA:
                return head + self.payload.pack()
            case InterClientKind.PING:
                return head
            case _:
                return head + bytes(self.payload)