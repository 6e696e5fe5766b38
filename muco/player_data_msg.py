"""Messages that notify, set or request a player attribute."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from muco.codec import ByteReader, DecodeError
from muco.player_data import PlayerAttribute, PlayerAttributeTag


class PlayerDataKind(IntEnum):
    """Message kind; the value is its wire index."""

    NOTIFY = 0
    SET = 1
    REQUEST = 2


@dataclass(frozen=True)
class PlayerDataMsg:
    """A player data message.

    ``payload`` is a PlayerAttribute for NOTIFY and SET and a
    PlayerAttributeTag for REQUEST.
    """

    kind: PlayerDataKind
    payload: PlayerAttribute | PlayerAttributeTag

    def __post_init__(self):
        expected = PlayerAttributeTag if self.kind is PlayerDataKind.REQUEST else PlayerAttribute
        if not isinstance(self.payload, expected):
            raise TypeError(f"{self.kind.name} needs a {expected.__name__} payload")

    @classmethod
    def decode(cls, reader: ByteReader) -> PlayerDataMsg:
        index = reader.u32()
        if index != PlayerDataKind.NOTIFY:
            raise DecodeError(f"unsupported player data msg type: {index}")
        return cls(PlayerDataKind.NOTIFY, PlayerAttribute.decode(reader))

    def pack(self) -> bytes:
        return struct.pack("<I", self.kind) + self.payload.pack()