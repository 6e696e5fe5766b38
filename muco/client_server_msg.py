"""Messages a client sends to the relay server."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Union

from muco.client_type import ClientType
from muco.codec import ByteReader, DecodeError, dequeue_msg


class AddressKind(Enum):
    CLIENT = "client"
    ALL = "all"
    OTHER = "other"


@dataclass(frozen=True)
class Address:
    """Who a relayed message is meant for.

    For CLIENT, ``connection_id`` is the addressee; for OTHER it is the
    sender, who is left out; for ALL it is None.
    """

    kind: AddressKind
    connection_id: int | None = None

    @classmethod
    def client(cls, connection_id: int) -> Address:
        return cls(AddressKind.CLIENT, connection_id)

    @classmethod
    def all(cls) -> Address:
        return cls(AddressKind.ALL)

    @classmethod
    def other(cls, sender: int) -> Address:
        return cls(AddressKind.OTHER, sender)

    def includes(self, connection_id: int) -> bool:
        """Whether the connection ``connection_id`` is addressed."""
        match self.kind:
            case AddressKind.CLIENT:
                return connection_id == self.connection_id
            case AddressKind.ALL:
                return True
            case _:
                return connection_id != self.connection_id


def _frame(msg_type: int, body: bytes = b"") -> bytes:
    return struct.pack("<II", len(body) + 4, msg_type) + body


def _fact_key(room: int, creator_id: int, index: int) -> bytes:
    return struct.pack("<BHH", room, creator_id, index)


@dataclass(frozen=True)
class Disconnect:
    def pack(self) -> bytes:
        return _frame(0)


@dataclass(frozen=True)
class BinaryMessageTo:
    address: Address
    data: bytes

    def pack(self) -> bytes:
        match self.address.kind:
            case AddressKind.CLIENT:
                return _frame(3, struct.pack("<H", self.address.connection_id) + self.data)
            case AddressKind.ALL:
                return _frame(1, self.data)
            case _:
                return _frame(2, self.data)


@dataclass(frozen=True)
class SetClientType:
    client_type: ClientType

    def pack(self) -> bytes:
        return _frame(4, struct.pack("<I", self.client_type))


@dataclass(frozen=True)
class Kick:
    session_id: int

    def pack(self) -> bytes:
        return _frame(5, struct.pack("<H", self.session_id))


@dataclass(frozen=True)
class SetData:
    room: int
    creator_id: int
    index: int
    data: bytes

    def pack(self) -> bytes:
        return _frame(6, _fact_key(self.room, self.creator_id, self.index) + self.data)


@dataclass(frozen=True)
class ClaimData:
    room: int
    creator_id: int
    index: int

    def pack(self) -> bytes:
        return _frame(7, _fact_key(self.room, self.creator_id, self.index))


ClientServerMsg = Union[Disconnect, BinaryMessageTo, SetClientType, Kick, SetData, ClaimData]


def decode_client_server_msg(payload, sender: int) -> ClientServerMsg:
    """Decode a message payload (without its length prefix) sent by ``sender``."""
    reader = ByteReader(payload)
    msg_type = reader.u32()
    match msg_type:
        case 0:
            return Disconnect()
        case 1:
            return BinaryMessageTo(Address.all(), reader.rest())
        case 2:
            return BinaryMessageTo(Address.other(sender), reader.rest())
        case 3:
            session_id = reader.u16()
            return BinaryMessageTo(Address.client(session_id), reader.rest())
        case 4:
            client_type_index = reader.u32()
            try:
                client_type = ClientType(client_type_index)
            except ValueError:
                raise DecodeError("unsupported client id") from None
            return SetClientType(client_type)
        case 5:
            return Kick(reader.u16())
        case 6:
            room, creator_id, index = reader.u8(), reader.u16(), reader.u16()
            return SetData(room, creator_id, index, reader.rest())
        case 7:
            room, creator_id, index = reader.u8(), reader.u16(), reader.u16()
            return ClaimData(room, creator_id, index)
        case _:
            raise DecodeError(f"unsupported msg type: {msg_type}")


def dequeue_and_decode(buffer, sender: int) -> tuple[int, ClientServerMsg] | None:
    """Decode the first complete message in ``buffer``.

    Returns ``(end, msg)`` where ``end`` is where the next message begins, or
    None while the first message is incomplete.
    """
    span = dequeue_msg(buffer)
    if span is None:
        return None
    begin, end = span
    return end, decode_client_server_msg(bytes(buffer[begin:end]), sender)