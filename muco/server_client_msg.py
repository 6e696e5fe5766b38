"""Messages the relay server sends to its clients."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Union

from muco.codec import ByteReader, DecodeError, dequeue_msg
from muco.model import Model

# DataNotify data is read from this offset, one byte past the header.
_DATA_NOTIFY_OFFSET = 10


def _frame(msg_type: int, body: bytes = b"") -> bytes:
    return struct.pack("<II", len(body) + 4, msg_type) + body


def _fact_key(room: int, creator_id: int, index: int) -> bytes:
    return struct.pack("<BHH", room, creator_id, index)


@dataclass(frozen=True)
class Hello:
    session_id: int
    model: Model = field(default_factory=Model)

    def pack(self) -> bytes:
        facts = b"".join(
            _fact_key(*key) + struct.pack("<I", len(fact)) + fact
            for key, fact in self.model.facts.items()
        )
        body = struct.pack("<HI", self.session_id, len(self.model.facts)) + facts
        return _frame(0, body)


@dataclass(frozen=True)
class ClientConnected:
    session_id: int

    def pack(self) -> bytes:
        return _frame(1, struct.pack("<H", self.session_id))


@dataclass(frozen=True)
class ClientDisconnected:
    session_id: int

    def pack(self) -> bytes:
        return _frame(2, struct.pack("<H", self.session_id))


@dataclass(frozen=True)
class InterClient:
    sender: int
    data: bytes

    def pack(self) -> bytes:
        return _frame(3, struct.pack("<H", self.sender) + self.data)


@dataclass(frozen=True)
class DataNotify:
    room: int
    creator_id: int
    index: int
    data: bytes

    def pack(self) -> bytes:
        return _frame(4, _fact_key(self.room, self.creator_id, self.index) + self.data)


@dataclass(frozen=True)
class DataOwner:
    room: int
    creator_id: int
    index: int
    owner_id: int

    def pack(self) -> bytes:
        body = _fact_key(self.room, self.creator_id, self.index) + struct.pack("<H", self.owner_id)
        return _frame(5, body)


ServerClientMsg = Union[Hello, ClientConnected, ClientDisconnected, InterClient, DataNotify, DataOwner]


def _decode_model(reader: ByteReader) -> Model:
    model = Model()
    for _ in range(reader.u32()):
        key = (reader.u8(), reader.u16(), reader.u16())
        model.facts[key] = reader.take(reader.u32())
    return model


def decode_server_client_msg(payload) -> ServerClientMsg:
    """Decode a message payload (without its length prefix)."""
    payload = bytes(payload)
    reader = ByteReader(payload)
    msg_type = reader.u32()
    match msg_type:
        case 0:
            session_id = reader.u16()
            return Hello(session_id, _decode_model(reader))
        case 1:
            return ClientConnected(reader.u16())
        case 2:
            return ClientDisconnected(reader.u16())
        case 3:
            sender = reader.u16()
            return InterClient(sender, reader.rest())
        case 4:
            room, creator_id, index = reader.u8(), reader.u16(), reader.u16()
            if len(payload) < _DATA_NOTIFY_OFFSET:
                raise DecodeError("data notify message too short")
            return DataNotify(room, creator_id, index, payload[_DATA_NOTIFY_OFFSET:])
        case 5:
            room, creator_id, index = reader.u8(), reader.u16(), reader.u16()
            return DataOwner(room, creator_id, index, reader.u16())
        case _:
            raise DecodeError(f"unsupported msg type: {msg_type}")


def dequeue_and_decode(buffer) -> tuple[int, ServerClientMsg] | None:
    """Decode the first complete message in ``buffer``.

    Returns ``(end, msg)`` where ``end`` is where the next message begins, or
    None while the first message is incomplete.
    """
    span = dequeue_msg(buffer)
    if span is None:
        return None
    begin, end = span
    return end, decode_server_client_msg(buffer[begin:end])