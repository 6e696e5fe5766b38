"""Per-client handling on the relay server."""

from __future__ import annotations

import asyncio
import contextlib
import socket
import struct
import time
from datetime import datetime
from pathlib import Path

from muco.broadcast import LAGGED, BroadcastKick, BroadcastMsg, BroadcastSend, Broadcaster
from muco.client_server_msg import (
    Address,
    BinaryMessageTo,
    ClaimData,
    ClientServerMsg,
    Disconnect,
    Kick,
    SetClientType,
    SetData,
    decode_client_server_msg,
)
from muco.client_type import ClientType
from muco.codec import NETWORK_VERSION_NUMBER, DecodeError, dequeue_msg
from muco.model import Model, SharedData
from muco.server_client_msg import (
    ClientConnected,
    ClientDisconnected,
    DataNotify,
    DataOwner,
    Hello,
    InterClient,
)

READ_SIZE = 1024
DEVICE_ID_SIZE = 4
LOG_SUFFIX = ".muco_log"


def message_preamble(session_id, device_id=None) -> str:
    """The timestamp and identifiers that start every line about a client."""
    parts = [datetime.now().strftime("%Y-%m-%d %H:%M:%S"), str(session_id)]
    if device_id is not None:
        parts.append(str(device_id))
    return " ".join(parts) + " "


def _report(session_id, device_id, text) -> None:
    print(message_preamble(session_id, device_id) + text)


def _format_peer(writer) -> str:
    peer = writer.get_extra_info("peername")
    if isinstance(peer, tuple) and len(peer) >= 2:
        return f"{peer[0]}:{peer[1]}"
    return str(peer)


class ClientDb:
    """Hands out session ids and starts a task for each new client."""

    def __init__(self):
        self.session_id_counter = 0

    async def new_client(self, reader, writer, broadcaster, log_folder, server_start, shared_data):
        """Start serving a freshly accepted connection and return its task."""
        sock = writer.get_extra_info("socket")
        if sock is not None:
            with contextlib.suppress(OSError):
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        session_id = self.session_id_counter
        self.session_id_counter = (session_id + 1) & 0xFFFF

        log_file = None
        if log_folder is not None:
            log_file = open(Path(log_folder) / f"{session_id}{LOG_SUFFIX}", "xb", buffering=0)

        task = asyncio.create_task(
            run_client(reader, writer, broadcaster, session_id, server_start, log_file, shared_data)
        )
        _report(session_id, None, f"accepted new connection from {_format_peer(writer)}")
        return task


def process_msg(msg: ClientServerMsg, session_id: int, shared_data: SharedData):
    """Handle one message from a client.

    Returns ``(broadcast, disconnect)``: the message to broadcast, if any, and
    whether the client asked to disconnect.
    """
    match msg:
        case Disconnect():
            return None, True
        case BinaryMessageTo(address=address, data=data):
            return BroadcastSend(address, InterClient(session_id, data).pack()), False
        case SetClientType(client_type=client_type):
            if client_type != ClientType.PLAYER:
                return None, False
            packed = ClientConnected(session_id).pack()
            return BroadcastSend(Address.other(session_id), packed), False
        case Kick(session_id=to_kick):
            return BroadcastKick(to_kick), False
        case SetData(room=room, creator_id=creator_id, index=index, data=data):
            key = (room, creator_id, index)
            owner = shared_data.data_owners.get(key)
            if owner is not None and owner != session_id:
                return None, False
            shared_data.model.facts[key] = bytes(data)
            packed = DataNotify(room, creator_id, index, data).pack()
            return BroadcastSend(Address.other(session_id), packed), False
        case ClaimData(room=room, creator_id=creator_id, index=index):
            shared_data.data_owners[(room, creator_id, index)] = session_id
            packed = DataOwner(room, creator_id, index, session_id).pack()
            return BroadcastSend(Address.other(session_id), packed), False
        case _:
            raise TypeError(f"not a client server message: {msg!r}")


async def process_broadcast_msg(broadcast_msg: BroadcastMsg, session_id: int, writer) -> bool:
    """Apply a broadcast message to this client; return whether to disconnect."""
    match broadcast_msg:
        case BroadcastSend(address=address, data=data):
            if not address.includes(session_id):
                return False
            try:
                writer.write(data)
                await writer.drain()
            except OSError as err:
                _report(session_id, None, f"disconnecting because of error while writing to socket: {err}")
                return True
            return False
        case BroadcastKick(session_id=to_kick):
            return to_kick == session_id
        case _:
            raise TypeError(f"not a broadcast message: {broadcast_msg!r}")


class _ClientSession:
    def __init__(self, reader, writer, broadcaster: Broadcaster, session_id, server_start,
                 log_file, shared_data: SharedData):
        self.reader = reader
        self.writer = writer
        self.broadcaster = broadcaster
        self.session_id = session_id
        self.server_start = server_start
        self.log_file = log_file
        self.shared_data = shared_data
        self.device_id = None
        self.buffer = bytearray()

    def report(self, text: str) -> None:
        _report(self.session_id, self.device_id, text)

    async def handshake(self) -> bool:
        version_len = len(NETWORK_VERSION_NUMBER)
        while len(self.buffer) < version_len + DEVICE_ID_SIZE:
            try:
                chunk = await self.reader.read(READ_SIZE)
            except OSError as err:
                self.report(f"error while reading from socket: {err}")
                return False
            if not chunk:
                self.report("client died")
                return False
            self.buffer += chunk

        version = bytes(self.buffer[:version_len])
        if version != NETWORK_VERSION_NUMBER:
            self.report(
                "rejecting client because of network version number, "
                f"expected: {list(NETWORK_VERSION_NUMBER)}, got: {list(version)}"
            )
            return False
        (self.device_id,) = struct.unpack_from("<I", self.buffer, version_len)
        del self.buffer[:version_len + DEVICE_ID_SIZE]
        self.report("received initial message")

        hello = Hello(self.session_id, Model(dict(self.shared_data.model.facts)))
        try:
            self.writer.write(hello.pack())
            await self.writer.drain()
        except OSError as err:
            self.report(f"disconnecting because of error while writing to client: {err}")
            return False
        return True

    def log_frame(self, frame: bytes) -> None:
        if self.log_file is None:
            return
        elapsed_ms = max(0, int((time.time() - self.server_start) * 1000)) & 0xFFFFFFFF
        self.log_file.write(struct.pack("<I", elapsed_ms) + frame)

    def handle_input(self) -> bool:
        disconnect = False
        while (span := dequeue_msg(self.buffer)) is not None:
            begin, end = span
            self.log_frame(bytes(self.buffer[:end]))
            try:
                msg = decode_client_server_msg(bytes(self.buffer[begin:end]), self.session_id)
            except DecodeError as err:
                self.report(f"error while decode msg: {err}")
                break
            response, wants_out = process_msg(msg, self.session_id, self.shared_data)
            disconnect = disconnect or wants_out
            if response is not None:
                try:
                    self.broadcaster.send(response)
                except RuntimeError as err:
                    self.report(f"error while trying to broadcast msg: {err}")
            del self.buffer[:end]
        return disconnect

    async def relay(self, queue: asyncio.Queue) -> None:
        get_task = read_task = None
        try:
            should_disconnect = False
            while not should_disconnect:
                if get_task is None:
                    get_task = asyncio.create_task(queue.get())
                if read_task is None:
                    read_task = asyncio.create_task(self.reader.read(READ_SIZE))
                done, _ = await asyncio.wait({get_task, read_task}, return_when=asyncio.FIRST_COMPLETED)

                # Broadcast messages take priority over socket input.
                if get_task in done:
                    item = get_task.result()
                    get_task = None
                    if item is LAGGED:
                        self.report("error while receiving: channel lagged")
                        self.report("client disconnected")
                        break
                    should_disconnect = await process_broadcast_msg(item, self.session_id, self.writer)
                    continue

                try:
                    chunk = read_task.result()
                except OSError as err:
                    self.report(f"error while reading from socket: {err}")
                    break
                finally:
                    read_task = None
                if not chunk:
                    self.report("client died")
                    break
                self.buffer += chunk
                should_disconnect = self.handle_input()
        finally:
            for task in (get_task, read_task):
                if task is not None:
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError, OSError):
                        await task

    async def run(self) -> None:
        if not await self.handshake():
            return
        queue = self.broadcaster.subscribe()
        try:
            await self.relay(queue)
            farewell = BroadcastSend(Address.all(), ClientDisconnected(self.session_id).pack())
            try:
                self.broadcaster.send(farewell)
            except RuntimeError as err:
                self.report(f"error while trying to broadcast exit msg: {err}")
        finally:
            self.broadcaster.unsubscribe(queue)


async def run_client(reader, writer, broadcaster, session_id, server_start, log_file, shared_data):
    """Serve one client until it disconnects, then tell the others it left."""
    session = _ClientSession(reader, writer, broadcaster, session_id, server_start, log_file, shared_data)
    try:
        await session.run()
    finally:
        writer.close()
        if log_file is not None:
            log_file.close()