"""A persistent connection from a client to the relay server."""

from __future__ import annotations

import asyncio
import contextlib
import struct

from muco.codec import NETWORK_VERSION_NUMBER, dequeue_msg
from muco.discovery import SERVER_SERVICE_TYPE, find_server

RETRY_DELAY = 5.0
ERROR_DELAY = 2.0
LOCATE_TIMEOUT = 5.0
READ_SIZE = 1024
QUEUE_CAPACITY = 100


def handshake_bytes(device_id: int) -> bytes:
    """The bytes a client sends right after connecting."""
    return NETWORK_VERSION_NUMBER + struct.pack("<I", device_id)


def _locate_server() -> str | None:
    return find_server(SERVER_SERVICE_TYPE, LOCATE_TIMEOUT)


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address without port: {address!r}")
    return host.strip("[]"), int(port)


class RelayConnection:
    """Relays framed messages between the relay server and the application.

    Outgoing frames are queued with ``send``; payloads of incoming frames are
    put on ``to_main``. ``locate`` is a blocking callable that returns the
    server's ``"address:port"`` or None.
    """

    def __init__(self, to_main, reconnect, device_id, locate=None):
        self._to_main = to_main
        self._reconnect = reconnect
        self._device_id = device_id
        self._locate = locate or _locate_server
        self._outgoing: asyncio.Queue[bytes] = asyncio.Queue(QUEUE_CAPACITY)
        self.task: asyncio.Task | None = None

    async def send(self, data) -> None:
        """Queue one already framed message for the server."""
        await self._outgoing.put(bytes(data))

    async def run(self) -> None:
        """Connect and relay until the connection ends, reconnecting if asked to."""
        while True:
            address = await asyncio.to_thread(self._locate)
            if address is None:
                print(f"failed to find server, retrying in {RETRY_DELAY:g} seconds...")
                await asyncio.sleep(RETRY_DELAY)
                continue
            print(f"found server at address: {address}")
            host, port = _split_address(address)
            reader, writer = await asyncio.open_connection(host, port)
            try:
                writer.write(handshake_bytes(self._device_id))
                await writer.drain()
                await self._exchange(reader, writer)
            finally:
                writer.close()
                with contextlib.suppress(OSError):
                    await writer.wait_closed()
            if not self._reconnect:
                return

    async def _exchange(self, reader, writer) -> None:
        pumps = [
            asyncio.create_task(self._pump_outgoing(writer)),
            asyncio.create_task(self._pump_incoming(reader)),
        ]
        try:
            await asyncio.wait(pumps, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pump in pumps:
                pump.cancel()
            results = await asyncio.gather(*pumps, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                raise result

    async def _pump_outgoing(self, writer) -> None:
        while True:
            data = await self._outgoing.get()
            try:
                writer.write(data)
                await writer.drain()
            except OSError as err:
                print(f"error while writing to stream: {err}, restarting connection process")
                await asyncio.sleep(ERROR_DELAY)
                return

    async def _pump_incoming(self, reader) -> None:
        buffer = bytearray()
        while True:
            try:
                chunk = await reader.read(READ_SIZE)
            except OSError as err:
                print(f"error while reading from socket: {err}, restarting connection")
                await asyncio.sleep(ERROR_DELAY)
                return
            if not chunk:
                print("server died")
                return
            buffer += chunk
            while (span := dequeue_msg(buffer)) is not None:
                begin, end = span
                await self._to_main.put(bytes(buffer[begin:end]))
                del buffer[:end]


def spawn_relay_server_connection(to_main, reconnect, device_id, locate=None) -> RelayConnection:
    """Start a RelayConnection in the running event loop and return it."""
    connection = RelayConnection(to_main, reconnect, device_id, locate)
    connection.task = asyncio.create_task(connection.run())
    return connection