import asyncio

import pytest

from muco.client_server_msg import Kick
from muco.codec import NETWORK_VERSION_NUMBER
from muco.relay_connection import RelayConnection, handshake_bytes, spawn_relay_server_connection
from muco.server_client_msg import ClientConnected, ClientDisconnected, InterClient, decode_server_client_msg

HANDSHAKE_LEN = len(NETWORK_VERSION_NUMBER) + 4


def test_handshake_bytes():
    assert handshake_bytes(333) == b"\x00\x00\x06\x4d\x01\x00\x00"


def test_handshake_starts_with_version():
    assert handshake_bytes(888).startswith(NETWORK_VERSION_NUMBER)
    assert len(handshake_bytes(888)) == HANDSHAKE_LEN


@pytest.mark.asyncio
async def test_exchanges_messages_with_server():
    received = asyncio.Queue()

    async def handle(reader, writer):
        await received.put(await reader.readexactly(HANDSHAKE_LEN))
        writer.write(ClientConnected(5).pack())
        await writer.drain()
        await received.put(await reader.readexactly(len(Kick(3).pack())))
        writer.close()
        await writer.wait_closed()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    to_main = asyncio.Queue()
    conn = spawn_relay_server_connection(to_main, False, 333, lambda: f"127.0.0.1:{port}")
    try:
        assert await asyncio.wait_for(received.get(), 5) == handshake_bytes(333)
        payload = await asyncio.wait_for(to_main.get(), 5)
        assert decode_server_client_msg(payload) == ClientConnected(5)
        await conn.send(Kick(3).pack())
        assert await asyncio.wait_for(received.get(), 5) == Kick(3).pack()
        await asyncio.wait_for(conn.task, 5)
        assert conn.task.done()
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_reassembles_split_frames():
    async def handle(reader, writer):
        await reader.readexactly(HANDSHAKE_LEN)
        data = InterClient(4, b"abcdef").pack()
        writer.write(data[:5])
        await writer.drain()
        await asyncio.sleep(0.05)
        writer.write(data[5:] + ClientDisconnected(4).pack())
        await writer.drain()
        writer.close()
        await writer.wait_closed()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    to_main = asyncio.Queue()
    conn = RelayConnection(to_main, False, 1, lambda: f"127.0.0.1:{port}")
    try:
        await asyncio.wait_for(conn.run(), 5)
    finally:
        server.close()
        await server.wait_closed()
    first = decode_server_client_msg(to_main.get_nowait())
    second = decode_server_client_msg(to_main.get_nowait())
    assert first == InterClient(4, b"abcdef")
    assert second == ClientDisconnected(4)
    assert to_main.empty()


@pytest.mark.asyncio
async def test_reconnects_after_server_closes():
    handshakes = []
    second_seen = asyncio.Event()

    async def handle(reader, writer):
        handshakes.append(await reader.readexactly(HANDSHAKE_LEN))
        if len(handshakes) >= 2:
            second_seen.set()
        writer.close()
        await writer.wait_closed()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    conn = spawn_relay_server_connection(asyncio.Queue(), True, 42, lambda: f"127.0.0.1:{port}")
    try:
        await asyncio.wait_for(second_seen.wait(), 5)
        assert not conn.task.done()
    finally:
        conn.task.cancel()
        await asyncio.gather(conn.task, return_exceptions=True)
        server.close()
        await server.wait_closed()
    assert len(handshakes) >= 2
    assert all(h == handshake_bytes(42) for h in handshakes)


@pytest.mark.asyncio
async def test_address_without_port_raises():
    conn = RelayConnection(asyncio.Queue(), False, 1, lambda: "localhost")
    with pytest.raises(ValueError):
        await conn.run()