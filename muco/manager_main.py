"""The manager: tracks headsets and serves their status to frontends."""

from __future__ import annotations

import asyncio
import sys

import aiohttp
from aiohttp import web

from muco.client_server_msg import SetClientType
from muco.client_type import ClientType
from muco.codec import DecodeError
from muco.context import MucoContext
from muco.discovery import local_ip
from muco.frontend import frontend_connection
from muco.manager_console import console_input_loop
from muco.manager_messages import process_server_client_msg
from muco.relay_connection import QUEUE_CAPACITY, spawn_relay_server_connection
from muco.server_client_msg import decode_server_client_msg
from muco.status import Status

SAVE_DATA_PATH = "server_data.txt"
MANAGER_PORT = 8080
MANAGER_DEVICE_ID = 888
UPDATE_INTERVAL = 0.5
PUBLIC_IP_URL = "https://api.ipify.org?format=text"


async def health_handler(request) -> web.Response:
    return web.Response(status=200)


async def _allow_any_origin(request, response) -> None:
    response.headers["Access-Control-Allow-Origin"] = "*"


def make_app(context: MucoContext) -> web.Application:
    """The web application with the health check and the frontend websocket."""

    async def ws_handler(request: web.Request) -> web.WebSocketResponse:
        return await frontend_connection(request, context)

    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/ws", ws_handler)
    app.on_response_prepare.append(_allow_any_origin)
    return app


async def update_clients_periodically(context: MucoContext, save_path=SAVE_DATA_PATH,
                                      interval=UPDATE_INTERVAL) -> None:
    """Push and save the status whenever it changed, and ask unknown headsets who they are."""
    frontend_generation = 0
    while True:
        await asyncio.sleep(interval)
        if context.status_generation != frontend_generation:
            await context.update_clients()
            context.status.save(save_path)
            frontend_generation = context.status_generation
        if context.unknown_connections:
            await context.request_unknown_device_ids()


async def get_public_ip() -> str:
    """The address this machine has on the internet."""
    timeout = aiohttp.ClientTimeout(total=10)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.get(PUBLIC_IP_URL) as response:
            response.raise_for_status()
            return (await response.text()).strip()


def load_status(path) -> Status:
    """The saved status at ``path``, or a fresh one if it cannot be read."""
    try:
        return Status.load(path)
    except (OSError, ValueError) as err:
        print(f"error while loading headset data at startup: {err}")
        return Status()


async def _print_network_info(port: int) -> None:
    print("=== Manager Server Starting ===")
    try:
        print(f"Local IP:  {local_ip()}:{port}")
    except OSError as err:
        print(f"Could not determine local IP: {err}")
    try:
        print(f"Global IP: {await get_public_ip()}:{port}")
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as err:
        print(f"Could not determine global IP: {err!r}")
    print(f"Port:      {port}")
    print("==============================")


async def _run() -> None:
    status = load_status(SAVE_DATA_PATH)
    from_server: asyncio.Queue = asyncio.Queue(QUEUE_CAPACITY)
    relay = spawn_relay_server_connection(from_server, True, MANAGER_DEVICE_ID)
    await relay.send(SetClientType(ClientType.MANAGER).pack())

    context = MucoContext(relay, status)
    background = [asyncio.create_task(console_input_loop(context, SAVE_DATA_PATH))]

    await _print_network_info(MANAGER_PORT)
    runner = web.AppRunner(make_app(context))
    await runner.setup()
    await web.TCPSite(runner, "0.0.0.0", MANAGER_PORT).start()
    background.append(asyncio.create_task(update_clients_periodically(context, SAVE_DATA_PATH)))

    try:
        while True:
            payload = await from_server.get()
            try:
                msg = decode_server_client_msg(payload)
            except DecodeError as err:
                print(f"error while decoding server client msg: {err}")
                continue
            await process_server_client_msg(msg, context)
    finally:
        for task in background:
            task.cancel()
        await runner.cleanup()


def main(argv=None) -> int:
    """Run the manager until interrupted."""
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())