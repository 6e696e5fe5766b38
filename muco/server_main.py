"""The relay server: accepts clients and relays their messages."""

from __future__ import annotations

import asyncio
import os
import sys
import time
from datetime import datetime

from muco.broadcast import DEFAULT_CAPACITY, Broadcaster
from muco.client_db import ClientDb
from muco.discovery import SERVER_SERVICE_NAME, local_ip, register_service
from muco.model import SharedData

SERVER_PORT = 1302


def log_folder_name(start_seconds) -> str:
    """Name of the folder that holds the logs of a server started at ``start_seconds``."""
    return f"log_{int(start_seconds)}"


async def serve(port=SERVER_PORT, log_folder=None):
    """Start accepting clients on ``port`` and return the listening server."""
    client_db = ClientDb()
    broadcaster = Broadcaster(DEFAULT_CAPACITY)
    shared_data = SharedData()
    server_start = time.time()

    async def on_connect(reader, writer):
        await client_db.new_client(reader, writer, broadcaster, log_folder, server_start, shared_data)

    return await asyncio.start_server(on_connect, "0.0.0.0", port)


async def _run(ip, log_folder) -> None:
    server = await serve(SERVER_PORT, log_folder)
    stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"{stamp} Server Started at ip: {ip}:{SERVER_PORT}")
    async with server:
        await server.serve_forever()


def main(argv=None) -> int:
    """Run the relay server; pass ``log`` to record every client's messages."""
    args = sys.argv[1:] if argv is None else list(argv)
    start = time.time()
    log_folder = None
    if args and args[0] == "log":
        print("logging enabled")
        log_folder = log_folder_name(start)
        os.mkdir(log_folder)

    ip = local_ip()
    with register_service(ip, SERVER_PORT, SERVER_SERVICE_NAME):
        asyncio.run(_run(ip, log_folder))
    return 0


if __name__ == "__main__":
    sys.exit(main())