"""Commands typed into the manager's console."""

from __future__ import annotations

import asyncio
import json
import sys

from muco.context import MucoContext
from muco.frontend import ResponseKind, parse_client_msg, process_client_msg
from muco.status import Status

_HANDLED_ERRORS = (ValueError, LookupError, TypeError, OSError)


async def process_console_input(line: str, context: MucoContext, save_path) -> None:
    """Run one console command: save, load, status, or ``> <json command>``."""
    command, _, rest = line.partition(" ")
    rest = rest.strip()
    match command:
        case "save":
            context.status.save(save_path)
        case "load":
            context.status = Status.load(save_path)
            context.status_generation += 1
        case "status":
            print(json.dumps(context.status.to_json(), indent=2))
        case ">":
            response = await process_client_msg(parse_client_msg(rest), context)
            match response.kind:
                case ResponseKind.REPLY:
                    print(response.text)
                case ResponseKind.UPDATE_CLIENTS:
                    context.status_generation += 1
        case _:
            print("input not recognized")


async def console_input_loop(context: MucoContext, save_path) -> None:
    """Read commands from standard input until it ends."""
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        try:
            await process_console_input(line.strip(), context, save_path)
        except _HANDLED_ERRORS as err:
            print(f"error: {err}")