"""Commands typed into the client emulator's console."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from enum import Enum


class CmdKind(Enum):
    """What to do with a recorded log file."""

    DISPLAY = "display"
    PLAY = "play"
    LOOP = "loop"


@dataclass(frozen=True)
class ConsoleCmd:
    """A console command and the path of the log it works on."""

    kind: CmdKind
    path: str


def parse_console_cmd(text: str) -> ConsoleCmd:
    """Parse ``display <path>``, ``play <path>`` or ``loop <path>``."""
    command, _, rest = text.partition(" ")
    try:
        kind = CmdKind(command)
    except ValueError:
        raise ValueError("cmd not recognized") from None
    return ConsoleCmd(kind, rest.strip())


async def read_console_lines():
    """Yield lines from standard input, as read, until it ends."""
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        yield line