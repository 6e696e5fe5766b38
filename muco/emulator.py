"""Client emulator: inspects and replays message logs recorded by the relay server."""

from __future__ import annotations

import asyncio
import contextlib
import math
import struct
import sys
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

from muco.client_server_msg import BinaryMessageTo, decode_client_server_msg
from muco.codec import DecodeError, dequeue_msg
from muco.emulator_console import CmdKind, parse_console_cmd, read_console_lines
from muco.inter_client_msg import InterClientMsg
from muco.relay_connection import QUEUE_CAPACITY, spawn_relay_server_connection

EMULATOR_DEVICE_ID = 333
LINES_TO_PRINT = 20
_TIMESTAMP = struct.Struct("<I")


@dataclass(frozen=True)
class LogEntry:
    """One logged message: milliseconds since server start and the framed bytes."""

    timestamp: int
    frame: bytes

    @property
    def payload(self) -> bytes:
        """The message without its length prefix."""
        return self.frame[4:]


def iter_log_entries(log_bytes):
    """Yield the entries of a log, raising DecodeError on a truncated one."""
    data = bytes(log_bytes)
    view = memoryview(data)
    pos = 0
    while pos < len(data):
        if len(data) - pos < _TIMESTAMP.size:
            raise DecodeError("log ends inside a timestamp")
        (timestamp,) = _TIMESTAMP.unpack_from(data, pos)
        pos += _TIMESTAMP.size
        span = dequeue_msg(view[pos:])
        if span is None:
            raise DecodeError("log ends inside a message")
        _, end = span
        yield LogEntry(timestamp, data[pos:pos + end])
        pos += end


def _ratio(numerator: float, denominator: float) -> float:
    if denominator:
        return numerator / denominator
    if numerator == 0 or math.isnan(numerator):
        return math.nan
    return math.copysign(math.inf, numerator)


def _describe(payload: bytes) -> str:
    msg = decode_client_server_msg(payload, 0)
    if isinstance(msg, BinaryMessageTo):
        return repr(InterClientMsg.decode(msg.data))
    return repr(msg)


def display_lines(log_bytes) -> list[str]:
    """Describe the first messages of a log and summarise its timing."""
    log_bytes = bytes(log_bytes)
    entries = list(iter_log_entries(log_bytes))
    if not entries:
        raise DecodeError("log is empty")

    lines = []
    start_time = 0
    end_time = 0
    previous = None
    buckets: Counter[int] = Counter()
    for line_nr, entry in enumerate(entries):
        if previous is not None:
            gap = entry.timestamp - previous
            if gap < 0:
                raise DecodeError("timestamps go backwards")
            buckets[gap] += 1
        if start_time == 0:
            start_time = entry.timestamp
        end_time = entry.timestamp
        description = _describe(entry.payload)
        if line_nr < LINES_TO_PRINT:
            lines.append(f"{entry.timestamp} {len(entry.payload):4} {description}")
        previous = entry.timestamp

    count = len(entries)
    duration = end_time - start_time
    total_bytes = len(log_bytes) - count * _TIMESTAMP.size
    seconds = duration / 1000.0
    bytes_per_second = _ratio(total_bytes, seconds)
    lines += [
        f"duration: {seconds}",
        f"msg count: {count}",
        f"total bytes: {total_bytes}",
        f"kb per second: {bytes_per_second / 1024.0}",
        f"msgs per second: {_ratio(count, seconds)}",
        "",
    ]

    gap_count = count - 1
    for gap, hits in sorted(buckets.items()):
        perc_count = _ratio(hits, gap_count) * 100.0
        perc_time = _ratio(gap * hits, duration) * 100.0
        fps = _ratio(1000.0, gap)
        if perc_time > 1.0 or perc_count > 1.0:
            lines.append(
                f"{gap:4}ms x {hits:4} {perc_time:4.1f}% time {perc_count:4.1f}% msgs {fps:5.1f}fps"
            )
    return lines


async def _replay(entries, send, inbox: asyncio.Queue) -> None:
    loop = asyncio.get_running_loop()
    start = loop.time() - entries[0].timestamp / 1000.0
    for entry in entries:
        with contextlib.suppress(asyncio.QueueEmpty):
            inbox.get_nowait()
        since_start = int((loop.time() - start) * 1000)
        delay = entry.timestamp - since_start
        if delay > 0:
            await asyncio.sleep(delay / 1000.0)
        await send(entry.frame)


async def play(log_bytes, locate=None) -> None:
    """Replay a log once to the relay server with its original timing."""
    entries = list(iter_log_entries(log_bytes))
    if not entries:
        raise DecodeError("log is empty")
    inbox: asyncio.Queue = asyncio.Queue(QUEUE_CAPACITY)
    if locate is None:
        connection = spawn_relay_server_connection(inbox, False, EMULATOR_DEVICE_ID)
    else:
        connection = spawn_relay_server_connection(inbox, False, EMULATOR_DEVICE_ID, locate)
    await _replay(entries, connection.send, inbox)


async def loop_play(log_bytes, locate=None) -> None:
    """Replay a log over and over, each time on a fresh connection."""
    while True:
        await play(log_bytes, locate)


def _report_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    err = task.exception()
    if err is not None:
        print(f"err: {err}")


async def _run() -> None:
    tasks: set[asyncio.Task] = set()
    async for line in read_console_lines():
        try:
            cmd = parse_console_cmd(line.strip())
        except ValueError as err:
            print(f"err: {err}")
            continue
        try:
            log_bytes = Path(cmd.path).read_bytes()
        except OSError as err:
            print(f"err: {err}")
            continue
        if cmd.kind is CmdKind.DISPLAY:
            try:
                for text in display_lines(log_bytes):
                    print(text)
            except DecodeError as err:
                print(f"err: {err}")
            continue
        runner = play if cmd.kind is CmdKind.PLAY else loop_play
        task = asyncio.create_task(runner(log_bytes))
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        task.add_done_callback(_report_failure)
    for task in tasks:
        task.cancel()


def main(argv=None) -> int:
    """Read display, play and loop commands from the console."""
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())