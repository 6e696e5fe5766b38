"""Fan-out of relayed messages to every connected client."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Union

from muco.client_server_msg import Address

DEFAULT_CAPACITY = 100


class _Lagged:
    def __repr__(self) -> str:
        return "LAGGED"


LAGGED = _Lagged()
"""Put on a subscriber's queue in place of its backlog once it falls too far behind."""


@dataclass(frozen=True)
class BroadcastSend:
    """Framed bytes for every client that ``address`` includes."""

    address: Address
    data: bytes


@dataclass(frozen=True)
class BroadcastKick:
    """Asks the client with ``session_id`` to disconnect."""

    session_id: int


BroadcastMsg = Union[BroadcastSend, BroadcastKick]


class Broadcaster:
    """Delivers every message sent to all current subscribers.

    Each subscriber holds at most ``capacity`` undelivered messages; one that
    falls further behind has its backlog replaced by ``LAGGED``.
    """

    def __init__(self, capacity=DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._queues: list[asyncio.Queue] = []

    def subscribe(self) -> asyncio.Queue:
        """A queue that receives every message sent from now on."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue) -> None:
        """Stop delivering to ``queue``."""
        with contextlib.suppress(ValueError):
            self._queues.remove(queue)

    def send(self, msg) -> int:
        """Deliver ``msg`` to all subscribers and return how many there are."""
        if not self._queues:
            raise RuntimeError("channel closed")
        for queue in self._queues:
            if queue.qsize() >= self.capacity:
                while not queue.empty():
                    queue.get_nowait()
                queue.put_nowait(LAGGED)
            else:
                queue.put_nowait(msg)
        return len(self._queues)