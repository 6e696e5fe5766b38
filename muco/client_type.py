"""Kinds of client that connect to the relay server."""

from enum import IntEnum


class ClientType(IntEnum):
    """Client kind; the value is its wire index."""

    PLAYER = 0
    MANAGER = 1