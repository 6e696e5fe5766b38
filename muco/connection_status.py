"""Whether a headset is currently connected to the relay server."""

from __future__ import annotations

from dataclasses import dataclass

_CONNECTED = "Connected"
_DISCONNECTED = "Disconnected"


@dataclass(frozen=True)
class ConnectionStatus:
    """A headset's connection; ``connection_id`` is None while disconnected."""

    connection_id: int | None = None

    @classmethod
    def connected(cls, connection_id: int) -> ConnectionStatus:
        return cls(int(connection_id))

    @classmethod
    def disconnected(cls) -> ConnectionStatus:
        return cls(None)

    @property
    def is_connected(self) -> bool:
        return self.connection_id is not None

    def to_json(self):
        if self.connection_id is None:
            return _DISCONNECTED
        return {_CONNECTED: self.connection_id}

    @classmethod
    def from_json(cls, data) -> ConnectionStatus:
        if data == _DISCONNECTED:
            return cls.disconnected()
        if isinstance(data, dict) and set(data) == {_CONNECTED}:
            value = data[_CONNECTED]
            if isinstance(value, int) and not isinstance(value, bool):
                return cls.connected(value)
        raise ValueError(f"invalid connection status: {data!r}")