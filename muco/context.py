"""Shared state of the manager and how it talks to headsets and frontends."""

from __future__ import annotations

import asyncio
import json

from muco.client_server_msg import Address, BinaryMessageTo
from muco.connection_status import ConnectionStatus
from muco.headset_data import DEFAULT_ENVIRONMENT_CODE, HeadsetData
from muco.inter_client_msg import InterClientKind, InterClientMsg
from muco.player_data import EnvData, PlayerAttributeTag
from muco.player_data_msg import PlayerDataKind, PlayerDataMsg
from muco.status import Status


class MucoContext:
    """The manager's state.

    ``to_relay_server`` is anything with an async ``send(bytes)`` that carries
    framed messages to the relay server. Frontends register a queue in
    ``to_frontend_senders`` that receives status JSON text.
    """

    def __init__(self, to_relay_server, status=None):
        self.to_relay_server = to_relay_server
        self.to_frontend_senders: dict[str, asyncio.Queue] = {}
        self.connection_id_to_player: dict[int, int] = {}
        self.status: Status = Status() if status is None else status
        self.status_generation = 0
        self.unknown_connections: list[int] = []

    def get_headset(self, unique_device_id: int) -> HeadsetData:
        try:
            return self.status.headsets[unique_device_id]
        except KeyError:
            raise KeyError(
                f"could not find headset with unique device id {unique_device_id}"
            ) from None

    def get_environment_data(self, name: str) -> EnvData:
        """The named environment, or the default one if it is unknown."""
        data = self.status.environment_data.get(name)
        if data is None:
            print(f"could not find environment code {name}, returning default")
            return EnvData(DEFAULT_ENVIRONMENT_CODE)
        return data

    async def update_clients(self) -> None:
        """Send the current status to every connected frontend."""
        text = json.dumps(self.status.to_json(), separators=(",", ":"))
        for queue in self.to_frontend_senders.values():
            queue.put_nowait(text)

    async def disconnect(self, connection_id: int) -> None:
        device_id = self.connection_id_to_player.get(connection_id)
        if device_id is None:
            return
        headset = self.status.headsets.get(device_id)
        if headset is None:
            return
        headset.temp.connection_status = ConnectionStatus.disconnected()
        print(f"client disconnected: {device_id}")
        self.status_generation += 1

    async def send_msg_to_player(self, connection_id: int, inter_client_msg: InterClientMsg) -> None:
        frame = BinaryMessageTo(Address.client(connection_id), inter_client_msg.pack()).pack()
        await self.to_relay_server.send(frame)

    def get_or_request_unique_device_id(self, connection_id: int) -> int | None:
        """The device behind ``connection_id``; unknown ones are queued for a request."""
        device_id = self.connection_id_to_player.get(connection_id)
        if device_id is not None:
            return device_id
        if connection_id not in self.unknown_connections:
            self.unknown_connections.append(connection_id)
        return None

    async def request_unknown_device_ids(self) -> None:
        """Ask every unknown connection for its device id."""
        while self.unknown_connections:
            connection_id = self.unknown_connections.pop()
            request = PlayerDataMsg(PlayerDataKind.REQUEST, PlayerAttributeTag.DEVICE_ID)
            msg = InterClientMsg(InterClientKind.PLAYER_DATA, request)
            await self.send_msg_to_player(connection_id, msg)

    def get_or_request_device_id(self, connection_id: int) -> int | None:
        return self.get_or_request_unique_device_id(connection_id)