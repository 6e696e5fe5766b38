"""Websocket connections from manager frontends and the commands they send."""

from __future__ import annotations

import asyncio
import contextlib
import json
import sys
import time
import uuid
from dataclasses import dataclass
from enum import Enum

from aiohttp import WSMsgType, web

from muco.client_server_msg import Kick
from muco.context import MucoContext
from muco.headset_data import DEFAULT_SESSION_DURATION, HeadsetData, SessionState
from muco.inter_client_msg import InterClientKind, InterClientMsg
from muco.player_data import Color, EnvData, Language, PlayerAttribute, PlayerAttributeTag
from muco.player_data_msg import PlayerDataKind, PlayerDataMsg

_MAX_DEVICE_ID = 0xFFFFFFFF


def _device_id(value):
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _MAX_DEVICE_ID:
        raise ValueError(f"invalid device id: {value!r}")
    return value


def _integer(value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected an integer, got {value!r}")
    return value


def _number(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


def _flag(value):
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def _text(value):
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _language(value):
    try:
        return Language(value)
    except (ValueError, TypeError):
        raise ValueError(f"unknown language: {value!r}") from None


def _color(value):
    try:
        return Color.from_json(value)
    except (KeyError, TypeError, ValueError, AttributeError):
        raise ValueError(f"invalid color: {value!r}") from None


def _env_data(value):
    try:
        return EnvData.from_json(value)
    except (KeyError, TypeError, ValueError, AttributeError, IndexError):
        raise ValueError(f"invalid environment data: {value!r}") from None


_SIGNATURES = {
    "Ping": (),
    "Echo": (_text,),
    "Forget": (_device_id,),
    "Kick": (_device_id,),
    "SetColor": (_device_id, _color),
    "SetLevel": (_device_id, _number),
    "SetAudioVolume": (_device_id, _number),
    "SetName": (_device_id, _text),
    "SetLanguage": (_device_id, _language),
    "StartSession": (_device_id,),
    "ExtendSession": (_device_id, _integer),
    "Pause": (_device_id,),
    "Unpause": (_device_id,),
    "SetEnvironment": (_device_id, _text),
    "SetEnvironmentData": (_text, _env_data),
    "RemoveEnvironment": (_text,),
    "RenameEnvironment": (_text, _text),
    "SetDevMode": (_device_id, _flag),
    "SetIsVisible": (_device_id, _flag),
}


@dataclass(frozen=True)
class ClientMsg:
    """A command from a frontend: its variant name and its arguments."""

    kind: str
    args: tuple = ()

    @classmethod
    def from_json(cls, data) -> ClientMsg:
        """Build a command from its decoded JSON form.

        Commands without arguments are bare strings; the others are objects
        with one key holding the single argument or a list of them.
        """
        if isinstance(data, str):
            if _SIGNATURES.get(data) == ():
                return cls(data)
            raise ValueError(f"unknown command without arguments: {data!r}")
        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError(f"invalid command: {data!r}")
        ((kind, raw),) = data.items()
        signature = _SIGNATURES.get(kind)
        if signature is None:
            raise ValueError(f"unknown command: {kind!r}")
        if not signature:
            raise ValueError(f"{kind} takes no arguments")
        if len(signature) == 1:
            values = (raw,)
        else:
            if not isinstance(raw, list) or len(raw) != len(signature):
                raise ValueError(f"{kind} takes {len(signature)} arguments")
            values = tuple(raw)
        return cls(kind, tuple(convert(value) for convert, value in zip(signature, values)))


def parse_client_msg(text: str) -> ClientMsg:
    """Parse a command from JSON text."""
    return ClientMsg.from_json(json.loads(text))


class ResponseKind(Enum):
    REPLY = "reply"
    UPDATE_CLIENTS = "update_clients"
    NOTHING = "nothing"


@dataclass(frozen=True)
class ServerResponse:
    """What to do after a command: reply to its sender, update everyone, or nothing."""

    kind: ResponseKind
    text: str | None = None

    @classmethod
    def reply(cls, text: str) -> ServerResponse:
        return cls(ResponseKind.REPLY, text)

    @classmethod
    def update_clients(cls) -> ServerResponse:
        return cls(ResponseKind.UPDATE_CLIENTS)

    @classmethod
    def nothing(cls) -> ServerResponse:
        return cls(ResponseKind.NOTHING)


def _now() -> int:
    return int(time.time())


async def _set_attribute(context: MucoContext, headset: HeadsetData, tag, value) -> None:
    status = headset.temp.connection_status
    if status.is_connected:
        attribute = PlayerAttribute(tag, value)
        msg = InterClientMsg(InterClientKind.PLAYER_DATA, PlayerDataMsg(PlayerDataKind.SET, attribute))
        await context.send_msg_to_player(status.connection_id, msg)


async def process_client_msg(client_msg: ClientMsg, context: MucoContext) -> ServerResponse:
    """Carry out a frontend command on the manager's state."""
    headsets = context.status.headsets
    environments = context.status.environment_data
    match (client_msg.kind, client_msg.args):
        case ("Ping", ()):
            return ServerResponse.reply("pong")
        case ("Echo", (text,)):
            return ServerResponse.reply(text)
        case ("Forget", (device_id,)):
            headset = headsets.pop(device_id, None)
            if headset is not None and headset.temp.connection_status.is_connected:
                context.connection_id_to_player.pop(headset.temp.connection_status.connection_id, None)
            return ServerResponse.update_clients()
        case ("Kick", (device_id,)):
            status = context.get_headset(device_id).temp.connection_status
            if status.is_connected:
                await context.to_relay_server.send(Kick(status.connection_id).pack())
            return ServerResponse.nothing()
        case ("SetColor", (device_id, color)):
            headset = context.get_headset(device_id)
            headset.persistent.color = color
            await _set_attribute(context, headset, PlayerAttributeTag.COLOR, color)
            return ServerResponse.update_clients()
        case ("SetLevel", (device_id, level)):
            headset = context.get_headset(device_id)
            headset.temp.level = level
            await _set_attribute(context, headset, PlayerAttributeTag.LEVEL, level)
            return ServerResponse.update_clients()
        case ("SetAudioVolume", (device_id, volume)):
            headset = context.get_headset(device_id)
            headset.temp.audio_volume = volume
            await _set_attribute(context, headset, PlayerAttributeTag.AUDIO_VOLUME, volume)
            return ServerResponse.update_clients()
        case ("SetLanguage", (device_id, language)):
            headset = context.get_headset(device_id)
            headset.persistent.language = language
            await _set_attribute(context, headset, PlayerAttributeTag.LANGUAGE, language)
            return ServerResponse.update_clients()
        case ("SetName", (device_id, name)):
            context.get_headset(device_id).persistent.name = name
            return ServerResponse.update_clients()
        case ("StartSession", (device_id,)):
            start = _now()
            headset = context.get_headset(device_id)
            headset.temp.session_duration = DEFAULT_SESSION_DURATION
            headset.temp.session_state = SessionState.running(start)
            return ServerResponse.update_clients()
        case ("ExtendSession", (device_id, added_seconds)):
            context.get_headset(device_id).temp.session_duration += added_seconds
            return ServerResponse.update_clients()
        case ("Pause", (device_id,)):
            temp = context.get_headset(device_id).temp
            if not temp.session_state.is_running:
                return ServerResponse.nothing()
            temp.session_state = SessionState.paused(_now() - temp.session_state.seconds)
            return ServerResponse.update_clients()
        case ("Unpause", (device_id,)):
            temp = context.get_headset(device_id).temp
            if temp.session_state.is_running:
                return ServerResponse.nothing()
            temp.session_state = SessionState.running(_now() - temp.session_state.seconds)
            return ServerResponse.update_clients()
        case ("SetEnvironment", (device_id, name)):
            env_data = environments.get(name)
            if env_data is None:
                raise KeyError("could not find environment")
            headset = context.get_headset(device_id)
            headset.persistent.environment_name = name
            await _set_attribute(context, headset, PlayerAttributeTag.ENVIRONMENT_CODE, (name, env_data))
            return ServerResponse.update_clients()
        case ("SetEnvironmentData", (name, env_data)):
            environments[name] = env_data
            for headset in list(headsets.values()):
                if headset.persistent.environment_name == name:
                    await _set_attribute(
                        context, headset, PlayerAttributeTag.ENVIRONMENT_CODE, (name, env_data)
                    )
            return ServerResponse.update_clients()
        case ("RemoveEnvironment", (name,)):
            environments.pop(name, None)
            return ServerResponse.update_clients()
        case ("RenameEnvironment", (old_name, new_name)):
            env_data = environments.get(old_name)
            if env_data is None:
                raise KeyError(f"could not find environment {old_name}")
            environments[new_name] = env_data
            environments.pop(old_name)
            for headset in headsets.values():
                if headset.persistent.environment_name == old_name:
                    headset.persistent.environment_name = new_name
            return ServerResponse.update_clients()
        case ("SetDevMode", (device_id, in_dev_mode)):
            headset = context.get_headset(device_id)
            headset.temp.in_dev_mode = in_dev_mode
            await _set_attribute(context, headset, PlayerAttributeTag.DEV_MODE, in_dev_mode)
            return ServerResponse.update_clients()
        case ("SetIsVisible", (device_id, is_visible)):
            headset = context.get_headset(device_id)
            headset.temp.is_visible = is_visible
            await _set_attribute(context, headset, PlayerAttributeTag.IS_VISIBLE, is_visible)
            return ServerResponse.update_clients()
        case _:
            raise ValueError(f"malformed command: {client_msg!r}")


async def handle_frontend_message(frontend_id: str, text: str, context: MucoContext) -> ServerResponse:
    """Process one text message from the frontend ``frontend_id``."""
    print(f"received message from {frontend_id}: {text!r}")
    client_msg = parse_client_msg(text.strip())
    response = await process_client_msg(client_msg, context)
    match response.kind:
        case ResponseKind.REPLY:
            queue = context.to_frontend_senders.get(frontend_id)
            if queue is None:
                raise KeyError(f"could not find client with id: {frontend_id}")
            queue.put_nowait(response.text)
        case ResponseKind.UPDATE_CLIENTS:
            context.status_generation += 1
    return response


_HANDLED_ERRORS = (ValueError, LookupError, TypeError, OSError)


async def _forward(queue: asyncio.Queue, ws: web.WebSocketResponse) -> None:
    while True:
        text = await queue.get()
        try:
            await ws.send_str(text)
        except (ConnectionError, RuntimeError) as err:
            print(f"error sending websocket msg: {err}", file=sys.stderr)
            return


async def frontend_connection(request: web.Request, context: MucoContext) -> web.WebSocketResponse:
    """Serve one frontend over a websocket until it goes away."""
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    frontend_id = uuid.uuid4().hex
    queue: asyncio.Queue = asyncio.Queue()
    context.to_frontend_senders[frontend_id] = queue
    print(f"{frontend_id} connected")
    context.status_generation += 1

    sender = asyncio.create_task(_forward(queue, ws))
    try:
        async for message in ws:
            if message.type == WSMsgType.TEXT:
                try:
                    await handle_frontend_message(frontend_id, message.data, context)
                except _HANDLED_ERRORS as err:
                    print(f"error: {err}")
            elif message.type == WSMsgType.ERROR:
                print(
                    f"error receiving ws message for id: {frontend_id}: {ws.exception()}",
                    file=sys.stderr,
                )
                break
            else:
                print("error: could not get message")
    finally:
        context.to_frontend_senders.pop(frontend_id, None)
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender
        print(f"{frontend_id} disconnected")
    return ws