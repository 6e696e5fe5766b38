"""How the manager handles messages arriving from the relay server."""

from __future__ import annotations

from muco.codec import ByteReader, DecodeError
from muco.connection_status import ConnectionStatus
from muco.context import MucoContext
from muco.headset_data import HeadsetData
from muco.inter_client_msg import InterClientKind, InterClientMsg
from muco.player_data import PlayerAttribute, PlayerAttributeTag
from muco.player_data_msg import PlayerDataKind, PlayerDataMsg
from muco.server_client_msg import (
    ClientConnected,
    ClientDisconnected,
    DataNotify,
    DataOwner,
    Hello,
    InterClient,
)

# Attributes a headset reports that are mirrored into its temporary data.
_TRACKED_FIELDS = {
    PlayerAttributeTag.DEV_MODE: "in_dev_mode",
    PlayerAttributeTag.DEVICE_STATS: "device_stats",
    PlayerAttributeTag.LEVEL: "level",
    PlayerAttributeTag.AUDIO_VOLUME: "audio_volume",
}


def decode_vlq(buffer, cursor: int) -> tuple[int, int]:
    """Read a little-endian base-128 number at ``cursor``.

    Returns the number and the position after it.
    """
    value = 0
    shift = 0
    while True:
        if cursor >= len(buffer):
            raise DecodeError("truncated variable-length quantity")
        byte = buffer[cursor]
        cursor += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, cursor
        shift += 7


def apply_diff(buffer, diff) -> bytes:
    """Return ``buffer`` updated by ``diff``.

    The diff holds the new length followed by alternating runs: a count of
    unchanged bytes, then a count of changed bytes and those bytes.
    """
    out = bytearray(buffer)
    diff = bytes(diff)
    length, cursor = decode_vlq(diff, 0)
    if len(out) < length:
        out.extend(bytes(length - len(out)))
    position = 0
    while position < length:
        same, cursor = decode_vlq(diff, cursor)
        position += same
        if position == length:
            break
        different, cursor = decode_vlq(diff, cursor)
        chunk = diff[cursor:cursor + different]
        if len(chunk) < different:
            raise DecodeError("diff ends inside a run of changed bytes")
        if position + different > len(out):
            raise DecodeError("diff writes past the end of the buffer")
        out[position:position + different] = chunk
        position += different
        cursor += different
    return bytes(out)


async def _register_device(device_id: int, sender: int, context: MucoContext) -> None:
    if context.connection_id_to_player.get(sender) == device_id:
        return
    headset = context.status.headsets.get(device_id)
    if headset is None:
        headset = HeadsetData.new(device_id)
        context.status.headsets[device_id] = headset
    headset.temp.connection_status = ConnectionStatus.connected(sender)
    persistent = headset.persistent
    environment_data = context.get_environment_data(persistent.environment_name)
    context.connection_id_to_player[sender] = device_id
    context.status_generation += 1
    settings = (
        PlayerAttribute(PlayerAttributeTag.COLOR, persistent.color),
        PlayerAttribute(PlayerAttributeTag.LANGUAGE, persistent.language),
        PlayerAttribute(
            PlayerAttributeTag.ENVIRONMENT_CODE, (persistent.environment_name, environment_data)
        ),
    )
    for attribute in settings:
        msg = InterClientMsg(InterClientKind.PLAYER_DATA, PlayerDataMsg(PlayerDataKind.SET, attribute))
        await context.send_msg_to_player(sender, msg)


async def process_player_attribute(attribute: PlayerAttribute, sender: int, context: MucoContext) -> None:
    """Apply an attribute a headset reported about itself."""
    if attribute.tag is PlayerAttributeTag.DEVICE_ID:
        await _register_device(attribute.value, sender, context)
        return
    device_id = context.get_or_request_device_id(sender)
    if device_id is None:
        return
    name = _TRACKED_FIELDS.get(attribute.tag)
    if name is None:
        return
    temp = context.status.headsets[device_id].temp
    if getattr(temp, name) != attribute.value:
        setattr(temp, name, attribute.value)
        context.status_generation += 1


async def process_data_buffer(data, sender: int, context: MucoContext) -> None:
    """Apply a full attribute dump from a headset and keep it for later diffs."""
    data = bytes(data)
    reader = ByteReader(data)
    for tag in PlayerAttributeTag:
        try:
            attribute = PlayerAttribute.decode_value(reader, tag)
        except DecodeError as err:
            print(f"error while decoding {tag.name}: {err}")
            continue
        await process_player_attribute(attribute, sender, context)
    device_id = context.connection_id_to_player[sender]
    context.status.headsets[device_id].temp.data_buffer = data


async def _process_inter_client(sender: int, payload: bytes, context: MucoContext) -> None:
    try:
        msg = InterClientMsg.decode(payload)
    except DecodeError as err:
        print(f"error while decoding msg: {err}")
        return

    match msg.kind:
        case InterClientKind.PLAYER_DATA:
            player_data_msg = msg.payload
            if player_data_msg.kind is PlayerDataKind.NOTIFY:
                await process_player_attribute(player_data_msg.payload, sender, context)
            else:
                print(f"unhandled player data msg: {player_data_msg!r}")
        case InterClientKind.PING:
            pass
        case InterClientKind.ALL_PLAYER_DATA:
            await process_data_buffer(msg.payload, sender, context)
        case InterClientKind.DIFF:
            device_id = context.get_or_request_device_id(sender)
            if device_id is None:
                return
            temp = context.status.headsets[device_id].temp
            data, temp.data_buffer = temp.data_buffer, None
            if data is not None:
                await process_data_buffer(apply_diff(data, msg.payload), sender, context)

    context.get_or_request_unique_device_id(sender)


async def process_server_client_msg(msg, context: MucoContext) -> None:
    """Handle one decoded message from the relay server."""
    match msg:
        case Hello(session_id=session_id):
            print(f"session id: {session_id}")
        case ClientConnected(session_id=session_id):
            print(f"client connected: {session_id}")
        case ClientDisconnected(session_id=session_id):
            await context.disconnect(session_id)
        case InterClient(sender=sender, data=data):
            await _process_inter_client(sender, data, context)
        case DataNotify() | DataOwner():
            pass
        case _:
            raise TypeError(f"not a server client message: {msg!r}")