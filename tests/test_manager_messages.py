import struct

import pytest

from muco.codec import DecodeError
from muco.connection_status import ConnectionStatus
from muco.context import MucoContext
from muco.inter_client_msg import InterClientKind, InterClientMsg
from muco.manager_messages import (
    apply_diff,
    decode_vlq,
    process_data_buffer,
    process_player_attribute,
    process_server_client_msg,
)
from muco.player_data import (
    TRANS_SIZE,
    BatteryStatus,
    Color,
    DeviceStats,
    EnvData,
    Language,
    PlayerAttribute,
    PlayerAttributeTag,
    TemperatureWarningLevel,
)
from muco.player_data_msg import PlayerDataKind, PlayerDataMsg
from muco.server_client_msg import ClientDisconnected, DataOwner, InterClient


class FakeRelay:
    def __init__(self):
        self.sent = []

    async def send(self, data):
        self.sent.append(bytes(data))


def _context():
    return MucoContext(FakeRelay(), None)


def _vlq(number):
    out = bytearray()
    while True:
        low = number & 0x7F
        number >>= 7
        if number:
            out.append(low | 0x80)
        else:
            out.append(low)
            return bytes(out)


def _attr(tag, value):
    return PlayerAttribute(tag, value).pack()[4:]


def _notify(tag, value):
    return InterClientMsg(
        InterClientKind.PLAYER_DATA, PlayerDataMsg(PlayerDataKind.NOTIFY, PlayerAttribute(tag, value))
    ).pack()


STATS = DeviceStats(BatteryStatus.CHARGING, 0.5, 72.0, 1.0, TemperatureWarningLevel.NO_WARNING, 0.0, 0.0)
PREFIX_LEN = len(_attr(PlayerAttributeTag.DEVICE_ID, 42)) + len(
    _attr(PlayerAttributeTag.COLOR, Color(1.0, 0.0, 0.0, 1.0))
) + TRANS_SIZE


def _dump():
    return (
        _attr(PlayerAttributeTag.DEVICE_ID, 42)
        + _attr(PlayerAttributeTag.COLOR, Color(1.0, 0.0, 0.0, 1.0))
        + bytes(TRANS_SIZE)
        + _attr(PlayerAttributeTag.LEVEL, 0.5)
        + bytes(3) + bytes(2 * TRANS_SIZE) + struct.pack("<II", 0, 0)
        + _attr(PlayerAttributeTag.LANGUAGE, Language.DA_DK)
        + _attr(PlayerAttributeTag.ENVIRONMENT_CODE, ("Grid", EnvData("abc")))
        + b"\x01"
        + b"\x00"
        + _attr(PlayerAttributeTag.DEVICE_STATS, STATS)
        + _attr(PlayerAttributeTag.AUDIO_VOLUME, 0.75)
    )


def test_decode_vlq_single_byte():
    assert decode_vlq(b"\x05", 0) == (5, 1)


def test_decode_vlq_two_bytes():
    assert decode_vlq(b"\x00\x81\x01", 1) == (129, 3)


@pytest.mark.parametrize("number", [0, 1, 127, 128, 300, 16384, 2**31])
def test_decode_vlq_round_trip(number):
    encoded = _vlq(number)
    assert decode_vlq(encoded, 0) == (number, len(encoded))


def test_decode_vlq_truncated():
    with pytest.raises(DecodeError):
        decode_vlq(b"\x80", 0)


def test_apply_diff_replaces_run():
    diff = _vlq(6) + _vlq(2) + _vlq(2) + b"XY" + _vlq(2)
    assert apply_diff(b"abcdef", diff) == b"abXYef"


def test_apply_diff_grows_buffer():
    diff = _vlq(4) + _vlq(2) + _vlq(2) + b"cd"
    assert apply_diff(b"ab", diff) == b"abcd"


def test_apply_diff_unchanged():
    assert apply_diff(b"hello", _vlq(5) + _vlq(5)) == b"hello"


def test_apply_diff_truncated():
    with pytest.raises(DecodeError):
        apply_diff(b"abcdef", _vlq(6) + _vlq(2) + _vlq(3) + b"X")


@pytest.mark.asyncio
async def test_device_id_registers_headset():
    context = _context()
    await process_player_attribute(PlayerAttribute(PlayerAttributeTag.DEVICE_ID, 42), 3, context)
    headset = context.status.headsets[42]
    assert headset.temp.connection_status == ConnectionStatus.connected(3)
    assert context.connection_id_to_player == {3: 42}
    assert context.status_generation == 1
    assert len(context.to_relay_server.sent) == 3

    await process_player_attribute(PlayerAttribute(PlayerAttributeTag.DEVICE_ID, 42), 3, context)
    assert context.status_generation == 1
    assert len(context.to_relay_server.sent) == 3


@pytest.mark.asyncio
async def test_tracked_attribute_updates_once():
    context = _context()
    await process_player_attribute(PlayerAttribute(PlayerAttributeTag.DEVICE_ID, 42), 3, context)
    level = PlayerAttribute(PlayerAttributeTag.LEVEL, 0.25)
    await process_player_attribute(level, 3, context)
    assert context.status.headsets[42].temp.level == 0.25
    assert context.status_generation == 2
    await process_player_attribute(level, 3, context)
    assert context.status_generation == 2


@pytest.mark.asyncio
async def test_attribute_from_unknown_sender_requests_id():
    context = _context()
    await process_player_attribute(PlayerAttribute(PlayerAttributeTag.DEV_MODE, True), 8, context)
    assert context.unknown_connections == [8]
    assert context.status.headsets == {}


@pytest.mark.asyncio
async def test_process_data_buffer_applies_dump():
    context = _context()
    data = _dump()
    await process_data_buffer(data, 5, context)
    temp = context.status.headsets[42].temp
    assert temp.level == 0.5
    assert temp.audio_volume == 0.75
    assert temp.in_dev_mode is True
    assert temp.is_visible is True
    assert temp.device_stats == STATS
    assert temp.data_buffer == data
    assert context.status.headsets[42].persistent.language is Language.EN_GB


@pytest.mark.asyncio
async def test_all_player_data_then_diff():
    context = _context()
    data = _dump()
    msg = InterClientMsg(InterClientKind.ALL_PLAYER_DATA, data).pack()
    await process_server_client_msg(InterClient(5, msg), context)
    diff = (
        _vlq(len(data))
        + _vlq(PREFIX_LEN)
        + _vlq(4)
        + struct.pack("<f", 0.125)
        + _vlq(len(data) - PREFIX_LEN - 4)
    )
    diff_msg = InterClientMsg(InterClientKind.DIFF, diff).pack()
    await process_server_client_msg(InterClient(5, diff_msg), context)
    temp = context.status.headsets[42].temp
    assert temp.level == 0.125
    assert temp.data_buffer == apply_diff(data, diff)
    assert len(temp.data_buffer) == len(data)


@pytest.mark.asyncio
async def test_notify_device_id_message():
    context = _context()
    await process_server_client_msg(InterClient(2, _notify(PlayerAttributeTag.DEVICE_ID, 7)), context)
    assert context.connection_id_to_player == {2: 7}
    assert context.unknown_connections == []


@pytest.mark.asyncio
async def test_ping_from_unknown_sender_requests_id():
    context = _context()
    await process_server_client_msg(InterClient(4, InterClientMsg(InterClientKind.PING).pack()), context)
    assert context.unknown_connections == [4]


@pytest.mark.asyncio
async def test_undecodable_message_changes_nothing():
    context = _context()
    await process_server_client_msg(InterClient(4, struct.pack("<I", 99)), context)
    assert context.unknown_connections == []
    assert context.status_generation == 0


@pytest.mark.asyncio
async def test_client_disconnected_message():
    context = _context()
    await process_server_client_msg(InterClient(2, _notify(PlayerAttributeTag.DEVICE_ID, 7)), context)
    await process_server_client_msg(ClientDisconnected(2), context)
    assert context.status.headsets[7].temp.connection_status == ConnectionStatus.disconnected()
    assert context.status_generation == 2


@pytest.mark.asyncio
async def test_data_owner_ignored():
    context = _context()
    await process_server_client_msg(DataOwner(1, 2, 3, 4), context)
    assert context.status_generation == 0
    assert context.to_relay_server.sent == []