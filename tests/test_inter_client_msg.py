import struct

import pytest

from muco.codec import DecodeError
from muco.inter_client_msg import InterClientKind, InterClientMsg
from muco.player_data import PlayerAttribute, PlayerAttributeTag
from muco.player_data_msg import PlayerDataKind, PlayerDataMsg

NOTIFY = PlayerDataMsg(
    PlayerDataKind.NOTIFY, PlayerAttribute(PlayerAttributeTag.DEVICE_ID, 888)
)


@pytest.mark.parametrize(
    "msg",
    [
        InterClientMsg(InterClientKind.PLAYER_DATA, NOTIFY),
        InterClientMsg(InterClientKind.PING),
        InterClientMsg(InterClientKind.ALL_PLAYER_DATA, b"\x01\x02\x03"),
        InterClientMsg(InterClientKind.DIFF, b"\x04\x00\x01"),
    ],
)
def test_round_trip(msg):
    assert InterClientMsg.decode(msg.pack()) == msg


def test_player_data_decoded_from_wire():
    data = struct.pack("<III", 0, 0, 0) + struct.pack("<I", 888)
    assert InterClientMsg.decode(data) == InterClientMsg(InterClientKind.PLAYER_DATA, NOTIFY)


def test_all_player_data_keeps_remaining_bytes():
    msg = InterClientMsg.decode(struct.pack("<I", 2) + b"payload")
    assert msg.kind is InterClientKind.ALL_PLAYER_DATA
    assert msg.payload == b"payload"


def test_ping_packs_to_kind_only():
    assert InterClientMsg(InterClientKind.PING).pack() == struct.pack("<I", 1)


def test_unknown_kind_rejected():
    with pytest.raises(DecodeError, match="unsupported inter client msg type: 4"):
        InterClientMsg.decode(struct.pack("<I", 4))


def test_truncated_header_rejected():
    with pytest.raises(DecodeError):
        InterClientMsg.decode(b"\x00\x00")


def test_set_message_is_not_decodable():
    set_msg = PlayerDataMsg(PlayerDataKind.SET, PlayerAttribute(PlayerAttributeTag.LEVEL, 0.5))
    data = InterClientMsg(InterClientKind.PLAYER_DATA, set_msg).pack()
    with pytest.raises(DecodeError):
        InterClientMsg.decode(data)