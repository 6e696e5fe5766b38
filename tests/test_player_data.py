import struct

import pytest

from muco.codec import ByteReader, DecodeError
from muco.player_data import (
    TRANS_SIZE,
    BatteryStatus,
    Color,
    DeviceStats,
    EnvData,
    EnvTrans,
    Language,
    PlayerAttribute,
    PlayerAttributeTag,
    TemperatureWarningLevel,
)

STATS = DeviceStats(
    battery_status=BatteryStatus.CHARGING,
    battery_level=0.75,
    fps=72.0,
    alt_tracking_confidence=0.5,
    temperature_warning_level=TemperatureWarningLevel.THROTTLING,
    temperature_level=0.25,
    temperature_trend=-0.5,
)

ENV = EnvData("grid~code", EnvTrans((1.0, 2.0, 3.0), (0.5, 0.25, -1.0)))


def decode(data: bytes) -> PlayerAttribute:
    return PlayerAttribute.decode(ByteReader(data))


@pytest.mark.parametrize(
    "attribute",
    [
        PlayerAttribute(PlayerAttributeTag.DEVICE_ID, 333),
        PlayerAttribute(PlayerAttributeTag.COLOR, Color(1.0, 0.5, 0.25, 0.0)),
        PlayerAttribute(PlayerAttributeTag.LEVEL, 0.5),
        PlayerAttribute(PlayerAttributeTag.LANGUAGE, Language.DE_DE),
        PlayerAttribute(PlayerAttributeTag.ENVIRONMENT_CODE, ("NoEnvironment", ENV)),
        PlayerAttribute(PlayerAttributeTag.DEV_MODE, True),
        PlayerAttribute(PlayerAttributeTag.IS_VISIBLE, False),
        PlayerAttribute(PlayerAttributeTag.DEVICE_STATS, STATS),
        PlayerAttribute(PlayerAttributeTag.AUDIO_VOLUME, 0.25),
    ],
)
def test_pack_decode_round_trip(attribute):
    reader = ByteReader(attribute.pack() + b"tail")
    assert PlayerAttribute.decode(reader) == attribute
    assert reader.rest() == b"tail"


def test_language_wire_bytes():
    packed = PlayerAttribute(PlayerAttributeTag.LANGUAGE, Language.DA_DK).pack()
    assert packed == b"\x05\x00\x00\x00\x01\x00\x00\x00"


def test_tag_wire_bytes():
    assert PlayerAttributeTag.AUDIO_VOLUME.pack() == b"\x0a\x00\x00\x00"


def test_tag_round_trip_for_every_tag():
    for tag in PlayerAttributeTag:
        assert PlayerAttributeTag.decode(ByteReader(tag.pack())) is tag


def test_unknown_tag_rejected():
    with pytest.raises(DecodeError):
        decode(struct.pack("<I", 11))


def test_nonzero_byte_means_dev_mode_on():
    attribute = decode(struct.pack("<I", 7) + b"\x05")
    assert attribute.value is True


def test_trans_skips_its_bytes():
    reader = ByteReader(bytes(TRANS_SIZE) + b"after")
    attribute = PlayerAttribute.decode_value(reader, PlayerAttributeTag.TRANS)
    assert attribute == PlayerAttribute(PlayerAttributeTag.TRANS, None)
    assert reader.rest() == b"after"


def test_hands_skips_all_transforms():
    data = (
        bytes([1, 2, 3])
        + bytes(2 * TRANS_SIZE)
        + struct.pack("<I", 2)
        + bytes(2 * TRANS_SIZE)
        + struct.pack("<I", 1)
        + bytes(TRANS_SIZE)
        + b"after"
    )
    reader = ByteReader(data)
    attribute = PlayerAttribute.decode_value(reader, PlayerAttributeTag.HANDS)
    assert attribute.tag is PlayerAttributeTag.HANDS
    assert reader.rest() == b"after"


def test_hands_truncated_raises():
    reader = ByteReader(bytes([1, 2, 3]) + bytes(TRANS_SIZE))
    with pytest.raises(DecodeError):
        PlayerAttribute.decode_value(reader, PlayerAttributeTag.HANDS)


def test_unsupported_language_rejected():
    with pytest.raises(DecodeError, match="unsupported language index: 3"):
        decode(struct.pack("<II", 5, 3))


def test_unknown_battery_status_rejected():
    data = struct.pack("<IB", 9, 5) + bytes(30)
    with pytest.raises(DecodeError, match="battery"):
        decode(data)


def test_unknown_temperature_level_rejected():
    data = struct.pack("<IBfffB", 9, 0, 0.0, 0.0, 0.0, 3) + bytes(8)
    with pytest.raises(DecodeError, match="temperature"):
        decode(data)


def test_truncated_level_raises():
    with pytest.raises(DecodeError):
        decode(struct.pack("<I", 3) + b"\x00\x00")


def test_invalid_utf8_name_rejected():
    data = struct.pack("<II", 6, 1) + b"\xff"
    with pytest.raises(DecodeError):
        decode(data)


@pytest.mark.parametrize("tag", [PlayerAttributeTag.TRANS, PlayerAttributeTag.HANDS])
def test_dataless_attributes_cannot_be_packed(tag):
    with pytest.raises(ValueError):
        PlayerAttribute(tag).pack()


def test_color_json_round_trip():
    color = Color(0.1, 0.2, 0.3, 0.4)
    assert Color.from_json(color.to_json()) == color
    assert set(color.to_json()) == {"r", "g", "b", "a"}


def test_device_stats_json_uses_variant_names():
    data = STATS.to_json()
    assert data["battery_status"] == "Charging"
    assert data["temperature_warning_level"] == "Throttling"
    assert DeviceStats.from_json(data) == STATS


def test_env_data_json_round_trip():
    assert EnvData.from_json(ENV.to_json()) == ENV


def test_env_trans_default_is_zero():
    assert EnvTrans().to_json() == {"translation": [0.0, 0.0, 0.0], "rotation": [0.0, 0.0, 0.0]}


def test_env_trans_rejects_wrong_length():
    with pytest.raises(ValueError):
        EnvTrans.from_json({"translation": [1.0, 2.0], "rotation": [0.0, 0.0, 0.0]})


def test_language_json_names():
    assert Language("EnGB") is Language.EN_GB
    assert Language.DA_DK.value == "DaDK"