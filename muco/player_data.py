"""Player attributes exchanged between headsets and the manager."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from muco.codec import ByteReader, DecodeError

TRANS_SIZE = 28
LEVEL_SIZE = 4

_U32 = struct.Struct("<I")
_F32 = struct.Struct("<f")


def _u32(value: int) -> bytes:
    return _U32.pack(value)


def _f32(value: float) -> bytes:
    return _F32.pack(value)


def _wire_index(member: Enum) -> int:
    return tuple(type(member)).index(member)


def _from_wire(enum_cls, index: int, message: str):
    members = tuple(enum_cls)
    if index >= len(members):
        raise DecodeError(message)
    return members[index]


@dataclass(frozen=True)
class Color:
    r: float
    g: float
    b: float
    a: float

    def to_json(self) -> dict:
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}

    @classmethod
    def from_json(cls, data: dict) -> Color:
        return cls(float(data["r"]), float(data["g"]), float(data["b"]), float(data["a"]))


class Language(Enum):
    """Headset language; the value is its JSON name, the order its wire index."""

    EN_GB = "EnGB"
    DA_DK = "DaDK"
    DE_DE = "DeDE"


class TemperatureWarningLevel(Enum):
    NO_WARNING = "NoWarning"
    THROTTLING_IMMINENT = "ThrottlingImminent"
    THROTTLING = "Throttling"


class BatteryStatus(Enum):
    UNKNOWN = "Unknown"
    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    NOT_CHARGING = "NotCharging"
    FULL = "Full"


@dataclass(frozen=True)
class DeviceStats:
    battery_status: BatteryStatus
    battery_level: float
    fps: float
    alt_tracking_confidence: float
    temperature_warning_level: TemperatureWarningLevel
    temperature_level: float
    temperature_trend: float

    def to_json(self) -> dict:
        return {
            "battery_status": self.battery_status.value,
            "battery_level": self.battery_level,
            "fps": self.fps,
            "alt_tracking_confidence": self.alt_tracking_confidence,
            "temperature_warning_level": self.temperature_warning_level.value,
            "temperature_level": self.temperature_level,
            "temperature_trend": self.temperature_trend,
        }

    @classmethod
    def from_json(cls, data: dict) -> DeviceStats:
        return cls(
            battery_status=BatteryStatus(data["battery_status"]),
            battery_level=float(data["battery_level"]),
            fps=float(data["fps"]),
            alt_tracking_confidence=float(data["alt_tracking_confidence"]),
            temperature_warning_level=TemperatureWarningLevel(data["temperature_warning_level"]),
            temperature_level=float(data["temperature_level"]),
            temperature_trend=float(data["temperature_trend"]),
        )


def _triple(values) -> tuple[float, float, float]:
    result = tuple(float(v) for v in values)
    if len(result) != 3:
        raise ValueError(f"expected 3 values, got {len(result)}")
    return result


@dataclass(frozen=True)
class EnvTrans:
    translation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def to_json(self) -> dict:
        return {"translation": list(self.translation), "rotation": list(self.rotation)}

    @classmethod
    def from_json(cls, data: dict) -> EnvTrans:
        return cls(_triple(data["translation"]), _triple(data["rotation"]))


@dataclass(frozen=True)
class EnvData:
    code: str
    transform: EnvTrans = field(default_factory=EnvTrans)

    def to_json(self) -> dict:
        return {"code": self.code, "transform": self.transform.to_json()}

    @classmethod
    def from_json(cls, data: dict) -> EnvData:
        return cls(str(data["code"]), EnvTrans.from_json(data["transform"]))


class PlayerAttributeTag(IntEnum):
    """Attribute kind; the value is its wire index."""

    DEVICE_ID = 0
    COLOR = 1
    TRANS = 2
    LEVEL = 3
    HANDS = 4
    LANGUAGE = 5
    ENVIRONMENT_CODE = 6
    DEV_MODE = 7
    IS_VISIBLE = 8
    DEVICE_STATS = 9
    AUDIO_VOLUME = 10

    @classmethod
    def decode(cls, reader: ByteReader) -> PlayerAttributeTag:
        index = reader.u32()
        try:
            return cls(index)
        except ValueError:
            raise DecodeError("tag index not supported") from None

    def pack(self) -> bytes:
        return _u32(self.value)


def _read_str(reader: ByteReader) -> str:
    raw = reader.take(reader.u32())
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"invalid utf-8 string: {exc}") from None


def _write_str(text: str) -> bytes:
    encoded = text.encode("utf-8")
    return _u32(len(encoded)) + encoded


def _skip_transforms(reader: ByteReader) -> None:
    reader.skip(reader.u32() * TRANS_SIZE)


@dataclass(frozen=True)
class PlayerAttribute:
    """One attribute of a player.

    ``value`` depends on ``tag``: an int for DEVICE_ID, a Color, a float for
    LEVEL and AUDIO_VOLUME, a Language, a ``(name, EnvData)`` pair for
    ENVIRONMENT_CODE, a bool for DEV_MODE and IS_VISIBLE, a DeviceStats, and
    None for TRANS and HANDS, whose contents are skipped.
    """

    tag: PlayerAttributeTag
    value: object = None

    @classmethod
    def decode(cls, reader: ByteReader) -> PlayerAttribute:
        tag = PlayerAttributeTag.decode(reader)
        return cls.decode_value(reader, tag)

    @classmethod
    def decode_value(cls, reader: ByteReader, tag: PlayerAttributeTag) -> PlayerAttribute:
        match tag:
            case PlayerAttributeTag.DEVICE_ID:
                value = reader.u32()
            case PlayerAttributeTag.COLOR:
                value = Color(reader.f32(), reader.f32(), reader.f32(), reader.f32())
            case PlayerAttributeTag.TRANS:
                reader.skip(TRANS_SIZE)
                value = None
            case PlayerAttributeTag.LEVEL:
                value = reader.f32()
            case PlayerAttributeTag.HANDS:
                reader.skip(3)  # hand type, left and right confidence
                reader.skip(TRANS_SIZE)
                reader.skip(TRANS_SIZE)
                _skip_transforms(reader)
                _skip_transforms(reader)
                value = None
            case PlayerAttributeTag.LANGUAGE:
                index = reader.u32()
                value = _from_wire(Language, index, f"unsupported language index: {index}")
            case PlayerAttributeTag.ENVIRONMENT_CODE:
                name = _read_str(reader)
                code = _read_str(reader)
                translation = (reader.f32(), reader.f32(), reader.f32())
                rotation = (reader.f32(), reader.f32(), reader.f32())
                value = (name, EnvData(code, EnvTrans(translation, rotation)))
            case PlayerAttributeTag.DEV_MODE | PlayerAttributeTag.IS_VISIBLE:
                value = reader.u8() != 0
            case PlayerAttributeTag.DEVICE_STATS:
                battery_status = _from_wire(BatteryStatus, reader.u8(), "unknown battery status")
                battery_level = reader.f32()
                fps = reader.f32()
                confidence = reader.f32()
                warning = _from_wire(
                    TemperatureWarningLevel, reader.u8(), "unknown temperature warning level"
                )
                value = DeviceStats(
                    battery_status=battery_status,
                    battery_level=battery_level,
                    fps=fps,
                    alt_tracking_confidence=confidence,
                    temperature_warning_level=warning,
                    temperature_level=reader.f32(),
                    temperature_trend=reader.f32(),
                )
            case PlayerAttributeTag.AUDIO_VOLUME:
                value = reader.f32()
            case _:
                raise DecodeError("tag index not supported")
        return cls(tag, value)

    def pack(self) -> bytes:
        """Encode the attribute, tag first."""
        tag = self.tag
        head = tag.pack()
        match tag:
            case PlayerAttributeTag.DEVICE_ID:
                return head + _u32(self.value)
            case PlayerAttributeTag.COLOR:
                c = self.value
                return head + b"".join(_f32(x) for x in (c.r, c.g, c.b, c.a))
            case PlayerAttributeTag.LEVEL | PlayerAttributeTag.AUDIO_VOLUME:
                return head + _f32(self.value)
            case PlayerAttributeTag.LANGUAGE:
                return head + _u32(_wire_index(self.value))
            case PlayerAttributeTag.ENVIRONMENT_CODE:
                name, data = self.value
                floats = (*data.transform.translation, *data.transform.rotation)
                return (
                    head
                    + _write_str(name)
                    + _write_str(data.code)
                    + b"".join(_f32(x) for x in floats)
                )
            case PlayerAttributeTag.DEV_MODE | PlayerAttributeTag.IS_VISIBLE:
                return head + (b"\x01" if self.value else b"\x00")
            case PlayerAttributeTag.DEVICE_STATS:
                s = self.value
                return (
                    head
                    + bytes([_wire_index(s.battery_status)])
                    + _f32(s.battery_level)
                    + _f32(s.fps)
                    + _f32(s.alt_tracking_confidence)
                    + bytes([_wire_index(s.temperature_warning_level)])
                    + _f32(s.temperature_level)
                    + _f32(s.temperature_trend)
                )
            case _:
                raise ValueError(f"attribute {tag.name} carries no data and cannot be encoded")