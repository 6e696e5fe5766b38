"""What the manager knows about each headset."""

from __future__ import annotations

from dataclasses import dataclass, field

from muco.connection_status import ConnectionStatus
from muco.player_data import (
    BatteryStatus,
    Color,
    DeviceStats,
    Language,
    TemperatureWarningLevel,
)

DEFAULT_ENVIRONMENT_CODE = (
    "AntilatencyAltEnvironmentHorizontalGrid~AgACBLhTiT_cRqA-r45jvZqZmT4AAAAAAAAAAACamRk_AQEAAgM"
)
DEFAULT_ENVIRONMENT_NAME = "NoEnvironment"
DEFAULT_SESSION_DURATION = 30 * 60
"""Length of a new session in seconds."""
DEFAULT_HEADSET_NAME = "New Headset"
DEFAULT_AUDIO_VOLUME = 0.5


def _default_device_stats() -> DeviceStats:
    return DeviceStats(
        battery_status=BatteryStatus.UNKNOWN,
        battery_level=0.0,
        fps=0.0,
        alt_tracking_confidence=0.0,
        temperature_warning_level=TemperatureWarningLevel.NO_WARNING,
        temperature_level=0.0,
        temperature_trend=0.0,
    )


@dataclass
class PersistentHeadsetData:
    """Headset settings that are saved between manager runs."""

    unique_device_id: int
    name: str
    color: Color
    language: Language
    environment_name: str

    @classmethod
    def new(cls, unique_device_id: int) -> PersistentHeadsetData:
        return cls(
            unique_device_id=unique_device_id,
            name=DEFAULT_HEADSET_NAME,
            color=Color(0.0, 0.0, 0.0, 0.0),
            language=Language.EN_GB,
            environment_name=DEFAULT_ENVIRONMENT_NAME,
        )

    def to_json(self) -> dict:
        return {
            "unique_device_id": self.unique_device_id,
            "name": self.name,
            "color": self.color.to_json(),
            "language": self.language.value,
            "environment_name": self.environment_name,
        }

    @classmethod
    def from_json(cls, data: dict) -> PersistentHeadsetData:
        return cls(
            unique_device_id=int(data["unique_device_id"]),
            name=str(data["name"]),
            color=Color.from_json(data["color"]),
            language=Language(data["language"]),
            environment_name=str(data["environment_name"]),
        )


@dataclass(frozen=True)
class SessionState:
    """A running session keeps its start time, a paused one its elapsed time.

    ``seconds`` is seconds since the Unix epoch when running and seconds
    elapsed when paused.
    """

    is_running: bool
    seconds: int

    @classmethod
    def running(cls, start_time: int) -> SessionState:
        return cls(True, int(start_time))

    @classmethod
    def paused(cls, elapsed: int) -> SessionState:
        return cls(False, int(elapsed))

    def to_json(self) -> dict:
        return {("Running" if self.is_running else "Paused"): self.seconds}

    @classmethod
    def from_json(cls, data) -> SessionState:
        if isinstance(data, dict) and len(data) == 1:
            ((key, value),) = data.items()
            if key == "Running":
                return cls.running(value)
            if key == "Paused":
                return cls.paused(value)
        raise ValueError(f"invalid session state: {data!r}")


@dataclass
class TempHeadsetData:
    """Headset state that only lasts while the manager runs."""

    connection_status: ConnectionStatus = field(default_factory=ConnectionStatus.disconnected)
    session_state: SessionState = field(default_factory=lambda: SessionState.paused(0))
    session_duration: int = DEFAULT_SESSION_DURATION
    in_dev_mode: bool = False
    is_visible: bool = True
    device_stats: DeviceStats = field(default_factory=_default_device_stats)
    data_buffer: bytes | None = None
    level: float = 0.0
    audio_volume: float = DEFAULT_AUDIO_VOLUME

    def to_json(self) -> dict:
        return {
            "connection_status": self.connection_status.to_json(),
            "session_state": self.session_state.to_json(),
            "session_duration": self.session_duration,
            "in_dev_mode": self.in_dev_mode,
            "is_visible": self.is_visible,
            "device_stats": self.device_stats.to_json(),
            "data_buffer": None if self.data_buffer is None else list(self.data_buffer),
            "level": self.level,
            "audio_volume": self.audio_volume,
        }

    @classmethod
    def from_json(cls, data: dict) -> TempHeadsetData:
        buffer = data["data_buffer"]
        return cls(
            connection_status=ConnectionStatus.from_json(data["connection_status"]),
            session_state=SessionState.from_json(data["session_state"]),
            session_duration=int(data["session_duration"]),
            in_dev_mode=bool(data["in_dev_mode"]),
            is_visible=bool(data["is_visible"]),
            device_stats=DeviceStats.from_json(data["device_stats"]),
            data_buffer=None if buffer is None else bytes(buffer),
            level=float(data["level"]),
            audio_volume=float(data["audio_volume"]),
        )


@dataclass
class HeadsetData:
    persistent: PersistentHeadsetData
    temp: TempHeadsetData = field(default_factory=TempHeadsetData)

    @classmethod
    def new(cls, unique_device_id: int) -> HeadsetData:
        return cls(PersistentHeadsetData.new(unique_device_id), TempHeadsetData())

    def to_json(self) -> dict:
        return {"persistent": self.persistent.to_json(), "temp": self.temp.to_json()}

    @classmethod
    def from_json(cls, data: dict) -> HeadsetData:
        return cls(
            PersistentHeadsetData.from_json(data["persistent"]),
            TempHeadsetData.from_json(data["temp"]),
        )