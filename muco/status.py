"""Everything the manager tracks, and saving it to disk."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from muco.headset_data import (
    DEFAULT_ENVIRONMENT_CODE,
    DEFAULT_ENVIRONMENT_NAME,
    HeadsetData,
    PersistentHeadsetData,
    TempHeadsetData,
)
from muco.player_data import EnvData


def _default_environments() -> dict[str, EnvData]:
    return {DEFAULT_ENVIRONMENT_NAME: EnvData(DEFAULT_ENVIRONMENT_CODE)}


@dataclass
class Status:
    """Headsets keyed by unique device id, and environments keyed by name."""

    headsets: dict[int, HeadsetData] = field(default_factory=dict)
    environment_data: dict[str, EnvData] = field(default_factory=_default_environments)

    def to_json(self) -> dict:
        return {
            "headsets": {str(k): v.to_json() for k, v in self.headsets.items()},
            "environment_data": {k: v.to_json() for k, v in self.environment_data.items()},
        }

    def _save_data(self) -> dict:
        return {
            "headsets": [headset.persistent.to_json() for headset in self.headsets.values()],
            "environment_data": {k: v.to_json() for k, v in self.environment_data.items()},
        }

    def save(self, path) -> None:
        """Write the persistent part of the status to ``path`` as JSON."""
        Path(path).write_text(json.dumps(self._save_data(), indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path) -> Status:
        """Read a status saved with ``save``; temporary headset data starts fresh."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        try:
            persistent = [PersistentHeadsetData.from_json(item) for item in data["headsets"]]
            environments = {
                str(name): EnvData.from_json(env) for name, env in data["environment_data"].items()
            }
        except (KeyError, TypeError, AttributeError) as err:
            raise ValueError(f"invalid save data: {err!r}") from None
        status = cls()
        for item in persistent:
            status.headsets[item.unique_device_id] = HeadsetData(item, TempHeadsetData())
        status.environment_data = environments
        return status