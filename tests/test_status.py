import json

import pytest

from muco.connection_status import ConnectionStatus
from muco.headset_data import DEFAULT_ENVIRONMENT_CODE, DEFAULT_ENVIRONMENT_NAME, HeadsetData
from muco.player_data import EnvData, EnvTrans
from muco.status import Status


def test_new_status_has_default_environment():
    status = Status()
    assert status.headsets == {}
    assert status.environment_data[DEFAULT_ENVIRONMENT_NAME].code == DEFAULT_ENVIRONMENT_CODE


def test_to_json_uses_string_keys():
    status = Status()
    status.headsets[3] = HeadsetData.new(3)
    data = status.to_json()
    assert list(data["headsets"]) == ["3"]
    assert data["headsets"]["3"]["persistent"]["unique_device_id"] == 3


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "save.txt"
    status = Status()
    headset = HeadsetData.new(8)
    headset.persistent.name = "Left"
    headset.temp.connection_status = ConnectionStatus.connected(2)
    headset.temp.level = 0.5
    status.headsets[8] = headset
    status.environment_data["Room"] = EnvData("code", EnvTrans((1.0, 2.0, 3.0), (0.0, 0.5, 0.0)))
    status.save(path)

    loaded = Status.load(path)
    assert set(loaded.headsets) == {8}
    assert loaded.headsets[8].persistent == headset.persistent
    assert loaded.headsets[8].temp == HeadsetData.new(8).temp
    assert loaded.environment_data == status.environment_data


def test_saved_file_lists_persistent_headsets(tmp_path):
    path = tmp_path / "save.txt"
    status = Status()
    status.headsets[4] = HeadsetData.new(4)
    status.save(path)
    data = json.loads(path.read_text())
    assert [item["unique_device_id"] for item in data["headsets"]] == [4]
    assert "temp" not in data["headsets"][0]


def test_load_replaces_environments(tmp_path):
    path = tmp_path / "save.txt"
    path.write_text(json.dumps({"headsets": [], "environment_data": {}}))
    assert Status.load(path).environment_data == {}


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Status.load(tmp_path / "missing.txt")


def test_load_invalid_json(tmp_path):
    path = tmp_path / "save.txt"
    path.write_text("{not json")
    with pytest.raises(ValueError):
        Status.load(path)


def test_load_invalid_shape(tmp_path):
    path = tmp_path / "save.txt"
    path.write_text(json.dumps({"headsets": 5, "environment_data": {}}))
    with pytest.raises(ValueError):
        Status.load(path)