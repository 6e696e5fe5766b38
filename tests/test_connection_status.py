import pytest

from muco.connection_status import ConnectionStatus


def test_connected_json_is_tagged_with_id():
    assert ConnectionStatus.connected(7).to_json() == {"Connected": 7}


def test_disconnected_json_is_plain_name():
    assert ConnectionStatus.disconnected().to_json() == "Disconnected"


@pytest.mark.parametrize("status", [ConnectionStatus.connected(0), ConnectionStatus.connected(65535),
                                    ConnectionStatus.disconnected()])
def test_round_trip(status):
    assert ConnectionStatus.from_json(status.to_json()) == status


def test_is_connected():
    assert ConnectionStatus.connected(3).is_connected
    assert not ConnectionStatus.disconnected().is_connected


@pytest.mark.parametrize("data", ["Connected", {"Connected": "x"}, {"Other": 1}, None, {"Connected": True}])
def test_invalid_json_raises(data):
    with pytest.raises(ValueError):
        ConnectionStatus.from_json(data)