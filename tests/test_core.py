import ipaddress
import json
import socket
from collections import namedtuple
from unittest import mock

import psutil
import pytest

from sacnview.core import (
    AppSettings,
    AppState,
    LogLevel,
    NetworkAdapter,
)

Addr = namedtuple("Addr", "family address netmask broadcast ptp")


@pytest.fixture
def state(tmp_path):
    return AppState(tmp_path / "config")


@pytest.mark.parametrize(
    "level, text",
    [
        (LogLevel.INFO, "INFO"),
        (LogLevel.WARNING, "WARN"),
        (LogLevel.ERROR, "ERROR"),
        (LogLevel.RX, "RX"),
        (LogLevel.TX, "TX"),
    ],
)
def test_log_level_display(state, level, text):
    state.add_log(level, "entry")
    entry = state.logs[-1]
    assert entry.level is level
    assert str(entry.level) == text
    assert f"[{entry.level}]" == f"[{text}]"


def test_defaults(state):
    assert state.send_rate == 20
    assert state.auto_send_enabled is False
    assert state.selected_adapter is None
    assert AppSettings().send_rate == 20


def test_add_log_keeps_last_thousand(state):
    for i in range(1005):
        state.add_log(LogLevel.INFO, f"message {i}")
    assert len(state.logs) == 1000
    assert state.logs[0].message == "message 5"
    assert state.logs[-1].message == "message 1004"
    assert state.logs[-1].level is LogLevel.INFO


def test_update_device_sorts_and_dedupes_universes(state):
    state.update_device("10.0.0.5", 7, "Desk", 100)
    state.update_device("10.0.0.5", 2, "Desk", 100)
    state.update_device("10.0.0.5", 7, "Desk renamed", 150)
    device = state.devices[ipaddress.ip_address("10.0.0.5")]
    assert device.universes == [2, 7]
    assert device.source_name == "Desk renamed"
    assert device.priority == 150
    assert len(state.devices) == 1


def test_update_device_refreshes_last_seen(state):
    first = state.update_device("10.0.0.5", 1, "A", 100).last_seen
    second = state.update_device("10.0.0.5", 1, "A", 100).last_seen
    assert second >= first


def test_update_universe_stores_channels(state):
    channels = bytes(range(256)) * 2
    state.update_universe(3, channels, "10.0.0.9", 42)
    data = state.universes[3]
    assert data.channels == channels
    assert data.sequence == 42
    assert data.source_ip == ipaddress.ip_address("10.0.0.9")
    assert data.universe == 3


def test_update_universe_rejects_wrong_length(state):
    with pytest.raises(ValueError):
        state.update_universe(1, bytes(100), "10.0.0.9", 0)


def test_settings_dict_round_trip():
    settings = AppSettings(
        selected_adapter="eth0", window_size=(1200.0, 800.0), auto_send_enabled=True, send_rate=44
    )
    assert AppSettings.from_dict(settings.to_dict()) == settings
    assert AppSettings.from_dict(json.loads(json.dumps(settings.to_dict()))) == settings


def test_settings_optional_fields_may_be_absent():
    settings = AppSettings.from_dict({"auto_send_enabled": False, "send_rate": 20})
    assert settings == AppSettings()


@pytest.mark.parametrize(
    "payload",
    [
        {"auto_send_enabled": False},
        {"send_rate": 20},
        {"auto_send_enabled": "yes", "send_rate": 20},
        {"auto_send_enabled": False, "send_rate": -1},
        {"auto_send_enabled": False, "send_rate": 20, "window_size": [1]},
        {"auto_send_enabled": False, "send_rate": 20, "selected_adapter": 5},
        [1, 2],
    ],
)
def test_settings_from_dict_rejects_malformed(payload):
    with pytest.raises(ValueError):
        AppSettings.from_dict(payload)


def test_save_and_load_settings(tmp_path):
    config = tmp_path / "config"
    writer = AppState(config)
    writer.settings = AppSettings(selected_adapter="wlan0", auto_send_enabled=True, send_rate=30)
    writer.save_settings()

    reader = AppState(config)
    reader.load_settings()
    assert reader.settings == writer.settings
    assert reader.selected_adapter == "wlan0"
    assert reader.auto_send_enabled is True
    assert reader.send_rate == 30
    assert reader.logs[-1].message == "Settings loaded successfully"


def test_load_settings_without_file_changes_nothing(state):
    state.load_settings()
    assert state.settings == AppSettings()
    assert len(state.logs) == 0


def test_load_settings_invalid_json_raises(state):
    state.config_dir.mkdir(parents=True)
    state.settings_path.write_text("not json", encoding="utf-8")
    with pytest.raises(ValueError):
        state.load_settings()


def test_update_adapter_selection_persists(state):
    state.update_adapter_selection("eth1")
    assert state.selected_adapter == "eth1"
    saved = json.loads(state.settings_path.read_text(encoding="utf-8"))
    assert saved["selected_adapter"] == "eth1"


def test_update_adapter_selection_logs_save_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    state = AppState(blocker)
    state.update_adapter_selection("eth0")
    assert state.selected_adapter == "eth0"
    assert state.logs[-1].level is LogLevel.WARNING
    assert state.logs[-1].message.startswith("Failed to save settings:")


def test_refresh_network_adapters_skips_loopback(state):
    interfaces = {
        "lo": [Addr(socket.AF_INET, "127.0.0.1", None, None, None)],
        "eth0": [
            Addr(socket.AF_INET, "192.168.1.10", None, None, None),
            Addr(psutil.AF_LINK, "00-00-5e-00-53-00", None, None, None),
        ],
    }
    with mock.patch("sacnview.core.psutil.net_if_addrs", return_value=interfaces):
        state.refresh_network_adapters()
    assert state.network_adapters == [
        NetworkAdapter(
            name="eth0",
            ip=ipaddress.ip_address("192.168.1.10"),
            description="eth0 (192.168.1.10)",
            is_available=True,
        )
    ]
    assert state.logs[-1].message == "Found 1 network adapters"


def test_refresh_network_adapters_error_is_logged(state):
    state.network_adapters = [
        NetworkAdapter("eth0", ipaddress.ip_address("10.1.1.1"), "eth0 (10.1.1.1)")
    ]
    with mock.patch("sacnview.core.psutil.net_if_addrs", side_effect=OSError("boom")):
        state.refresh_network_adapters()
    assert state.logs[-1].level is LogLevel.ERROR
    assert "boom" in state.logs[-1].message
    assert len(state.network_adapters) == 1


def test_selected_adapter_ip(state):
    first = NetworkAdapter("eth0", ipaddress.ip_address("10.1.1.1"), "eth0 (10.1.1.1)")
    second = NetworkAdapter("eth1", ipaddress.ip_address("10.2.2.2"), "eth1 (10.2.2.2)")
    assert state.get_selected_adapter_ip() is None
    state.network_adapters = [first, second]
    assert state.get_selected_adapter_ip() == first.ip
    state.selected_adapter = "eth1"
    assert state.get_selected_adapter_ip() == second.ip
    state.selected_adapter = "missing"
    assert state.get_selected_adapter_ip() is None