import json
import logging
import socket
from types import SimpleNamespace
from unittest import mock

import pytest

from sacnview.app import build_state, main
from sacnview.core import AppSettings, LogLevel


def _messages(state):
    return [entry.message for entry in state.logs]


def test_build_state_without_adapters(tmp_path):
    with mock.patch("psutil.net_if_addrs", return_value={}):
        state = build_state(tmp_path)
    assert state.network_adapters == []
    assert "Found 0 network adapters" in _messages(state)
    assert state.settings == AppSettings()


def test_build_state_lists_non_loopback_adapters(tmp_path):
    interfaces = {
        "lo": [SimpleNamespace(family=socket.AF_INET, address="127.0.0.1")],
        "eth0": [SimpleNamespace(family=socket.AF_INET, address="192.168.1.20")],
    }
    with mock.patch("psutil.net_if_addrs", return_value=interfaces):
        state = build_state(tmp_path)
    assert [a.name for a in state.network_adapters] == ["eth0"]
    assert str(state.get_selected_adapter_ip()) == "192.168.1.20"


def test_build_state_loads_settings(tmp_path):
    settings = {
        "selected_adapter": "eth0",
        "window_size": None,
        "auto_send_enabled": True,
        "send_rate": 44,
    }
    (tmp_path / "settings.json").write_text(json.dumps(settings), encoding="utf-8")
    with mock.patch("psutil.net_if_addrs", return_value={}):
        state = build_state(tmp_path)
    assert state.selected_adapter == "eth0"
    assert state.auto_send_enabled is True
    assert state.send_rate == 44
    assert any(
        e.level is LogLevel.INFO and e.message == "Settings loaded successfully"
        for e in state.logs
    )


def test_build_state_survives_bad_settings(tmp_path, caplog):
    (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")
    with mock.patch("psutil.net_if_addrs", return_value={}):
        with caplog.at_level(logging.WARNING, logger="sacnview.app"):
            state = build_state(tmp_path)
    assert state.settings == AppSettings()
    assert state.selected_adapter is None
    assert any("Failed to load settings" in r.getMessage() for r in caplog.records)


def test_main_help_exits_cleanly():
    with pytest.raises(SystemExit) as info:
        main(["--help"])
    assert info.value.code == 0


def test_main_rejects_unknown_option():
    with pytest.raises(SystemExit) as info:
        main(["--no-such-option"])
    assert info.value.code == 2