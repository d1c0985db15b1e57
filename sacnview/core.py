"""Application state: discovered devices, universe data, logs and settings."""

from __future__ import annotations

import bisect
import ipaddress
import json
import socket
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple, Union

import platformdirs
import psutil

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

MAX_LOG_ENTRIES = 1000
DMX_CHANNELS = 512
DEFAULT_SEND_RATE = 20
SETTINGS_FILE = "settings.json"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _default_config_dir() -> Path:
    return Path(platformdirs.user_config_dir("sACN Viewer", "sacn-viewer"))


class LogLevel(Enum):
    """Severity or direction of a log entry."""

    INFO = "INFO"
    WARNING = "WARN"
    ERROR = "ERROR"
    RX = "RX"
    TX = "TX"

    def __str__(self) -> str:
        return self.value


@dataclass
class NetworkAdapter:
    """A local network interface address that can be bound to."""

    name: str
    ip: IPAddress
    description: str
    is_available: bool = True


@dataclass
class AppSettings:
    """Settings persisted between runs."""

    selected_adapter: Optional[str] = None
    window_size: Optional[Tuple[float, float]] = None
    auto_send_enabled: bool = False
    send_rate: int = DEFAULT_SEND_RATE

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-compatible mapping of the settings."""
        return {
            "selected_adapter": self.selected_adapter,
            "window_size": list(self.window_size) if self.window_size is not None else None,
            "auto_send_enabled": self.auto_send_enabled,
            "send_rate": self.send_rate,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AppSettings":
        """Build settings from a mapping, raising ValueError on malformed input."""
        if not isinstance(data, dict):
            raise ValueError("settings must be a JSON object")
        for key in ("auto_send_enabled", "send_rate"):
            if key not in data:
                raise ValueError(f"missing field `{key}`")

        selected = data.get("selected_adapter")
        if selected is not None and not isinstance(selected, str):
            raise ValueError("selected_adapter must be a string or null")

        raw_size = data.get("window_size")
        window_size: Optional[Tuple[float, float]] = None
        if raw_size is not None:
            if (
                not isinstance(raw_size, (list, tuple))
                or len(raw_size) != 2
                or not all(
                    isinstance(v, (int, float)) and not isinstance(v, bool) for v in raw_size
                )
            ):
                raise ValueError("window_size must be a pair of numbers or null")
            window_size = (float(raw_size[0]), float(raw_size[1]))

        auto_send = data["auto_send_enabled"]
        if not isinstance(auto_send, bool):
            raise ValueError("auto_send_enabled must be a boolean")

        send_rate = data["send_rate"]
        if (
            not isinstance(send_rate, int)
            or isinstance(send_rate, bool)
            or not 0 <= send_rate <= 0xFFFFFFFF
        ):
            raise ValueError("send_rate must be an unsigned 32-bit integer")

        return cls(
            selected_adapter=selected,
            window_size=window_size,
            auto_send_enabled=auto_send,
            send_rate=send_rate,
        )


@dataclass
class SacnDevice:
    """A source seen on the network."""

    ip: IPAddress
    universes: List[int] = field(default_factory=list)
    last_seen: datetime = field(default_factory=_now)
    source_name: str = ""
    priority: int = 0


@dataclass
class UniverseData:
    """The most recent DMX levels received for a universe."""

    universe: int
    channels: bytes
    last_updated: datetime
    source_ip: IPAddress
    sequence: int


@dataclass
class LogEntry:
    """One line in the application log."""

    timestamp: datetime
    level: LogLevel
    message: str


class AppState:
    """Shared state of the viewer: devices, universes, logs, adapters and settings."""

    def __init__(self, config_dir: Union[str, Path, None] = None) -> None:
        self.config_dir = Path(config_dir) if config_dir is not None else _default_config_dir()
        self.devices: Dict[IPAddress, SacnDevice] = {}
        self.universes: Dict[int, UniverseData] = {}
        self.logs: Deque[LogEntry] = deque(maxlen=MAX_LOG_ENTRIES)
        self.selected_universe: Optional[int] = None
        self.auto_send_enabled = False
        self.send_rate = DEFAULT_SEND_RATE
        self.network_adapters: List[NetworkAdapter] = []
        self.selected_adapter: Optional[str] = None
        self.settings = AppSettings()

    @property
    def settings_path(self) -> Path:
        return self.config_dir / SETTINGS_FILE

    def add_log(self, level: LogLevel, message: str) -> None:
        """Append a log entry, keeping only the most recent entries."""
        self.logs.append(LogEntry(timestamp=_now(), level=level, message=message))

    def update_device(
        self, ip: Union[str, IPAddress], universe: int, source_name: str, priority: int
    ) -> SacnDevice:
        """Record that a source at ``ip`` was seen sending ``universe``."""
        address = ipaddress.ip_address(ip)
        device = self.devices.get(address)
        if device is None:
            device = SacnDevice(ip=address, source_name=source_name, priority=priority)
            self.devices[address] = device
        device.last_seen = _now()
        device.source_name = source_name
        device.priority = priority
        if universe not in device.universes:
            bisect.insort(device.universes, universe)
        return device

    def update_universe(
        self,
        universe: int,
        channels: Union[bytes, bytearray, List[int]],
        source_ip: Union[str, IPAddress],
        sequence: int,
    ) -> UniverseData:
        """Store the latest 512 channel levels for ``universe``."""
        levels = bytes(channels)
        if len(levels) != DMX_CHANNELS:
            raise ValueError(f"expected {DMX_CHANNELS} channels, got {len(levels)}")
        data = UniverseData(
            universe=universe,
            channels=levels,
            last_updated=_now(),
            source_ip=ipaddress.ip_address(source_ip),
            sequence=sequence,
        )
        self.universes[universe] = data
        return data

    def load_settings(self) -> None:
        """Load settings from the configuration directory if a settings file exists."""
        path = self.settings_path
        if not path.exists():
            return
        contents = path.read_text(encoding="utf-8")
        self.settings = AppSettings.from_dict(json.loads(contents))
        self.selected_adapter = self.settings.selected_adapter
        self.auto_send_enabled = self.settings.auto_send_enabled
        self.send_rate = self.settings.send_rate
        self.add_log(LogLevel.INFO, "Settings loaded successfully")

    def save_settings(self) -> None:
        """Write the current settings to the configuration directory."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.settings_path.write_text(
            json.dumps(self.settings.to_dict(), indent=2), encoding="utf-8"
        )

    def update_adapter_selection(self, adapter_name: Optional[str]) -> None:
        """Select an adapter by name (``None`` for automatic) and persist the choice."""
        self.selected_adapter = adapter_name
        self.settings.selected_adapter = adapter_name
        try:
            self.save_settings()
        except OSError as exc:
            self.add_log(LogLevel.WARNING, f"Failed to save settings: {exc}")

    def refresh_network_adapters(self) -> None:
        """Re-enumerate the non-loopback interface addresses of this machine."""
        try:
            interfaces = psutil.net_if_addrs()
        except (OSError, psutil.Error) as exc:
            self.add_log(LogLevel.ERROR, f"Failed to enumerate network adapters: {exc}")
            return

        adapters: List[NetworkAdapter] = []
        for name, addresses in interfaces.items():
            for entry in addresses:
                if entry.family not in (socket.AF_INET, socket.AF_INET6):
                    continue
                try:
                    ip = ipaddress.ip_address(entry.address.split("%", 1)[0])
                except ValueError:
                    continue
                if ip.is_loopback:
                    continue
                adapters.append(
                    NetworkAdapter(
                        name=name, ip=ip, description=f"{name} ({ip})", is_available=True
                    )
                )
        self.network_adapters = adapters
        self.add_log(LogLevel.INFO, f"Found {len(adapters)} network adapters")

    def get_selected_adapter_ip(self) -> Optional[IPAddress]:
        """Return the IP of the selected adapter, or of the first one when none is selected."""
        if self.selected_adapter is not None:
            return next(
                (a.ip for a in self.network_adapters if a.name == self.selected_adapter),
                None,
            )
        return self.network_adapters[0].ip if self.network_adapters else None