"""Tk window showing network status, discovered devices, logs and universe levels."""

from __future__ import annotations

import asyncio
import logging
import threading
import tkinter as tk
from tkinter import ttk
from typing import List, Optional

from .core import DMX_CHANNELS, AppState, LogLevel
from .network import SacnNetwork
from .packet import UNIVERSE_MAX, UNIVERSE_MIN

logger = logging.getLogger(__name__)

REFRESH_MS = 100
GRID_COLUMNS = 16
CONTROL_CHANNELS = 16
CONTROL_COLUMNS = 4
SHOWN_LOGS = 100
BACKGROUND = "#1e1e1e"
FOREGROUND = "#dcdcdc"

_LOG_COLORS = {
    LogLevel.INFO: "white",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
    LogLevel.RX: "green",
    LogLevel.TX: "blue",
}


def _check_level(value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 0xFF:
        raise ValueError(f"DMX level must be in 0..255, got {value!r}")


def format_channel(value: int, show_hex: bool) -> str:
    """Render a DMX level as decimal, or as two hex digits when ``show_hex`` is set."""
    _check_level(value)
    return f"{value:02X}" if show_hex else str(value)


def channel_color(value: int) -> str:
    """Return a grey whose brightness follows the DMX level (black at zero)."""
    _check_level(value)
    return f"#{value:02x}{value:02x}{value:02x}"


def log_color(level: LogLevel) -> str:
    """Return the colour used to show log entries of ``level``."""
    return _LOG_COLORS[level]


def universe_choices(state: AppState) -> List[int]:
    """Return the universes with received data, in ascending order."""
    return sorted(state.universes)


class MainWindow:
    """The main viewer window, refreshed periodically from the shared state."""

    def __init__(self, root: tk.Misc, app_state: AppState, network: SacnNetwork) -> None:
        self.root = root
        self.app_state = app_state
        self.network = network
        self.dmx_send_values = bytearray(DMX_CHANNELS)
        self.send_universe = tk.IntVar(master=root, value=1)
        self.show_hex = tk.BooleanVar(master=root, value=False)
        self._adapter_names: List[Optional[str]] = [None]
        self._after_id: Optional[str] = None

        self._build_top()
        self._build_left()
        self._build_right()
        self._build_center()
        self.refresh()

    # -- layout -----------------------------------------------------------

    def _build_top(self) -> None:
        top = ttk.Frame(self.root, padding=4)
        top.pack(side=tk.TOP, fill=tk.X)
        ttk.Label(top, text="sACN Desktop Viewer", font=("TkDefaultFont", 14, "bold")).pack(
            side=tk.LEFT, padx=(0, 8)
        )
        ttk.Separator(top, orient=tk.VERTICAL).pack(side=tk.LEFT, fill=tk.Y, padx=4)
        ttk.Label(top, text="Network Adapter:").pack(side=tk.LEFT)
        self.adapter_combo = ttk.Combobox(top, state="readonly", width=36)
        self.adapter_combo.pack(side=tk.LEFT, padx=4)
        self.adapter_combo.bind("<<ComboboxSelected>>", self._on_adapter_selected)
        ttk.Button(top, text="Refresh", command=self._on_refresh_adapters).pack(side=tk.LEFT)
        ttk.Separator(top, orient=tk.VERTICAL).pack(side=tk.LEFT, fill=tk.Y, padx=4)
        ttk.Label(top, text="Universe:").pack(side=tk.LEFT)
        ttk.Spinbox(
            top, from_=UNIVERSE_MIN, to=UNIVERSE_MAX, textvariable=self.send_universe, width=7
        ).pack(side=tk.LEFT, padx=4)
        ttk.Separator(top, orient=tk.VERTICAL).pack(side=tk.LEFT, fill=tk.Y, padx=4)
        ttk.Checkbutton(top, text="Show Hex", variable=self.show_hex).pack(side=tk.LEFT)

    def _build_left(self) -> None:
        left = ttk.Frame(self.root, padding=4, width=300)
        left.pack(side=tk.LEFT, fill=tk.Y)
        ttk.Label(left, text="Network Status", font=("TkDefaultFont", 12, "bold")).pack(
            anchor=tk.W
        )
        self.status_text = tk.Text(
            left, width=40, height=10, bg=BACKGROUND, fg=FOREGROUND, state=tk.DISABLED
        )
        self.status_text.pack(fill=tk.X)
        for color in ("red", "green"):
            self.status_text.tag_configure(color, foreground=color)
        ttk.Label(left, text="Discovered Devices", font=("TkDefaultFont", 12, "bold")).pack(
            anchor=tk.W, pady=(8, 0)
        )
        self.devices_text = tk.Text(
            left, width=40, bg=BACKGROUND, fg=FOREGROUND, state=tk.DISABLED
        )
        self.devices_text.pack(fill=tk.BOTH, expand=True)

    def _build_right(self) -> None:
        right = ttk.Frame(self.root, padding=4, width=300)
        right.pack(side=tk.RIGHT, fill=tk.Y)
        ttk.Label(right, text="Logs", font=("TkDefaultFont", 12, "bold")).pack(anchor=tk.W)
        self.logs_text = tk.Text(
            right, width=48, bg=BACKGROUND, fg=FOREGROUND, state=tk.DISABLED
        )
        self.logs_text.pack(fill=tk.BOTH, expand=True)
        for level in LogLevel:
            self.logs_text.tag_configure(level.name, foreground=log_color(level))

    def _build_center(self) -> None:
        center = ttk.Frame(self.root, padding=4)
        center.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)

        header = ttk.Frame(center)
        header.pack(fill=tk.X)
        ttk.Label(header, text="Universe View", font=("TkDefaultFont", 12, "bold")).pack(
            side=tk.LEFT
        )
        ttk.Label(header, text="Select Universe").pack(side=tk.LEFT, padx=(12, 4))
        self.universe_combo = ttk.Combobox(header, state="readonly", width=8)
        self.universe_combo.pack(side=tk.LEFT)
        self.universe_combo.bind("<<ComboboxSelected>>", self._on_universe_selected)

        self.universe_info = ttk.Label(center, text="")
        self.universe_info.pack(anchor=tk.W, pady=4)

        grid = tk.Frame(center, bg=BACKGROUND)
        grid.pack(fill=tk.BOTH, expand=True)
        self.channel_labels: List[tk.Label] = []
        for index in range(DMX_CHANNELS):
            label = tk.Label(grid, text="", bg=BACKGROUND, width=7, anchor=tk.W)
            row, column = divmod(index, GRID_COLUMNS)
            label.grid(row=row, column=column, sticky=tk.W)
            self.channel_labels.append(label)

        ttk.Label(center, text="DMX Sender", font=("TkDefaultFont", 12, "bold")).pack(
            anchor=tk.W, pady=(8, 0)
        )
        sender = ttk.Frame(center)
        sender.pack(fill=tk.X)
        ttk.Label(sender, text="Send to Universe:").pack(side=tk.LEFT)
        ttk.Spinbox(
            sender, from_=UNIVERSE_MIN, to=UNIVERSE_MAX, textvariable=self.send_universe, width=7
        ).pack(side=tk.LEFT, padx=4)
        ttk.Button(sender, text="Send DMX", command=self.send_dmx).pack(side=tk.LEFT)

        ttk.Label(center, text=f"Channel Controls (1-{CONTROL_CHANNELS}):").pack(anchor=tk.W)
        controls = ttk.Frame(center)
        controls.pack(anchor=tk.W)
        for index in range(CONTROL_CHANNELS):
            cell = ttk.Frame(controls, padding=2)
            row, column = divmod(index, CONTROL_COLUMNS)
            cell.grid(row=row, column=column)
            ttk.Label(cell, text=f"Ch {index + 1}").pack()
            tk.Scale(
                cell,
                from_=255,
                to=0,
                orient=tk.VERTICAL,
                length=80,
                command=lambda text, i=index: self._set_send_value(i, text),
            ).pack()

    # -- event handlers ---------------------------------------------------

    def _set_send_value(self, index: int, text: str) -> None:
        self.dmx_send_values[index] = int(float(text))

    def _on_adapter_selected(self, _event: object = None) -> None:
        position = self.adapter_combo.current()
        if 0 <= position < len(self._adapter_names):
            with self.network.lock:
                self.app_state.update_adapter_selection(self._adapter_names[position])

    def _on_refresh_adapters(self) -> None:
        with self.network.lock:
            self.app_state.refresh_network_adapters()

    def _on_universe_selected(self, _event: object = None) -> None:
        text = self.universe_combo.get()
        with self.network.lock:
            self.app_state.selected_universe = None if text == "None" else int(text)

    # -- refresh ----------------------------------------------------------

    @staticmethod
    def _replace_text(widget: tk.Text, chunks: List[tuple]) -> None:
        widget.configure(state=tk.NORMAL)
        widget.delete("1.0", tk.END)
        for text, *tags in chunks:
            widget.insert(tk.END, text, tuple(tags))
        widget.configure(state=tk.DISABLED)

    def refresh(self) -> None:
        """Redraw every panel from the shared state and schedule the next redraw."""
        if self._after_id is not None:
            self.root.after_cancel(self._after_id)
        with self.network.lock:
            self._refresh_adapters()
            self._refresh_devices()
            self._refresh_logs()
            self._refresh_universe()
        self._after_id = self.root.after(REFRESH_MS, self.refresh)

    def _refresh_adapters(self) -> None:
        state = self.app_state
        self._adapter_names = [None] + [a.name for a in state.network_adapters]
        self.adapter_combo.configure(
            values=["Auto"] + [a.description for a in state.network_adapters]
        )
        if state.selected_adapter is None:
            self.adapter_combo.set("Auto")
        else:
            self.adapter_combo.set(state.selected_adapter)

        chunks: List[tuple] = [("Selected Adapter:\n",)]
        if state.selected_adapter is None:
            chunks.append(("• Auto-select\n",))
        else:
            adapter = next(
                (a for a in state.network_adapters if a.name == state.selected_adapter), None
            )
            if adapter is None:
                chunks.append(("• Adapter not found\n", "red"))
            else:
                chunks.append((f"• {adapter.name} ({adapter.ip})\n",))
        chunks.append(("\nAvailable Adapters:\n",))
        for adapter in state.network_adapters:
            color = "green" if adapter.is_available else "red"
            chunks.append((f"• {adapter.description}\n", color))
        self._replace_text(self.status_text, chunks)

    def _refresh_devices(self) -> None:
        chunks: List[tuple] = []
        for ip, device in self.app_state.devices.items():
            chunks.append(
                (
                    f"IP: {ip}\n"
                    f"Source: {device.source_name}\n"
                    f"Priority: {device.priority}\n"
                    f"Universes: {device.universes}\n"
                    f"Last seen: {device.last_seen:%H:%M:%S}\n\n",
                )
            )
        self._replace_text(self.devices_text, chunks)

    def _refresh_logs(self) -> None:
        recent = list(self.app_state.logs)[-SHOWN_LOGS:]
        chunks: List[tuple] = []
        for entry in reversed(recent):
            chunks.append((f"[{entry.level}]", entry.level.name))
            chunks.append((f" {entry.timestamp:%H:%M:%S}: {entry.message}\n",))
        self._replace_text(self.logs_text, chunks)

    def _refresh_universe(self) -> None:
        state = self.app_state
        self.universe_combo.configure(
            values=["None"] + [str(u) for u in universe_choices(state)]
        )
        selected = state.selected_universe
        self.universe_combo.set("None" if selected is None else str(selected))

        data = state.universes.get(selected) if selected is not None else None
        if data is None:
            self.universe_info.configure(text="")
            for label in self.channel_labels:
                label.configure(text="")
            return

        stamp = data.last_updated.strftime("%H:%M:%S.%f")[:-3]
        self.universe_info.configure(
            text=f"Universe {data.universe} - Source: {data.source_ip} - Last Updated: {stamp}"
        )
        show_hex = self.show_hex.get()
        for channel, (label, value) in enumerate(zip(self.channel_labels, data.channels), 1):
            label.configure(
                text=f"{channel}:{format_channel(value, show_hex)}", fg=channel_color(value)
            )

    # -- sending ----------------------------------------------------------

    def send_dmx(self) -> Optional[threading.Thread]:
        """Send the current control levels to the chosen universe in the background."""
        try:
            universe = int(self.send_universe.get())
        except (tk.TclError, ValueError):
            logger.error("Failed to send DMX: universe is not a number")
            return None
        if not UNIVERSE_MIN <= universe <= UNIVERSE_MAX:
            logger.error("Failed to send DMX: universe %s out of range", universe)
            return None
        levels = bytes(self.dmx_send_values)

        def run() -> None:
            try:
                asyncio.run(self.network.send_dmx(universe, levels))
            except Exception as exc:  # reported, the window keeps running
                logger.error("Failed to send DMX: %s", exc)

        thread = threading.Thread(target=run, name="dmx-send", daemon=True)
        thread.start()
        return thread