"""Command-line entry point that starts the listener and opens the viewer window."""

from __future__ import annotations

import argparse
import asyncio
import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

from .core import AppState
from .network import SacnError, SacnNetwork

logger = logging.getLogger(__name__)

TITLE = "sACN Desktop Viewer"
WINDOW_SIZE = (1200, 800)


def build_state(config_dir: Union[str, Path, None] = None) -> AppState:
    """Create the app state, enumerate adapters and load saved settings."""
    state = AppState(config_dir)
    state.refresh_network_adapters()
    try:
        state.load_settings()
    except (OSError, ValueError) as exc:
        logger.warning("Failed to load settings: %s", exc)
    return state


def _run_listener(network: SacnNetwork) -> None:
    try:
        asyncio.run(network.start_listener())
    except SacnError as exc:
        logger.error("Network listener error: %s", exc)


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sacnview", description=TITLE)
    parser.add_argument(
        "--config-dir", type=Path, default=None, help="directory holding settings.json"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug messages")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Start the sACN listener in the background and run the viewer window."""
    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    logger.info("Starting %s", TITLE)

    state = build_state(args.config_dir)
    network = SacnNetwork(state)
    threading.Thread(
        target=_run_listener, args=(network,), name="sacn-listener", daemon=True
    ).start()

    import tkinter as tk

    from .ui import MainWindow

    try:
        root = tk.Tk()
    except tk.TclError as exc:
        logger.error("GUI error: %s", exc)
        return 1
    root.title(TITLE)
    root.geometry(f"{WINDOW_SIZE[0]}x{WINDOW_SIZE[1]}")
    MainWindow(root, state, network)
    root.mainloop()
    return 0