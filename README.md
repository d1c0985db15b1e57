# sacnview

A desktop viewer for sACN (streaming ACN, ANSI E1.31) lighting networks. It
listens for DMX data on the local network and lets you:

- see which sources are sending, from which IP address, at what priority and
  on which universes;
- inspect all 512 channels of a universe, in decimal or hexadecimal;
- follow a running log of received and sent packets, warnings and errors;
- set the first 16 channels by hand and send them to any universe from 1 to 63999;
- pick which network adapter to listen and send on.

## Installation

```
pip install .
```

The window is drawn with Tk, so the Python installation must include
`tkinter` (on some Linux distributions this is a separate system package).

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Usage

Start the viewer:

```
sacnview
```

Options:

- `--config-dir DIR` – read and write `settings.json` in `DIR` instead of the
  user configuration directory;
- `-v`, `--verbose` – log debug messages to the console.

The window (1200×800) has four areas:

- **Top bar** – adapter selection ("Auto" uses the first non-loopback
  adapter address found), a *Refresh* button that lists adapters again, the
  target universe, and a *Show Hex* toggle.
- **Left panel** – the selected adapter, all available adapters, and the sACN
  sources found so far with their IP, name, priority, universes and the time
  they were last seen.
- **Centre** – a universe selector listing every universe that has received
  data, the 512-channel grid of the chosen universe (each value tinted grey by
  its level), and the DMX sender with sliders for channels 1–16 and a
  *Send DMX* button.
- **Right panel** – the 100 most recent log entries, newest first. The log
  keeps the last 1000 entries.

The panels are redrawn every 100 ms.

In the background a listener binds to the sACN port (5568) on the selected
adapter's address, or on all addresses when no adapter is found, and joins the
multicast groups of universes 1 to 512. Datagrams that are not valid E1.31
data packets, and packets for other universes, are ignored.

*Send DMX* sends one packet with start code 0, priority 100 and source name
"sACN Viewer" to the universe's multicast group (239.255.x.y), from the
selected adapter. The 512 levels sent are the 16 slider values followed by
zeros.

## Settings

`settings.json` holds the selected adapter, the window size, the auto-send flag
and the send rate (20 by default). It lives in the user configuration
directory for *sACN Viewer* unless `--config-dir` is given. It is read at
start-up and written whenever you choose a different adapter. A file that
cannot be read or parsed is reported as a warning and the defaults are kept.

## What it does not do

- There is no automatic, periodic sending: the auto-send flag and send rate are
  stored in the settings but nothing acts on them. DMX is sent only when you
  press *Send DMX*.
- The stored window size is not applied; the window always opens at 1200×800.
- Only the universes 1 to 512 are listened to, and only E1.31 data packets are
  understood (no universe discovery or synchronisation packets).
- Changing the adapter affects sending immediately, but the listener keeps the
  address it was started on until the program is restarted.

## Library use

The pieces can also be used on their own:

- `sacnview.core.AppState` holds devices, universes, logs, adapters and
  settings; `AppState(config_dir)` chooses where `settings.json` is kept, and
  `load_settings`, `save_settings`, `update_device`, `update_universe`,
  `refresh_network_adapters` and `get_selected_adapter_ip` work on it.
- `sacnview.packet.DataPacket` builds E1.31 data packets (`to_bytes`),
  `sacnview.packet.parse_packet` reads them and raises
  `sacnview.packet.PacketError` for anything malformed, and
  `sacnview.packet.multicast_address` gives the multicast group of a universe.
- `sacnview.network.SacnReceiver` and `sacnview.network.SacnSource` receive
  and send packets over UDP and raise `sacnview.network.SacnError` on failure;
  both are context managers. `sacnview.network.SacnNetwork` ties them to an
  `AppState`: `start_listener` and `send_dmx` are coroutines, and
  `get_discovered_sources` returns the names of the sources seen so far.
- `sacnview.ui` has the `MainWindow` class and the helpers `format_channel`,
  `channel_color`, `log_color` and `universe_choices`.
- `sacnview.app.build_state` creates an `AppState` with adapters listed and
  settings loaded, and `sacnview.app.main` is the `sacnview` command.

```python
from sacnview.packet import DataPacket, parse_packet, multicast_address

packet = DataPacket(universe=1, data=bytes([255, 128, 0]), source_name="Desk")
wire = packet.to_bytes()
assert parse_packet(wire).data == bytes([255, 128, 0])
print(multicast_address(1))  # 239.255.0.1
```