"""Viewer and sender for sACN (E1.31) DMX data: state, packets, networking and a Tk window."""

__version__ = "0.1.0"