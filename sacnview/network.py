"""sACN receiving and sending, and the glue that feeds received data into the app state."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import select
import socket
import threading
import uuid
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .core import DMX_CHANNELS, AppState, IPAddress, LogLevel
from .packet import (
    ACN_SDT_MULTICAST_PORT,
    DEFAULT_PRIORITY,
    MAX_SLOTS,
    PRIORITY_MAX,
    SOURCE_NAME_LENGTH,
    UNIVERSE_MAX,
    UNIVERSE_MIN,
    DataPacket,
    PacketError,
    multicast_address,
    parse_packet,
)

logger = logging.getLogger(__name__)

UNSPECIFIED = ipaddress.IPv4Address("0.0.0.0")
LISTEN_UNIVERSES = range(1, 513)
RECV_TIMEOUT = 0.1
SOURCE_NAME = "sACN Viewer"

_RECV_BUFFER = 2048
_SLOTS_PER_UNIVERSE = MAX_SLOTS + 1

Address = Tuple[str, int]
Received = Tuple[DataPacket, IPAddress]


class SacnError(Exception):
    """Raised when an sACN socket cannot be set up or used."""


def _check_universe(universe: object) -> None:
    if (
        not isinstance(universe, int)
        or isinstance(universe, bool)
        or not UNIVERSE_MIN <= universe <= UNIVERSE_MAX
    ):
        raise SacnError(f"universe {universe!r} is outside {UNIVERSE_MIN}..{UNIVERSE_MAX}")


def _parse_host(host: object) -> IPAddress:
    try:
        return ipaddress.ip_address(str(host))
    except ValueError as exc:
        raise SacnError(f"invalid address {host!r}") from exc


def _family(ip: IPAddress) -> int:
    return socket.AF_INET6 if ip.version == 6 else socket.AF_INET


def _format_address(ip: IPAddress, port: int) -> str:
    return f"[{ip}]:{port}" if ip.version == 6 else f"{ip}:{port}"


class SacnReceiver:
    """A UDP socket that receives E1.31 data packets.

    With ``universes`` left as ``None`` every universe is accepted; once
    universes are listened to, packets for other universes are dropped.
    """

    def __init__(self, address: Address, universes: Optional[Iterable[int]] = None) -> None:
        host, port = address
        self._ip = _parse_host(host)
        sock = socket.socket(_family(self._ip), socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((str(self._ip), port))
            sock.setblocking(False)
        except OSError as exc:
            sock.close()
            raise SacnError(f"cannot bind {_format_address(self._ip, port)}: {exc}") from exc
        self._sock = sock
        self._universes: Optional[Set[int]] = None
        self._joined: Set[int] = set()
        if universes is not None:
            try:
                self.listen_universes(universes)
            except SacnError:
                self.close()
                raise

    def __enter__(self) -> "SacnReceiver":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def local_address(self) -> Address:
        """The address and port the socket is bound to."""
        host, port = self._sock.getsockname()[:2]
        return host, port

    @property
    def universes(self) -> Optional[Tuple[int, ...]]:
        """The universes listened to, or ``None`` when all are accepted."""
        return None if self._universes is None else tuple(sorted(self._universes))

    def listen_universes(self, universes: Iterable[int]) -> None:
        """Listen to ``universes``, joining their multicast groups.

        Every valid universe is registered even if joining its group fails;
        failures are reported together afterwards.
        """
        wanted = list(universes)
        for universe in wanted:
            _check_universe(universe)
        if self._universes is None:
            self._universes = set()

        failures: List[Tuple[int, OSError]] = []
        for universe in wanted:
            self._universes.add(universe)
            if universe in self._joined:
                continue
            try:
                self._join(universe)
            except OSError as exc:
                failures.append((universe, exc))
            else:
                self._joined.add(universe)

        if failures:
            first_universe, first_error = failures[0]
            raise SacnError(
                f"could not join the multicast group of {len(failures)} universe(s), "
                f"first universe {first_universe}: {first_error}"
            )

    def _join(self, universe: int) -> None:
        if self._ip.version != 4:
            raise OSError("multicast groups can only be joined on an IPv4 socket")
        membership = socket.inet_aton(multicast_address(universe)) + socket.inet_aton(
            str(self._ip)
        )
        self._sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)

    def recv(self, timeout: Optional[float] = None) -> List[Received]:
        """Wait up to ``timeout`` seconds and return the packets that arrived.

        Returns an empty list on timeout. Datagrams that are not valid data
        packets are skipped.
        """
        if self._sock.fileno() < 0:
            raise SacnError("receiver is closed")
        try:
            ready, _, _ = select.select([self._sock], [], [], timeout)
        except (OSError, ValueError) as exc:
            raise SacnError(f"receive failed: {exc}") from exc
        if not ready:
            return []

        received: List[Received] = []
        while True:
            try:
                payload, sender = self._sock.recvfrom(_RECV_BUFFER)
            except (BlockingIOError, InterruptedError):
                break
            except OSError as exc:
                if received:
                    break
                raise SacnError(f"receive failed: {exc}") from exc
            try:
                packet = parse_packet(payload)
            except PacketError as exc:
                logger.debug("Ignoring datagram from %s: %s", sender[0], exc)
                continue
            if self._universes is not None and packet.universe not in self._universes:
                continue
            received.append((packet, ipaddress.ip_address(sender[0].split("%", 1)[0])))
        return received

    def close(self) -> None:
        """Close the socket."""
        self._sock.close()


class SacnSource:
    """A UDP socket that sends E1.31 data packets for registered universes."""

    def __init__(self, name: str, address: Address) -> None:
        if len(name.encode("utf-8")) > SOURCE_NAME_LENGTH:
            raise SacnError(f"source name longer than {SOURCE_NAME_LENGTH} bytes")
        self.name = name
        self.cid = uuid.uuid4()
        self.destination_port = ACN_SDT_MULTICAST_PORT
        host, port = address
        ip = _parse_host(host)
        sock = socket.socket(_family(ip), socket.SOCK_DGRAM)
        try:
            sock.bind((str(ip), port))
            if ip.version == 4 and not ip.is_unspecified:
                sock.setsockopt(
                    socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton(str(ip))
                )
        except OSError as exc:
            sock.close()
            raise SacnError(f"cannot bind {_format_address(ip, port)}: {exc}") from exc
        self._sock = sock
        self._sequences: Dict[int, int] = {}

    def __enter__(self) -> "SacnSource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def universes(self) -> Tuple[int, ...]:
        """The registered universes in ascending order."""
        return tuple(sorted(self._sequences))

    def register_universe(self, universe: int) -> None:
        """Allow data to be sent on ``universe``."""
        _check_universe(universe)
        self._sequences.setdefault(universe, 0)

    def send(
        self,
        universes: Iterable[int],
        data: Union[bytes, bytearray, Iterable[int]],
        priority: Optional[int] = None,
        dst_ip: Union[str, IPAddress, None] = None,
    ) -> None:
        """Send ``data`` (start code first) to ``universes``.

        Data longer than one universe is split into consecutive blocks of
        513 bytes, one per universe. Without ``dst_ip`` each packet goes to
        the universe's multicast group.
        """
        targets = list(universes)
        if not targets:
            raise SacnError("no universes to send to")
        for universe in targets:
            _check_universe(universe)
            if universe not in self._sequences:
                raise SacnError(f"universe {universe} is not registered")

        payload = bytes(data)
        if not payload:
            raise SacnError("no data to send")
        blocks = [
            payload[start : start + _SLOTS_PER_UNIVERSE]
            for start in range(0, len(payload), _SLOTS_PER_UNIVERSE)
        ]
        if len(blocks) > len(targets):
            raise SacnError(
                f"{len(payload)} bytes of data need {len(blocks)} universes, "
                f"only {len(targets)} given"
            )

        level = DEFAULT_PRIORITY if priority is None else priority
        if not isinstance(level, int) or isinstance(level, bool) or not 0 <= level <= PRIORITY_MAX:
            raise SacnError(f"priority {level!r} is outside 0..{PRIORITY_MAX}")

        unicast = None if dst_ip is None else str(_parse_host(dst_ip))
        for universe, block in zip(targets, blocks):
            packet = DataPacket(
                universe=universe,
                data=block[1:],
                source_name=self.name,
                priority=level,
                sequence=self._sequences[universe],
                start_code=block[0],
                cid=self.cid,
            )
            destination = unicast if unicast is not None else multicast_address(universe)
            try:
                self._sock.sendto(packet.to_bytes(), (destination, self.destination_port))
            except OSError as exc:
                raise SacnError(f"failed to send to {destination}: {exc}") from exc
            self._sequences[universe] = (self._sequences[universe] + 1) & 0xFF

    def close(self) -> None:
        """Close the socket."""
        self._sock.close()


class SacnNetwork:
    """Receives sACN into an :class:`AppState` and sends DMX on request."""

    def __init__(self, app_state: AppState) -> None:
        self.app_state = app_state
        self.lock = threading.RLock()
        self.port = ACN_SDT_MULTICAST_PORT
        self.destination: Optional[str] = None
        self._sources: Dict[uuid.UUID, str] = {}

    def _log(self, level: LogLevel, message: str) -> None:
        with self.lock:
            self.app_state.add_log(level, message)

    def _bind_ip(self) -> IPAddress:
        with self.lock:
            selected = self.app_state.get_selected_adapter_ip()
        return selected if selected is not None else UNSPECIFIED

    async def start_listener(self) -> None:
        """Receive packets on the selected adapter until cancelled."""
        logger.info("Starting sACN network listener")
        bind_ip = self._bind_ip()
        address_text = _format_address(bind_ip, self.port)
        try:
            receiver = SacnReceiver((str(bind_ip), self.port))
        except SacnError as exc:
            self._log(LogLevel.ERROR, f"Failed to create sACN receiver: {exc}")
            raise SacnError(f"Failed to create sACN receiver: {exc}") from exc
        self._log(LogLevel.INFO, f"sACN receiver created on {address_text}")

        try:
            try:
                receiver.listen_universes(LISTEN_UNIVERSES)
            except SacnError as exc:
                self._log(LogLevel.WARNING, f"Failed to register some universes: {exc}")
            self._log(LogLevel.INFO, f"sACN listener started on {bind_ip} port {self.port}")

            while True:
                try:
                    received = await asyncio.to_thread(receiver.recv, RECV_TIMEOUT)
                except SacnError as exc:
                    logger.debug("sACN receive error: %s", exc)
                    await asyncio.sleep(RECV_TIMEOUT)
                    continue
                for packet, source_ip in received:
                    self.handle_packet(packet, source_ip)
        finally:
            receiver.close()

    def handle_packet(self, packet: DataPacket, source_ip: Union[str, IPAddress]) -> None:
        """Record a received packet's source and levels in the app state."""
        channels = bytes(packet.data[:DMX_CHANNELS]).ljust(DMX_CHANNELS, b"\x00")
        address = ipaddress.ip_address(source_ip)
        with self.lock:
            state = self.app_state
            if packet.cid not in self._sources:
                state.add_log(LogLevel.INFO, f"Source discovered: {packet.source_name}")
            self._sources[packet.cid] = packet.source_name
            state.add_log(
                LogLevel.RX,
                f"Received sACN data from {packet.source_name} for universe {packet.universe}",
            )
            state.update_device(address, packet.universe, packet.source_name, packet.priority)
            state.update_universe(packet.universe, channels, address, packet.sequence)

    async def send_dmx(self, universe: int, dmx_data: Union[bytes, bytearray, Iterable[int]]) -> None:
        """Send 512 DMX levels to ``universe`` from the selected adapter."""
        levels = bytes(dmx_data)
        if len(levels) != DMX_CHANNELS:
            raise ValueError(f"expected {DMX_CHANNELS} channels, got {len(levels)}")

        bind_ip = self._bind_ip()
        try:
            source = SacnSource(SOURCE_NAME, (str(bind_ip), 0))
        except SacnError as exc:
            self._log(LogLevel.ERROR, f"Failed to create sACN source: {exc}")
            raise SacnError(f"Failed to create sACN source: {exc}") from exc

        with source:
            source.destination_port = self.port
            try:
                source.register_universe(universe)
            except SacnError as exc:
                self._log(LogLevel.ERROR, f"Failed to register universe {universe}: {exc}")
                raise SacnError(f"Failed to register universe: {exc}") from exc
            try:
                source.send([universe], b"\x00" + levels, DEFAULT_PRIORITY, self.destination)
            except SacnError as exc:
                self._log(LogLevel.ERROR, f"Failed to send DMX data: {exc}")
                raise SacnError(f"Failed to send DMX data: {exc}") from exc
        self._log(
            LogLevel.TX, f"Sent DMX data to universe {universe}: {len(levels)} channels"
        )

    async def get_discovered_sources(self) -> List[str]:
        """Return the names of the sources seen so far."""
        with self.lock:
            return sorted(set(self._sources.values()))