"""Encoding and decoding of E1.31 (sACN) data packets."""

from __future__ import annotations

import ipaddress
import struct
import uuid
from dataclasses import dataclass, field

ACN_SDT_MULTICAST_PORT = 5568
ACN_PACKET_IDENTIFIER = b"ASC-E1.17\x00\x00\x00"

PREAMBLE_SIZE = 0x0010
POSTAMBLE_SIZE = 0x0000
VECTOR_ROOT_E131_DATA = 0x00000004
VECTOR_E131_DATA_PACKET = 0x00000002
VECTOR_DMP_SET_PROPERTY = 0x02
DMP_ADDRESS_DATA_TYPE = 0xA1

UNIVERSE_MIN = 1
UNIVERSE_MAX = 63999
PRIORITY_MAX = 200
DEFAULT_PRIORITY = 100
SOURCE_NAME_LENGTH = 64
MAX_SLOTS = 512

OPTION_PREVIEW_DATA = 0x80
OPTION_STREAM_TERMINATED = 0x40
OPTION_FORCE_SYNCHRONIZATION = 0x20

_PDU_FLAGS = 0x7

_ROOT = struct.Struct("!HH12sHI16s")
_FRAMING = struct.Struct("!HI64sBHBBH")
_DMP = struct.Struct("!HBBHHHB")

_ROOT_OFFSET = 0
_FRAMING_OFFSET = _ROOT.size
_DMP_OFFSET = _FRAMING_OFFSET + _FRAMING.size
HEADER_LENGTH = _DMP_OFFSET + _DMP.size

_MULTICAST_BASE = int(ipaddress.IPv4Address("239.255.0.0"))


class PacketError(ValueError):
    """Raised for packets that are malformed or hold out-of-range values."""


def _check_range(name: str, value: object, low: int, high: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
        raise PacketError(f"{name} must be an integer in {low}..{high}, got {value!r}")


@dataclass(frozen=True)
class DataPacket:
    """An E1.31 data packet carrying DMX slot values for one universe."""

    universe: int
    data: bytes = b""
    source_name: str = ""
    priority: int = DEFAULT_PRIORITY
    sequence: int = 0
    sync_address: int = 0
    options: int = 0
    start_code: int = 0
    cid: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self) -> None:
        try:
            slots = bytes(self.data)
        except (TypeError, ValueError) as exc:
            raise PacketError(f"invalid slot data: {exc}") from exc
        object.__setattr__(self, "data", slots)

        _check_range("universe", self.universe, UNIVERSE_MIN, UNIVERSE_MAX)
        _check_range("priority", self.priority, 0, PRIORITY_MAX)
        _check_range("sequence", self.sequence, 0, 0xFF)
        _check_range("sync_address", self.sync_address, 0, UNIVERSE_MAX)
        _check_range("options", self.options, 0, 0xFF)
        _check_range("start_code", self.start_code, 0, 0xFF)
        if len(slots) > MAX_SLOTS:
            raise PacketError(f"at most {MAX_SLOTS} slots allowed, got {len(slots)}")
        if len(self.source_name.encode("utf-8")) > SOURCE_NAME_LENGTH:
            raise PacketError(f"source name longer than {SOURCE_NAME_LENGTH} bytes")
        if not isinstance(self.cid, uuid.UUID):
            raise PacketError("cid must be a UUID")

    def to_bytes(self) -> bytes:
        """Serialise the packet to its wire form."""
        total = HEADER_LENGTH + len(self.data)
        root = _ROOT.pack(
            PREAMBLE_SIZE,
            POSTAMBLE_SIZE,
            ACN_PACKET_IDENTIFIER,
            _flags_length(total - 16),
            VECTOR_ROOT_E131_DATA,
            self.cid.bytes,
        )
        framing = _FRAMING.pack(
            _flags_length(total - _FRAMING_OFFSET),
            VECTOR_E131_DATA_PACKET,
            self.source_name.encode("utf-8"),
            self.priority,
            self.sync_address,
            self.sequence,
            self.options,
            self.universe,
        )
        dmp = _DMP.pack(
            _flags_length(total - _DMP_OFFSET),
            VECTOR_DMP_SET_PROPERTY,
            DMP_ADDRESS_DATA_TYPE,
            0x0000,
            0x0001,
            len(self.data) + 1,
            self.start_code,
        )
        return root + framing + dmp + self.data


def _flags_length(length: int) -> int:
    return (_PDU_FLAGS << 12) | (length & 0x0FFF)


def _check_pdu(flags_length: int, expected: int, layer: str) -> None:
    flags, length = flags_length >> 12, flags_length & 0x0FFF
    if flags != _PDU_FLAGS:
        raise PacketError(f"{layer} layer has invalid flags 0x{flags:x}")
    if length != expected:
        raise PacketError(f"{layer} layer length {length} does not match {expected}")


def parse_packet(data: bytes) -> DataPacket:
    """Decode an E1.31 data packet, raising PacketError if it is not one."""
    buf = bytes(data)
    if len(buf) < HEADER_LENGTH:
        raise PacketError(f"packet too short: {len(buf)} bytes")

    preamble, postamble, ident, root_fl, root_vector, cid = _ROOT.unpack_from(buf, _ROOT_OFFSET)
    if preamble != PREAMBLE_SIZE or postamble != POSTAMBLE_SIZE:
        raise PacketError("invalid preamble or postamble size")
    if ident != ACN_PACKET_IDENTIFIER:
        raise PacketError("missing ACN packet identifier")
    _check_pdu(root_fl, len(buf) - 16, "root")
    if root_vector != VECTOR_ROOT_E131_DATA:
        raise PacketError(f"unsupported root vector 0x{root_vector:08x}")

    (
        framing_fl,
        framing_vector,
        raw_name,
        priority,
        sync_address,
        sequence,
        options,
        universe,
    ) = _FRAMING.unpack_from(buf, _FRAMING_OFFSET)
    _check_pdu(framing_fl, len(buf) - _FRAMING_OFFSET, "framing")
    if framing_vector != VECTOR_E131_DATA_PACKET:
        raise PacketError(f"unsupported framing vector 0x{framing_vector:08x}")

    dmp_fl, dmp_vector, address_type, first_address, increment, count, start_code = (
        _DMP.unpack_from(buf, _DMP_OFFSET)
    )
    _check_pdu(dmp_fl, len(buf) - _DMP_OFFSET, "DMP")
    if dmp_vector != VECTOR_DMP_SET_PROPERTY:
        raise PacketError(f"unsupported DMP vector 0x{dmp_vector:02x}")
    if address_type != DMP_ADDRESS_DATA_TYPE or first_address != 0 or increment != 1:
        raise PacketError("invalid DMP addressing")
    if count != len(buf) - HEADER_LENGTH + 1:
        raise PacketError(f"property value count {count} does not match packet length")

    name = raw_name.split(b"\x00", 1)[0].decode("utf-8", errors="ignore")
    return DataPacket(
        universe=universe,
        data=buf[HEADER_LENGTH:],
        source_name=name,
        priority=priority,
        sequence=sequence,
        sync_address=sync_address,
        options=options,
        start_code=start_code,
        cid=uuid.UUID(bytes=cid),
    )


def multicast_address(universe: int) -> str:
    """Return the IPv4 multicast group that carries ``universe``."""
    _check_range("universe", universe, UNIVERSE_MIN, UNIVERSE_MAX)
    return str(ipaddress.IPv4Address(_MULTICAST_BASE | universe))