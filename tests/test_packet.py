import uuid

import pytest

from sacnview.packet import (
    ACN_PACKET_IDENTIFIER,
    HEADER_LENGTH,
    MAX_SLOTS,
    DataPacket,
    PacketError,
    multicast_address,
    parse_packet,
)

CID = uuid.UUID(int=0x1234)


def make_packet(**overrides):
    values = dict(
        universe=1,
        data=bytes((i * 10) % 256 for i in range(16)) + bytes(83),
        source_name="Test Source",
        priority=100,
        sequence=7,
        cid=CID,
    )
    values.update(overrides)
    return DataPacket(**values)


def test_round_trip():
    packet = make_packet(sync_address=5, options=0x40, universe=300)
    assert parse_packet(packet.to_bytes()) == packet


def test_round_trip_full_universe():
    packet = make_packet(data=bytes(range(256)) * 2)
    raw = packet.to_bytes()
    assert len(raw) == HEADER_LENGTH + MAX_SLOTS
    assert parse_packet(raw).data == packet.data


def test_round_trip_empty_data():
    packet = make_packet(data=b"")
    raw = packet.to_bytes()
    assert len(raw) == HEADER_LENGTH
    assert parse_packet(raw) == packet


def test_header_fields_on_the_wire():
    packet = make_packet(universe=258)
    raw = packet.to_bytes()
    assert raw[4:16] == ACN_PACKET_IDENTIFIER
    assert raw[22:38] == CID.bytes
    assert raw[44:44 + len("Test Source")] == b"Test Source"
    assert raw[113:115] == (258).to_bytes(2, "big")
    assert int.from_bytes(raw[123:125], "big") == len(packet.data) + 1
    assert raw[HEADER_LENGTH:] == packet.data


def test_sixty_four_byte_name_round_trips():
    packet = make_packet(source_name="n" * 64)
    assert parse_packet(packet.to_bytes()).source_name == "n" * 64


def test_data_accepts_list_of_ints():
    packet = make_packet(data=[1, 2, 3])
    assert packet.data == bytes([1, 2, 3])


@pytest.mark.parametrize(
    "overrides",
    [
        {"universe": 0},
        {"universe": 64000},
        {"priority": 201},
        {"sequence": 256},
        {"data": bytes(513)},
        {"data": [300]},
        {"source_name": "x" * 65},
        {"start_code": -1},
    ],
)
def test_invalid_fields_rejected(overrides):
    with pytest.raises(PacketError):
        make_packet(**overrides)


def test_parse_rejects_short_packet():
    with pytest.raises(PacketError):
        parse_packet(make_packet().to_bytes()[: HEADER_LENGTH - 1])


def test_parse_rejects_truncated_data():
    with pytest.raises(PacketError):
        parse_packet(make_packet().to_bytes()[:-1])


def test_parse_rejects_bad_identifier():
    raw = bytearray(make_packet().to_bytes())
    raw[4] ^= 0xFF
    with pytest.raises(PacketError):
        parse_packet(bytes(raw))


def test_parse_rejects_other_root_vector():
    raw = bytearray(make_packet().to_bytes())
    raw[21] = 0x08
    with pytest.raises(PacketError):
        parse_packet(bytes(raw))


def test_parse_rejects_bad_priority_on_wire():
    raw = bytearray(make_packet().to_bytes())
    raw[108] = 0xFF
    with pytest.raises(PacketError):
        parse_packet(bytes(raw))


def test_packet_error_is_value_error():
    with pytest.raises(ValueError):
        parse_packet(b"")


def test_multicast_address():
    assert multicast_address(1) == "239.255.0.1"
    assert multicast_address(63999) == "239.255.249.255"
    assert multicast_address(256).startswith("239.255.1.")


@pytest.mark.parametrize("universe", [0, 64000, -1])
def test_multicast_address_out_of_range(universe):
    with pytest.raises(PacketError):
        multicast_address(universe)