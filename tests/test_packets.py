import ipaddress
import struct

import pytest

from wgnoise.errors import ErrorKind, WireGuardError
from wgnoise.packets import (
    Done,
    HandshakeInit,
    HandshakeResponse,
    PacketCookieReply,
    PacketData,
    Verbosity,
    WriteToTunnelV4,
    WriteToTunnelV6,
    dst_address,
    parse_incoming_packet,
    validate_decapsulated_packet,
)


def _body(size):
    return bytes(i % 251 for i in range(size))


def _message(kind, size, *fields):
    head = struct.pack("<I", kind) + b"".join(fields)
    return head + _body(size - len(head))


def _ipv4(src, dst, total_len, extra=0):
    header = bytearray(20)
    header[0] = 0x45
    header[2:4] = struct.pack(">H", total_len)
    header[12:16] = ipaddress.IPv4Address(src).packed
    header[16:20] = ipaddress.IPv4Address(dst).packed
    return bytes(header) + b"p" * (total_len - 20 + extra)


def _ipv6(src, dst, payload_len, extra=0):
    header = bytearray(40)
    header[0] = 0x60
    header[4:6] = struct.pack(">H", payload_len)
    header[8:24] = ipaddress.IPv6Address(src).packed
    header[24:40] = ipaddress.IPv6Address(dst).packed
    return bytes(header) + b"q" * (payload_len + extra)


@pytest.mark.parametrize(
    "text, level",
    [("silent", Verbosity.NONE), ("info", Verbosity.INFO),
     ("debug", Verbosity.DEBUG), ("max", Verbosity.TRACE)],
)
def test_verbosity_parse(text, level):
    assert Verbosity.parse(text) is level


def test_verbosity_parse_rejects_unknown():
    with pytest.raises(ValueError):
        Verbosity.parse("loud")


def test_verbosity_is_ordered():
    levels = [Verbosity.parse(text) for text in ("silent", "info", "debug", "max")]
    assert levels[0] < levels[1] < levels[2] < levels[3]
    assert sorted(reversed(levels)) == levels


def test_parse_handshake_init():
    src = _message(1, 148, struct.pack("<I", 77))
    packet = parse_incoming_packet(src)
    assert isinstance(packet, HandshakeInit)
    assert packet.sender_idx == 77
    assert packet.unencrypted_ephemeral == src[8:40]
    assert packet.encrypted_static == src[40:88]
    assert packet.encrypted_timestamp == src[88:116]


def test_parse_handshake_response():
    src = _message(2, 92, struct.pack("<II", 5, 9))
    packet = parse_incoming_packet(src)
    assert isinstance(packet, HandshakeResponse)
    assert (packet.sender_idx, packet.receiver_idx) == (5, 9)
    assert packet.unencrypted_ephemeral == src[12:44]
    assert packet.encrypted_nothing == src[44:60]


def test_parse_cookie_reply():
    src = _message(3, 64, struct.pack("<I", 42))
    packet = parse_incoming_packet(src)
    assert isinstance(packet, PacketCookieReply)
    assert packet.receiver_idx == 42
    assert packet.nonce == src[8:32]
    assert packet.encrypted_cookie == src[32:64]


@pytest.mark.parametrize("size", [32, 33, 1500])
def test_parse_data(size):
    src = _message(4, size, struct.pack("<IQ", 3, 123456789))
    packet = parse_incoming_packet(src)
    assert isinstance(packet, PacketData)
    assert packet.receiver_idx == 3
    assert packet.counter == 123456789
    assert packet.encrypted_encapsulated_packet == src[16:]


@pytest.mark.parametrize(
    "src",
    [
        b"",
        b"\x01\x00\x00",
        _message(1, 147),
        _message(2, 93),
        _message(3, 63),
        _message(4, 31),
        _message(5, 148),
        _message(1 | (1 << 8), 148),
    ],
)
def test_parse_rejects_invalid(src):
    with pytest.raises(WireGuardError) as info:
        parse_incoming_packet(src)
    assert info.value.kind is ErrorKind.INVALID_PACKET


def test_dst_address_ipv4():
    packet = _ipv4("10.1.2.3", "10.9.8.7", 28)
    assert dst_address(packet) == ipaddress.IPv4Address("10.9.8.7")


def test_dst_address_ipv6():
    packet = _ipv6("fd00::1", "fd00::2", 8)
    assert dst_address(packet) == ipaddress.IPv6Address("fd00::2")


@pytest.mark.parametrize(
    "packet",
    [b"", bytes([0x45]) + bytes(18), bytes([0x60]) + bytes(38), bytes([0x50]) + bytes(60)],
)
def test_dst_address_none(packet):
    assert dst_address(packet) is None


def test_validate_empty_is_keepalive():
    assert validate_decapsulated_packet(b"") == Done()


def test_validate_ipv4_truncates_to_length():
    packet = _ipv4("192.0.2.1", "192.0.2.2", 30, extra=14)
    result = validate_decapsulated_packet(packet)
    assert isinstance(result, WriteToTunnelV4)
    assert result.packet == packet[:30]
    assert result.address == ipaddress.IPv4Address("192.0.2.1")


def test_validate_ipv6_adds_header_to_payload_length():
    packet = _ipv6("2001:db8::5", "2001:db8::6", 12, extra=4)
    result = validate_decapsulated_packet(packet)
    assert isinstance(result, WriteToTunnelV6)
    assert result.packet == packet[:40 + 12]
    assert result.address == ipaddress.IPv6Address("2001:db8::5")


@pytest.mark.parametrize(
    "packet",
    [
        _ipv4("192.0.2.1", "192.0.2.2", 30)[:25],
        _ipv6("2001:db8::5", "2001:db8::6", 12)[:45],
        bytes([0x45]) + bytes(10),
        bytes([0x70]) + bytes(50),
    ],
)
def test_validate_rejects_bad_packets(packet):
    with pytest.raises(WireGuardError) as info:
        validate_decapsulated_packet(packet)
    assert info.value.kind is ErrorKind.INVALID_PACKET