import struct

import pytest

from wgnoise.errors import ErrorKind, WireGuardError
from wgnoise.packets import PacketData, parse_incoming_packet
from wgnoise.session import N_BITS, ReceivingKeyCounterValidator, Session

KEY_ONE = bytes([1]) * 32
KEY_TWO = bytes([2]) * 32


def _pair():
    alice = Session(5, 9, KEY_ONE, KEY_TWO)
    bob = Session(9, 5, KEY_TWO, KEY_ONE)
    return alice, bob


def _ok(c, counter):
    c.mark_did_receive(counter)
    return True


def _err(c, counter):
    with pytest.raises(WireGuardError) as info:
        c.mark_did_receive(counter)
    return info.value.kind is ErrorKind.INVALID_COUNTER


def test_replay_counter():
    c = ReceivingKeyCounterValidator()

    for n in (0, 1, 63, 15):
        assert _ok(c, n)
        assert _err(c, n)

    for i in range(64, N_BITS + 128):
        assert _ok(c, i)
        assert _err(c, i)

    assert _ok(c, N_BITS * 3)
    for i in range(0, N_BITS * 2 + 1):
        assert not c.will_accept(i)
        assert _err(c, i)
    for i in range(N_BITS * 2 + 1, N_BITS * 3):
        assert c.will_accept(i)

    for i in reversed(range(N_BITS * 2 + 1, N_BITS * 3)):
        assert _ok(c, i)
        assert _err(c, i)

    assert _ok(c, N_BITS * 3 + 70)
    assert _ok(c, N_BITS * 3 + 71)
    assert _ok(c, N_BITS * 3 + 72)
    assert _ok(c, N_BITS * 3 + 72 + 125)
    assert _ok(c, N_BITS * 3 + 63)

    assert _err(c, N_BITS * 3 + 70)
    assert _err(c, N_BITS * 3 + 71)
    assert _err(c, N_BITS * 3 + 72)


def test_validator_next_advances():
    c = ReceivingKeyCounterValidator()
    c.mark_did_receive(0)
    c.mark_did_receive(10)
    assert c.next == 11
    assert c.will_accept(5)
    assert not c.will_accept(10)


def test_round_trip():
    alice, bob = _pair()
    payload = b"hello through the tunnel"
    wire = alice.format_packet_data(payload)
    assert len(wire) == len(payload) + 32
    packet = parse_incoming_packet(wire)
    assert packet.receiver_idx == 9
    assert packet.counter == 0
    assert bob.receive_packet_data(packet) == payload


def test_header_layout_and_counter_increments():
    alice, _ = _pair()
    first = alice.format_packet_data(b"")
    second = alice.format_packet_data(b"")
    assert len(first) == 32
    assert struct.unpack_from("<IIQ", first) == (4, 9, 0)
    assert struct.unpack_from("<IIQ", second) == (4, 9, 1)


def test_keepalive_round_trip_empty():
    alice, bob = _pair()
    packet = parse_incoming_packet(alice.format_packet_data(b""))
    assert bob.receive_packet_data(packet) == b""


def test_replay_rejected():
    alice, bob = _pair()
    packet = parse_incoming_packet(alice.format_packet_data(b"data"))
    bob.receive_packet_data(packet)
    with pytest.raises(WireGuardError) as info:
        bob.receive_packet_data(packet)
    assert info.value.kind is ErrorKind.INVALID_COUNTER


def test_wrong_index():
    alice, bob = _pair()
    packet = parse_incoming_packet(alice.format_packet_data(b"data"))
    wrong = PacketData(packet.receiver_idx + 1, packet.counter, packet.encrypted_encapsulated_packet)
    with pytest.raises(WireGuardError) as info:
        bob.receive_packet_data(wrong)
    assert info.value.kind is ErrorKind.WRONG_INDEX


def test_tampered_ciphertext():
    alice, bob = _pair()
    packet = parse_incoming_packet(alice.format_packet_data(b"data"))
    body = bytearray(packet.encrypted_encapsulated_packet)
    body[0] ^= 0xFF
    tampered = PacketData(packet.receiver_idx, packet.counter, bytes(body))
    with pytest.raises(WireGuardError) as info:
        bob.receive_packet_data(tampered)
    assert info.value.kind is ErrorKind.INVALID_AEAD_TAG
    assert bob.current_packet_cnt() == (0, 0)


def test_out_of_order_delivery_and_counts():
    alice, bob = _pair()
    packets = [parse_incoming_packet(alice.format_packet_data(bytes([n]))) for n in range(4)]
    assert bob.receive_packet_data(packets[3]) == bytes([3])
    assert bob.receive_packet_data(packets[1]) == bytes([1])
    assert bob.current_packet_cnt() == (4, 2)


def test_local_index_and_repr():
    alice, _ = _pair()
    assert alice.local_index() == 5
    assert repr(alice) == "Session: 5<- ->9"


def test_bad_key_length():
    with pytest.raises(ValueError):
        Session(1, 2, bytes(16), KEY_TWO)