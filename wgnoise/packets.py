"""Wire formats of tunnel messages, tunnel results and IP header helpers."""

from __future__ import annotations

import enum
import ipaddress
import struct
from dataclasses import dataclass
from typing import Optional, Union

from .errors import ErrorKind, WireGuardError

__all__ = [
    "Verbosity",
    "HandshakeInit",
    "HandshakeResponse",
    "PacketCookieReply",
    "PacketData",
    "Packet",
    "Done",
    "WriteToNetwork",
    "WriteToTunnelV4",
    "WriteToTunnelV6",
    "TunnResult",
    "parse_incoming_packet",
    "dst_address",
    "validate_decapsulated_packet",
]

PEER_HANDSHAKE_RATE_LIMIT = 10

IPV4_MIN_HEADER_SIZE = 20
IPV4_LEN_OFF = 2
IPV4_SRC_IP_OFF = 12
IPV4_DST_IP_OFF = 16
IPV4_IP_SZ = 4

IPV6_MIN_HEADER_SIZE = 40
IPV6_LEN_OFF = 4
IPV6_SRC_IP_OFF = 8
IPV6_DST_IP_OFF = 24
IPV6_IP_SZ = 16

IP_LEN_SZ = 2

MAX_QUEUE_DEPTH = 256
N_SESSIONS = 8

HANDSHAKE_INIT = 1
HANDSHAKE_RESP = 2
COOKIE_REPLY = 3
DATA = 4

HANDSHAKE_INIT_SZ = 148
HANDSHAKE_RESP_SZ = 92
COOKIE_REPLY_SZ = 64
DATA_OVERHEAD_SZ = 32


class Verbosity(enum.IntEnum):
    """Logging levels, ordered from quietest to loudest."""

    NONE = 0
    INFO = 1
    DEBUG = 2
    TRACE = 3

    @classmethod
    def parse(cls, text):
        """Map a command-line level name to a verbosity."""
        try:
            return _VERBOSITY_NAMES[text]
        except KeyError:
            raise ValueError(f"unknown verbosity: {text!r}") from None


_VERBOSITY_NAMES = {
    "silent": Verbosity.NONE,
    "info": Verbosity.INFO,
    "debug": Verbosity.DEBUG,
    "max": Verbosity.TRACE,
}


@dataclass(frozen=True)
class HandshakeInit:
    sender_idx: int
    unencrypted_ephemeral: bytes
    encrypted_static: bytes
    encrypted_timestamp: bytes


@dataclass(frozen=True)
class HandshakeResponse:
    sender_idx: int
    receiver_idx: int
    unencrypted_ephemeral: bytes
    encrypted_nothing: bytes


@dataclass(frozen=True)
class PacketCookieReply:
    receiver_idx: int
    nonce: bytes
    encrypted_cookie: bytes


@dataclass(frozen=True)
class PacketData:
    receiver_idx: int
    counter: int
    encrypted_encapsulated_packet: bytes


Packet = Union[HandshakeInit, HandshakeResponse, PacketCookieReply, PacketData]


@dataclass(frozen=True)
class Done:
    """Nothing left to do."""


@dataclass(frozen=True)
class WriteToNetwork:
    """A datagram to send to the peer."""

    packet: bytes


@dataclass(frozen=True)
class WriteToTunnelV4:
    """A decrypted IPv4 packet to hand to the tunnel interface."""

    packet: bytes
    address: ipaddress.IPv4Address


@dataclass(frozen=True)
class WriteToTunnelV6:
    """A decrypted IPv6 packet to hand to the tunnel interface."""

    packet: bytes
    address: ipaddress.IPv6Address


TunnResult = Union[Done, WriteToNetwork, WriteToTunnelV4, WriteToTunnelV6]


def _u32(data: bytes, offset: int) -> int:
    return struct.unpack_from("<I", data, offset)[0]


def parse_incoming_packet(src) -> Packet:
    """Split a datagram from the network into its message fields.

    The type word includes the reserved bytes, so a non-zero reserved field
    or a length that does not match the type is rejected.
    """
    src = bytes(src)
    if len(src) < 4:
        raise WireGuardError(ErrorKind.INVALID_PACKET)

    packet_type = _u32(src, 0)
    size = len(src)

    if packet_type == HANDSHAKE_INIT and size == HANDSHAKE_INIT_SZ:
        return HandshakeInit(
            sender_idx=_u32(src, 4),
            unencrypted_ephemeral=src[8:40],
            encrypted_static=src[40:88],
            encrypted_timestamp=src[88:116],
        )
    if packet_type == HANDSHAKE_RESP and size == HANDSHAKE_RESP_SZ:
        return HandshakeResponse(
            sender_idx=_u32(src, 4),
            receiver_idx=_u32(src, 8),
            unencrypted_ephemeral=src[12:44],
            encrypted_nothing=src[44:60],
        )
    if packet_type == COOKIE_REPLY and size == COOKIE_REPLY_SZ:
        return PacketCookieReply(
            receiver_idx=_u32(src, 4),
            nonce=src[8:32],
            encrypted_cookie=src[32:64],
        )
    if packet_type == DATA and size >= DATA_OVERHEAD_SZ:
        return PacketData(
            receiver_idx=_u32(src, 4),
            counter=struct.unpack_from("<Q", src, 8)[0],
            encrypted_encapsulated_packet=src[16:],
        )
    raise WireGuardError(ErrorKind.INVALID_PACKET)


def dst_address(packet) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """Return the destination address of an IP packet, or None if it is not one."""
    packet = bytes(packet)
    if not packet:
        return None
    version = packet[0] >> 4
    if version == 4 and len(packet) >= IPV4_MIN_HEADER_SIZE:
        return ipaddress.IPv4Address(packet[IPV4_DST_IP_OFF:IPV4_DST_IP_OFF + IPV4_IP_SZ])
    if version == 6 and len(packet) >= IPV6_MIN_HEADER_SIZE:
        return ipaddress.IPv6Address(packet[IPV6_DST_IP_OFF:IPV6_DST_IP_OFF + IPV6_IP_SZ])
    return None


def validate_decapsulated_packet(packet) -> TunnResult:
    """Check a decrypted packet is IPv4 or IPv6 and trim it to its stated length.

    An empty packet is a keepalive and yields Done.
    """
    packet = bytes(packet)
    if not packet:
        return Done()

    version = packet[0] >> 4
    if version == 4 and len(packet) >= IPV4_MIN_HEADER_SIZE:
        (computed_len,) = struct.unpack_from(">H", packet, IPV4_LEN_OFF)
        source = ipaddress.IPv4Address(packet[IPV4_SRC_IP_OFF:IPV4_SRC_IP_OFF + IPV4_IP_SZ])
    elif version == 6 and len(packet) >= IPV6_MIN_HEADER_SIZE:
        (payload_len,) = struct.unpack_from(">H", packet, IPV6_LEN_OFF)
        computed_len = payload_len + IPV6_MIN_HEADER_SIZE
        source = ipaddress.IPv6Address(packet[IPV6_SRC_IP_OFF:IPV6_SRC_IP_OFF + IPV6_IP_SZ])
    else:
        raise WireGuardError(ErrorKind.INVALID_PACKET)

    if computed_len > len(packet):
        raise WireGuardError(ErrorKind.INVALID_PACKET)

    if isinstance(source, ipaddress.IPv4Address):
        return WriteToTunnelV4(packet[:computed_len], source)
    return WriteToTunnelV6(packet[:computed_len], source)