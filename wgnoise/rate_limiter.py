"""Handshake rate limiting and the cookie reply mechanism."""

from __future__ import annotations

import hashlib
import hmac
import ipaddress
import os
import struct
import threading
import time
from typing import Optional, Union

from nacl.bindings import crypto_aead_xchacha20poly1305_ietf_encrypt

from .errors import ErrorKind, WireGuardError
from .packets import (
    COOKIE_REPLY,
    COOKIE_REPLY_SZ,
    HandshakeInit,
    HandshakeResponse,
    Packet,
    parse_incoming_packet,
)

__all__ = ["CookieReplyRequired", "RateLimiter", "LABEL_MAC1", "LABEL_COOKIE"]

LABEL_MAC1 = b"mac1----"
LABEL_COOKIE = b"cookie--"

COOKIE_REFRESH = 128  # seconds between changes of the cookie secret
COOKIE_SIZE = 16
COOKIE_NONCE_SIZE = 24
MAC_SIZE = 16

RESET_PERIOD = 1  # seconds between resets of the packet count

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class CookieReplyRequired(Exception):
    """Raised when a handshake must be answered with a cookie reply."""

    def __init__(self, packet: bytes) -> None:
        super().__init__("cookie reply required")
        self.packet = packet


def _hash(*parts: bytes) -> bytes:
    digest = hashlib.blake2s()
    for part in parts:
        digest.update(part)
    return digest.digest()


def _mac(key: bytes, *parts: bytes, size: int = MAC_SIZE) -> bytes:
    digest = hashlib.blake2s(key=key, digest_size=size)
    for part in parts:
        digest.update(part)
    return digest.digest()


def _check_mac(computed: bytes, received: bytes) -> None:
    if not hmac.compare_digest(computed, received):
        raise WireGuardError(ErrorKind.INVALID_MAC)


class RateLimiter:
    """Checks handshake MACs and, when under load, demands proof of address.

    The cookie secret and the reply nonces are derived from random keys and
    counters rather than fresh randomness, which keeps the hot path cheap.
    """

    def __init__(self, public_key, limit):
        public_bytes = bytes(public_key)
        self._nonce_key = os.urandom(32)
        self._secret_key = os.urandom(16)
        self._start_time = time.monotonic()
        self._nonce_ctr = 0
        self._mac1_key = _hash(LABEL_MAC1, public_bytes)
        self._cookie_key = _hash(LABEL_COOKIE, public_bytes)
        self.limit = limit
        self._count = 0
        self._last_reset = time.monotonic()
        self._lock = threading.Lock()

    def reset_count(self):
        """Reset the packet count if at least a second has passed since the last reset."""
        now = time.monotonic()
        with self._lock:
            if now - self._last_reset >= RESET_PERIOD:
                self._count = 0
                self._last_reset = now

    def _current_cookie(self, addr: Address) -> bytes:
        addr_bytes = addr.packed.ljust(16, b"\x00")
        elapsed = int(time.monotonic() - self._start_time)
        cur_counter = elapsed // COOKIE_REFRESH
        return _mac(self._secret_key, struct.pack("<Q", cur_counter), addr_bytes)[:COOKIE_SIZE]

    def _nonce(self) -> bytes:
        with self._lock:
            ctr = self._nonce_ctr
            self._nonce_ctr += 1
        return _mac(self._nonce_key, struct.pack("<Q", ctr), size=COOKIE_NONCE_SIZE)

    def _is_under_load(self) -> bool:
        with self._lock:
            count = self._count
            self._count += 1
        return count >= self.limit

    def format_cookie_reply(self, idx, cookie, mac1):
        """Build a cookie reply message addressed to the sender index ``idx``."""
        nonce = self._nonce()
        encrypted_cookie = crypto_aead_xchacha20poly1305_ietf_encrypt(
            bytes(cookie), bytes(mac1), nonce, self._cookie_key
        )
        packet = struct.pack("<II", COOKIE_REPLY, idx) + nonce + encrypted_cookie
        return packet[:COOKIE_REPLY_SZ]

    def verify_packet(self, src_addr, src) -> Packet:
        """Parse a datagram and check the MACs of handshake messages.

        Raises WireGuardError for malformed packets, bad MACs or load without a
        source address, and CookieReplyRequired when the peer must prove its address.
        """
        src = bytes(src)
        packet = parse_incoming_packet(src)

        if isinstance(packet, (HandshakeInit, HandshakeResponse)):
            msg, macs = src[:-32], src[-32:]
            mac1, mac2 = macs[:16], macs[16:]

            _check_mac(_mac(self._mac1_key, msg), mac1)

            if self._is_under_load():
                if src_addr is None:
                    raise WireGuardError(ErrorKind.UNDER_LOAD)
                addr = ipaddress.ip_address(src_addr)
                cookie = self._current_cookie(addr)
                computed_mac2 = _mac(cookie, msg, mac1)
                if not hmac.compare_digest(computed_mac2, mac2):
                    reply = self.format_cookie_reply(packet.sender_idx, cookie, mac1)
                    raise CookieReplyRequired(reply)

        return packet