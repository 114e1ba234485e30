"""Established transport sessions and their replay protection."""

from __future__ import annotations

import struct
import threading

from nacl.bindings import (
    crypto_aead_chacha20poly1305_ietf_decrypt,
    crypto_aead_chacha20poly1305_ietf_encrypt,
)
from nacl.exceptions import CryptoError

from .errors import ErrorKind, WireGuardError
from .packets import DATA, PacketData

__all__ = ["ReceivingKeyCounterValidator", "Session"]

DATA_OFFSET = 16
AEAD_SIZE = 16

WORD_SIZE = 64
N_WORDS = 16
N_BITS = WORD_SIZE * N_WORDS

_ALL_BITS = (1 << N_BITS) - 1


def _nonce(counter: int) -> bytes:
    return bytes(4) + struct.pack("<Q", counter)


class ReceivingKeyCounterValidator:
    """Sliding-window replay filter over received packet counters.

    Tracks the next expected counter and a bitmap of the last N_BITS
    counters, so packets may arrive somewhat out of order but never twice.
    """

    def __init__(self) -> None:
        self.next = 0
        self.receive_cnt = 0
        self._bitmap = 0

    def _set_bit(self, idx: int) -> None:
        self._bitmap |= 1 << (idx % N_BITS)

    def _clear_bit(self, idx: int) -> None:
        self._bitmap &= ~(1 << (idx % N_BITS))

    def _check_bit(self, idx: int) -> bool:
        return bool((self._bitmap >> (idx % N_BITS)) & 1)

    def will_accept(self, counter):
        """Return True if the counter is new and not too far behind."""
        if counter >= self.next:
            return True
        if counter + N_BITS < self.next:
            return False
        return not self._check_bit(counter)

    def mark_did_receive(self, counter):
        """Record the counter as received, raising if it is a replay or too old."""
        if counter + N_BITS < self.next:
            raise WireGuardError(ErrorKind.INVALID_COUNTER)
        if counter == self.next:
            self._set_bit(counter)
            self.next += 1
            return
        if counter < self.next:
            if self._check_bit(counter):
                raise WireGuardError(ErrorKind.INVALID_COUNTER)
            self._set_bit(counter)
            return
        # Counters were skipped: forget whatever the window held for them.
        if counter - self.next >= N_BITS:
            self._bitmap = 0
        else:
            for skipped in range(self.next, counter):
                self._clear_bit(skipped)
        self._bitmap &= _ALL_BITS
        self._set_bit(counter)
        self.next = counter + 1


class Session:
    """A pair of transport keys bound to local and peer indices."""

    def __init__(self, local_index, peer_index, receiving_key, sending_key):
        self._receiving_index = local_index
        self._sending_index = peer_index
        self._receiving_key = bytes(receiving_key)
        self._sending_key = bytes(sending_key)
        if len(self._receiving_key) != 32 or len(self._sending_key) != 32:
            raise ValueError("session keys must be 32 bytes")
        self._sending_counter = 0
        self._send_lock = threading.Lock()
        self._validator = ReceivingKeyCounterValidator()
        self._recv_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Session: {self._receiving_index}<- ->{self._sending_index}"

    def local_index(self):
        """The index the peer uses to address this session."""
        return self._receiving_index

    def _next_sending_counter(self) -> int:
        with self._send_lock:
            counter = self._sending_counter
            self._sending_counter += 1
        return counter

    def format_packet_data(self, src):
        """Encrypt an IP packet into a data message ready for the network."""
        counter = self._next_sending_counter()
        header = struct.pack("<IIQ", DATA, self._sending_index, counter)
        sealed = crypto_aead_chacha20poly1305_ietf_encrypt(
            bytes(src), b"", _nonce(counter), self._sending_key
        )
        return header + sealed

    def receive_packet_data(self, packet: PacketData):
        """Decrypt a data message, rejecting wrong indices, replays and bad tags."""
        if packet.receiver_idx != self._receiving_index:
            raise WireGuardError(ErrorKind.WRONG_INDEX)
        # Cheap replay check before spending time on decryption.
        with self._recv_lock:
            if not self._validator.will_accept(packet.counter):
                raise WireGuardError(ErrorKind.INVALID_COUNTER)
        try:
            plaintext = crypto_aead_chacha20poly1305_ietf_decrypt(
                bytes(packet.encrypted_encapsulated_packet),
                b"",
                _nonce(packet.counter),
                self._receiving_key,
            )
        except CryptoError:
            raise WireGuardError(ErrorKind.INVALID_AEAD_TAG) from None
        with self._recv_lock:
            self._validator.mark_did_receive(packet.counter)
            self._validator.receive_cnt += 1
        return plaintext

    def current_packet_cnt(self):
        """Return (expected, received) packet counts for loss estimation."""
        with self._recv_lock:
            return self._validator.next, self._validator.receive_cnt