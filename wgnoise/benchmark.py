"""Micro-benchmarks of the cryptographic primitives used by the tunnel."""

from __future__ import annotations

import hashlib
import math
import os
import time
from typing import Callable, List, Optional, Tuple

from nacl.bindings import (
    crypto_aead_chacha20poly1305_ietf_encrypt,
    crypto_scalarmult,
    crypto_scalarmult_base,
)

__all__ = ["format_float", "run_bench", "do_benchmark"]

ITR_DURATION = 1  # seconds per run
ITRS = 3  # runs; the best one is reported
_BATCH = 300  # calls between clock checks

_MIB = 1024.0 * 1024.0


def format_float(number):
    """Format a non-negative number with two decimals and comma thousands separators."""
    fract, whole = math.modf(number)
    integer = int(whole)
    formatted = f"{fract:.2f}"
    if integer == 0:
        return formatted
    return f"{integer:,}{formatted[1:]}"


def run_bench(test_func):
    """Return the lowest rate of ``test_func`` units per second over ITRS runs.

    ``test_func`` returns the amount of work one call did.
    """
    best = math.inf
    for _ in range(ITRS):
        start = time.perf_counter()
        total = 0
        while True:
            for _ in range(_BATCH):
                total += test_func()
            elapsed = time.perf_counter() - start
            if elapsed >= ITR_DURATION:
                best = min(best, total / elapsed)
                break
    return best


def _secret_key() -> bytes:
    return os.urandom(32)


def _bench_x25519_shared_key(name: bool, _size: int) -> str:
    if name:
        return "X25519 Shared Key: "
    secret_key = _secret_key()
    public_key = crypto_scalarmult_base(_secret_key())

    def step() -> int:
        crypto_scalarmult(secret_key, public_key)
        return 1

    return f"{format_float(run_bench(step))} ops/sec"


def _bench_x25519_public_key(name: bool, _size: int) -> str:
    if name:
        return "X25519 Public Key: "
    secret_key = _secret_key()

    def step() -> int:
        crypto_scalarmult_base(secret_key)
        return 1

    return f"{format_float(run_bench(step))} ops/sec"


def _bench_blake2s(name: bool, size: int) -> str:
    if name:
        return f"Blake2s {size}B: "
    buf_in = bytes(size)

    def step() -> int:
        hashlib.blake2s(buf_in).digest()
        return len(buf_in)

    return f"{format_float(run_bench(step) / _MIB)} MiB/s"


def _bench_chacha20poly1305(name: bool, size: int) -> str:
    if name:
        return f"AEAD Seal {size}B: "
    key = bytes(32)
    nonce = bytes(12)
    buf_in = bytes(size)

    def step() -> int:
        sealed = crypto_aead_chacha20poly1305_ietf_encrypt(buf_in, b"", nonce, key)
        return len(sealed) - 16

    return f"{format_float(run_bench(step) / _MIB)} MiB/s"


_BENCHMARKS: List[Tuple[Callable[[bool, int], str], int]] = [
    (_bench_x25519_public_key, 0),
    (_bench_x25519_shared_key, 0),
    (_bench_blake2s, 128),
    (_bench_blake2s, 1024),
    (_bench_chacha20poly1305, 128),
    (_bench_chacha20poly1305, 192),
    (_bench_chacha20poly1305, 1400),
    (_bench_chacha20poly1305, 8192),
]


def do_benchmark(name, idx) -> Optional[str]:
    """Run benchmark ``idx`` (or give its label when ``name`` is true); None past the end."""
    if not 0 <= idx < len(_BENCHMARKS):
        return None
    func, param = _BENCHMARKS[idx]
    return func(name, param)