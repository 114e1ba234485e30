# wgnoise

Building blocks for the data path of the WireGuard protocol:

- parsing of WireGuard wire messages and of the IP headers they carry,
- transport sessions that encrypt and decrypt data messages with ChaCha20-Poly1305,
- a sliding-window filter that rejects replayed or too-old packet counters,
- a handshake rate limiter that checks `mac1`/`mac2` and answers with a cookie reply when under load,
- a small UDP socket wrapper,
- micro-benchmarks of the cryptographic primitives.

## Installation

```
pip install .
```

Running the tests needs the `test` extra:

```
pip install ".[test]"
pytest
```

## Modules

### `wgnoise.errors`

- `ErrorKind`: an enum of the reasons an operation can fail (`INVALID_PACKET`, `INVALID_COUNTER`, `INVALID_MAC`, `INVALID_AEAD_TAG`, `WRONG_INDEX`, `UNDER_LOAD` and others).
- `WireGuardError`: the exception raised for a rejected packet; its `kind` attribute holds the `ErrorKind`. Two errors compare equal when their kinds match.

### `wgnoise.packets`

- `Verbosity`: an ordered `IntEnum` (`NONE`, `INFO`, `DEBUG`, `TRACE`). `Verbosity.parse` maps `"silent"`, `"info"`, `"debug"` and `"max"` to a level and raises `ValueError` for anything else.
- Message classes: `HandshakeInit`, `HandshakeResponse`, `PacketCookieReply`, `PacketData` (frozen dataclasses holding the message fields).
- Result classes: `Done`, `WriteToNetwork(packet)`, `WriteToTunnelV4(packet, address)`, `WriteToTunnelV6(packet, address)`.
- `parse_incoming_packet(src)`: splits a datagram into one of the message classes. A wrong type, a non-zero reserved field or a length that does not match the type raises `WireGuardError(INVALID_PACKET)`.
- `dst_address(packet)`: returns the destination `IPv4Address` or `IPv6Address` of an IP packet, or `None` when it is not a complete IPv4 or IPv6 header.
- `validate_decapsulated_packet(packet)`: returns `Done()` for an empty keepalive. Otherwise it trims the packet to the length in its IP header and returns it as `WriteToTunnelV4` or `WriteToTunnelV6` with the source address. A packet that is not IP, or is shorter than its header says, raises `WireGuardError(INVALID_PACKET)`.

### `wgnoise.session`

- `ReceivingKeyCounterValidator`: a 1024-counter sliding window.
  - `will_accept(counter)` is a cheap check.
  - `mark_did_receive(counter)` records a counter. It raises `WireGuardError(INVALID_COUNTER)` for a replay or a counter too far behind.
- `Session(local_index, peer_index, receiving_key, sending_key)`: both keys must be 32 bytes.
  - `format_packet_data(src)` returns a complete data message.
  - `receive_packet_data(packet)` returns the plaintext. It raises `WRONG_INDEX`, `INVALID_COUNTER` or `INVALID_AEAD_TAG` when the message is rejected.
  - `current_packet_cnt()` returns `(expected, received)` counts.

### `wgnoise.rate_limiter`

`RateLimiter(public_key, limit)` derives its `mac1` and cookie keys from the local public key.

`verify_packet(src_addr, src)` parses a datagram and checks `mac1` on handshake messages. After `limit` handshakes it also requires a valid `mac2`; `reset_count()` sets the count back to zero once a second has passed since the last reset. When `mac2` is required:

- with `src_addr` set to `None` it raises `WireGuardError(UNDER_LOAD)`;
- with a bad `mac2` it raises `CookieReplyRequired`, whose `packet` attribute is the 64-byte cookie reply to send back.

`format_cookie_reply(idx, cookie, mac1)` builds such a reply directly.

### `wgnoise.udp`

`UDPSocket(version=4)` wraps an IPv4 or IPv6 datagram socket and is a context manager.

- Chainable configuration: `set_non_blocking()`, `set_reuse()`, `bind(port)`, `connect((address, port))`.
- I/O: `sendto(buf, (address, port))`, `recvfrom(bufsize)`, `read(bufsize)`, `write(src)`.
- Other calls: `port()` (IPv4 only), `set_fwmark(mark)` (Linux only, a no-op elsewhere), `shutdown()`, `close()`.
- `sendto` and `write` return 0 on failure.
- Every other failing call raises `UDPError`, an `OSError` whose `operation` attribute names the call.
- Using an address of the other IP version raises `ValueError`.

### `wgnoise.benchmark`

- `format_float(number)` formats with two decimals and comma separators, for example `1234567.891` gives `"1,234,567.89"`.
- `run_bench(test_func)` returns the lowest rate, in units per second, over three one-second runs.
- `do_benchmark(name, idx)` runs the benchmark at index `idx`.
  - With `name=True` it returns only that benchmark's label.
  - With `name=False` it returns the measured throughput as text.
  - It returns `None` once `idx` is past the last benchmark.

## Example

```python
from wgnoise.packets import parse_incoming_packet, PacketData
from wgnoise.session import Session

alice = Session(1, 2, receiving_key=b"\x01" * 32, sending_key=b"\x02" * 32)
bob = Session(2, 1, receiving_key=b"\x02" * 32, sending_key=b"\x01" * 32)

wire = alice.format_packet_data(b"hello")
packet = parse_incoming_packet(wire)
assert isinstance(packet, PacketData)
assert bob.receive_packet_data(packet) == b"hello"
```

Passing the same packet to `bob.receive_packet_data` a second time raises `WireGuardError`. Its `kind` is `ErrorKind.INVALID_COUNTER`.

Listing and running every benchmark (each takes about three seconds):

```python
from wgnoise.benchmark import do_benchmark

idx = 0
while (label := do_benchmark(True, idx)) is not None:
    print(label, do_benchmark(False, idx))
    idx += 1
```

## What this package does not do

This package holds only the parts listed above. It does not include:

- the Noise handshake itself (creating or answering handshake initiations and responses, or deriving session keys);
- a tunnel object that manages several sessions, timers, keepalives and a packet queue;
- a TUN device, a daemon or a command-line program.

Session keys must come from elsewhere.