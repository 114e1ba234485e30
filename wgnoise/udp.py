"""A thin UDP socket wrapper used to carry tunnel datagrams."""

from __future__ import annotations

import ipaddress
import socket
import sys
from contextlib import contextmanager
from typing import Iterator, Tuple, Union

__all__ = ["UDPError", "UDPSocket"]

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Endpoint = Tuple[Address, int]

# Value of SO_MARK on Linux, for interpreters whose socket module lacks it.
_SO_MARK_LINUX = 36


class UDPError(OSError):
    """Raised when a socket operation fails; ``operation`` names the failing call."""

    def __init__(self, operation: str, cause: OSError) -> None:
        super().__init__(cause.errno, f"{operation}: {cause.strerror or cause}")
        self.operation = operation


@contextmanager
def _raising(operation: str) -> Iterator[None]:
    try:
        yield
    except UDPError:
        raise
    except OSError as exc:
        raise UDPError(operation, exc) from exc


class UDPSocket:
    """Receives and sends UDP datagrams over IPv4 or IPv6.

    Configuration methods return the socket itself so calls can be chained.
    """

    def __init__(self, version=4):
        if version not in (4, 6):
            raise ValueError(f"IP version must be 4 or 6, not {version!r}")
        self.version = version
        family = socket.AF_INET if version == 4 else socket.AF_INET6
        with _raising("socket"):
            self._sock = socket.socket(family, socket.SOCK_DGRAM)

    def __enter__(self) -> "UDPSocket":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"UDPSocket(fd={self._sock.fileno()}, version={self.version})"

    def fileno(self) -> int:
        """The underlying file descriptor, or -1 once closed."""
        return self._sock.fileno()

    def set_non_blocking(self):
        """Switch the socket to non-blocking mode."""
        with _raising("fcntl"):
            self._sock.setblocking(False)
        return self

    def set_reuse(self):
        """Allow several sockets to bind the same port."""
        if sys.platform.startswith("linux"):
            # On Linux SO_REUSEPORT would not prefer a connected IPv6 socket.
            option = socket.SO_REUSEADDR
        else:
            option = getattr(socket, "SO_REUSEPORT", socket.SO_REUSEADDR)
        with _raising("setsockopt"):
            self._sock.setsockopt(socket.SOL_SOCKET, option, 1)
        return self

    def port(self):
        """The local port the socket is bound to; IPv4 sockets only."""
        if self.version != 4:
            raise ValueError("can only query ports of IPv4 sockets")
        with _raising("getsockname"):
            return self._sock.getsockname()[1]

    def set_fwmark(self, mark):
        """Mark every packet sent by this socket (Linux only; elsewhere a no-op)."""
        if not sys.platform.startswith("linux"):
            return
        option = getattr(socket, "SO_MARK", _SO_MARK_LINUX)
        with _raising("setsockopt"):
            self._sock.setsockopt(socket.SOL_SOCKET, option, mark)

    def bind(self, port):
        """Bind to ``port`` on every local address."""
        host = "::" if self.version == 6 else "0.0.0.0"
        with _raising("bind"):
            self._sock.bind((host, port))
        return self

    def _sockaddr(self, dst) -> tuple:
        host, port = dst
        ip = ipaddress.ip_address(host)
        if ip.version != self.version:
            raise ValueError(
                f"cannot use an IPv{ip.version} address with an IPv{self.version} socket"
            )
        if ip.version == 6:
            return (str(ip), port, 0, 0)
        return (str(ip), port)

    def connect(self, dst):
        """Connect to a remote ``(address, port)``; bind first."""
        addr = self._sockaddr(dst)
        with _raising("connect"):
            self._sock.connect(addr)
        return self

    def sendto(self, buf, dst):
        """Send ``buf`` to ``dst``; return the number of bytes sent, or 0 on failure."""
        addr = self._sockaddr(dst)
        try:
            return self._sock.sendto(bytes(buf), addr)
        except OSError:
            return 0

    def recvfrom(self, bufsize):
        """Receive one datagram; return ``((address, port), data)``."""
        with _raising("recvfrom"):
            data, addr = self._sock.recvfrom(bufsize)
        host = addr[0].split("%", 1)[0]
        return (ipaddress.ip_address(host), addr[1]), data

    def read(self, bufsize):
        """Receive one datagram on a connected socket."""
        with _raising("recv"):
            return self._sock.recv(bufsize)

    def write(self, src):
        """Send on a connected socket; return bytes sent, or 0 on failure."""
        try:
            return self._sock.send(bytes(src))
        except OSError:
            return 0

    def shutdown(self):
        """Shut down both directions, waking any reader with end of file."""
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def close(self):
        """Release the socket."""
        self._sock.close()