"""Error kinds reported by the tunnel protocol."""

from __future__ import annotations

import enum

__all__ = ["ErrorKind", "WireGuardError"]


class ErrorKind(enum.Enum):
    """The reasons a protocol operation can fail."""

    DESTINATION_BUFFER_TOO_SMALL = enum.auto()
    INCORRECT_PACKET_LENGTH = enum.auto()
    UNEXPECTED_PACKET = enum.auto()
    WRONG_PACKET_TYPE = enum.auto()
    WRONG_INDEX = enum.auto()
    WRONG_KEY = enum.auto()
    INVALID_TAI64N_TIMESTAMP = enum.auto()
    WRONG_TAI64N_TIMESTAMP = enum.auto()
    INVALID_MAC = enum.auto()
    INVALID_AEAD_TAG = enum.auto()
    INVALID_COUNTER = enum.auto()
    INVALID_PACKET = enum.auto()
    NO_CURRENT_SESSION = enum.auto()
    LOCK_FAILED = enum.auto()
    CONNECTION_EXPIRED = enum.auto()
    UNDER_LOAD = enum.auto()


class WireGuardError(Exception):
    """Raised when a packet or protocol operation is rejected."""

    def __init__(self, kind):
        self.kind = kind if isinstance(kind, ErrorKind) else ErrorKind(kind)
        super().__init__(self.kind.name)

    def __repr__(self) -> str:
        return f"WireGuardError({self.kind.name})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, WireGuardError):
            return self.kind is other.kind
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.kind)