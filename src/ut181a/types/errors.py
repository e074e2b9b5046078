"""Exception hierarchy for meter communication.

All errors raised by the protocol core derive from `UT181AError`, so callers
that only care about success/failure can catch that. The families mirror the
layer that raises them:

```
UT181AError
├── TransportError: TransportTimeout, LinkLost
├── FrameError: MalformedFrame, ChecksumMismatch, UnknownOpcode
├── OpenError: DeviceNotFound, AmbiguousDevice, HandshakeFailed
├── CatalogError / DownloadError
│   ├── ProtocolViolation (both)
│   ├── Cancelled (both)
│   └── CorruptRecord, UnsupportedRecordKind (DownloadError only)
```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .records import RecordDescriptor


class UT181AError(Exception):
    """Base exception for meter communication errors."""

    pass


# =============================================================================
# Transport
# =============================================================================


class TransportError(UT181AError):
    pass


class TransportTimeout(TransportError):
    """No data arrived within the receive timeout."""

    pass


class LinkLost(TransportError):
    """The physical link failed or was closed underneath us."""

    pass


# =============================================================================
# Frames
# =============================================================================


class FrameError(UT181AError):
    pass


class MalformedFrame(FrameError):
    pass


class ChecksumMismatch(FrameError):
    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Frame checksum mismatch: expected 0x{expected:02X}, got 0x{actual:02X}"
        )
        self.expected = expected
        self.actual = actual


class UnknownOpcode(FrameError):
    def __init__(self, opcode: int):
        super().__init__(f"Unknown opcode 0x{opcode:02X}")
        self.opcode = opcode


# =============================================================================
# Session
# =============================================================================


class OpenError(UT181AError):
    pass


class DeviceNotFound(OpenError):
    pass


class AmbiguousDevice(OpenError):
    pass


class HandshakeFailed(OpenError):
    pass


# =============================================================================
# Records
# =============================================================================


class CatalogError(UT181AError):
    pass


class DownloadError(UT181AError):
    pass


class ProtocolViolation(CatalogError, DownloadError):
    """The meter answered with something the protocol does not allow here."""

    pass


class Cancelled(CatalogError, DownloadError):
    """The operation was cancelled before it completed.

    For listings, `partial` holds the descriptors received before the
    cancellation was observed. Downloads never carry partial data.
    """

    def __init__(
        self, msg: str = "Cancelled", partial: Optional[list[RecordDescriptor]] = None
    ):
        super().__init__(msg)
        self.partial = list(partial) if partial else []


class CorruptRecord(DownloadError):
    pass


class UnsupportedRecordKind(DownloadError):
    def __init__(self, kind: int):
        super().__init__(f"Unsupported record kind 0x{kind:02X}")
        self.kind = kind
