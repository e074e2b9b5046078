"""
Data types and errors shared across the ut181a package.

- `records`: dataclasses for enumerated devices, session capabilities,
  record descriptors, decoded samples and reassembled records.
- `errors`: the exception taxonomy raised by the protocol core.

See Also
--------
ut181a.protocol : wire format producing these types
ut181a.device : components returning these types
"""

from .errors import (
    AmbiguousDevice,
    Cancelled,
    CatalogError,
    ChecksumMismatch,
    CorruptRecord,
    DeviceNotFound,
    DownloadError,
    FrameError,
    HandshakeFailed,
    LinkLost,
    MalformedFrame,
    OpenError,
    ProtocolViolation,
    TransportError,
    TransportTimeout,
    UnknownOpcode,
    UnsupportedRecordKind,
    UT181AError,
)
from .records import (
    UNIT_NAMES,
    DeviceCandidate,
    MeasurementSample,
    RecordData,
    RecordDescriptor,
    RecordKind,
    SessionCapabilities,
    unit_name,
)

__all__ = [
    "UT181AError",
    "TransportError",
    "TransportTimeout",
    "LinkLost",
    "FrameError",
    "MalformedFrame",
    "ChecksumMismatch",
    "UnknownOpcode",
    "OpenError",
    "DeviceNotFound",
    "AmbiguousDevice",
    "HandshakeFailed",
    "CatalogError",
    "DownloadError",
    "ProtocolViolation",
    "Cancelled",
    "CorruptRecord",
    "UnsupportedRecordKind",
    "UNIT_NAMES",
    "DeviceCandidate",
    "MeasurementSample",
    "RecordData",
    "RecordDescriptor",
    "RecordKind",
    "SessionCapabilities",
    "unit_name",
]
