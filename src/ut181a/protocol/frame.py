"""Frame codec for the meter's binary protocol.

Every message exchanged with the meter is a single frame:

```
+------+--------+--------------+-----------------+----------+
| 0xAB | opcode | length (LE16)| payload[length] | checksum |
+------+--------+--------------+-----------------+----------+
```

The checksum is the low byte of the sum of the opcode, both length bytes and
every payload byte. This layout is fixed by the instrument firmware.

Besides `encode`/`decode`, this module holds the pack/unpack helpers for the
payloads carried by each opcode (all little-endian).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple, Sequence

from ut181a.types import (
    ChecksumMismatch,
    MalformedFrame,
    ProtocolViolation,
    RecordDescriptor,
    SessionCapabilities,
    UnknownOpcode,
)
from ut181a.types.records import MeasurementSample, from_unix

SYNC = 0xAB
HEADER = struct.Struct("<BBH")  # sync, opcode, length
HEADER_SIZE = HEADER.size
CHECKSUM_SIZE = 1
OVERHEAD = HEADER_SIZE + CHECKSUM_SIZE
MAX_PAYLOAD = 0xFFFF


class Opcode(IntEnum):
    # requests
    OPEN_SESSION = 0x01
    CLOSE_SESSION = 0x02
    LIST_RECORDS = 0x03
    GET_RECORD_CHUNK = 0x04
    GET_LIVE_SAMPLE = 0x05
    # responses
    ACK = 0x80
    NAK = 0x81
    DATA = 0x82

    @property
    def is_response(self) -> bool:
        return self >= 0x80


@dataclass(frozen=True)
class Frame:
    opcode: Opcode
    payload: bytes = b""

    def __repr__(self):
        return f"Frame({self.opcode.name}, {len(self.payload)} bytes)"


def checksum(opcode: int, payload: bytes) -> int:
    length = len(payload)
    return (opcode + (length & 0xFF) + (length >> 8) + sum(payload)) & 0xFF


def encode(opcode: int, payload: bytes = b"") -> bytes:
    """Build the wire bytes for one frame."""
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(f"Payload too long for one frame ({len(payload)} bytes)")
    if not 0 <= int(opcode) <= 0xFF:
        raise ValueError(f"Opcode out of range: {opcode}")
    return (
        HEADER.pack(SYNC, int(opcode), len(payload))
        + payload
        + bytes([checksum(int(opcode), payload)])
    )


def frame_length(header: bytes) -> int:
    """Total frame size announced by a (at least) 4-byte header."""
    _, _, length = HEADER.unpack_from(header)
    return length + OVERHEAD


def decode(data: bytes) -> Frame:
    """Validate and decode exactly one frame.

    The checksum is verified before the opcode is looked at, so a corrupted
    frame is never partially interpreted.
    """
    data = bytes(data)
    if len(data) < OVERHEAD:
        raise MalformedFrame(f"Frame too short ({len(data)} bytes)")
    sync, opcode, length = HEADER.unpack_from(data)
    if sync != SYNC:
        raise MalformedFrame(f"Bad sync byte 0x{sync:02X}")
    if length + OVERHEAD > len(data):
        raise MalformedFrame(
            f"Declared length {length} exceeds buffer ({len(data) - OVERHEAD} bytes)"
        )
    if length + OVERHEAD < len(data):
        raise MalformedFrame(
            f"{len(data) - length - OVERHEAD} trailing bytes after frame"
        )
    payload = data[HEADER_SIZE : HEADER_SIZE + length]
    expected = checksum(opcode, payload)
    if data[-1] != expected:
        raise ChecksumMismatch(expected, data[-1])
    try:
        op = Opcode(opcode)
    except ValueError:
        raise UnknownOpcode(opcode) from None
    return Frame(op, payload)


# =============================================================================
# Payload layouts
# =============================================================================

_CAPS = struct.Struct("<BH")  # protocol version, max chunk size
_DESCRIPTOR = struct.Struct("<HIBI")  # index, created, kind, size
_CHUNK_REQUEST = struct.Struct("<HI")  # index, offset
_CHUNK_HEADER = struct.Struct("<HIIBB")  # index, offset, total, kind, flags
_LIVE_SAMPLE = struct.Struct("<fBI")  # value, unit, offset ms

DESCRIPTOR_SIZE = _DESCRIPTOR.size
CHUNK_HEADER_SIZE = _CHUNK_HEADER.size
FLAG_MORE = 0x01


def pack_capabilities(caps: SessionCapabilities) -> bytes:
    return _CAPS.pack(caps.protocol_version, caps.max_chunk) + caps.firmware.encode(
        "ascii", "replace"
    )


def unpack_capabilities(payload: bytes) -> SessionCapabilities:
    """Parse an OpenSession ack. An empty ack means defaults."""
    if not payload:
        return SessionCapabilities()
    if len(payload) < _CAPS.size:
        raise ProtocolViolation(f"Short capability block ({len(payload)} bytes)")
    version, max_chunk = _CAPS.unpack_from(payload)
    firmware = payload[_CAPS.size :].decode("ascii", "replace").rstrip("\x00")
    return SessionCapabilities(
        protocol_version=version, max_chunk=max_chunk, firmware=firmware
    )


def pack_descriptors(descriptors: Sequence[RecordDescriptor]) -> bytes:
    return b"".join(
        _DESCRIPTOR.pack(
            d.index, int(d.created.timestamp()), int(d.kind), d.size
        )
        for d in descriptors
    )


def unpack_descriptors(payload: bytes) -> list[RecordDescriptor]:
    if len(payload) % DESCRIPTOR_SIZE:
        raise ProtocolViolation(
            f"Listing payload of {len(payload)} bytes is not a whole number "
            + f"of {DESCRIPTOR_SIZE}-byte descriptors"
        )
    return [
        RecordDescriptor(index, from_unix(created), kind, size)
        for index, created, kind, size in _DESCRIPTOR.iter_unpack(payload)
    ]


def pack_chunk_request(index: int, offset: int) -> bytes:
    return _CHUNK_REQUEST.pack(index, offset)


def unpack_chunk_request(payload: bytes) -> tuple[int, int]:
    if len(payload) != _CHUNK_REQUEST.size:
        raise ProtocolViolation(f"Bad chunk request ({len(payload)} bytes)")
    return _CHUNK_REQUEST.unpack(payload)


class ChunkHeader(NamedTuple):
    index: int
    offset: int
    total: int
    kind: int
    more: bool


def pack_chunk(header: ChunkHeader, data: bytes) -> bytes:
    flags = FLAG_MORE if header.more else 0
    return (
        _CHUNK_HEADER.pack(
            header.index, header.offset, header.total, int(header.kind), flags
        )
        + data
    )


def unpack_chunk(payload: bytes) -> tuple[ChunkHeader, bytes]:
    if len(payload) < CHUNK_HEADER_SIZE:
        raise ProtocolViolation(f"Short chunk payload ({len(payload)} bytes)")
    index, offset, total, kind, flags = _CHUNK_HEADER.unpack_from(payload)
    header = ChunkHeader(index, offset, total, kind, bool(flags & FLAG_MORE))
    return header, payload[CHUNK_HEADER_SIZE:]


def pack_live_sample(sample: MeasurementSample) -> bytes:
    return _LIVE_SAMPLE.pack(sample.value, sample.unit, sample.offset_ms)


def unpack_live_sample(payload: bytes) -> MeasurementSample:
    if len(payload) != _LIVE_SAMPLE.size:
        raise ProtocolViolation(f"Bad live sample payload ({len(payload)} bytes)")
    value, unit, offset_ms = _LIVE_SAMPLE.unpack(payload)
    return MeasurementSample(value=value, unit=unit, offset_ms=offset_ms)
