"""Record body layout and sample decoding.

A reassembled record body is a 12-byte header followed by a packed array of
samples whose layout depends on the record kind:

- header `<III`: start unix time, sample count, sample interval (ms)
- `RecordKind.FLOAT` samples `<fBI`: value (f32), unit code, offset (ms)
- `RecordKind.FIXED` samples `<iBBI`: raw value (i32), decimal places, unit
  code, offset (ms); value = raw / 10**decimals

Samples are decoded in one go with numpy structured dtypes.
"""

from __future__ import annotations

import struct
from typing import NamedTuple, Sequence

import numpy as np

from ut181a.types import CorruptRecord, RecordKind, UnsupportedRecordKind
from ut181a.types.records import MeasurementSample

BODY_HEADER = struct.Struct("<III")
BODY_HEADER_SIZE = BODY_HEADER.size

SAMPLE_DTYPES = {
    RecordKind.FLOAT: np.dtype(
        [("value", "<f4"), ("unit", "u1"), ("offset_ms", "<u4")]
    ),
    RecordKind.FIXED: np.dtype(
        [("raw", "<i4"), ("decimals", "u1"), ("unit", "u1"), ("offset_ms", "<u4")]
    ),
}


class BodyHeader(NamedTuple):
    start_time: int
    count: int
    interval_ms: int


def sample_dtype(kind: int) -> np.dtype:
    try:
        return SAMPLE_DTYPES[RecordKind(kind)]
    except (ValueError, KeyError):
        raise UnsupportedRecordKind(kind) from None


def sample_width(kind: int) -> int:
    return sample_dtype(kind).itemsize


def decode_body(kind: int, body: bytes) -> tuple[BodyHeader, list[MeasurementSample]]:
    """Split a record body into its header and decoded samples.

    Raises UnsupportedRecordKind for an unknown kind, CorruptRecord when the
    body length disagrees with the sample count in its header.
    """
    dtype = sample_dtype(kind)
    if len(body) < BODY_HEADER_SIZE:
        raise CorruptRecord(f"Record body too short ({len(body)} bytes)")
    header = BodyHeader(*BODY_HEADER.unpack_from(body))
    expected = BODY_HEADER_SIZE + header.count * dtype.itemsize
    if len(body) != expected:
        raise CorruptRecord(
            f"Record body is {len(body)} bytes, header announces "
            + f"{header.count} samples ({expected} bytes)"
        )
    arr = np.frombuffer(body, dtype=dtype, count=header.count, offset=BODY_HEADER_SIZE)
    return header, _to_samples(RecordKind(kind), arr)


def _to_samples(kind: RecordKind, arr: np.ndarray) -> list[MeasurementSample]:
    if kind == RecordKind.FIXED:
        values = arr["raw"].astype(np.float64) / np.power(
            10.0, arr["decimals"].astype(np.float64)
        )
    else:
        values = arr["value"].astype(np.float64)
    return [
        MeasurementSample(value=float(v), unit=int(u), offset_ms=int(t))
        for v, u, t in zip(values, arr["unit"], arr["offset_ms"])
    ]


def encode_body(
    kind: int,
    samples: Sequence[MeasurementSample],
    start_time: int = 0,
    interval_ms: int = 1000,
    decimals: int = 4,
) -> bytes:
    """Pack samples into a record body (used by the simulated meter).

    FIXED records store `round(value * 10**decimals)`.
    """
    dtype = sample_dtype(kind)
    arr = np.zeros(len(samples), dtype=dtype)
    if RecordKind(kind) == RecordKind.FIXED:
        arr["raw"] = [round(s.value * 10**decimals) for s in samples]
        arr["decimals"] = decimals
    else:
        arr["value"] = [s.value for s in samples]
    arr["unit"] = [s.unit for s in samples]
    arr["offset_ms"] = [s.offset_ms for s in samples]
    return BODY_HEADER.pack(start_time, len(samples), interval_ms) + arr.tobytes()
