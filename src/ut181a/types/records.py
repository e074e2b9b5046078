"""Record, sample and device data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Optional

import numpy as np
from mashumaro import DataClassDictMixin


class RecordKind(IntEnum):
    """Stored record formats, selecting the sample width in the record body."""

    FLOAT = 0x01  # f32 value
    FIXED = 0x02  # i32 raw value + decimal places


def kind_name(kind: int) -> str:
    """Name of a record kind code; unknown codes are shown in hex."""
    try:
        return RecordKind(kind).name
    except ValueError:
        return f"0x{kind:02X}"


# Unit/range codes as reported by the meter. Labels only, values are not
# rescaled.
UNIT_NAMES = {
    0x00: "",
    0x01: "VDC",
    0x02: "VAC",
    0x03: "mVDC",
    0x04: "mVAC",
    0x05: "ADC",
    0x06: "AAC",
    0x07: "mADC",
    0x08: "mAAC",
    0x09: "uADC",
    0x0A: "uAAC",
    0x0B: "Ohm",
    0x0C: "kOhm",
    0x0D: "MOhm",
    0x0E: "nF",
    0x0F: "uF",
    0x10: "mF",
    0x11: "Hz",
    0x12: "kHz",
    0x13: "%",
    0x14: "degC",
    0x15: "degF",
    0x16: "nS",
}


def unit_name(code: int) -> str:
    return UNIT_NAMES.get(code, f"unit_0x{code:02X}")


def from_unix(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


@dataclass(frozen=True)
class DeviceCandidate(DataClassDictMixin):
    """One enumerated meter: the port to open and its reported serial string."""

    port: str
    serial: str
    description: str = ""


@dataclass
class SessionCapabilities(DataClassDictMixin):
    """Values negotiated in the OpenSession ack."""

    protocol_version: int = 1
    max_chunk: int = 0  # 0 = meter did not say
    firmware: str = ""


@dataclass(frozen=True)
class RecordDescriptor(DataClassDictMixin):
    """A stored record as listed by the meter. Immutable once listed.

    `kind` is the raw code from the listing. Codes outside `RecordKind` are
    kept; such records can be listed but not downloaded.
    """

    index: int
    created: datetime
    kind: int
    size: int  # total record body bytes

    def __post_init__(self):
        object.__setattr__(self, "kind", int(self.kind))
        if self.index < 0:
            raise ValueError(f"Record index cannot be negative (got {self.index})")
        if self.size < 0:
            raise ValueError(f"Record size cannot be negative (got {self.size})")

    @property
    def kind_name(self) -> str:
        return kind_name(self.kind)


@dataclass(frozen=True)
class MeasurementSample(DataClassDictMixin):
    """One decoded measurement: value, unit/range code and relative time."""

    value: float
    unit: int
    offset_ms: int

    @property
    def unit_name(self) -> str:
        return unit_name(self.unit)


@dataclass
class RecordData(DataClassDictMixin):
    """A fully reassembled and decoded record.

    Only constructed once every chunk of the record has been received and
    checksum-verified.
    """

    descriptor: RecordDescriptor
    start_time: datetime
    interval_ms: int
    samples: list[MeasurementSample] = field(default_factory=list)

    @property
    def index(self) -> int:
        return self.descriptor.index

    def __len__(self) -> int:
        return len(self.samples)

    def sample_time(self, sample: MeasurementSample) -> datetime:
        return self.start_time + timedelta(milliseconds=sample.offset_ms)

    def as_arrays(self) -> tuple[np.ndarray, np.ndarray]:
        """Return (offset seconds, values) as float64 arrays."""
        t = np.fromiter(
            (s.offset_ms for s in self.samples), dtype=np.float64, count=len(self)
        )
        v = np.fromiter((s.value for s in self.samples), dtype=np.float64, count=len(self))
        return t / 1000.0, v

    def summary(self) -> Optional[dict[str, float]]:
        """Min/max/mean of the sample values, None for an empty record."""
        if not self.samples:
            return None
        _, v = self.as_arrays()
        return {"min": float(v.min()), "max": float(v.max()), "mean": float(v.mean())}
