"""Simulated meter.

`MockUT181A` plays the instrument side of the protocol. Its `connect` method
hands out `MockTransport`s, so it plugs into `SessionManager` in place of the
serial port:

```python
meter = MockUT181A()
meter.add_record(1, samples)
manager = SessionManager(enumerator=meter.candidates, transport_factory=meter.connect)
```

Faults can be scripted: corrupt chunk checksums, Nak answers, silence, a
custom listing, a lost link.
"""

from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from loguru import logger

from ut181a.protocol.frame import (
    ChunkHeader,
    Opcode,
    decode,
    encode,
    pack_capabilities,
    pack_chunk,
    pack_descriptors,
    pack_live_sample,
    unpack_chunk_request,
)
from ut181a.protocol.samples import encode_body
from ut181a.types import (
    DeviceCandidate,
    LinkLost,
    MeasurementSample,
    RecordDescriptor,
    RecordKind,
    SessionCapabilities,
    TransportTimeout,
)
from ut181a.types.records import from_unix


@dataclass
class MockRecord:
    descriptor: RecordDescriptor
    body: bytes


class MockUT181A:
    def __init__(
        self,
        serial: str = "MOCK0001",
        port: str = "mock://ut181a",
        chunk_size: int = 128,
        capabilities: Optional[SessionCapabilities] = None,
    ):
        self.serial = serial
        self.port = port
        self.chunk_size = chunk_size
        self.capabilities = capabilities or SessionCapabilities(
            protocol_version=1, max_chunk=chunk_size, firmware="MOCK-1.0"
        )

        self.records: dict[int, MockRecord] = {}
        self.listing_override: Optional[list[RecordDescriptor]] = None
        self.listing_batch = 4  # descriptors per Data frame
        self.chunk_plan: dict[int, list[int]] = {}  # record index -> chunk sizes
        self.corrupt_chunks: dict[tuple[int, int], int] = {}  # (index, offset) -> n
        self.chunk_index_override: Optional[int] = None
        self.live_samples: deque[Optional[MeasurementSample]] = deque()
        self.live_source: Optional[Callable[[], Optional[MeasurementSample]]] = None
        self.handshake_reply: Optional[Opcode] = Opcode.ACK  # None: stay silent
        self.nak_opcodes: set[Opcode] = set()
        self.idle_delay = 0.0  # seconds a receive waits before timing out
        self.link_lost = False

        self.requests: list[Opcode] = []
        self.session_open = False
        self.transports: list[MockTransport] = []

    # ------------------------------------------------------------------
    # setup
    # ------------------------------------------------------------------

    def add_record(
        self,
        index: int,
        samples: Sequence[MeasurementSample],
        kind: RecordKind = RecordKind.FLOAT,
        created: Optional[datetime] = None,
        interval_ms: int = 1000,
        decimals: int = 4,
    ) -> RecordDescriptor:
        created = created or from_unix(1_700_000_000 + index * 3600)
        body = encode_body(
            kind,
            samples,
            start_time=int(created.timestamp()),
            interval_ms=interval_ms,
            decimals=decimals,
        )
        return self.add_raw_record(index, body, kind, created)

    def add_raw_record(
        self,
        index: int,
        body: bytes,
        kind: int = RecordKind.FLOAT,
        created: Optional[datetime] = None,
    ) -> RecordDescriptor:
        created = created or from_unix(1_700_000_000 + index * 3600)
        descriptor = RecordDescriptor(index, created, kind, len(body))
        self.records[index] = MockRecord(descriptor, bytes(body))
        return descriptor

    def candidates(self) -> list[DeviceCandidate]:
        return [DeviceCandidate(self.port, self.serial, "Simulated UT181A")]

    def connect(self, port: str) -> MockTransport:
        if port != self.port:
            raise LinkLost(f"No simulated meter on {port}")
        transport = MockTransport(self)
        self.transports.append(transport)
        return transport

    # ------------------------------------------------------------------
    # instrument side
    # ------------------------------------------------------------------

    def handle(self, data: bytes) -> list[bytes]:
        """Answer one request frame with zero or more response frames."""
        frame = decode(data)
        self.requests.append(frame.opcode)
        if frame.opcode in self.nak_opcodes:
            return [encode(Opcode.NAK, b"\x01")]

        if frame.opcode == Opcode.OPEN_SESSION:
            if self.handshake_reply is None:
                return []
            self.session_open = self.handshake_reply == Opcode.ACK
            payload = (
                pack_capabilities(self.capabilities)
                if self.handshake_reply == Opcode.ACK
                else b""
            )
            return [encode(self.handshake_reply, payload)]
        if frame.opcode == Opcode.CLOSE_SESSION:
            self.session_open = False
            return [encode(Opcode.ACK)]
        if frame.opcode == Opcode.LIST_RECORDS:
            return self._listing()
        if frame.opcode == Opcode.GET_RECORD_CHUNK:
            return self._chunk(*unpack_chunk_request(frame.payload))
        if frame.opcode == Opcode.GET_LIVE_SAMPLE:
            sample = self._next_live_sample()
            return [] if sample is None else [encode(Opcode.DATA, pack_live_sample(sample))]
        return [encode(Opcode.NAK, b"\x02")]

    def _listing(self) -> list[bytes]:
        if self.listing_override is not None:
            descriptors = self.listing_override
        else:
            descriptors = [r.descriptor for r in self.records.values()]
        frames = [
            encode(Opcode.DATA, pack_descriptors(descriptors[i : i + self.listing_batch]))
            for i in range(0, len(descriptors), self.listing_batch)
        ]
        frames.append(encode(Opcode.ACK))
        return frames

    def _chunk_size_at(self, index: int, offset: int) -> int:
        plan = self.chunk_plan.get(index)
        if not plan:
            return self.chunk_size
        start = 0
        for size in plan:
            if start == offset:
                return size
            start += size
        return self.chunk_size

    def _chunk(self, index: int, offset: int) -> list[bytes]:
        record = self.records.get(index)
        if record is None:
            return [encode(Opcode.NAK, b"\x03")]
        body = record.body
        data = body[offset : offset + self._chunk_size_at(index, offset)]
        header = ChunkHeader(
            index=self.chunk_index_override
            if self.chunk_index_override is not None
            else index,
            offset=offset,
            total=len(body),
            kind=int(record.descriptor.kind),
            more=offset + len(data) < len(body),
        )
        frame = bytearray(encode(Opcode.DATA, pack_chunk(header, data)))
        if self.corrupt_chunks.get((index, offset), 0) > 0:
            self.corrupt_chunks[(index, offset)] -= 1
            frame[-1] ^= 0xFF
            logger.trace("Mock meter corrupting chunk {}@{}", index, offset)
        return [bytes(frame)]

    def _next_live_sample(self) -> Optional[MeasurementSample]:
        if self.live_samples:
            return self.live_samples.popleft()
        if self.live_source is not None:
            return self.live_source()
        return None


class MockTransport:
    """Transport connected to a `MockUT181A`."""

    def __init__(self, meter: MockUT181A):
        self.meter = meter
        self._outbound = bytearray()
        self._open = True
        self.sent: list[bytes] = []

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, data: bytes) -> None:
        if not self._open or self.meter.link_lost:
            raise LinkLost("Simulated link lost")
        self.sent.append(bytes(data))
        for response in self.meter.handle(data):
            self._outbound += response

    def receive(self, max_bytes: int, timeout: float) -> bytes:
        if not self._open or self.meter.link_lost:
            raise LinkLost("Simulated link lost")
        if not self._outbound:
            if self.meter.idle_delay:
                time.sleep(min(timeout, self.meter.idle_delay))
            raise TransportTimeout("Simulated meter sent nothing")
        data = bytes(self._outbound[:max_bytes])
        del self._outbound[:max_bytes]
        return data

    def flush_input(self) -> None:
        self._outbound.clear()

    def close(self) -> None:
        self._open = False
        self._outbound.clear()


def demo_meter() -> MockUT181A:
    """A simulated meter with a few records and a live sine wave."""
    meter = MockUT181A()
    meter.idle_delay = 0.05
    meter.add_record(
        1,
        [MeasurementSample(5.0 + 0.01 * i, 0x01, i * 1000) for i in range(60)],
    )
    meter.add_record(
        2,
        [
            MeasurementSample(round(22.5 + math.sin(i / 10), 2), 0x14, i * 500)
            for i in range(200)
        ],
        kind=RecordKind.FIXED,
        interval_ms=500,
        decimals=2,
    )
    meter.add_record(
        3,
        [MeasurementSample(0.1 * (i % 7), 0x07, i * 100) for i in range(25)],
        created=datetime(2017, 12, 16, 9, 30, tzinfo=timezone.utc),
        interval_ms=100,
    )

    start = time.monotonic()

    def sine() -> MeasurementSample:
        time.sleep(0.1)
        t = time.monotonic() - start
        return MeasurementSample(
            value=round(math.sin(t), 4), unit=0x02, offset_ms=int(t * 1000)
        )

    meter.live_source = sine
    return meter
