"""Download and decode of a stored record.

A record body is transferred in chunks. Each GetRecordChunk(index, offset)
request is answered by one Data frame holding a chunk header (index, offset,
total size, record kind, continuation flag) and the chunk bytes. Chunks are
requested one at a time at increasing offsets until the continuation flag is
clear or the declared size has been received.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from ut181a.protocol.cancel import CancellationToken
from ut181a.protocol.frame import (
    ChunkHeader,
    Opcode,
    pack_chunk_request,
    unpack_chunk,
)
from ut181a.protocol.samples import decode_body, sample_width
from ut181a.types import (
    Cancelled,
    ChecksumMismatch,
    CorruptRecord,
    ProtocolViolation,
    RecordData,
    RecordDescriptor,
)
from ut181a.types.records import from_unix
from ut181a.util.defaults import DEFAULT_CHUNK_RETRIES

from .session import DeviceSession


class RecordDownloader:
    """Fetches records by index.

    Parameters
    ----------
    chunk_retries : int
        How many times a chunk that failed its checksum is requested again
        before the download fails with CorruptRecord.
    timeout : float, optional
        Per-chunk response timeout. Defaults to the link's timeout.
    """

    def __init__(
        self, chunk_retries: int = DEFAULT_CHUNK_RETRIES, timeout: Optional[float] = None
    ):
        if chunk_retries < 0:
            raise ValueError(f"chunk_retries cannot be negative (got {chunk_retries})")
        self.chunk_retries = chunk_retries
        self.timeout = timeout

    def fetch(
        self,
        session: DeviceSession,
        index: int,
        cancel: Optional[CancellationToken] = None,
    ) -> RecordData:
        """Download, reassemble and decode record `index`.

        The declared size and kind come from the session's catalog when the
        record has been listed, otherwise from the first chunk header. A kind
        that cannot be decoded raises UnsupportedRecordKind before the body is
        transferred (listed records) or after the first chunk. Partial data is
        never returned: cancellation raises Cancelled and drops what was
        received.
        """
        listed = session.catalog.get(index)
        declared = listed.size if listed is not None else None
        kind = listed.kind if listed is not None else None
        if kind is not None:
            sample_width(kind)  # listed with a kind that cannot be decoded

        body = bytearray()
        while True:
            self._check_cancel(session, index, cancel)
            header, data = self._fetch_chunk(session, index, len(body), cancel)

            if declared is None:
                declared = header.total
            elif header.total != declared:
                logger.warning(
                    "Record {}: chunk announces {} bytes, listing said {}",
                    index,
                    header.total,
                    declared,
                )
            if kind is None:
                kind = header.kind
                sample_width(kind)  # unsupported kinds fail before the full transfer

            body += data
            if len(body) > declared:
                raise ProtocolViolation(
                    f"Record {index} overran its declared size "
                    + f"({len(body)} > {declared} bytes)"
                )
            if not header.more or len(body) == declared:
                break
            if not data:
                raise ProtocolViolation(
                    f"Record {index}: empty chunk at offset {header.offset} "
                    + "with continuation set"
                )
            logger.debug("Record {}: {}/{} bytes", index, len(body), declared)

        if len(body) != declared:
            raise ProtocolViolation(
                f"Record {index} ended after {len(body)} of {declared} bytes"
            )

        body_header, samples = decode_body(kind, bytes(body))
        descriptor = listed or RecordDescriptor(
            index=index,
            created=from_unix(body_header.start_time),
            kind=kind,
            size=declared,
        )
        logger.info("Record {}: {} sample(s), {} bytes", index, len(samples), declared)
        return RecordData(
            descriptor=descriptor,
            start_time=from_unix(body_header.start_time),
            interval_ms=body_header.interval_ms,
            samples=samples,
        )

    def _fetch_chunk(
        self,
        session: DeviceSession,
        index: int,
        offset: int,
        cancel: Optional[CancellationToken],
    ) -> tuple[ChunkHeader, bytes]:
        attempts = self.chunk_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                frame = session.link.request(
                    Opcode.GET_RECORD_CHUNK,
                    pack_chunk_request(index, offset),
                    timeout=self.timeout,
                )
            except ChecksumMismatch as e:
                logger.warning(
                    "Record {} chunk at offset {}: {} (attempt {}/{})",
                    index,
                    offset,
                    e,
                    attempt,
                    attempts,
                )
                if attempt == attempts:
                    raise CorruptRecord(
                        f"Record {index} chunk at offset {offset} failed its "
                        + f"checksum {attempts} times"
                    ) from e
                self._check_cancel(session, index, cancel)
                continue

            if frame.opcode != Opcode.DATA:
                raise ProtocolViolation(
                    f"Meter answered chunk request for record {index} "
                    + f"with {frame.opcode.name}"
                )
            header, data = unpack_chunk(frame.payload)
            if header.index != index:
                raise ProtocolViolation(
                    f"Asked for record {index}, got a chunk of record {header.index}"
                )
            if header.offset != offset:
                raise ProtocolViolation(
                    f"Asked for offset {offset} of record {index}, got {header.offset}"
                )
            return header, data

    @staticmethod
    def _check_cancel(
        session: DeviceSession, index: int, cancel: Optional[CancellationToken]
    ) -> None:
        if cancel:
            session.link.flush()
            raise Cancelled(f"Download of record {index} cancelled")
