"""Listing of the records stored on the meter."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from ut181a.protocol.cancel import CancellationToken
from ut181a.protocol.frame import Opcode, unpack_descriptors
from ut181a.types import (
    Cancelled,
    CatalogError,
    FrameError,
    ProtocolViolation,
    RecordDescriptor,
)

from .session import DeviceSession


class RecordCatalog:
    """Reads the record listing.

    The meter answers ListRecords with any number of Data frames, each
    carrying whole descriptors, and ends the listing with an empty Ack.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def list(
        self, session: DeviceSession, cancel: Optional[CancellationToken] = None
    ) -> list[RecordDescriptor]:
        """Return the descriptors in the order the meter sent them.

        Raises Cancelled (with the descriptors gathered so far) if the token is
        set between frames, ProtocolViolation on duplicate indices or
        unexpected frames. Transport and frame errors propagate unchanged.
        """
        descriptors: list[RecordDescriptor] = []
        seen: set[int] = set()

        if cancel:
            raise Cancelled("Listing cancelled before it started")

        link = session.link
        link.begin(Opcode.LIST_RECORDS)
        try:
            while True:
                frame = link.read_frame(self.timeout)
                if frame.opcode == Opcode.ACK:
                    break
                if frame.opcode != Opcode.DATA:
                    raise ProtocolViolation(
                        f"Unexpected {frame.opcode.name} frame in record listing"
                    )
                for descriptor in unpack_descriptors(frame.payload):
                    if descriptor.index in seen:
                        raise ProtocolViolation(
                            f"Record index {descriptor.index} listed twice"
                        )
                    seen.add(descriptor.index)
                    descriptors.append(descriptor)
                logger.debug("Listing: {} descriptor(s) so far", len(descriptors))
                if cancel:
                    raise Cancelled(
                        f"Listing cancelled after {len(descriptors)} record(s)",
                        partial=descriptors,
                    )
        except (CatalogError, FrameError):
            # the rest of the listing may still be arriving
            link.flush()
            raise

        session.catalog = {d.index: d for d in descriptors}
        logger.info("Meter holds {} record(s)", len(descriptors))
        return descriptors
