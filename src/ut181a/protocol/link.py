"""Request/response link on top of a byte transport.

`FrameLink` turns the transport's byte stream into whole frames: it hunts for
the sync byte, waits until the length announced by the header has arrived and
hands exactly one frame to `decode`. Requests are strictly paired with their
responses; a new request is never sent while a response is outstanding.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Optional

from loguru import logger

from ut181a.types import TransportTimeout
from ut181a.util.defaults import DEFAULT_TIMEOUT, READ_SIZE

from .frame import HEADER_SIZE, SYNC, Frame, Opcode, decode, encode, frame_length

if TYPE_CHECKING:
    from ut181a.device.transport import Transport


class FrameLink:
    """Frame-level access to a transport.

    Parameters
    ----------
    transport : Transport
        The open byte transport. The link takes ownership: closing the link
        closes the transport.
    timeout : float
        Default time to wait for one response frame (seconds).
    """

    def __init__(
        self,
        transport: Transport,
        timeout: float = DEFAULT_TIMEOUT,
        read_size: int = READ_SIZE,
    ):
        self.transport = transport
        self.timeout = timeout
        self.read_size = read_size
        self._buffer = bytearray()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, opcode: Opcode, payload: bytes = b"") -> None:
        data = encode(opcode, payload)
        logger.trace("TX {} {}", opcode.name, data.hex(" "))
        self.transport.send(data)

    def read_frame(self, timeout: Optional[float] = None) -> Frame:
        """Read and decode the next frame.

        Raises TransportTimeout if no complete frame arrives in time, and the
        FrameError subclasses from `decode`. A frame that fails to decode is
        consumed, so the stream stays aligned for the next read.
        """
        timeout = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        while True:
            raw = self._extract()
            if raw is not None:
                logger.trace("RX {}", raw.hex(" "))
                return decode(raw)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TransportTimeout(f"No complete frame within {timeout:.2f} s")
            self._buffer += self.transport.receive(self.read_size, remaining)

    def request(
        self, opcode: Opcode, payload: bytes = b"", timeout: Optional[float] = None
    ) -> Frame:
        """Send one request and return its response frame."""
        self.begin(opcode, payload)
        return self.read_frame(timeout)

    def begin(self, opcode: Opcode, payload: bytes = b"") -> None:
        """Send a request whose response frames the caller reads.

        Unread input is dropped first, so a response that arrived after its
        request timed out is never taken as the answer to this one.
        """
        self.flush()
        self.send(opcode, payload)

    def flush(self) -> None:
        """Drop everything received but not yet read, here and in the transport."""
        if self._buffer:
            logger.debug("Discarding {} unread bytes", len(self._buffer))
            self._buffer.clear()
        self.transport.flush_input()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        self.transport.close()

    def _extract(self) -> Optional[bytes]:
        start = self._buffer.find(SYNC)
        if start < 0:
            if self._buffer:
                logger.debug("Discarding {} bytes without sync", len(self._buffer))
                self._buffer.clear()
            return None
        if start > 0:
            logger.debug("Discarding {} bytes before sync", start)
            del self._buffer[:start]
        if len(self._buffer) < HEADER_SIZE:
            return None
        n = frame_length(self._buffer)
        if len(self._buffer) < n:
            return None
        raw = bytes(self._buffer[:n])
        del self._buffer[:n]
        return raw
