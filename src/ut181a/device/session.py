"""Session management: find the meter, open it, handshake, close.

Device selection is a pure filter over the enumerated candidates
(`select_candidate`), so discovery details stay in the transport module and
the matching rules can be tested without hardware.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from loguru import logger

from ut181a.protocol.frame import Opcode, unpack_capabilities
from ut181a.protocol.link import FrameLink
from ut181a.types import (
    AmbiguousDevice,
    DeviceCandidate,
    DeviceNotFound,
    HandshakeFailed,
    LinkLost,
    RecordDescriptor,
    SessionCapabilities,
    UT181AError,
)
from ut181a.util.defaults import CLOSE_TIMEOUT, DEFAULT_TIMEOUT, HANDSHAKE_TIMEOUT

from .transport import SerialTransport, Transport, enumerate_candidates


def select_candidate(
    candidates: Sequence[DeviceCandidate], serial_filter: Optional[str] = None
) -> DeviceCandidate:
    """Pick the device to open.

    With a filter, the candidate whose serial string matches exactly. Without,
    the only candidate; several candidates are ambiguous.
    """
    if serial_filter is not None:
        matches = [c for c in candidates if c.serial == serial_filter]
        if not matches:
            raise DeviceNotFound(
                f"No meter with serial '{serial_filter}' "
                + f"({len(candidates)} candidate(s) attached)"
            )
        if len(matches) > 1:
            raise AmbiguousDevice(
                f"{len(matches)} meters report serial '{serial_filter}': "
                + ", ".join(c.port for c in matches)
            )
        return matches[0]
    if not candidates:
        raise DeviceNotFound("No meter attached")
    if len(candidates) > 1:
        raise AmbiguousDevice(
            f"{len(candidates)} meters attached, specify one by serial: "
            + ", ".join(c.serial or c.port for c in candidates)
        )
    return candidates[0]


@dataclass
class DeviceSession:
    """An open, handshaken link to one meter.

    `catalog` holds the descriptors from the most recent listing, keyed by
    record index; the downloader uses it to know a record's declared size.
    """

    link: FrameLink
    candidate: DeviceCandidate
    capabilities: SessionCapabilities = field(default_factory=SessionCapabilities)
    catalog: dict[int, RecordDescriptor] = field(default_factory=dict)
    closed: bool = False

    @property
    def transport(self) -> Transport:
        return self.link.transport

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"DeviceSession({self.candidate.serial or self.candidate.port}, {state})"


class SessionManager:
    """Opens and closes the single meter session.

    Parameters
    ----------
    enumerator : callable, optional
        Returns the attached `DeviceCandidate`s. Defaults to USB enumeration.
    transport_factory : callable, optional
        Builds a `Transport` from a candidate's port. Defaults to
        `SerialTransport`.
    """

    def __init__(
        self,
        enumerator: Callable[[], Sequence[DeviceCandidate]] = enumerate_candidates,
        transport_factory: Callable[[str], Transport] = SerialTransport,
        timeout: float = DEFAULT_TIMEOUT,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        close_timeout: float = CLOSE_TIMEOUT,
    ):
        self.enumerator = enumerator
        self.transport_factory = transport_factory
        self.timeout = timeout
        self.handshake_timeout = handshake_timeout
        self.close_timeout = close_timeout
        self._session: Optional[DeviceSession] = None

    @property
    def session(self) -> Optional[DeviceSession]:
        return self._session

    def open(self, serial_filter: Optional[str] = None) -> DeviceSession:
        if self._session is not None:
            logger.info("Closing previous session before opening a new one")
            self.close()

        candidate = select_candidate(self.enumerator(), serial_filter)
        logger.info(
            "Opening meter {} on {}", candidate.serial or "<no serial>", candidate.port
        )
        try:
            transport = self.transport_factory(candidate.port)
        except LinkLost as e:
            raise HandshakeFailed(f"Could not open {candidate.port}: {e}") from e

        link = FrameLink(transport, timeout=self.timeout)
        try:
            capabilities = self._handshake(link)
        except BaseException:
            link.close()
            raise

        self._session = DeviceSession(link, candidate, capabilities)
        logger.info(
            "Session open (protocol v{}, firmware '{}')",
            capabilities.protocol_version,
            capabilities.firmware,
        )
        return self._session

    def _handshake(self, link: FrameLink) -> SessionCapabilities:
        try:
            frame = link.request(Opcode.OPEN_SESSION, timeout=self.handshake_timeout)
        except UT181AError as e:
            raise HandshakeFailed(f"No valid answer to OpenSession: {e}") from e
        if frame.opcode != Opcode.ACK:
            raise HandshakeFailed(f"Meter answered OpenSession with {frame.opcode.name}")
        try:
            return unpack_capabilities(frame.payload)
        except UT181AError as e:
            raise HandshakeFailed(f"Bad OpenSession ack: {e}") from e

    def close(self, session: Optional[DeviceSession] = None) -> None:
        """Send CloseSession (best effort) and release the transport.

        Safe to call repeatedly and after any failure.
        """
        session = session if session is not None else self._session
        if session is None:
            return
        if session is self._session:
            self._session = None
        if session.closed:
            return
        session.closed = True
        try:
            frame = session.link.request(
                Opcode.CLOSE_SESSION, timeout=self.close_timeout
            )
            if frame.opcode != Opcode.ACK:
                logger.warning("Meter answered CloseSession with {}", frame.opcode.name)
        except UT181AError as e:
            logger.warning("CloseSession not acknowledged: {}", e)
        finally:
            session.link.close()
        logger.info("Session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
