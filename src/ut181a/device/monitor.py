"""Live measurement streaming."""

from __future__ import annotations

from enum import Enum, auto
from typing import Callable, Optional

from loguru import logger

from ut181a.protocol.cancel import CancellationToken
from ut181a.protocol.frame import Opcode, unpack_live_sample
from ut181a.types import MeasurementSample, ProtocolViolation, TransportTimeout
from ut181a.util.defaults import POLL_TIMEOUT

from .session import DeviceSession

SampleSink = Callable[[MeasurementSample], None]


class MonitorState(Enum):
    IDLE = auto()
    STREAMING = auto()
    STOPPED = auto()


class LiveMonitor:
    """Polls the meter for live samples until cancelled or failed.

    A poll that times out is an idle tick (the meter may have nothing to
    report), not an error. Any other transport or frame error stops the
    monitor and propagates.
    """

    def __init__(self, poll_timeout: float = POLL_TIMEOUT):
        self.poll_timeout = poll_timeout
        self.state = MonitorState.IDLE
        self.samples_emitted = 0
        self.idle_ticks = 0

    def run(
        self,
        session: DeviceSession,
        cancel: CancellationToken,
        sink: SampleSink,
    ) -> None:
        if self.state is MonitorState.STREAMING:
            raise RuntimeError("Monitor is already streaming")
        self.state = MonitorState.STREAMING
        logger.info("Live monitor started")
        try:
            while True:
                if cancel:
                    logger.info(
                        "Live monitor stopped after {} sample(s)", self.samples_emitted
                    )
                    return
                sample = self._poll(session)
                if sample is None:
                    self.idle_ticks += 1
                    continue
                self.samples_emitted += 1
                sink(sample)
        finally:
            self.state = MonitorState.STOPPED

    def _poll(self, session: DeviceSession) -> Optional[MeasurementSample]:
        try:
            frame = session.link.request(
                Opcode.GET_LIVE_SAMPLE, timeout=self.poll_timeout
            )
        except TransportTimeout:
            logger.trace("No live sample within {} s", self.poll_timeout)
            return None
        if frame.opcode != Opcode.DATA:
            raise ProtocolViolation(
                f"Meter answered live sample request with {frame.opcode.name}"
            )
        return unpack_live_sample(frame.payload)
