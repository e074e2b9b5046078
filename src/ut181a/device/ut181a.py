"""UNI-T UT181A multimeter front-end.

Ties the session manager, record catalog, downloader and live monitor into
the calls the command line uses. Every call reports success as a bool and
logs a one-line diagnostic on failure; the protocol components underneath
raise `UT181AError` subclasses.
"""

from __future__ import annotations

from functools import partial
from typing import Callable, Optional, Sequence

from loguru import logger

from ut181a.protocol.cancel import CancellationToken
from ut181a.types import (
    Cancelled,
    DeviceCandidate,
    MeasurementSample,
    RecordData,
    RecordDescriptor,
    UT181AError,
)
from ut181a.util.config import MeterConfig
from ut181a.util.logging import format_error_response
from ut181a.util.save import save_record

from .catalog import RecordCatalog
from .device import Device
from .downloader import RecordDownloader
from .monitor import LiveMonitor
from .session import DeviceSession, SessionManager
from .transport import SerialTransport, enumerate_candidates

RecordSink = Callable[[Sequence[RecordDescriptor]], None]
Exporter = Callable[[RecordData], object]


def _log_sample(sample: MeasurementSample) -> None:
    logger.info("{:>12.6g} {}", sample.value, sample.unit_name)


def _log_records(descriptors: Sequence[RecordDescriptor]) -> None:
    for d in descriptors:
        logger.info(
            "#{:<4d} {} {:<6s} {:>8d} bytes",
            d.index,
            d.created.isoformat(),
            d.kind_name,
            d.size,
        )


class UT181A(Device):
    """UT181A multimeter.

    Parameters
    ----------
    config : MeterConfig, optional
        Link settings, timeouts, retry bound and export directory.
    manager : SessionManager, optional
        Session manager to use. By default one is built from `config`, using
        USB enumeration, or the fixed `config.port` if set.
    """

    required_config = {"config": MeterConfig, "manager": SessionManager}

    def __init__(
        self,
        config: Optional[MeterConfig] = None,
        manager: Optional[SessionManager] = None,
    ):
        config = config or MeterConfig()
        if manager is None and isinstance(config, MeterConfig):
            manager = self._default_manager(config)
        super().__init__(config=config, manager=manager)
        self.catalog = RecordCatalog(timeout=self.config.timeout)
        self.downloader = RecordDownloader(
            chunk_retries=self.config.chunk_retries, timeout=self.config.timeout
        )

    @staticmethod
    def _default_manager(config: MeterConfig) -> SessionManager:
        if config.port:
            port = config.port

            def enumerator():
                return [DeviceCandidate(port, config.serial or "", "configured port")]

        else:
            enumerator = partial(enumerate_candidates, config.usb_vid, config.usb_pid)
        return SessionManager(
            enumerator=enumerator,
            transport_factory=partial(SerialTransport, baudrate=config.baudrate),
            timeout=config.timeout,
            handshake_timeout=config.handshake_timeout,
        )

    @property
    def session(self) -> Optional[DeviceSession]:
        return self.manager.session

    def is_connected(self) -> bool:
        return self.session is not None and not self.session.closed

    def open(self, serial: Optional[str] = None) -> bool:
        serial = serial if serial is not None else self.config.serial
        try:
            self.manager.open(serial)
        except UT181AError as e:
            logger.error("Failed to open UT181A: {}", e)
            logger.debug(format_error_response())
            return False
        return True

    def close(self) -> None:
        self.manager.close()

    def monitor(
        self,
        cancel: CancellationToken,
        sink: Optional[Callable[[MeasurementSample], None]] = None,
    ) -> bool:
        """Stream live samples into `sink` until `cancel` is set."""
        if not self._check_open("monitor"):
            return False
        monitor = LiveMonitor(poll_timeout=self.config.poll_timeout)
        try:
            monitor.run(self.session, cancel, sink or _log_sample)
        except UT181AError as e:
            logger.error("Live monitor stopped: {}", e)
            logger.debug(format_error_response())
            return False
        return True

    def list_records(
        self, cancel: CancellationToken, sink: Optional[RecordSink] = None
    ) -> bool:
        """List stored records into `sink`.

        On cancellation the partial listing is still handed to the sink, and
        the call reports failure.
        """
        if not self._check_open("list records"):
            return False
        sink = sink or _log_records
        try:
            descriptors = self.catalog.list(self.session, cancel)
        except Cancelled as e:
            logger.warning("{} (showing partial listing)", e)
            sink(e.partial)
            return False
        except UT181AError as e:
            logger.error("Failed to list records: {}", e)
            logger.debug(format_error_response())
            return False
        sink(descriptors)
        return True

    def fetch_record(
        self, index: int, cancel: Optional[CancellationToken] = None
    ) -> RecordData:
        """Download record `index`, raising on failure."""
        if not self.is_connected():
            raise RuntimeError("UT181A is not open")
        return self.downloader.fetch(self.session, index, cancel)

    def receive_record(
        self,
        index: int,
        cancel: CancellationToken,
        exporter: Optional[Exporter] = None,
    ) -> bool:
        """Download record `index` and hand it to `exporter` (CSV by default)."""
        if not self._check_open(f"receive record {index}"):
            return False
        exporter = exporter or partial(save_record, save_dir=self.config.save_dir)
        try:
            record = self.fetch_record(index, cancel)
        except UT181AError as e:
            logger.error("Failed to receive record {}: {}", index, e)
            logger.debug(format_error_response())
            return False
        try:
            exporter(record)
        except OSError as e:
            logger.error("Failed to export record {}: {}", index, e)
            return False
        return True

    def _check_open(self, action: str) -> bool:
        if not self.is_connected():
            logger.error("Cannot {}: UT181A is not open", action)
            return False
        return True
