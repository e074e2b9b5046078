import pytest
from loguru import logger

from ut181a.device import SessionManager
from ut181a.device.mock import MockUT181A
from ut181a.types import MeasurementSample


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "slow: marks test as slow running test")
    config.addinivalue_line(
        "markers", "hardware: marks test that require physical hardware"
    )


def _make_samples(n, unit=0x01, start=0.0, step=0.5, interval_ms=1000):
    return [
        MeasurementSample(value=start + step * i, unit=unit, offset_ms=i * interval_ms)
        for i in range(n)
    ]


@pytest.fixture
def make_samples():
    """Factory for samples with exactly representable float32 values."""
    return _make_samples


@pytest.fixture
def meter():
    """A simulated meter with no records."""
    return MockUT181A()


@pytest.fixture
def manager(meter):
    manager = SessionManager(
        enumerator=meter.candidates,
        transport_factory=meter.connect,
        timeout=0.2,
        handshake_timeout=0.2,
        close_timeout=0.1,
    )
    yield manager
    manager.close()


@pytest.fixture
def session(manager):
    """An open session on the simulated meter."""
    return manager.open()


@pytest.fixture
def log_messages():
    """Capture log messages (DEBUG and up) for the duration of a test."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record), level="DEBUG")
    yield messages
    logger.remove(handler_id)
