"""Tests for the live monitor."""

import pytest

from ut181a.device import LiveMonitor, MonitorState
from ut181a.protocol import CancellationToken, Opcode
from ut181a.types import LinkLost, MeasurementSample, ProtocolViolation


def stop_after(token, n, received):
    def sink(sample):
        received.append(sample)
        if len(received) >= n:
            token.cancel()

    return sink


def test_streams_in_order(session, meter, make_samples):
    expected = make_samples(5, unit=0x02)
    meter.live_samples.extend(expected)
    token = CancellationToken()
    received = []

    monitor = LiveMonitor(poll_timeout=0.05)
    monitor.run(session, token, stop_after(token, 5, received))

    assert received == expected
    assert monitor.samples_emitted == 5
    assert monitor.state is MonitorState.STOPPED


def test_idle_ticks_are_not_errors(session, meter):
    sample = MeasurementSample(1.0, 0x01, 0)
    meter.live_samples.extend([None, None, sample, None, sample])
    token = CancellationToken()
    received = []

    monitor = LiveMonitor(poll_timeout=0.05)
    monitor.run(session, token, stop_after(token, 2, received))

    assert received == [sample, sample]
    assert monitor.idle_ticks == 3


def test_cancel_before_start_polls_nothing(session, meter):
    token = CancellationToken()
    token.cancel()
    monitor = LiveMonitor()
    monitor.run(session, token, lambda s: None)
    assert Opcode.GET_LIVE_SAMPLE not in meter.requests
    assert monitor.state is MonitorState.STOPPED


def test_cancel_during_idle_stream(session, meter):
    token = CancellationToken()
    ticks = []

    def source():
        ticks.append(1)
        if len(ticks) == 3:
            token.cancel()
        return None

    meter.live_source = source
    monitor = LiveMonitor(poll_timeout=0.01)
    monitor.run(session, token, lambda s: None)
    assert monitor.idle_ticks == 3
    assert monitor.samples_emitted == 0


def test_nak_stops_monitor(session, meter):
    meter.nak_opcodes.add(Opcode.GET_LIVE_SAMPLE)
    monitor = LiveMonitor(poll_timeout=0.05)
    with pytest.raises(ProtocolViolation):
        monitor.run(session, CancellationToken(), lambda s: None)
    assert monitor.state is MonitorState.STOPPED


def test_lost_link_propagates(session, meter):
    meter.link_lost = True
    with pytest.raises(LinkLost):
        LiveMonitor().run(session, CancellationToken(), lambda s: None)


def test_cannot_run_twice_concurrently(session):
    monitor = LiveMonitor()
    monitor.state = MonitorState.STREAMING
    with pytest.raises(RuntimeError):
        monitor.run(session, CancellationToken(), lambda s: None)
