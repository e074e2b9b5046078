"""Tests for device selection and session open/close."""

import pytest

from ut181a.device import SessionManager, select_candidate
from ut181a.device.mock import MockUT181A
from ut181a.protocol import Opcode
from ut181a.types import (
    AmbiguousDevice,
    DeviceCandidate,
    DeviceNotFound,
    HandshakeFailed,
    LinkLost,
)

A = DeviceCandidate("/dev/ttyUSB0", "AAAA0001")
B = DeviceCandidate("/dev/ttyUSB1", "BBBB0002")


class TestSelectCandidate:
    def test_single_candidate_without_filter(self):
        assert select_candidate([A]) == A

    def test_none_attached(self):
        with pytest.raises(DeviceNotFound):
            select_candidate([])

    def test_several_without_filter(self):
        with pytest.raises(AmbiguousDevice):
            select_candidate([A, B])

    def test_filter_picks_exact_match(self):
        assert select_candidate([A, B], "BBBB0002") == B

    def test_filter_is_exact(self):
        with pytest.raises(DeviceNotFound):
            select_candidate([A, B], "BBBB")

    def test_filter_without_match(self):
        with pytest.raises(DeviceNotFound):
            select_candidate([A], "CCCC0003")

    def test_duplicate_serials(self):
        with pytest.raises(AmbiguousDevice):
            select_candidate([A, DeviceCandidate("/dev/ttyUSB2", "AAAA0001")], "AAAA0001")


class TestSessionManager:
    def test_open_reports_capabilities(self, manager, meter):
        session = manager.open()
        assert session.capabilities == meter.capabilities
        assert session.candidate.serial == meter.serial
        assert meter.session_open
        assert manager.session is session

    def test_open_with_serial_filter(self, manager, meter):
        assert manager.open(meter.serial).candidate.port == meter.port

    def test_open_wrong_serial(self, manager, meter):
        with pytest.raises(DeviceNotFound):
            manager.open("NOPE")
        assert meter.transports == []

    def test_nak_handshake(self, manager, meter):
        meter.handshake_reply = Opcode.NAK
        with pytest.raises(HandshakeFailed):
            manager.open()
        assert manager.session is None
        assert not meter.transports[0].is_open

    def test_silent_meter(self, manager, meter):
        meter.handshake_reply = None
        with pytest.raises(HandshakeFailed):
            manager.open()
        assert not meter.transports[0].is_open

    def test_transport_fails_to_open(self, meter):
        def factory(port):
            raise LinkLost("port busy")

        manager = SessionManager(meter.candidates, factory)
        with pytest.raises(HandshakeFailed):
            manager.open()

    def test_close_sends_close_session(self, manager, meter):
        session = manager.open()
        manager.close()
        assert meter.requests[-1] == Opcode.CLOSE_SESSION
        assert not meter.session_open
        assert session.closed
        assert not session.transport.is_open
        assert manager.session is None

    def test_close_is_idempotent(self, manager, meter):
        manager.open()
        manager.close()
        manager.close()
        assert meter.requests.count(Opcode.CLOSE_SESSION) == 1

    def test_close_tolerates_lost_link(self, manager, meter):
        session = manager.open()
        meter.link_lost = True
        manager.close()
        assert session.closed
        assert not session.transport.is_open

    def test_close_tolerates_nak(self, manager, meter):
        session = manager.open()
        meter.nak_opcodes.add(Opcode.CLOSE_SESSION)
        manager.close()
        assert session.closed

    def test_reopen_closes_previous_session(self, manager, meter):
        first = manager.open()
        second = manager.open()
        assert first.closed
        assert not second.closed
        assert len(meter.transports) == 2

    def test_context_manager(self, meter):
        with SessionManager(meter.candidates, meter.connect) as manager:
            session = manager.open()
        assert session.closed
        assert not meter.session_open


def test_second_meter_selected_by_serial():
    one = MockUT181A(serial="ONE", port="mock://one")
    two = MockUT181A(serial="TWO", port="mock://two")
    meters = {m.port: m for m in (one, two)}

    manager = SessionManager(
        enumerator=lambda: one.candidates() + two.candidates(),
        transport_factory=lambda port: meters[port].connect(port),
    )
    with pytest.raises(AmbiguousDevice):
        manager.open()
    session = manager.open("TWO")
    assert session.candidate.port == "mock://two"
    assert two.session_open and not one.session_open
    manager.close()
