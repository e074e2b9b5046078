"""Tests for FrameLink framing over a byte stream."""

from collections import deque

import pytest

from ut181a.device.transport import Transport
from ut181a.protocol import FrameLink, Opcode, encode
from ut181a.protocol.frame import pack_live_sample, unpack_live_sample
from ut181a.types import ChecksumMismatch, MeasurementSample, TransportTimeout


class ScriptedTransport:
    """Returns pre-scripted reads, one entry per receive call.

    `reads` are already waiting in the input buffer. Each send queues the
    next entry of `replies`; a None entry means the meter stays silent.
    """

    def __init__(self, reads=(), replies=()):
        self.reads = deque(reads)
        self.replies = deque(replies)
        self.sent = []
        self.flushed = 0
        self.is_open = True

    def send(self, data):
        self.sent.append(data)
        reply = self.replies.popleft() if self.replies else None
        if reply is not None:
            self.reads.append(reply)

    def receive(self, max_bytes, timeout):
        if not self.reads:
            raise TransportTimeout("nothing scripted")
        data = self.reads.popleft()
        if len(data) > max_bytes:
            self.reads.appendleft(data[max_bytes:])
            data = data[:max_bytes]
        return data

    def flush_input(self):
        self.flushed += 1
        self.reads.clear()

    def close(self):
        self.is_open = False


def test_scripted_transport_is_a_transport():
    assert isinstance(ScriptedTransport(), Transport)


def test_frame_split_across_reads():
    data = encode(Opcode.DATA, bytes(range(50)))
    transport = ScriptedTransport([data[:3], data[3:20], data[20:]])
    frame = FrameLink(transport, timeout=0.1).read_frame()
    assert frame.opcode == Opcode.DATA
    assert frame.payload == bytes(range(50))


def test_two_frames_in_one_read():
    transport = ScriptedTransport([encode(Opcode.DATA, b"\x01") + encode(Opcode.ACK)])
    link = FrameLink(transport, timeout=0.1)
    assert link.read_frame().opcode == Opcode.DATA
    assert link.read_frame().opcode == Opcode.ACK


def test_garbage_before_sync_is_skipped():
    transport = ScriptedTransport([b"\x00\x13\x37" + encode(Opcode.ACK)])
    assert FrameLink(transport, timeout=0.1).read_frame().opcode == Opcode.ACK


def test_small_read_size():
    data = encode(Opcode.DATA, bytes(100))
    link = FrameLink(ScriptedTransport([data]), timeout=0.1, read_size=7)
    assert len(link.read_frame().payload) == 100


def test_timeout_on_partial_frame():
    data = encode(Opcode.DATA, bytes(10))
    link = FrameLink(ScriptedTransport([data[:6]]), timeout=0.05)
    with pytest.raises(TransportTimeout):
        link.read_frame()


def test_corrupt_frame_is_consumed():
    bad = bytearray(encode(Opcode.DATA, b"\x01\x02"))
    bad[-1] ^= 0xFF
    link = FrameLink(ScriptedTransport([bytes(bad) + encode(Opcode.ACK)]), timeout=0.1)
    with pytest.raises(ChecksumMismatch):
        link.read_frame()
    assert link.read_frame().opcode == Opcode.ACK


def test_request_sends_and_reads():
    transport = ScriptedTransport(replies=[encode(Opcode.ACK)])
    link = FrameLink(transport, timeout=0.1)
    frame = link.request(Opcode.OPEN_SESSION)
    assert transport.sent == [encode(Opcode.OPEN_SESSION)]
    assert frame.opcode == Opcode.ACK


def test_request_discards_stale_bytes():
    transport = ScriptedTransport(
        [encode(Opcode.DATA, b"\x01") + encode(Opcode.NAK), encode(Opcode.DATA)],
        replies=[encode(Opcode.ACK)],
    )
    link = FrameLink(transport, timeout=0.1)
    link.read_frame()  # NAK stays buffered, a DATA frame waits in the transport
    assert link.request(Opcode.CLOSE_SESSION).opcode == Opcode.ACK
    assert transport.flushed == 1


def live_reply(value):
    return encode(Opcode.DATA, pack_live_sample(MeasurementSample(value, 0x01, 0)))


def test_late_reply_not_taken_for_next_request():
    transport = ScriptedTransport(replies=[None, live_reply(2.0), live_reply(3.0)])
    link = FrameLink(transport, timeout=0.05)
    with pytest.raises(TransportTimeout):
        link.request(Opcode.GET_LIVE_SAMPLE)

    transport.reads.append(live_reply(1.0))  # answer to the first request, too late
    for expected in (2.0, 3.0):
        frame = link.request(Opcode.GET_LIVE_SAMPLE)
        assert unpack_live_sample(frame.payload).value == expected
    assert not transport.reads


def test_begin_sends_after_flush():
    transport = ScriptedTransport(
        [encode(Opcode.ACK)], replies=[encode(Opcode.DATA, b"\x05")]
    )
    link = FrameLink(transport, timeout=0.1)
    link.begin(Opcode.LIST_RECORDS)
    assert transport.sent == [encode(Opcode.LIST_RECORDS)]
    assert link.read_frame().payload == b"\x05"


def test_flush_and_close():
    transport = ScriptedTransport([encode(Opcode.DATA, b"\x01")])
    link = FrameLink(transport, timeout=0.05)
    link.flush()
    assert transport.flushed == 1
    with pytest.raises(TransportTimeout):
        link.read_frame()

    link.close()
    link.close()
    assert link.closed
    assert not transport.is_open
