"""
Binary protocol of the meter.

- `frame`: the frame codec (`encode`/`decode`) and per-opcode payload layouts.
- `samples`: record body layout and numpy-based sample decoding.
- `link`: `FrameLink`, reading whole frames off a transport and pairing
  requests with responses.
- `cancel`: the cancellation token shared with the SIGINT handler.
"""

from .cancel import CancellationToken, sigint_cancellation
from .frame import Frame, Opcode, decode, encode
from .link import FrameLink

__all__ = [
    "CancellationToken",
    "sigint_cancellation",
    "Frame",
    "Opcode",
    "decode",
    "encode",
    "FrameLink",
]
