"""Cancellation shared between the SIGINT handler and the polling loops.

The token is written once, from the signal handler, and read at every polling
site between blocking transport calls. It is never reset during a run.
"""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from loguru import logger


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def __bool__(self) -> bool:
        return self._event.is_set()

    def __repr__(self):
        return f"CancellationToken(cancelled={self.cancelled})"


@contextmanager
def sigint_cancellation(
    token: Optional[CancellationToken] = None,
) -> Generator[CancellationToken, None, None]:
    """Route Ctrl-C into a cancellation token for the duration of the block.

    The previous SIGINT handler is restored on exit.
    """
    token = token if token is not None else CancellationToken()

    def handler(signum, frame):
        logger.info("Interrupt received, stopping after the current operation")
        token.cancel(signal.Signals(signum).name)

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)
