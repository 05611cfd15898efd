"""
infralite.shutdown
AUTHOR: carter-vin

Cancellation token for the poll loop

- honored at the top of every cycle
- interrupts the inter-cycle sleep
- SIGINT/SIGTERM set it; nothing calls sys.exit from a handler
"""

from __future__ import annotations

import signal
import threading
from typing import Optional


class ShutdownToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "requested") -> None:
        if self.reason is None:
            self.reason = reason
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """
        Suspend up to timeout seconds

        Returns True if cancelled (early or already), False if the full timeout elapsed.
        """
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)


def install_signal_handlers(token: ShutdownToken) -> None:
    """
    Route SIGINT/SIGTERM into the token

    Must be called from the main thread (signal module restriction).
    The handler only sets the token: it can interrupt a log write in progress,
    so the poll loop reports the request once it sees the token.
    """

    def _handler(signum: int, _frame) -> None:
        token.cancel(reason=signal.Signals(signum).name)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
