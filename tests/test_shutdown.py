"""
Contract tests for the cancellation token
"""

import signal
import threading
import time

import pytest

from infralite.shutdown import ShutdownToken, install_signal_handlers


def test_wait_returns_false_after_full_timeout() -> None:
    token = ShutdownToken()

    assert token.wait(0.01) is False
    assert not token.cancelled


def test_cancel_interrupts_wait() -> None:
    token = ShutdownToken()
    threading.Timer(0.05, token.cancel, kwargs={"reason": "SIGTERM"}).start()

    start = time.monotonic()
    assert token.wait(10.0) is True
    assert time.monotonic() - start < 5.0
    assert token.reason == "SIGTERM"


def test_first_reason_wins() -> None:
    token = ShutdownToken()
    token.cancel("SIGINT")
    token.cancel("SIGTERM")

    assert token.reason == "SIGINT"
    assert token.wait(0) is True


@pytest.fixture
def restore_signal_handlers():
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


@pytest.mark.parametrize("sig", [signal.SIGTERM, signal.SIGINT])
def test_signal_cancels_token(sig: signal.Signals, restore_signal_handlers) -> None:
    """
    Handler only sets the token; nothing is written from signal context
    """
    token = ShutdownToken()
    install_signal_handlers(token)

    signal.raise_signal(sig)

    assert token.cancelled
    assert token.reason == sig.name
