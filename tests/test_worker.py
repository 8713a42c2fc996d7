"""Tests for the periodic worker and cancel token."""

import threading
import time

from voice_capture.core.shutdown import CancelToken
from voice_capture.core.worker import PeriodicWorker


def test_cancel_token_wait_returns_when_cancelled():
    """wait() returns True as soon as the token is cancelled."""
    token = CancelToken()
    threading.Timer(0.02, token.cancel).start()

    started = time.monotonic()
    assert token.wait(2.0)
    assert time.monotonic() - started < 1.0
    assert token.is_cancelled()


def test_cancel_token_wait_times_out():
    """wait() returns False on timeout."""
    assert not CancelToken().wait(0.01)


def test_worker_ticks_until_cancelled():
    """The worker ticks until cancelled."""
    ticks = []
    worker = PeriodicWorker(name="TestWorker", interval_s=0.005, on_tick=lambda: ticks.append(1))
    worker.start()
    time.sleep(0.1)
    worker.cancel()
    worker.join(1.0)

    assert not worker.is_alive()
    assert worker.cancelled
    count = len(ticks)
    assert count > 0
    time.sleep(0.03)
    assert len(ticks) == count


def test_worker_stops_when_tick_raises():
    """A raising tick stops the worker."""
    calls = []

    def failing_tick():
        calls.append(1)
        raise RuntimeError("boom")

    worker = PeriodicWorker(name="FailingWorker", interval_s=0.001, on_tick=failing_tick)
    worker.start()
    worker.join(1.0)

    assert not worker.is_alive()
    assert calls == [1]
