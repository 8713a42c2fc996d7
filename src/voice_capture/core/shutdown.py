import threading
from typing import Optional


class CancelToken:
    """One-shot cancellation flag shared between a caller and the work it started."""

    def __init__(self):
        self.cancel_event = threading.Event()

    def cancel(self):
        self.cancel_event.set()

    def is_cancelled(self):
        return self.cancel_event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to `timeout` seconds; returns True as soon as the token is cancelled."""
        return self.cancel_event.wait(timeout)
