"""Reusable worker thread utilities."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .shutdown import CancelToken

logger = logging.getLogger(__name__)


class PeriodicWorker(threading.Thread):
    """
    Thread that invokes `on_tick` at a fixed tempo until cancelled.

    The first tick runs one interval after start. Cancelling wakes the thread
    immediately, so no tick is scheduled after `cancel()` returns other than one
    already in progress.
    """

    def __init__(
        self,
        *,
        name: str,
        interval_s: float,
        on_tick: Callable[[], None],
        daemon: bool = True,
    ):
        super().__init__(name=name, daemon=daemon)
        self._interval_s = interval_s
        self._on_tick = on_tick
        self._cancel = CancelToken()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_cancelled()

    def cancel(self) -> None:
        self._cancel.cancel()

    def run(self) -> None:
        while not self._cancel.wait(self._interval_s):
            try:
                self._on_tick()
            except Exception:
                logger.exception("%s tick failed, stopping worker", self.name)
                self._cancel.cancel()
