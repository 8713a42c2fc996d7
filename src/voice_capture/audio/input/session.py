"""One recording cycle: microphone, recording sink, and silence detection."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

import numpy as np

from ...core.errors import DeviceError
from ...core.worker import PeriodicWorker

from .analyzer import AnalyzerReading, SignalAnalyzer
from .segment import AudioSegment, SegmentSink
from .types import AudioStreamHandle, CaptureConfig, MicrophoneSource

logger = logging.getLogger("CaptureSession")

# Samples analysed per tick, matches a 1024-point analyser window.
ANALYSIS_WINDOW = 1024


class SessionState(Enum):
    IDLE = auto()
    ACQUIRING = auto()
    RECORDING = auto()
    STOPPING = auto()
    STOPPED = auto()


class SessionEndReason(Enum):
    SILENCE = auto()        # sustained silence after the minimum duration
    MAX_DURATION = auto()   # hard safety cap
    STOPPED = auto()        # stop() from outside
    DEVICE_LOST = auto()
    ERROR = auto()          # finalizing the segment failed


@dataclass(frozen=True)
class SessionResult:
    """Terminal event of a session. `segment` is None when nothing could be assembled."""
    reason: SessionEndReason
    segment: Optional[AudioSegment] = None
    error: Optional[BaseException] = None


class CaptureSession:
    """
    Owns exactly one microphone acquisition for one recording cycle.

    Lifecycle: acquire() opens the device and starts the tick worker, wait()
    blocks for the terminal SessionResult. stop() may be called from any thread
    at any point (including while acquire() is still waiting on the device) and
    always releases the device before it returns.
    """

    def __init__(
        self,
        config: CaptureConfig,
        microphone: MicrophoneSource,
        *,
        on_level: Optional[Callable[[float], None]] = None,
        on_voice: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cfg = config
        self._microphone = microphone
        self._on_level = on_level
        self._on_voice = on_voice
        self._clock = clock

        self._lock = threading.RLock()
        self._done = threading.Event()
        self._state = SessionState.IDLE
        self._stop_requested = False
        self._result: Optional[SessionResult] = None

        self._handle: Optional[AudioStreamHandle] = None
        self._sink: Optional[SegmentSink] = None
        self._worker: Optional[PeriodicWorker] = None
        self._analyzer = SignalAnalyzer(
            config.silence_threshold_rms,
            adaptive=config.adaptive_threshold,
            calibration_ticks=config.calibration_ticks,
            multiplier=config.noise_floor_multiplier,
            smoothing=config.level_smoothing,
        )
        self._last_reading: Optional[AnalyzerReading] = None
        self._recording_started_at: Optional[float] = None
        self._silence_started_at: Optional[float] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    @property
    def analyzer(self) -> SignalAnalyzer:
        return self._analyzer

    def acquire(self) -> bool:
        """
        Open the microphone and start recording.

        Returns False if stop() arrived before the device was ready (the handle is
        released immediately) or before acquire() was called at all. Raises
        DeviceError if the device cannot be opened.
        """
        with self._lock:
            if self._state is SessionState.STOPPED and self._result.reason is SessionEndReason.STOPPED:
                logger.debug("Session stopped before acquire, not opening microphone")
                return False
            if self._state is not SessionState.IDLE:
                raise RuntimeError(f"Session cannot be acquired in state {self._state.name}")
            self._state = SessionState.ACQUIRING

        try:
            handle = self._microphone.acquire(self._cfg.hints)
        except Exception as exc:
            with self._lock:
                self._state = SessionState.STOPPED
                self._result = SessionResult(SessionEndReason.DEVICE_LOST, error=exc)
                self._done.set()
            if isinstance(exc, DeviceError):
                raise
            raise DeviceError(str(exc) or exc.__class__.__name__) from exc

        with self._lock:
            if self._stop_requested:
                logger.info("Stop requested while acquiring, releasing microphone")
                self._release(handle)
                self._state = SessionState.STOPPED
                self._result = SessionResult(SessionEndReason.STOPPED)
                self._done.set()
                return False

            self._handle = handle
            self._sink = SegmentSink(self._cfg.audio_format.sample_rate)
            self._analyzer.reset()
            self._recording_started_at = self._clock()
            self._silence_started_at = None
            self._state = SessionState.RECORDING
            self._worker = PeriodicWorker(
                name="CaptureSessionTicker",
                interval_s=self._cfg.tick_interval_ms / 1000.0,
                on_tick=self.tick,
            )
            self._worker.start()
        logger.debug("Recording started")
        return True

    def record(self) -> SessionResult:
        """acquire() then block until the session ends."""
        self.acquire()
        return self.wait()

    def wait(self, timeout: Optional[float] = None) -> Optional[SessionResult]:
        """Block until the session has ended; returns its result (None on timeout)."""
        self._done.wait(timeout)
        return self._result

    def stop(self) -> None:
        """Stop recording and release the device. Idempotent."""
        self._finish(SessionEndReason.STOPPED)

    def tick(self) -> None:
        """Run one analysis step. Driven by the session's worker thread."""
        end_reason: Optional[SessionEndReason] = None
        device_error: Optional[DeviceError] = None
        reading: Optional[AnalyzerReading] = None
        voiced = False

        with self._lock:
            if self._state is not SessionState.RECORDING:
                return
            try:
                frames = self._handle.read()
            except DeviceError as exc:
                logger.error(f"Microphone lost during recording: {exc}")
                device_error = exc
                frames = []

            if device_error is None:
                for frame in frames:
                    self._sink.write(frame)

                if frames:
                    window = np.concatenate(frames)[-ANALYSIS_WINDOW:]
                    self._last_reading = self._analyzer.analyze(window)
                    reading = self._last_reading
                else:
                    # No new audio this tick: keep the previous classification
                    reading = self._last_reading

                end_reason, voiced = self._evaluate(reading)

        if device_error is not None:
            self._finish(SessionEndReason.DEVICE_LOST, device_error)
            return

        if reading is not None and self._on_level is not None:
            self._on_level(reading.smoothed_level)
        if voiced and self._on_voice is not None:
            self._on_voice()
        if end_reason is not None:
            self._finish(end_reason)

    def _evaluate(self, reading: Optional[AnalyzerReading]) -> tuple[Optional[SessionEndReason], bool]:
        now = self._clock()
        elapsed_ms = (now - self._recording_started_at) * 1000.0
        if elapsed_ms >= self._cfg.max_duration_ms:
            logger.info("Maximum recording duration of %dms reached", self._cfg.max_duration_ms)
            return SessionEndReason.MAX_DURATION, False
        if reading is None:
            return None, False

        if not reading.is_silent:
            self._silence_started_at = None
            return None, True

        if self._silence_started_at is None:
            self._silence_started_at = now
        elif (
            (now - self._silence_started_at) * 1000.0 >= self._cfg.silence_window_ms
            and elapsed_ms >= self._cfg.min_duration_ms
        ):
            logger.debug("Sustained silence for %dms, stopping", self._cfg.silence_window_ms)
            return SessionEndReason.SILENCE, False
        return None, False

    def _finish(self, reason: SessionEndReason, error: Optional[BaseException] = None) -> None:
        with self._lock:
            if self._state in (SessionState.STOPPING, SessionState.STOPPED):
                return
            if self._state is SessionState.IDLE:
                self._state = SessionState.STOPPED
                self._result = SessionResult(reason, error=error)
                self._done.set()
                return
            if self._state is SessionState.ACQUIRING:
                # acquire() releases the handle once the device call returns
                self._stop_requested = True
                return

            self._state = SessionState.STOPPING
            worker = self._worker
            if worker is not None:
                worker.cancel()

            segment: Optional[AudioSegment] = None
            try:
                segment = self._sink.finalize()
            except Exception as exc:
                logger.exception("Failed to finalize recorded segment")
                reason, error = SessionEndReason.ERROR, exc
            finally:
                self._teardown()
                self._state = SessionState.STOPPED
                self._result = SessionResult(reason, segment, error)
                self._done.set()

        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=1.0)
        logger.debug("Recording stopped: %s", reason.name)

    def _teardown(self) -> None:
        handle, self._handle = self._handle, None
        self._worker = None
        if self._sink is not None:
            self._sink.discard()
        self._sink = None
        self._last_reading = None
        self._silence_started_at = None
        if handle is not None:
            self._release(handle)

    @staticmethod
    def _release(handle: AudioStreamHandle) -> None:
        try:
            handle.release()
        except Exception:
            logger.exception("Error releasing microphone")
