"""Capture supervisor: the start/stop, auto-restart and idle-timeout state machine."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ...core.errors import DeviceError, TranscriptionFailed
from ...core.events import StopReason, SupervisorState, SupervisorStatus
from ...core.shutdown import CancelToken

from .session import CaptureSession, SessionEndReason, SessionResult
from .transcriber import OutcomeStatus, TranscriptionClient, TranscriptionService
from .types import CaptureConfig, MicrophoneSource

logger = logging.getLogger("CaptureSupervisor")

DEVICE_ERROR_MESSAGE = "Microphone access denied or unavailable. Please grant permissions."
TRANSCRIPTION_ERROR_MESSAGE = "Transcription failed. Please check your connection."
UNEXPECTED_ERROR_MESSAGE = "Voice capture stopped unexpectedly."


class CaptureSupervisor:
    """
    Runs repeated capture sessions for one conversation view.

    start() and stop() return immediately and never raise. Each start() runs a
    loop on its own thread: acquire -> record until silence -> transcribe ->
    (auto-restart after a delay | go inactive). Failures are reported once
    through `on_error`; every failure path ends in INACTIVE so start() can be
    called again.

    Guarantees:
    - at most one CaptureSession exists, and it is torn down before the next
      one acquires the microphone;
    - results from a stopped loop are never delivered, and once wait() returns
      after stop() no microphone is open;
    - is_recording and is_processing are never both true.

    `on_transcript` is invoked while the supervisor lock is held so that a
    concurrent stop() cannot let a stale transcript through; it may call
    start()/stop() but must not block on other threads that do.
    """

    def __init__(
        self,
        config: CaptureConfig,
        microphone: MicrophoneSource,
        transcription_service: TranscriptionService,
        *,
        on_transcript: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_status_change: Optional[Callable[[SupervisorStatus], None]] = None,
        on_input_level: Optional[Callable[[float], None]] = None,
        on_stopped: Optional[Callable[[StopReason], None]] = None,
    ):
        self._cfg = config
        self._microphone = microphone
        self._client = TranscriptionClient(transcription_service, config)
        self._on_transcript = on_transcript
        self._on_error = on_error
        self._on_status_change = on_status_change
        self._on_input_level = on_input_level
        self._on_stopped = on_stopped

        self._lock = threading.RLock()
        self._state = SupervisorState.INACTIVE
        self._active = False
        self._recording = False
        self._processing = False
        self._generation = 0
        self._cancel = CancelToken()
        self._session: Optional[CaptureSession] = None
        self._thread: Optional[threading.Thread] = None
        self._idle_timer: Optional[threading.Timer] = None
        self._consecutive_discards = 0
        self._last_error: Optional[str] = None
        self._stop_reason: Optional[StopReason] = None
        self._published: Optional[SupervisorStatus] = None

    # ------------------------------------------------------------------ status

    @property
    def config(self) -> CaptureConfig:
        return self._cfg

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def status(self) -> SupervisorStatus:
        with self._lock:
            return SupervisorStatus(
                is_active=self._active,
                is_recording=self._recording,
                is_processing=self._processing,
            )

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def last_transcript(self) -> Optional[str]:
        return self._client.last_transcript

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def stop_reason(self) -> Optional[StopReason]:
        return self._stop_reason

    @property
    def consecutive_discards(self) -> int:
        return self._consecutive_discards

    # ----------------------------------------------------------------- control

    def start(self) -> None:
        """Begin the capture loop. No-op while already active."""
        with self._lock:
            if self._active:
                logger.debug("start() ignored, loop already active")
                return
            self._active = True
            self._generation += 1
            generation = self._generation
            self._cancel = CancelToken()
            self._consecutive_discards = 0
            self._last_error = None
            self._stop_reason = None
            self._state = SupervisorState.STARTING
            self._arm_idle_timer(generation)

            previous = self._thread
            thread = threading.Thread(
                target=self._run,
                args=(generation, self._cancel, previous),
                name=f"CaptureSupervisor-{generation}",
                daemon=True,
            )
            self._thread = thread
            thread.start()

        logger.info("Capture loop started")
        self._publish_status()

    def stop(self, reason: StopReason = StopReason.USER) -> None:
        """
        Stop everything from any state. Idempotent.

        A microphone that is still being opened is released as soon as the device
        call returns; use wait() to block until the loop thread has exited.
        """
        self._shutdown(reason)

    def set_hidden(self, hidden: bool) -> None:
        """Hosting context visibility changed; going to the background puts the loop to sleep."""
        if hidden and self._active:
            logger.info("Host hidden, entering sleep mode")
            self._shutdown(StopReason.HIDDEN)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop thread to exit. Returns True if it is no longer running."""
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def close(self, timeout: Optional[float] = 2.0) -> None:
        """Tear down for good (e.g. the owning view is unmounted)."""
        self._shutdown(StopReason.SHUTDOWN)
        self.wait(timeout)
        self._client.close()

    # -------------------------------------------------------------------- loop

    def _run(self, generation: int, cancel: CancelToken, previous: Optional[threading.Thread]) -> None:
        if previous is not None and previous is not threading.current_thread():
            # A stopped loop may still be unwinding; it owns no device by now.
            previous.join()
        try:
            while self._is_current(generation):
                result = self._record(generation)
                if result is None:
                    return
                self._process(generation, cancel, result)
                if not self._is_current(generation):
                    return
                if not self._cfg.auto_restart:
                    self._shutdown(StopReason.COMPLETED, generation)
                    return
                if not self._wait_for_restart(generation, cancel):
                    return
        except Exception:
            logger.exception("Capture loop crashed")
            if self._is_current(generation):
                self._report_error(UNEXPECTED_ERROR_MESSAGE)
                self._shutdown(StopReason.ERROR, generation)

    def _record(self, generation: int) -> Optional[SessionResult]:
        """Run one capture session. Returns None when the loop should end."""
        with self._lock:
            if not self._is_current(generation):
                return None
            self._state = SupervisorState.STARTING
            self._arm_idle_timer(generation)
            session = CaptureSession(
                self._cfg,
                self._microphone,
                on_level=self._handle_level,
                on_voice=lambda: self._handle_voice(generation),
            )
            self._session = session
        self._publish_status()

        try:
            try:
                acquired = session.acquire()
            except DeviceError as exc:
                logger.error(f"Microphone error: {exc}")
                if self._is_current(generation):
                    self._report_error(DEVICE_ERROR_MESSAGE)
                    self._shutdown(StopReason.DEVICE_ERROR, generation)
                return None

            if acquired:
                with self._lock:
                    if self._is_current(generation):
                        self._state = SupervisorState.RECORDING
                        self._recording = True
                self._publish_status()
            result = session.wait()
        finally:
            with self._lock:
                if self._session is session:
                    self._session = None
                if self._is_current(generation):
                    self._recording = False

        if not self._is_current(generation):
            return None
        if result.reason is SessionEndReason.DEVICE_LOST:
            self._report_error(DEVICE_ERROR_MESSAGE)
            self._shutdown(StopReason.DEVICE_ERROR, generation)
            return None
        return result

    def _process(self, generation: int, cancel: CancelToken, result: SessionResult) -> None:
        """Hand the finished segment to the transcription client and deliver the outcome."""
        if self._client.should_discard(result.segment):
            with self._lock:
                if not self._is_current(generation):
                    return
                self._consecutive_discards += 1
            logger.debug(
                "Discarded undersized segment (%s), %d in a row",
                result.reason.name, self._consecutive_discards,
            )
            return

        with self._lock:
            if not self._is_current(generation):
                return
            self._state = SupervisorState.PROCESSING
            self._processing = True
            self._consecutive_discards = 0
        self._publish_status()

        outcome = None
        try:
            outcome = self._client.transcribe(result.segment, cancel)
        except TranscriptionFailed as exc:
            logger.error(f"{exc}")
            if self._is_current(generation):
                self._report_error(TRANSCRIPTION_ERROR_MESSAGE)
        finally:
            with self._lock:
                if self._is_current(generation):
                    if outcome is not None and outcome.status is OutcomeStatus.ACCEPTED:
                        # Only a delivered transcript counts for de-duplication
                        self._client.commit(outcome.text)
                        self._safe_call(self._on_transcript, outcome.text)
                    self._processing = False
            self._publish_status()

    def _wait_for_restart(self, generation: int, cancel: CancelToken) -> bool:
        delay_ms = self._cfg.auto_restart_delay_ms + self._consecutive_discards * self._cfg.discard_backoff_ms
        with self._lock:
            if not self._is_current(generation):
                return False
            self._state = SupervisorState.AUTO_RESTART_PENDING
        self._publish_status()
        logger.debug("Restarting capture in %dms", delay_ms)
        if cancel.wait(delay_ms / 1000.0):
            return False
        return self._is_current(generation)

    # ---------------------------------------------------------------- shutdown

    def _shutdown(self, reason: StopReason, generation: Optional[int] = None) -> bool:
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            if not self._active:
                return False
            self._active = False
            self._cancel.cancel()
            self._cancel_idle_timer()
            session, self._session = self._session, None
            self._recording = False
            self._processing = False
            self._state = SupervisorState.INACTIVE
            self._stop_reason = reason

        if session is not None:
            session.stop()
        logger.info("Capture loop stopped: %s", reason.name)
        self._publish_status()
        self._safe_call(self._on_stopped, reason)
        return True

    # --------------------------------------------------------------- idle timer

    def _arm_idle_timer(self, generation: int) -> None:
        # Caller holds the lock. Only hands-free loops go to sleep on their own.
        if not self._cfg.auto_restart or self._idle_timer is not None:
            return
        timer = threading.Timer(self._cfg.idle_timeout_ms / 1000.0, self._on_idle_timeout, args=(generation,))
        timer.daemon = True
        self._idle_timer = timer
        timer.start()

    def _cancel_idle_timer(self) -> None:
        timer, self._idle_timer = self._idle_timer, None
        if timer is not None:
            timer.cancel()

    def _on_idle_timeout(self, generation: int) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
            self._idle_timer = None
            self._state = SupervisorState.IDLE_TIMEOUT_PENDING
        logger.info("Idle timeout of %dms reached, entering sleep mode", self._cfg.idle_timeout_ms)
        self._shutdown(StopReason.IDLE_TIMEOUT, generation)

    # ---------------------------------------------------------------- callbacks

    def _handle_voice(self, generation: int) -> None:
        with self._lock:
            if self._is_current(generation):
                self._cancel_idle_timer()

    def _handle_level(self, level: float) -> None:
        self._safe_call(self._on_input_level, level)

    def _report_error(self, message: str) -> None:
        self._last_error = message
        self._safe_call(self._on_error, message)

    def _publish_status(self) -> None:
        with self._lock:
            status = SupervisorStatus(
                is_active=self._active,
                is_recording=self._recording,
                is_processing=self._processing,
            )
            if status == self._published:
                return
            self._published = status
        self._safe_call(self._on_status_change, status)

    def _is_current(self, generation: int) -> bool:
        return self._active and self._generation == generation

    @staticmethod
    def _safe_call(callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Capture callback %r failed", callback)
