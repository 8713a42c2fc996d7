"""Transcription client: size guard, timeout, retry with backoff, de-duplication."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Protocol

from ...core.errors import ServiceError, ServiceTimeout, TranscriptionFailed
from ...core.shutdown import CancelToken

from .sanitize import sanitize_transcript
from .segment import AudioSegment
from .types import CaptureConfig

logger = logging.getLogger("Transcriber")


class TranscriptionService(Protocol):
    """Stateless speech-to-text backend; may be called repeatedly and concurrently."""

    def submit(self, audio: bytes, mime_type: str, *, timeout_s: float) -> str:
        """Return the raw transcript or raise ServiceError / ServiceTimeout."""
        ...


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: base, base*factor, base*factor^2, ..."""
    max_retries: int = 2
    base_delay_s: float = 0.3
    factor: float = 2.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return self.base_delay_s * (self.factor ** max(attempt - 1, 0))

    @classmethod
    def from_config(cls, cfg: CaptureConfig) -> "RetryPolicy":
        return cls(max_retries=cfg.max_retries, base_delay_s=cfg.retry_base_delay_ms / 1000.0)


class OutcomeStatus(Enum):
    ACCEPTED = auto()     # new, meaningful transcript
    DISCARDED = auto()    # segment too small to be speech; not sent
    NO_RESULT = auto()    # empty after sanitizing, or same as the previous transcript
    CANCELLED = auto()


@dataclass(frozen=True)
class TranscriptionOutcome:
    status: OutcomeStatus
    text: str = ""
    attempts: int = 0


class TranscriptionClient:
    """
    Sends finished segments to a TranscriptionService.

    Each attempt runs on a worker thread and is abandoned after
    `transcribe_timeout_ms`. Failed attempts are retried per the RetryPolicy;
    cancelling the token stops waiting and skips remaining retries.

    An ACCEPTED text becomes the de-duplication reference only once the caller
    has delivered it and calls commit().
    """

    def __init__(
        self,
        service: TranscriptionService,
        config: CaptureConfig,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        poll_interval_s: float = 0.05,
    ):
        self._service = service
        self._cfg = config
        self._policy = retry_policy or RetryPolicy.from_config(config)
        self._poll_interval_s = poll_interval_s
        self._last_transcript: Optional[str] = None
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="TranscriptionWorker")

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    @property
    def last_transcript(self) -> Optional[str]:
        return self._last_transcript

    def commit(self, text: str) -> None:
        """Record a delivered transcript; the next identical one yields NO_RESULT."""
        self._last_transcript = text

    def reset(self) -> None:
        self._last_transcript = None

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def should_discard(self, segment: Optional[AudioSegment]) -> bool:
        return segment is None or segment.size < self._cfg.min_segment_bytes

    def transcribe(self, segment: Optional[AudioSegment], cancel: Optional[CancelToken] = None) -> TranscriptionOutcome:
        if cancel is None:
            cancel = CancelToken()

        if self.should_discard(segment):
            logger.debug("Discarding segment smaller than minimum viable size (%s bytes)",
                         segment.size if segment is not None else 0)
            return TranscriptionOutcome(OutcomeStatus.DISCARDED)

        last_error: Optional[ServiceError] = None
        for attempt in range(1, self._policy.max_attempts + 1):
            if cancel.is_cancelled():
                return TranscriptionOutcome(OutcomeStatus.CANCELLED, attempts=attempt - 1)

            try:
                raw = self._submit(segment, cancel)
            except ServiceError as exc:
                last_error = exc
                logger.warning("Transcribe attempt %d/%d failed: %s", attempt, self._policy.max_attempts, exc)
                if attempt < self._policy.max_attempts and cancel.wait(self._policy.delay_for(attempt)):
                    return TranscriptionOutcome(OutcomeStatus.CANCELLED, attempts=attempt)
                continue

            if raw is None or cancel.is_cancelled():
                return TranscriptionOutcome(OutcomeStatus.CANCELLED, attempts=attempt)

            text = sanitize_transcript(raw)
            if not text or text == self._last_transcript:
                logger.debug("No new transcript or duplicate/invalid: %r", text)
                return TranscriptionOutcome(OutcomeStatus.NO_RESULT, text=text, attempts=attempt)

            logger.info("Transcript accepted after %d attempt(s): %s", attempt, text)
            return TranscriptionOutcome(OutcomeStatus.ACCEPTED, text=text, attempts=attempt)

        logger.error("Transcription failed after retries: %s", last_error)
        raise TranscriptionFailed(self._policy.max_attempts, last_error)

    def _submit(self, segment: AudioSegment, cancel: CancelToken) -> Optional[str]:
        """One attempt with a hard timeout. Returns None if cancelled while waiting."""
        timeout_s = self._cfg.transcribe_timeout_ms / 1000.0
        started_at = time.monotonic()
        deadline = started_at + timeout_s
        future = self._executor.submit(
            self._service.submit, segment.data, segment.mime_type, timeout_s=timeout_s
        )

        while True:
            if cancel.is_cancelled():
                future.cancel()
                return None
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                raise ServiceTimeout(f"Transcription timed out after {self._cfg.transcribe_timeout_ms}ms")
            done, _ = wait([future], timeout=min(remaining, self._poll_interval_s))
            if not done:
                continue
            try:
                raw = future.result()
            except ServiceError:
                raise
            except Exception as exc:
                raise ServiceError(str(exc) or exc.__class__.__name__) from exc

            logger.debug("Transcription service answered in %.3fs", time.monotonic() - started_at)
            return raw or ""
