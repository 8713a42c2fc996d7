"""Local speech recognition using faster-whisper."""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Optional

from faster_whisper import WhisperModel

from ...core.errors import ServiceError

from .segment import decode_wav

logger = logging.getLogger("ASR")

# Common Whisper hallucination phrases to strip from transcript start/end (case-insensitive)
_HALLUCINATION_PHRASES = (
    "thank you",
    "thanks for watching",
    "thanks for listening",
)
_HALLUCINATION_LEAD_PATTERNS = tuple(
    re.compile(r"^\s*[.,!?]*\s*" + re.escape(p) + r"[.,!?\s]*", re.IGNORECASE)
    for p in _HALLUCINATION_PHRASES
)
_HALLUCINATION_TRAIL_PATTERNS = tuple(
    re.compile(r"[.,!?\s]*" + re.escape(p) + r"\s*[.,!?]*\s*$", re.IGNORECASE)
    for p in _HALLUCINATION_PHRASES
)
# Reduce noise from faster-whisper
logging.getLogger("faster_whisper").setLevel(logging.WARNING)


def strip_hallucination_phrases(text: str) -> str:
    """
    Remove common Whisper hallucination phrases from start and end of text.
    Case-insensitive; allows optional punctuation/whitespace around phrases.
    """
    t = text.strip()
    while True:
        changed = False
        for lead_re, trail_re in zip(_HALLUCINATION_LEAD_PATTERNS, _HALLUCINATION_TRAIL_PATTERNS):
            t_new = lead_re.sub("", t).strip()
            t_new = trail_re.sub("", t_new).strip()
            if t_new != t:
                t = t_new
                changed = True
                break
        if not changed:
            break
    return t


class WhisperTranscriptionService:
    """
    TranscriptionService running faster-whisper in-process.

    Accepts WAV segments. The model is loaded once; calls are serialized because
    a WhisperModel instance is not safe to share across threads.
    """

    def __init__(
        self,
        model_size: str = "base",
        device: str = "cpu",
        compute_type: str = "default",
        language: Optional[str] = None,
    ):
        logger.info("Loading ASR model: %s (device=%s)", model_size, device)
        self._model = WhisperModel(
            model_size,
            device=device,
            compute_type=compute_type,
        )
        self._model_size = model_size
        self._language = language
        self._lock = threading.Lock()

    def submit(self, audio: bytes, mime_type: str, *, timeout_s: float) -> str:
        if "wav" not in mime_type:
            raise ServiceError(f"Local ASR only accepts WAV audio, got {mime_type}")
        try:
            pcm, sample_rate = decode_wav(audio)
        except Exception as e:
            raise ServiceError(f"Could not decode audio segment: {e}") from e
        if pcm.size == 0:
            return ""
        if sample_rate != 16000:
            logger.warning("ASR expects 16 kHz audio, got %d Hz", sample_rate)

        started_at = time.time()
        logger.info("ASR started at %.3f", started_at)
        try:
            with self._lock:
                segments, info = self._model.transcribe(
                    pcm,
                    language=self._language,
                    vad_filter=False,
                    log_progress=False,
                )
                text = " ".join(s.text.strip() for s in segments).strip()
        except Exception as e:
            raise ServiceError(f"Local ASR failed: {e}") from e

        text = strip_hallucination_phrases(text)
        ended_at = time.time()
        logger.info(
            "ASR ended at %.3f, duration_s=%.3f, language=%s",
            ended_at, ended_at - started_at, getattr(info, "language", None),
        )
        return text
