"""Recorded audio segments and their container encoding."""

from __future__ import annotations

import io
import wave
from dataclasses import dataclass

import numpy as np

WAV_MIME_TYPE = "audio/wav"

_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/flac": "flac",
}


def filename_for(mime_type: str) -> str:
    """Upload filename matching a MIME hint, e.g. 'audio/webm;codecs=opus' -> 'speech.webm'."""
    base = mime_type.split(";", 1)[0].strip().lower()
    return f"speech.{_EXTENSIONS.get(base, 'wav')}"


@dataclass(frozen=True)
class AudioSegment:
    """One finished, contiguous block of encoded audio from a single capture session."""
    data: bytes
    mime_type: str
    sample_rate: int
    duration_ms: float

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def filename(self) -> str:
        return filename_for(self.mime_type)


def encode_wav(pcm: np.ndarray, sample_rate: int) -> bytes:
    """Encode mono float32 PCM as 16-bit WAV."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wave_file:
        wave_file.setnchannels(1)
        wave_file.setsampwidth(2)
        wave_file.setframerate(sample_rate)

        audio_int16 = (np.clip(pcm, -1.0, 1.0) * 32767).astype(np.int16)
        wave_file.writeframes(audio_int16.tobytes())
    return buf.getvalue()


def decode_wav(data: bytes) -> tuple[np.ndarray, int]:
    """Decode 16-bit mono WAV bytes into (float32 pcm, sample_rate)."""
    with wave.open(io.BytesIO(data), "rb") as wave_file:
        if wave_file.getsampwidth() != 2:
            raise ValueError(f"Unsupported sample width: {wave_file.getsampwidth()}")
        sample_rate = wave_file.getframerate()
        channels = wave_file.getnchannels()
        frames = wave_file.readframes(wave_file.getnframes())

    pcm = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
    if channels > 1:
        pcm = pcm.reshape(-1, channels)[:, 0]
    return pcm, sample_rate


class SegmentSink:
    """
    Accumulates PCM chunks for one session and encodes them on finalize.

    Chunks are owned by the sink and dropped once finalized or discarded.
    """

    def __init__(self, sample_rate: int):
        self._sample_rate = sample_rate
        self._chunks: list[np.ndarray] = []
        self._sample_count = 0

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def duration_ms(self) -> float:
        return self._sample_count * 1000.0 / self._sample_rate

    def write(self, pcm: np.ndarray) -> None:
        if pcm.size == 0:
            return
        self._chunks.append(np.array(pcm, dtype=np.float32, copy=True).reshape(-1))
        self._sample_count += pcm.size

    def finalize(self) -> AudioSegment:
        pcm = np.concatenate(self._chunks) if self._chunks else np.array([], dtype=np.float32)
        duration_ms = self.duration_ms
        self.discard()
        return AudioSegment(
            data=encode_wav(pcm, self._sample_rate),
            mime_type=WAV_MIME_TYPE,
            sample_rate=self._sample_rate,
            duration_ms=duration_ms,
        )

    def discard(self) -> None:
        self._chunks = []
        self._sample_count = 0
