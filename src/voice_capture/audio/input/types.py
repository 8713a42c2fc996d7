"""Audio input subsystem data types and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import numpy as np


@dataclass(frozen=True)
class AudioFormat:
    """Audio format specification."""
    sample_rate: int = 16000
    channels: int = 1
    dtype: str = "float32"  # sounddevice dtype name


@dataclass(frozen=True)
class FrameConfig:
    """Frame-level audio processing configuration."""
    frame_ms: int = 20
    max_frames_queue: int = 400


class NoiseSuppressionLevel(str, Enum):
    OFF = "off"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class CaptureHints:
    """Capture constraints passed to the microphone source."""
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True
    sample_rate: int = 16000
    channel_count: int = 1

    @classmethod
    def from_level(cls, level: NoiseSuppressionLevel, audio_format: AudioFormat) -> "CaptureHints":
        enabled = NoiseSuppressionLevel(level) is not NoiseSuppressionLevel.OFF
        return cls(
            echo_cancellation=enabled,
            noise_suppression=enabled,
            auto_gain_control=enabled,
            sample_rate=audio_format.sample_rate,
            channel_count=1,
        )


@dataclass(frozen=True)
class CaptureConfig:
    """
    Capture loop configuration, immutable per supervisor.

    Durations are in milliseconds; thresholds are RMS values on [-1, 1] audio.
    """
    silence_threshold_rms: float = 0.02
    silence_window_ms: int = 1200
    # WAV bytes: 44-byte header + 0.5 s of 16 kHz 16-bit mono (32 bytes per ms)
    min_segment_bytes: int = 16044
    min_duration_ms: int = 0
    max_duration_ms: int = 60000
    auto_restart: bool = False
    auto_restart_delay_ms: int = 350
    discard_backoff_ms: int = 500
    transcribe_timeout_ms: int = 30000
    max_retries: int = 2
    retry_base_delay_ms: int = 300
    adaptive_threshold: bool = True
    calibration_ticks: int = 8
    noise_floor_multiplier: float = 1.7
    idle_timeout_ms: int = 10000
    noise_suppression_level: NoiseSuppressionLevel = NoiseSuppressionLevel.MEDIUM
    tick_interval_ms: int = 16
    level_smoothing: int = 5
    audio_format: AudioFormat = field(default_factory=AudioFormat)

    def __post_init__(self) -> None:
        if self.silence_threshold_rms < 0:
            raise ValueError("silence_threshold_rms must be >= 0")
        for name in ("silence_window_ms", "max_duration_ms", "transcribe_timeout_ms",
                     "idle_timeout_ms", "tick_interval_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        for name in ("min_segment_bytes", "min_duration_ms", "auto_restart_delay_ms",
                     "discard_backoff_ms", "max_retries", "retry_base_delay_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.calibration_ticks < 1:
            raise ValueError("calibration_ticks must be >= 1")
        if self.level_smoothing < 1:
            raise ValueError("level_smoothing must be >= 1")
        if self.noise_floor_multiplier <= 0:
            raise ValueError("noise_floor_multiplier must be > 0")
        # Accept plain strings from env/CLI
        object.__setattr__(
            self, "noise_suppression_level", NoiseSuppressionLevel(self.noise_suppression_level)
        )

    @property
    def hints(self) -> CaptureHints:
        return CaptureHints.from_level(self.noise_suppression_level, self.audio_format)

    @classmethod
    def push_to_talk(cls, **overrides) -> "CaptureConfig":
        """Tap-to-talk: one utterance per start, static-ish threshold, short silence window."""
        values = dict(
            silence_threshold_rms=0.02,
            silence_window_ms=1200,
            min_segment_bytes=16044,
            auto_restart=False,
            idle_timeout_ms=10000,
            calibration_ticks=6,
            noise_floor_multiplier=1.7,
        )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def hands_free(cls, **overrides) -> "CaptureConfig":
        """Always-listening loop that goes to sleep after a few seconds without speech."""
        values = dict(
            silence_threshold_rms=0.005,
            silence_window_ms=2500,
            min_segment_bytes=50,  # only empty or near-empty segments
            min_duration_ms=1500,
            auto_restart=True,
            idle_timeout_ms=5000,
            calibration_ticks=10,
            noise_floor_multiplier=1.5,
        )
        values.update(overrides)
        return cls(**values)


@dataclass
class AudioFrame:
    """Single audio frame from microphone."""
    pcm: np.ndarray          # shape: (n_samples,) float32
    sample_rate: int
    timestamp_s: float


class AudioStreamHandle(Protocol):
    """An open microphone stream owned by exactly one capture session."""

    def read(self) -> list[np.ndarray]:
        """Return mono float32 frames captured since the previous read (may be empty)."""
        ...

    def release(self) -> None:
        """Close the device. Must be safe to call more than once."""
        ...


class MicrophoneSource(Protocol):
    def acquire(self, hints: CaptureHints) -> AudioStreamHandle:
        """Open the microphone or raise DeviceError."""
        ...
