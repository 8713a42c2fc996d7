"""Audio subsystem - microphone capture, silence detection and transcription."""

from .input import (
    AudioFormat,
    CaptureConfig,
    CaptureSupervisor,
    NoiseSuppressionLevel,
)

__all__ = [
    "AudioFormat",
    "CaptureConfig",
    "CaptureSupervisor",
    "NoiseSuppressionLevel",
]
