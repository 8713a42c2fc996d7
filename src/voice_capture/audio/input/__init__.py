"""
Audio input subsystem - captures audio, detects end of speech, and transcribes it.

Device and model backed implementations (`mic.SoundDeviceMicrophone`,
`asr.WhisperTranscriptionService`, `asr_groq.GroqTranscriptionService`) are
imported from their modules so the state machine stays importable without
PortAudio or model weights.
"""

from __future__ import annotations

from .types import (
    AudioFormat,
    AudioFrame,
    AudioStreamHandle,
    CaptureConfig,
    CaptureHints,
    FrameConfig,
    MicrophoneSource,
    NoiseSuppressionLevel,
)
from .analyzer import AnalyzerReading, NoiseFloorEstimate, SignalAnalyzer
from .segment import AudioSegment, SegmentSink
from .session import CaptureSession, SessionEndReason, SessionResult, SessionState
from .sanitize import sanitize_transcript
from .transcriber import (
    OutcomeStatus,
    RetryPolicy,
    TranscriptionClient,
    TranscriptionOutcome,
    TranscriptionService,
)
from .supervisor import CaptureSupervisor


__all__ = [
    "AudioFormat",
    "AudioFrame",
    "AudioStreamHandle",
    "CaptureConfig",
    "CaptureHints",
    "FrameConfig",
    "MicrophoneSource",
    "NoiseSuppressionLevel",
    "AnalyzerReading",
    "NoiseFloorEstimate",
    "SignalAnalyzer",
    "AudioSegment",
    "SegmentSink",
    "CaptureSession",
    "SessionEndReason",
    "SessionResult",
    "SessionState",
    "sanitize_transcript",
    "OutcomeStatus",
    "RetryPolicy",
    "TranscriptionClient",
    "TranscriptionOutcome",
    "TranscriptionService",
    "CaptureSupervisor",
]
