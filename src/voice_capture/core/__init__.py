"""Core module."""

from .shutdown import CancelToken
from .events import StopReason, SupervisorState, SupervisorStatus
from .errors import (
    VoiceCaptureError,
    DeviceError,
    ServiceError,
    ServiceTimeout,
    TranscriptionFailed,
)

__all__ = [
    "CancelToken",
    "StopReason",
    "SupervisorState",
    "SupervisorStatus",
    "VoiceCaptureError",
    "DeviceError",
    "ServiceError",
    "ServiceTimeout",
    "TranscriptionFailed",
]
