"""Error taxonomy for the capture pipeline."""

from typing import Optional


class VoiceCaptureError(Exception):
    """Base class for voice capture failures."""


class DeviceError(VoiceCaptureError):
    """Microphone permission denied, no input device, or the device went away mid-session."""


class ServiceError(VoiceCaptureError):
    """Transcription service call failed; retried by the transcription client."""


class ServiceTimeout(ServiceError):
    """Transcription service did not answer within the configured timeout."""


class TranscriptionFailed(VoiceCaptureError):
    """Raised once every retry attempt for a segment has failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Transcription failed after {attempts} attempt(s): {last_error}")
