from dataclasses import dataclass
from enum import Enum, auto


class SupervisorState(Enum):
    INACTIVE = auto()
    STARTING = auto()              # acquiring the microphone
    RECORDING = auto()
    PROCESSING = auto()            # segment is with the transcription client
    AUTO_RESTART_PENDING = auto()
    IDLE_TIMEOUT_PENDING = auto()  # idle timer fired, loop is shutting down


class StopReason(Enum):
    """Why a capture loop ended."""
    USER = auto()
    IDLE_TIMEOUT = auto()
    HIDDEN = auto()        # hosting context was backgrounded
    DEVICE_ERROR = auto()
    COMPLETED = auto()     # single cycle finished without auto-restart
    SHUTDOWN = auto()      # supervisor closed
    ERROR = auto()


@dataclass(frozen=True)
class SupervisorStatus:
    """Observable flags for UI binding."""
    is_active: bool = False
    is_recording: bool = False
    is_processing: bool = False
