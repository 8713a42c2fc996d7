import os
from pathlib import Path
from typing import Literal, Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv
import logging

from ..audio.input.asr_groq import GROQ_BASE_URL, GROQ_STT_MODEL
from ..audio.input.types import AudioFormat, CaptureConfig, NoiseSuppressionLevel

logger = logging.getLogger(__name__)


class VoiceCaptureSettings(BaseModel):
    stt_backend: Literal["groq", "whisper"] = Field(default="groq", description="Speech-to-text backend: groq (remote) or whisper (local faster-whisper)")
    groq_api_key: Optional[str] = Field(default=None, description="API key for the Groq transcription endpoint")
    stt_model: str = Field(default=GROQ_STT_MODEL, description="Remote transcription model")
    stt_base_url: str = Field(default=GROQ_BASE_URL, description="OpenAI-compatible transcription API base URL")
    stt_language: Optional[str] = Field(default=None, description="Language hint for transcription (None = auto-detect)")
    whisper_model_size: str = Field(default="base", description="faster-whisper model size (tiny, base, small, medium, large-v3)")
    whisper_device: str = Field(default="cpu", description="faster-whisper device (cpu, cuda)")
    silence_threshold: float = Field(default=0.02, ge=0, description="Static RMS silence threshold (0..1)")
    silence_window_ms: int = Field(default=1200, gt=0, description="How long silence must persist before a segment ends")
    min_segment_bytes: int = Field(default=16044, ge=0, description="WAV segments smaller than this (about 0.5 s of audio) are discarded as noise")
    min_duration_ms: int = Field(default=0, ge=0, description="Minimum recording time before silence may end a segment")
    max_duration_ms: int = Field(default=60000, gt=0, description="Hard cap on a single segment")
    auto_restart: bool = Field(default=True, description="Re-arm recording automatically after each segment")
    auto_restart_delay_ms: int = Field(default=350, ge=0, description="Delay before listening again")
    idle_timeout_ms: int = Field(default=10000, gt=0, description="Stop the hands-free loop after this long without speech")
    transcribe_timeout_ms: int = Field(default=30000, gt=0, description="Timeout for one transcription attempt")
    max_retries: int = Field(default=2, ge=0, description="Transcription retry attempts")
    adaptive_threshold: bool = Field(default=True, description="Calibrate the silence threshold to ambient noise")
    noise_suppression: NoiseSuppressionLevel = Field(default=NoiseSuppressionLevel.MEDIUM, description="Capture noise suppression: off, low, medium, high")
    input_device: Optional[int] = Field(default=None, description="PortAudio input device index (None = system default)")
    sample_rate: int = Field(default=16000, gt=0, description="Capture sample rate in Hz")
    log_level: str = Field(default="INFO", description="Logging level")

    def to_capture_config(self, **overrides) -> CaptureConfig:
        values = dict(
            silence_threshold_rms=self.silence_threshold,
            silence_window_ms=self.silence_window_ms,
            min_segment_bytes=self.min_segment_bytes,
            min_duration_ms=self.min_duration_ms,
            max_duration_ms=self.max_duration_ms,
            auto_restart=self.auto_restart,
            auto_restart_delay_ms=self.auto_restart_delay_ms,
            idle_timeout_ms=self.idle_timeout_ms,
            transcribe_timeout_ms=self.transcribe_timeout_ms,
            max_retries=self.max_retries,
            adaptive_threshold=self.adaptive_threshold,
            noise_suppression_level=self.noise_suppression,
            audio_format=AudioFormat(sample_rate=self.sample_rate),
        )
        values.update(overrides)
        return CaptureConfig(**values)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name, "")
    return value or None


def load_config(config_path: Optional[Path] = None) -> VoiceCaptureSettings:
    if config_path is None:
        config_path = Path(".env")

    if config_path.exists():
        load_dotenv(config_path)
        logger.info(f"Loaded environment variables from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found, using environment variables only")

    try:
        input_device = _env_optional("INPUT_DEVICE")
        config = VoiceCaptureSettings(
            stt_backend=os.getenv("STT_BACKEND", "groq").lower(),
            groq_api_key=_env_optional("GROQ_API_KEY"),
            stt_model=os.getenv("STT_MODEL", GROQ_STT_MODEL),
            stt_base_url=os.getenv("STT_BASE_URL", GROQ_BASE_URL),
            stt_language=_env_optional("STT_LANGUAGE"),
            whisper_model_size=os.getenv("WHISPER_MODEL_SIZE", "base"),
            whisper_device=os.getenv("WHISPER_DEVICE", "cpu"),
            silence_threshold=float(os.getenv("SILENCE_THRESHOLD", "0.02")),
            silence_window_ms=int(os.getenv("SILENCE_WINDOW_MS", "1200")),
            min_segment_bytes=int(os.getenv("MIN_SEGMENT_BYTES", "16044")),
            min_duration_ms=int(os.getenv("MIN_DURATION_MS", "0")),
            max_duration_ms=int(os.getenv("MAX_DURATION_MS", "60000")),
            auto_restart=_env_bool("AUTO_RESTART", "true"),
            auto_restart_delay_ms=int(os.getenv("AUTO_RESTART_DELAY_MS", "350")),
            idle_timeout_ms=int(os.getenv("IDLE_TIMEOUT_MS", "10000")),
            transcribe_timeout_ms=int(os.getenv("TRANSCRIBE_TIMEOUT_MS", "30000")),
            max_retries=int(os.getenv("MAX_RETRIES", "2")),
            adaptive_threshold=_env_bool("ADAPTIVE_THRESHOLD", "true"),
            noise_suppression=os.getenv("NOISE_SUPPRESSION", "medium").lower(),
            input_device=int(input_device) if input_device is not None else None,
            sample_rate=int(os.getenv("SAMPLE_RATE", "16000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        if config.stt_backend == "groq" and not config.groq_api_key:
            raise ValueError("GROQ_API_KEY is required for the groq STT backend")

        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise


def create_example_env_file(path: Path = Path(".env.example")):
    example_content = """# Speech-to-text backend: groq (remote) or whisper (local faster-whisper)
STT_BACKEND=groq

# Groq API Key - Get from https://console.groq.com/
GROQ_API_KEY=your_api_key_here
STT_MODEL=whisper-large-v3
STT_BASE_URL=https://api.groq.com/openai/v1
# Language hint, leave empty to auto-detect
STT_LANGUAGE=

# Local whisper settings (STT_BACKEND=whisper)
WHISPER_MODEL_SIZE=base
WHISPER_DEVICE=cpu

# Silence detection
SILENCE_THRESHOLD=0.02
SILENCE_WINDOW_MS=1200
MIN_SEGMENT_BYTES=16044
MIN_DURATION_MS=0
ADAPTIVE_THRESHOLD=true

# Hands-free loop
AUTO_RESTART=true
AUTO_RESTART_DELAY_MS=350
IDLE_TIMEOUT_MS=10000

# Transcription timeout and retries
TRANSCRIBE_TIMEOUT_MS=30000
MAX_RETRIES=2

# Capture device: off, low, medium, high
NOISE_SUPPRESSION=medium
# PortAudio input device index, leave empty for the system default
INPUT_DEVICE=
SAMPLE_RATE=16000

# Logging level
LOG_LEVEL=INFO
"""

    with open(path, "w") as f:
        f.write(example_content)

    logger.info(f"Created example environment file at {path}")


def setup_logging(log_level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
