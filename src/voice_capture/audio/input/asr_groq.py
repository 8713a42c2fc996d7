"""Remote speech recognition through an OpenAI-compatible transcription endpoint (Groq)."""

from __future__ import annotations

import logging
from typing import Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI, OpenAIError

from ...core.errors import ServiceError, ServiceTimeout

from .segment import filename_for

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_STT_MODEL = "whisper-large-v3"


class GroqTranscriptionService:
    """
    TranscriptionService posting segments to `/audio/transcriptions`.

    Retries are owned by the TranscriptionClient, so the SDK's own retry loop is off.
    """

    def __init__(
        self,
        api_key: str,
        model: str = GROQ_STT_MODEL,
        base_url: str = GROQ_BASE_URL,
        language: Optional[str] = None,
    ):
        if not api_key:
            raise ValueError("An API key is required for the Groq transcription backend")
        self.model = model
        self.base_url = base_url
        self.language = language
        self.client = OpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    def submit(self, audio: bytes, mime_type: str, *, timeout_s: float) -> str:
        filename = filename_for(mime_type)
        logger.debug("Starting transcription: %d bytes as %s (%s)", len(audio), filename, mime_type)

        api_kwargs = {
            "model": self.model,
            "file": (filename, audio, mime_type),
            "timeout": timeout_s,
        }
        if self.language:
            api_kwargs["language"] = self.language

        try:
            response = self.client.audio.transcriptions.create(**api_kwargs)
        except APITimeoutError as e:
            raise ServiceTimeout(f"STT request timed out after {timeout_s:.1f}s") from e
        except APIStatusError as e:
            raise ServiceError(f"STT failed {e.status_code}: {e.message}") from e
        except APIConnectionError as e:
            raise ServiceError(f"STT connection error: {e}") from e
        except OpenAIError as e:
            raise ServiceError(f"STT error: {e}") from e

        text = getattr(response, "text", "") or ""
        logger.debug("Parsed transcript: %r", text)
        return str(text).strip()
