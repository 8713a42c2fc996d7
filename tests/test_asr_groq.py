"""Tests for the remote (Groq) transcription backend."""

import httpx
import pytest
from unittest.mock import MagicMock, patch

from openai import APIConnectionError, APIStatusError, APITimeoutError

from voice_capture.audio.input.asr_groq import GROQ_BASE_URL, GroqTranscriptionService
from voice_capture.core.errors import ServiceError, ServiceTimeout

REQUEST = httpx.Request("POST", f"{GROQ_BASE_URL}/audio/transcriptions")


@pytest.fixture
def mock_openai():
    with patch("voice_capture.audio.input.asr_groq.OpenAI") as mock_cls:
        client = mock_cls.return_value
        client.audio.transcriptions.create.return_value = MagicMock(text="  hello world \n")
        yield mock_cls


class TestGroqTranscriptionService:
    def test_client_configured_without_sdk_retries(self, mock_openai):
        """The SDK client is built with its own retries disabled."""
        GroqTranscriptionService(api_key="gsk_test")

        mock_openai.assert_called_once_with(api_key="gsk_test", base_url=GROQ_BASE_URL, max_retries=0)

    def test_missing_api_key(self, mock_openai):
        """An empty API key is rejected."""
        with pytest.raises(ValueError):
            GroqTranscriptionService(api_key="")

    def test_submit_uploads_segment(self, mock_openai):
        """The segment is uploaded with a filename matching its MIME type."""
        service = GroqTranscriptionService(api_key="gsk_test", model="whisper-large-v3-turbo")

        text = service.submit(b"RIFF....", "audio/wav", timeout_s=12.5)

        assert text == "hello world"
        kwargs = mock_openai.return_value.audio.transcriptions.create.call_args[1]
        assert kwargs["model"] == "whisper-large-v3-turbo"
        assert kwargs["file"] == ("speech.wav", b"RIFF....", "audio/wav")
        assert kwargs["timeout"] == 12.5
        assert "language" not in kwargs

    def test_language_hint_is_forwarded(self, mock_openai):
        """A configured language is sent with the request."""
        service = GroqTranscriptionService(api_key="gsk_test", language="hi")

        service.submit(b"data", "audio/webm;codecs=opus", timeout_s=5.0)

        kwargs = mock_openai.return_value.audio.transcriptions.create.call_args[1]
        assert kwargs["language"] == "hi"
        assert kwargs["file"][0] == "speech.webm"

    def test_timeout_maps_to_service_timeout(self, mock_openai):
        """SDK timeouts become ServiceTimeout."""
        mock_openai.return_value.audio.transcriptions.create.side_effect = APITimeoutError(request=REQUEST)
        service = GroqTranscriptionService(api_key="gsk_test")

        with pytest.raises(ServiceTimeout):
            service.submit(b"data", "audio/wav", timeout_s=1.0)

    def test_http_error_maps_to_service_error(self, mock_openai):
        """HTTP error responses become ServiceError."""
        response = httpx.Response(503, request=REQUEST)
        mock_openai.return_value.audio.transcriptions.create.side_effect = APIStatusError(
            "Service Unavailable", response=response, body=None
        )
        service = GroqTranscriptionService(api_key="gsk_test")

        with pytest.raises(ServiceError) as exc_info:
            service.submit(b"data", "audio/wav", timeout_s=1.0)
        assert not isinstance(exc_info.value, ServiceTimeout)
        assert "503" in str(exc_info.value)

    def test_connection_error_maps_to_service_error(self, mock_openai):
        """Connection failures become ServiceError."""
        mock_openai.return_value.audio.transcriptions.create.side_effect = APIConnectionError(request=REQUEST)
        service = GroqTranscriptionService(api_key="gsk_test")

        with pytest.raises(ServiceError):
            service.submit(b"data", "audio/wav", timeout_s=1.0)
