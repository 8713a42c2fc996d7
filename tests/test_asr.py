"""Tests for ASR (Automatic Speech Recognition)."""

import numpy as np
import pytest
from unittest.mock import MagicMock, patch

from voice_capture.audio.input.asr import WhisperTranscriptionService, strip_hallucination_phrases
from voice_capture.audio.input.segment import encode_wav
from voice_capture.core.errors import ServiceError


def generate_wav(sample_rate=16000, duration_s=0.5):
    """Generate a short WAV segment (deterministic 440 Hz tone)."""
    n = int(sample_rate * duration_s)
    t = np.linspace(0, duration_s, n, dtype=np.float32)
    return encode_wav((0.3 * np.sin(2 * np.pi * 440 * t)).astype(np.float32), sample_rate)


def mock_model(segments, language="en"):
    info = MagicMock(language=language, language_probability=0.95)
    return MagicMock(transcribe=MagicMock(return_value=(iter(segments), info)))


class TestWhisperTranscriptionService:
    """Unit tests for WhisperTranscriptionService with mocked faster-whisper."""

    @pytest.fixture
    def mock_whisper_model(self):
        """Mock WhisperModel: transcribe returns (segments_iter, info)."""
        segments = [MagicMock(text=" hello ", start=0.0, end=0.5)]
        with patch(
            "voice_capture.audio.input.asr.WhisperModel",
            return_value=mock_model(segments),
        ) as mock_cls:
            yield mock_cls

    def test_submit_returns_text(self, mock_whisper_model):
        """submit() returns the transcribed text."""
        asr = WhisperTranscriptionService(model_size="base", device="cpu")
        text = asr.submit(generate_wav(), "audio/wav", timeout_s=5.0)
        assert text == "hello"

    def test_submit_passes_decoded_pcm_and_language(self, mock_whisper_model):
        """The model gets float PCM decoded from the WAV plus the language hint."""
        asr = WhisperTranscriptionService(model_size="base", device="cpu", language="en")
        asr.submit(generate_wav(duration_s=0.25), "audio/wav", timeout_s=5.0)

        model = mock_whisper_model.return_value
        pcm = model.transcribe.call_args[0][0]
        assert pcm.dtype == np.float32
        assert pcm.shape == (4000,)
        assert model.transcribe.call_args[1]["language"] == "en"

    def test_empty_segment_returns_empty_text(self, mock_whisper_model):
        """A header-only WAV is answered without calling the model."""
        asr = WhisperTranscriptionService(model_size="base", device="cpu")
        text = asr.submit(encode_wav(np.array([], dtype=np.float32), 16000), "audio/wav", timeout_s=5.0)
        assert text == ""
        mock_whisper_model.return_value.transcribe.assert_not_called()

    def test_rejects_non_wav_audio(self, mock_whisper_model):
        """Anything but WAV is refused with a ServiceError."""
        asr = WhisperTranscriptionService()
        with pytest.raises(ServiceError):
            asr.submit(b"\x1a\x45\xdf\xa3", "audio/webm;codecs=opus", timeout_s=5.0)

    def test_undecodable_audio_raises_service_error(self, mock_whisper_model):
        """Corrupt WAV bytes raise ServiceError."""
        asr = WhisperTranscriptionService()
        with pytest.raises(ServiceError):
            asr.submit(b"not a wav file", "audio/wav", timeout_s=5.0)

    def test_model_failure_raises_service_error(self, mock_whisper_model):
        """Model exceptions are reported as ServiceError."""
        mock_whisper_model.return_value.transcribe.side_effect = RuntimeError("CUDA out of memory")
        asr = WhisperTranscriptionService()
        with pytest.raises(ServiceError):
            asr.submit(generate_wav(), "audio/wav", timeout_s=5.0)

    def test_submit_strips_and_joins_segments(self):
        """Multiple segments are joined with space and stripped."""
        segments = [MagicMock(text=" foo ", start=0.0, end=0.2), MagicMock(text=" bar ", start=0.2, end=0.5)]
        with patch("voice_capture.audio.input.asr.WhisperModel", return_value=mock_model(segments, "zh")):
            asr = WhisperTranscriptionService(model_size="base", device="cpu")
            text = asr.submit(generate_wav(), "audio/wav", timeout_s=5.0)
        assert text == "foo bar"

    def test_submit_strips_hallucination_at_end(self):
        """Common Whisper hallucination at end (e.g. thank you) is removed."""
        segments = [MagicMock(text=" hello ", start=0.0, end=0.2), MagicMock(text=" thank you ", start=0.2, end=0.5)]
        with patch("voice_capture.audio.input.asr.WhisperModel", return_value=mock_model(segments)):
            asr = WhisperTranscriptionService(model_size="base", device="cpu")
            text = asr.submit(generate_wav(), "audio/wav", timeout_s=5.0)
        assert text == "hello"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Thank you. 你好", "你好"),
        ("Thank you", ""),
        ("hello world", "hello world"),
        ("Thanks for watching. 内容。 Thanks for listening.", "内容。"),
        ("thank you thank you", ""),
    ],
)
def test_strip_hallucination_phrases(raw, expected):
    """Trailing Whisper filler phrases are removed, real speech is kept."""
    assert strip_hallucination_phrases(raw) == expected
