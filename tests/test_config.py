import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from voice_capture.audio.input.asr_groq import GROQ_BASE_URL, GROQ_STT_MODEL
from voice_capture.audio.input.types import CaptureConfig, NoiseSuppressionLevel
from voice_capture.config.settings import VoiceCaptureSettings, create_example_env_file, load_config


class TestSettings:
    def test_default_settings(self):
        """Test default settings values."""
        settings = VoiceCaptureSettings(groq_api_key="test_key")
        assert settings.stt_backend == "groq"
        assert settings.whisper_model_size == "base"
        assert settings.auto_restart is True
        assert settings.noise_suppression is NoiseSuppressionLevel.MEDIUM
        assert settings.stt_base_url == GROQ_BASE_URL
        assert settings.stt_model == GROQ_STT_MODEL
        assert settings.min_segment_bytes == CaptureConfig().min_segment_bytes

    def test_settings_with_custom_values(self):
        """Test settings with custom values."""
        settings = VoiceCaptureSettings(
            stt_backend="whisper",
            whisper_model_size="small",
            stt_language="en",
        )
        assert settings.stt_backend == "whisper"
        assert settings.whisper_model_size == "small"
        assert settings.stt_language == "en"

    def test_invalid_backend(self):
        """An unknown STT backend is rejected."""
        with pytest.raises(ValueError):
            VoiceCaptureSettings(stt_backend="dragon")

    def test_to_capture_config(self):
        """Settings map onto an equivalent CaptureConfig."""
        settings = VoiceCaptureSettings(
            silence_threshold=0.01,
            silence_window_ms=800,
            auto_restart=True,
            noise_suppression="off",
            sample_rate=48000,
        )
        cfg = settings.to_capture_config(max_retries=5)

        assert isinstance(cfg, CaptureConfig)
        assert cfg.silence_threshold_rms == 0.01
        assert cfg.silence_window_ms == 800
        assert cfg.auto_restart is True
        assert cfg.max_retries == 5
        assert cfg.audio_format.sample_rate == 48000
        assert not cfg.hints.noise_suppression

    @patch.dict(os.environ, {
        "STT_BACKEND": "groq",
        "GROQ_API_KEY": "test_key",
        "SILENCE_WINDOW_MS": "900",
        "AUTO_RESTART": "false",
        "INPUT_DEVICE": "2",
    }, clear=True)
    def test_load_config_from_env(self):
        """Test loading configuration from environment variables."""
        config = load_config(Path("missing.env"))
        assert config.groq_api_key == "test_key"
        assert config.silence_window_ms == 900
        assert config.auto_restart is False
        assert config.input_device == 2
        assert config.stt_language is None

    @patch.dict(os.environ, {"STT_BACKEND": "groq"}, clear=True)
    def test_missing_api_key(self):
        """The groq backend needs GROQ_API_KEY."""
        with pytest.raises(ValueError):
            load_config(Path("missing.env"))

    @patch.dict(os.environ, {"STT_BACKEND": "whisper"}, clear=True)
    def test_local_backend_needs_no_api_key(self):
        """The local whisper backend loads without an API key."""
        config = load_config(Path("missing.env"))
        assert config.stt_backend == "whisper"

    @patch.dict(os.environ, {}, clear=True)
    def test_config_from_temp_file(self):
        """Test loading configuration from a .env file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.env', delete=False) as f:
            f.write("GROQ_API_KEY=temp_key\n")
            f.write("WHISPER_MODEL_SIZE=medium\n")
            f.write("NOISE_SUPPRESSION=HIGH\n")
            temp_path = f.name

        try:
            config = load_config(Path(temp_path))
            assert config.groq_api_key == "temp_key"
            assert config.whisper_model_size == "medium"
            assert config.noise_suppression is NoiseSuppressionLevel.HIGH
        finally:
            os.unlink(temp_path)

    def test_create_example_env_file(self, tmp_path):
        """The example .env file carries the API key and loop settings."""
        path = tmp_path / ".env.example"
        create_example_env_file(path)
        content = path.read_text()
        assert "GROQ_API_KEY=" in content
        assert "IDLE_TIMEOUT_MS=" in content


class TestCaptureConfig:
    def test_defaults(self):
        """Test CaptureConfig defaults."""
        cfg = CaptureConfig()
        assert cfg.silence_threshold_rms == 0.02
        assert cfg.silence_window_ms == 1200
        assert cfg.min_segment_bytes == 16044
        assert cfg.max_duration_ms == 60000
        assert cfg.auto_restart is False
        assert cfg.auto_restart_delay_ms == 350
        assert cfg.max_retries == 2
        assert cfg.idle_timeout_ms == 10000

    def test_presets(self):
        """Push-to-talk and hands-free presets differ where they should."""
        hands_free = CaptureConfig.hands_free()
        assert hands_free.auto_restart is True
        assert hands_free.min_duration_ms == 1500
        assert hands_free.idle_timeout_ms == 5000

        push_to_talk = CaptureConfig.push_to_talk(silence_window_ms=900)
        assert push_to_talk.auto_restart is False
        assert push_to_talk.silence_window_ms == 900

    @pytest.mark.parametrize(
        "field,value",
        [
            ("silence_threshold_rms", -0.1),
            ("silence_window_ms", 0),
            ("min_segment_bytes", -1),
            ("max_retries", -1),
            ("calibration_ticks", 0),
            ("noise_floor_multiplier", 0),
        ],
    )
    def test_invalid_values(self, field, value):
        """Out-of-range values are rejected at construction."""
        with pytest.raises(ValueError):
            CaptureConfig(**{field: value})

    def test_unknown_noise_suppression_level(self):
        """An unknown noise suppression level is rejected."""
        with pytest.raises(ValueError):
            CaptureConfig(noise_suppression_level="extreme")
