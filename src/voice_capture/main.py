import argparse
import logging
import threading
from pathlib import Path
from typing import Optional

from .audio.input import CaptureConfig, CaptureSupervisor, FrameConfig, TranscriptionService
from .config.settings import VoiceCaptureSettings, create_example_env_file, load_config, setup_logging
from .core.events import StopReason, SupervisorStatus

logger = logging.getLogger(__name__)


def build_transcription_service(settings: VoiceCaptureSettings) -> TranscriptionService:
    if settings.stt_backend == "whisper":
        from .audio.input.asr import WhisperTranscriptionService

        return WhisperTranscriptionService(
            model_size=settings.whisper_model_size,
            device=settings.whisper_device,
            language=settings.stt_language,
        )

    from .audio.input.asr_groq import GroqTranscriptionService

    return GroqTranscriptionService(
        api_key=settings.groq_api_key or "",
        model=settings.stt_model,
        base_url=settings.stt_base_url,
        language=settings.stt_language,
    )


def check_system_status(settings: VoiceCaptureSettings) -> dict:
    from .audio.input.mic import list_input_devices

    status = {"stt_backend": settings.stt_backend}
    try:
        devices = list_input_devices()
        status["input_devices"] = ", ".join(f"[{d['index']}] {d['name']}" for d in devices) or "none"
    except Exception as e:
        status["input_devices"] = f"unavailable ({e})"
    status["input_device"] = "default" if settings.input_device is None else str(settings.input_device)
    return status


def run(settings: VoiceCaptureSettings, capture_config: CaptureConfig) -> Optional[StopReason]:
    from .audio.input.mic import SoundDeviceMicrophone

    finished = threading.Event()

    def on_transcript(text: str) -> None:
        print(f"You: {text}", flush=True)

    def on_error(message: str) -> None:
        print(f"[error] {message}", flush=True)

    def on_status(status: SupervisorStatus) -> None:
        if status.is_recording:
            print("Listening...", flush=True)
        elif status.is_processing:
            print("Transcribing...", flush=True)

    def on_stopped(reason: StopReason) -> None:
        if reason is StopReason.IDLE_TIMEOUT:
            print("No speech detected, going to sleep.", flush=True)
        finished.set()

    supervisor = CaptureSupervisor(
        capture_config,
        SoundDeviceMicrophone(device=settings.input_device, frame_cfg=FrameConfig()),
        build_transcription_service(settings),
        on_transcript=on_transcript,
        on_error=on_error,
        on_status_change=on_status,
        on_stopped=on_stopped,
    )

    supervisor.start()
    try:
        while not finished.wait(0.2):
            pass
    except KeyboardInterrupt:
        print("\nGoodbye!")
    finally:
        supervisor.close()
    return supervisor.stop_reason


def main():
    parser = argparse.ArgumentParser(description="Hands-free voice capture and transcription")
    parser.add_argument("--config", type=str, help="Path to config file", default=".env")
    parser.add_argument("--check", action="store_true", help="Check system status")
    parser.add_argument("--create-config", action="store_true", help="Create example config file")
    parser.add_argument("--once", action="store_true", help="Capture a single utterance, no auto-restart")

    args = parser.parse_args()

    if args.create_config:
        create_example_env_file()
        print("Example configuration file created at .env.example")
        print("Please copy it to .env and fill in your API keys.")
        return

    config_path = Path(args.config) if args.config else None

    try:
        settings = load_config(config_path)
        setup_logging(settings.log_level)

        if args.check:
            print("Checking system status...")
            for component, state in check_system_status(settings).items():
                print(f"  {component}: {state}")
            return

        overrides = {"auto_restart": False} if args.once else {}
        run(settings, settings.to_capture_config(**overrides))

    except ValueError as e:
        print(f"Configuration error: {e}")
        print("Please check your configuration file and API keys.")
    except KeyboardInterrupt:
        print("\nGoodbye!")
    except Exception as e:
        print(f"Error: {e}")


if __name__ == "__main__":
    main()
