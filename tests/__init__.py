"""
Voice Capture Tests
===================

This package contains unit tests for the voice capture components.

Test Structure:
- test_analyzer.py: RMS levels, noise floor calibration, thresholds
- test_session.py: One recording cycle driven tick by tick
- test_transcriber.py: Size guard, timeout, retries, de-duplication
- test_supervisor.py: Start/stop, auto-restart and idle timeout loop
- test_mic.py / test_asr.py / test_asr_groq.py: Device and backend adapters
- test_config.py / test_main.py: Settings and command line entry point
- fakes.py: Microphone, transcription service and clock doubles
- conftest.py: Shared test fixtures and setup

To run tests:
    pytest tests/

To run with coverage:
    pytest tests/ --cov=src/voice_capture

To run specific test file:
    pytest tests/test_supervisor.py
"""
