"""Hands-free voice capture: adaptive silence detection, transcription and auto-restart."""

__version__ = "0.1.0"
