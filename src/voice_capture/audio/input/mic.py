"""Microphone audio capture."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Optional

import numpy as np
import sounddevice as sd

from ...core.errors import DeviceError

from .types import AudioFrame, CaptureHints, FrameConfig

logger = logging.getLogger(__name__)


class SoundDeviceStream:
    """AudioStreamHandle backed by a running sounddevice.InputStream."""

    def __init__(self, stream: sd.InputStream, frames_queue: "queue.Queue[AudioFrame]"):
        self._stream = stream
        self._frames_queue = frames_queue
        self._released = False
        self._lock = threading.Lock()

    @property
    def released(self) -> bool:
        return self._released

    def read(self) -> list[np.ndarray]:
        frames: list[np.ndarray] = []
        while True:
            try:
                frames.append(self._frames_queue.get_nowait().pcm)
            except queue.Empty:
                break
        if not frames and not self._released and not self._stream.active:
            raise DeviceError("Microphone stream stopped unexpectedly")
        return frames

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        try:
            self._stream.stop()
        finally:
            self._stream.close()
            logger.info("Microphone capture stopped")


class SoundDeviceMicrophone:
    """
    Opens the system microphone through PortAudio.

    The stream callback stays lightweight: it only copies the first channel
    into a bounded queue, analysis happens on the session tick.
    """

    def __init__(
        self,
        device: Optional[int] = None,
        frame_cfg: FrameConfig = FrameConfig(),
        dtype: str = "float32",
    ):
        self._device = device
        self._frame_cfg = frame_cfg
        self._dtype = dtype

    def acquire(self, hints: CaptureHints) -> SoundDeviceStream:
        # Calculate blocksize (number of samples per frame)
        blocksize = int(hints.sample_rate * self._frame_cfg.frame_ms / 1000)

        dtype_map = {
            "float32": np.float32,
            "int16": np.int16,
            "int32": np.int32,
        }
        dtype = dtype_map.get(self._dtype, np.float32)
        frames_queue: queue.Queue[AudioFrame] = queue.Queue(maxsize=self._frame_cfg.max_frames_queue)

        # PortAudio has no echo cancellation / AGC switches; the OS input chain owns those.
        logger.debug(
            "Capture hints: echo_cancellation=%s noise_suppression=%s auto_gain_control=%s",
            hints.echo_cancellation, hints.noise_suppression, hints.auto_gain_control,
        )

        def audio_callback(indata, frames, time_info, status):
            if status:
                logger.warning(f"Audio callback status: {status}")

            # indata shape is (frames, channels), we take first channel
            if indata.ndim > 1 and indata.shape[1] > 0:
                pcm = indata[:, 0].astype(np.float32)
            else:
                pcm = indata.flatten().astype(np.float32)
            if dtype is np.int16:
                pcm = pcm / 32768.0
            elif dtype is np.int32:
                pcm = pcm / 2147483648.0

            frame = AudioFrame(
                pcm=pcm,
                sample_rate=hints.sample_rate,
                timestamp_s=time.time(),
            )
            try:
                frames_queue.put_nowait(frame)
            except queue.Full:
                logger.warning("Frames queue is full, dropping audio frame")

        try:
            stream = sd.InputStream(
                callback=audio_callback,
                samplerate=hints.sample_rate,
                channels=hints.channel_count,
                blocksize=blocksize,
                dtype=dtype,
                device=self._device,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceError(f"Could not open microphone: {e}") from e

        try:
            stream.start()
        except sd.PortAudioError as e:
            stream.close()
            raise DeviceError(f"Could not start microphone: {e}") from e

        logger.info("Microphone capture started (device=%s, %d Hz)", self._device, hints.sample_rate)
        return SoundDeviceStream(stream, frames_queue)


def list_input_devices() -> list[dict]:
    """Input-capable devices as reported by PortAudio."""
    devices = []
    for index, info in enumerate(sd.query_devices()):
        if info.get("max_input_channels", 0) > 0:
            devices.append({
                "index": index,
                "name": info.get("name", ""),
                "channels": info["max_input_channels"],
                "default_samplerate": info.get("default_samplerate"),
            })
    return devices
