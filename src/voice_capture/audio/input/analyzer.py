"""RMS loudness analysis with an adaptive noise floor."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Optional

import numpy as np


def rms(samples: np.ndarray) -> float:
    """Root-mean-square of a float buffer; 0.0 for an empty buffer."""
    if samples.size == 0:
        return 0.0
    samples = samples.astype(np.float64, copy=False)
    return float(np.sqrt(np.mean(samples * samples)))


class NoiseFloorEstimate:
    """Running mean of ambient loudness over the calibration window."""

    def __init__(self):
        self.value: Optional[float] = None
        self.sample_count = 0

    def update(self, level: float) -> float:
        self.sample_count += 1
        weight = 1.0 / self.sample_count
        self.value = (self.value or 0.0) * (1.0 - weight) + level * weight
        return self.value


@dataclass(frozen=True)
class AnalyzerReading:
    level: float
    smoothed_level: float
    threshold: float
    is_silent: bool


class SignalAnalyzer:
    """
    Classifies short audio windows as silence or speech.

    The first `calibration_ticks` windows seed the noise floor (when adaptive mode is on);
    after that the floor is frozen and the effective threshold is
    max(static_threshold, noise_floor * multiplier).
    """

    def __init__(
        self,
        static_threshold: float,
        *,
        adaptive: bool = True,
        calibration_ticks: int = 8,
        multiplier: float = 1.7,
        smoothing: int = 5,
    ):
        self._static_threshold = static_threshold
        self._adaptive = adaptive
        self._calibration_ticks = calibration_ticks
        self._multiplier = multiplier
        self._history: deque[float] = deque(maxlen=smoothing)
        self._noise_floor = NoiseFloorEstimate()

    @property
    def noise_floor(self) -> Optional[float]:
        return self._noise_floor.value

    @property
    def calibrating(self) -> bool:
        return self._adaptive and self._noise_floor.sample_count < self._calibration_ticks

    @property
    def threshold(self) -> float:
        floor = self._noise_floor.value
        if self._adaptive and floor is not None:
            return max(self._static_threshold, floor * self._multiplier)
        return self._static_threshold

    def reset(self) -> None:
        self._noise_floor = NoiseFloorEstimate()
        self._history.clear()

    def analyze(self, samples: np.ndarray) -> AnalyzerReading:
        level = rms(samples)
        if self.calibrating:
            self._noise_floor.update(level)

        threshold = self.threshold
        self._history.append(level)
        smoothed = sum(self._history) / len(self._history)
        return AnalyzerReading(
            level=level,
            smoothed_level=smoothed,
            threshold=threshold,
            is_silent=level <= threshold,
        )
