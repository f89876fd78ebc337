"""Baseline calibration — running mean of buffer stdev during warm-up."""

from __future__ import annotations

from dataclasses import dataclass

from ..constants import DEFAULT_CALIBRATION_READINGS


@dataclass(frozen=True, slots=True)
class CalibrationInfo:
    """Immutable view of the calibration progress."""

    readings: int = 0
    mean: float = 0.0


class CalibrationAccumulator:
    """Incremental mean of stdev readings; O(1) memory, no history kept.

    Once ``target_readings`` readings have been accumulated the baseline is
    frozen and further readings are refused.
    """

    __slots__ = ("target_readings", "_readings", "_mean")

    def __init__(self, target_readings: int = DEFAULT_CALIBRATION_READINGS) -> None:
        if target_readings < 1:
            raise ValueError(f"target_readings must be ≥1, got {target_readings!r}")
        self.target_readings = int(target_readings)
        self._readings = 0
        self._mean = 0.0

    @property
    def readings(self) -> int:
        return self._readings

    @property
    def mean(self) -> float:
        return self._mean

    @property
    def is_complete(self) -> bool:
        return self._readings >= self.target_readings

    def accumulate(self, stdev: float) -> bool:
        """Fold *stdev* into the running mean.

        Returns ``True`` exactly once: on the reading that completes
        calibration.
        """
        if self.is_complete:
            raise RuntimeError("Calibration is complete; the baseline is frozen")
        self._readings += 1
        self._mean += (stdev - self._mean) / self._readings
        return self._readings == self.target_readings

    def info(self) -> CalibrationInfo:
        return CalibrationInfo(readings=self._readings, mean=self._mean)
