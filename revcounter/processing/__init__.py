"""Signal processing package.

- :mod:`~revcounter.processing.statistics` — pure per-buffer mean/stdev.
- :mod:`~revcounter.processing.calibration` — warm-up baseline accumulator.
"""

from .calibration import CalibrationAccumulator, CalibrationInfo
from .statistics import BufferStatistics, compute_buffer_statistics

__all__ = [
    "BufferStatistics",
    "CalibrationAccumulator",
    "CalibrationInfo",
    "compute_buffer_statistics",
]
