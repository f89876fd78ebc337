"""Per-buffer signal statistics.

Pure functions only; no state is kept between buffers.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import NamedTuple

import numpy as np

from ..errors import InsufficientSamplesError

MIN_BUFFER_SAMPLES = 2


class BufferStatistics(NamedTuple):
    """Mean and sample standard deviation of one buffer."""

    mean: float
    stdev: float


def compute_buffer_statistics(buffer: np.ndarray | Sequence[float]) -> BufferStatistics:
    """Return the mean and sample stdev of *buffer* in a single pass.

    Uses Welford's incremental update so the variance stays accurate for
    int16-range samples without a second pass over the data.  The stdev uses
    the ``N - 1`` (sample) denominator.

    Raises
    ------
    InsufficientSamplesError
        When *buffer* holds fewer than two samples.
    ValueError
        When *buffer* is not one-dimensional or holds non-numeric samples.
    """
    try:
        samples = np.asarray(buffer, dtype=np.float64)
    except TypeError as exc:
        raise ValueError(f"Sample buffer is not numeric: {exc}") from exc
    if samples.ndim != 1:
        raise ValueError(f"Expected a 1-D sample buffer, got shape {samples.shape}")
    n_samples = samples.shape[0]
    if n_samples < MIN_BUFFER_SAMPLES:
        raise InsufficientSamplesError(
            f"Buffer holds {n_samples} sample(s); at least {MIN_BUFFER_SAMPLES} are required"
        )

    n = 0
    mean = 0.0
    m2 = 0.0
    for sample in samples.tolist():
        n += 1
        delta = sample - mean
        mean += delta / n
        m2 += delta * (sample - mean)

    return BufferStatistics(mean=mean, stdev=math.sqrt(m2 / (n - 1)))
