"""Shared physical and detection constants — single source of truth.

Every numeric literal that appears in more than one module should live here
so that a change only needs to happen in one place.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------
FT_PER_MILE: Final[float] = 5280.0
"""Feet in one statute mile."""

SECONDS_PER_HOUR: Final[float] = 3600.0
"""Divide a duration in seconds by this to get hours."""

# ---------------------------------------------------------------------------
# Wheel geometry
# ---------------------------------------------------------------------------
DEFAULT_FT_PER_REV: Final[float] = 23.0
"""Distance travelled per wheel revolution (feet)."""

# ---------------------------------------------------------------------------
# Dip detection
# ---------------------------------------------------------------------------
DEFAULT_CALIBRATION_READINGS: Final[int] = 250
"""Number of buffer readings averaged to establish the baseline stdev."""

DIP_THRESHOLD_FRACTION: Final[float] = 0.75
"""Fraction of the calibrated mean stdev used as the dip threshold.

The same fraction is used for entering and for leaving a dip; there is no
hysteresis band between the two guards."""

# ---------------------------------------------------------------------------
# Audio capture
# ---------------------------------------------------------------------------
DEFAULT_SAMPLE_RATE_HZ: Final[int] = 96_000
DEFAULT_BUFFER_SIZE: Final[int] = 1024
"""Samples per analysed buffer.  Detection is unstable past ~30 mph at 2048."""

DEFAULT_MAX_QUEUED_SAMPLES: Final[int] = DEFAULT_BUFFER_SIZE * 10
"""High-water mark for queued capture samples before the backlog is dropped."""

DEFAULT_POLL_INTERVAL_S: Final[float] = 0.01
"""Producer sleep when less than one buffer is queued (~960 samples at 96 kHz)."""
