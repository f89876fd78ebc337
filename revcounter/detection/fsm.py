"""Threshold state machine for dip detection.

Three states: ``CALIBRATING`` (initial) accumulates a baseline stdev, then
``NO_DIP`` and ``DIP`` alternate as buffer stdev crosses a fixed fraction of
that baseline.  Entering and leaving ``DIP`` use the same threshold; there is
no hysteresis band.

The transition rules live in the pure :func:`transition` function.  Side
effects are returned as values (:class:`DipDetected`) for the owner to consume
after the transition commits; the machine never calls back into its owner.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import NamedTuple

from ..constants import DEFAULT_CALIBRATION_READINGS, DIP_THRESHOLD_FRACTION
from ..processing.calibration import CalibrationAccumulator, CalibrationInfo

LOGGER = logging.getLogger(__name__)


class DetectionState(enum.StrEnum):
    CALIBRATING = "calibrating"
    NO_DIP = "no_dip"
    DIP = "dip"


# -- events -------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Reading:
    """Stdev of one processed buffer."""

    stdev: float


@dataclass(frozen=True, slots=True)
class CalibrationDone:
    """Internal event raised when the baseline has enough readings."""


Event = Reading | CalibrationDone


# -- effects ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DipDetected:
    stdev: float
    threshold: float


class Transition(NamedTuple):
    next_state: DetectionState
    effect: DipDetected | None = None


def transition(
    state: DetectionState,
    event: Event,
    *,
    calibrated_mean: float,
    threshold_fraction: float = DIP_THRESHOLD_FRACTION,
) -> Transition:
    """Return the next state and optional effect for *event* in *state*.

    Baseline accumulation for a ``Reading`` in ``CALIBRATING`` is the
    machine's action, not part of this function: here it is a self-loop.
    """
    if isinstance(event, CalibrationDone):
        if state is DetectionState.CALIBRATING:
            return Transition(DetectionState.NO_DIP)
        return Transition(state)

    threshold = calibrated_mean * threshold_fraction
    if state is DetectionState.NO_DIP and event.stdev < threshold:
        return Transition(DetectionState.DIP, DipDetected(stdev=event.stdev, threshold=threshold))
    if state is DetectionState.DIP and event.stdev > threshold:
        return Transition(DetectionState.NO_DIP)
    return Transition(state)


class ThresholdFSM:
    """Stateful wrapper around :func:`transition` that owns the baseline.

    Not thread-safe and not reentrant: each :meth:`dispatch` runs to
    completion and callers must serialize access.
    """

    def __init__(
        self,
        calibration_readings: int = DEFAULT_CALIBRATION_READINGS,
        threshold_fraction: float = DIP_THRESHOLD_FRACTION,
    ) -> None:
        self.threshold_fraction = float(threshold_fraction)
        self._calibration = CalibrationAccumulator(calibration_readings)
        self._state = DetectionState.CALIBRATING
        self.rejected_readings = 0

    @property
    def state(self) -> DetectionState:
        return self._state

    @property
    def is_calibrating(self) -> bool:
        return self._state is DetectionState.CALIBRATING

    @property
    def calibration(self) -> CalibrationInfo:
        return self._calibration.info()

    @property
    def threshold(self) -> float | None:
        """Current dip threshold, or ``None`` while calibrating."""
        if self.is_calibrating:
            return None
        return self._calibration.mean * self.threshold_fraction

    def dispatch(self, reading: Reading) -> DipDetected | None:
        """Feed one reading; return ``DipDetected`` on a NO_DIP → DIP edge."""
        stdev = reading.stdev
        if not math.isfinite(stdev):
            self.rejected_readings += 1
            LOGGER.debug("Rejecting non-finite stdev reading %r in %s", stdev, self._state.value)
            return None

        if self._state is DetectionState.CALIBRATING:
            if self._calibration.accumulate(stdev):
                LOGGER.info(
                    "Calibration complete after %d readings; baseline stdev=%.3f",
                    self._calibration.readings,
                    self._calibration.mean,
                )
                self._apply(CalibrationDone())
            return None

        return self._apply(reading)

    def _apply(self, event: Event) -> DipDetected | None:
        result = transition(
            self._state,
            event,
            calibrated_mean=self._calibration.mean,
            threshold_fraction=self.threshold_fraction,
        )
        if result.next_state is not self._state:
            LOGGER.debug("Detection state %s -> %s", self._state.value, result.next_state.value)
            self._state = result.next_state
        return result.effect
