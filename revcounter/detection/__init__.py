"""Dip detection state machine."""

from .fsm import (
    CalibrationDone,
    DetectionState,
    DipDetected,
    Reading,
    ThresholdFSM,
    Transition,
    transition,
)

__all__ = [
    "CalibrationDone",
    "DetectionState",
    "DipDetected",
    "Reading",
    "ThresholdFSM",
    "Transition",
    "transition",
]
