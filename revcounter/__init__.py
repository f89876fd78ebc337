"""Wheel revolution counter driven by a magnetic/acoustic pickup."""

from importlib.metadata import PackageNotFoundError, version

from .errors import (
    CaptureInitError,
    InsufficientSamplesError,
    OverloadError,
    RevCounterError,
    ShortReadError,
)
from .tracker import RevolutionTracker
from .velocity import RevolutionData, VelocityProjection

__all__ = [
    "CaptureInitError",
    "InsufficientSamplesError",
    "OverloadError",
    "RevCounterError",
    "RevolutionData",
    "RevolutionTracker",
    "ShortReadError",
    "VelocityProjection",
    "__version__",
]

try:
    __version__: str = version("revcounter")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
