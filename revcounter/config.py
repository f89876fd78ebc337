from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_CALIBRATION_READINGS,
    DEFAULT_FT_PER_REV,
    DEFAULT_MAX_QUEUED_SAMPLES,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_SAMPLE_RATE_HZ,
    DIP_THRESHOLD_FRACTION,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "capture": {
        "sample_rate_hz": DEFAULT_SAMPLE_RATE_HZ,
        "buffer_size": DEFAULT_BUFFER_SIZE,
        "max_queued_samples": DEFAULT_MAX_QUEUED_SAMPLES,
        "channels": 1,
        "poll_interval_s": DEFAULT_POLL_INTERVAL_S,
    },
    "detection": {
        "calibration_readings": DEFAULT_CALIBRATION_READINGS,
        "dip_threshold_fraction": DIP_THRESHOLD_FRACTION,
        "ft_per_rev": DEFAULT_FT_PER_REV,
    },
    "display": {
        "refresh_interval_s": 1.0,
        "stale_after_s": 5.0,
        "idle_timeout_s": 60.0,
        "calibration_poll_s": 0.1,
    },
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _positive_float(section: str, name: str, value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{section}.{name} must be a number, got {value!r}") from None
    if not math.isfinite(result) or result <= 0:
        raise ValueError(f"{section}.{name} must be a positive number, got {value!r}")
    return result


def _int_value(section: str, name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{section}.{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{section}.{name} must be an integer, got {value!r}") from None


@dataclass(slots=True)
class CaptureConfig:
    sample_rate_hz: int
    buffer_size: int
    max_queued_samples: int
    channels: int
    poll_interval_s: float

    def __post_init__(self) -> None:
        if self.sample_rate_hz < 1:
            raise ValueError(f"capture.sample_rate_hz must be ≥1, got {self.sample_rate_hz!r}")
        if self.buffer_size < 2:
            LOGGER.warning(
                "capture.buffer_size=%s is below minimum 2 — clamped to 2",
                self.buffer_size,
            )
            object.__setattr__(self, "buffer_size", 2)
        if self.max_queued_samples < self.buffer_size:
            LOGGER.warning(
                "capture.max_queued_samples=%s is below buffer_size %s — clamped",
                self.max_queued_samples,
                self.buffer_size,
            )
            object.__setattr__(self, "max_queued_samples", self.buffer_size)
        if self.channels != 1:
            LOGGER.warning(
                "capture.channels=%s is not supported — only mono capture, using 1",
                self.channels,
            )
            object.__setattr__(self, "channels", 1)


@dataclass(slots=True)
class DetectionConfig:
    calibration_readings: int
    dip_threshold_fraction: float
    ft_per_rev: float

    def __post_init__(self) -> None:
        if self.calibration_readings < 1:
            LOGGER.warning(
                "detection.calibration_readings=%s is below minimum 1 — clamped to 1",
                self.calibration_readings,
            )
            object.__setattr__(self, "calibration_readings", 1)
        if not 0.0 < self.dip_threshold_fraction < 1.0:
            raise ValueError(
                "detection.dip_threshold_fraction must be between 0 and 1, "
                f"got {self.dip_threshold_fraction!r}"
            )


@dataclass(slots=True)
class DisplayConfig:
    refresh_interval_s: float
    stale_after_s: float
    idle_timeout_s: float
    calibration_poll_s: float

    def __post_init__(self) -> None:
        if self.stale_after_s > self.idle_timeout_s:
            LOGGER.warning(
                "display.stale_after_s=%s exceeds idle_timeout_s=%s — clamped",
                self.stale_after_s,
                self.idle_timeout_s,
            )
            object.__setattr__(self, "stale_after_s", self.idle_timeout_s)


@dataclass(slots=True)
class AppConfig:
    capture: CaptureConfig
    detection: DetectionConfig
    display: DisplayConfig
    config_path: Path | None = None


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a YAML object at the top level.")
        return data


def build_config(override: dict[str, Any] | None = None) -> AppConfig:
    """Build an :class:`AppConfig` from defaults merged with *override*."""
    merged = _deep_merge(DEFAULT_CONFIG, override or {})
    for section in ("capture", "detection", "display"):
        if not isinstance(merged.get(section), dict):
            raise ValueError(f"{section} must be a mapping, got {merged.get(section)!r}")
    capture = merged["capture"]
    detection = merged["detection"]
    display = merged["display"]
    return AppConfig(
        capture=CaptureConfig(
            sample_rate_hz=_int_value("capture", "sample_rate_hz", capture["sample_rate_hz"]),
            buffer_size=_int_value("capture", "buffer_size", capture["buffer_size"]),
            max_queued_samples=_int_value(
                "capture", "max_queued_samples", capture["max_queued_samples"]
            ),
            channels=_int_value("capture", "channels", capture.get("channels", 1)),
            poll_interval_s=_positive_float(
                "capture", "poll_interval_s", capture["poll_interval_s"]
            ),
        ),
        detection=DetectionConfig(
            calibration_readings=_int_value(
                "detection", "calibration_readings", detection["calibration_readings"]
            ),
            dip_threshold_fraction=_positive_float(
                "detection", "dip_threshold_fraction", detection["dip_threshold_fraction"]
            ),
            ft_per_rev=_positive_float("detection", "ft_per_rev", detection["ft_per_rev"]),
        ),  # NOTE: __post_init__ hooks clamp out-of-range values
        display=DisplayConfig(
            refresh_interval_s=_positive_float(
                "display", "refresh_interval_s", display["refresh_interval_s"]
            ),
            stale_after_s=_positive_float("display", "stale_after_s", display["stale_after_s"]),
            idle_timeout_s=_positive_float(
                "display", "idle_timeout_s", display["idle_timeout_s"]
            ),
            calibration_poll_s=_positive_float(
                "display", "calibration_poll_s", display["calibration_poll_s"]
            ),
        ),
    )


def load_config(config_path: Path | None = None) -> AppConfig:
    if config_path is None:
        app_config = build_config()
        LOGGER.info("No config file given; using built-in defaults")
        return app_config
    path = config_path.resolve()
    app_config = build_config(_read_config_file(path))
    app_config.config_path = path
    LOGGER.info(
        "Loaded config=%s sample_rate_hz=%s buffer_size=%s ft_per_rev=%s",
        path,
        app_config.capture.sample_rate_hz,
        app_config.capture.buffer_size,
        app_config.detection.ft_per_rev,
    )
    return app_config
