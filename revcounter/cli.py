"""Console front end: pick an input device, calibrate, print distance and speed."""

from __future__ import annotations

import argparse
import logging
import time
from collections.abc import Callable
from pathlib import Path

import yaml

from .capture import DeviceId, InputDevice, list_input_devices
from .config import DisplayConfig, load_config
from .constants import FT_PER_MILE
from .errors import CaptureInitError
from .tracker import RevolutionTracker
from .velocity import RevolutionData, snapshot_age_s

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def format_status(distance_ft: float, velocity_mph: float) -> str:
    return (
        f"{int(distance_ft)} feet ({distance_ft / FT_PER_MILE:.2f} miles) "
        f"@ {velocity_mph:.2f} mph"
    )


def parse_device(value: str) -> DeviceId:
    """Device indices are integers; anything else is passed on as a name."""
    text = value.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return text


def prompt_for_device(
    devices: list[InputDevice],
    read_input: Callable[[str], str] = input,
) -> DeviceId:
    print(f"{len(devices)} inputs")
    for device in devices:
        print(f"{device.index}: {device.name}")
    return parse_device(read_input("Which audio device? "))


def run_console(
    tracker: RevolutionTracker,
    display: DisplayConfig,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Drive the status display until no revolution arrives for the idle timeout."""
    print("Calibrating: do not pedal")
    while tracker.is_calibrating():
        if not tracker.is_running():
            print()
            LOGGER.error("Capture stopped during calibration")
            return EXIT_ERROR
        print(".", end="", flush=True)
        sleep(display.calibration_poll_s)
    print()
    print("Calibration complete: start pedalling")

    snapshot = RevolutionData(timestamp=clock())
    while snapshot_age_s(snapshot, clock()) < display.idle_timeout_s:
        if not tracker.is_running():
            LOGGER.error("Capture stopped unexpectedly")
            return EXIT_ERROR
        snapshot = tracker.get_snapshot()
        now = clock()
        if not tracker.projection.is_stale(snapshot, now, display.stale_after_s):
            distance = tracker.projection.distance_ft(snapshot, now)
            print(format_status(distance, snapshot.velocity_mph))
        sleep(display.refresh_interval_s)

    print(f"{display.idle_timeout_s:g} seconds without update, quitting")
    return EXIT_OK


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Count wheel revolutions from an audio pickup")
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML")
    parser.add_argument(
        "--device",
        type=parse_device,
        default=None,
        help="Input device index or name (prompted for when omitted)",
    )
    parser.add_argument(
        "--list-devices", action="store_true", help="List input devices and exit"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        raise SystemExit(EXIT_ERROR) from None

    tracker = RevolutionTracker(config.detection, config.capture)
    try:
        if args.list_devices:
            for device in list_input_devices():
                print(f"{device.index}: {device.name}")
            raise SystemExit(EXIT_OK)
        device = args.device
        if device is None:
            device = prompt_for_device(list_input_devices())
        tracker.start(device)
        raise SystemExit(run_console(tracker, config.display))
    except CaptureInitError as exc:
        LOGGER.error("%s", exc)
        raise SystemExit(EXIT_ERROR) from None
    except KeyboardInterrupt:
        print()
        raise SystemExit(EXIT_INTERRUPTED) from None
    finally:
        tracker.stop()


if __name__ == "__main__":
    main()
