from __future__ import annotations

from pathlib import Path

import pytest
from builders import (
    LOUD,
    QUIET,
    FakeCaptureFactory,
    FakeClock,
    capture_config,
    detection_config,
    make_buffer,
)

import revcounter.cli as cli
from revcounter.capture import InputDevice
from revcounter.config import DisplayConfig
from revcounter.tracker import RevolutionTracker


def _display() -> DisplayConfig:
    return DisplayConfig(
        refresh_interval_s=1.0,
        stale_after_s=5.0,
        idle_timeout_s=60.0,
        calibration_poll_s=0.1,
    )


def _tracker(clock: FakeClock, factory: FakeCaptureFactory, readings: int) -> RevolutionTracker:
    return RevolutionTracker(
        detection_config(calibration_readings=readings),
        capture_config(),
        capture_factory=factory,
        clock=clock,
    )


def test_format_status() -> None:
    assert cli.format_status(241.5, 15.6818) == "241 feet (0.05 miles) @ 15.68 mph"
    assert cli.format_status(0.0, 0.0) == "0 feet (0.00 miles) @ 0.00 mph"


@pytest.mark.parametrize(
    ("text", "expected"),
    [("3", 3), (" 12 ", 12), ("USB Audio", "USB Audio"), ("", None)],
)
def test_parse_device(text: str, expected: object) -> None:
    assert cli.parse_device(text) == expected


def test_prompt_lists_inputs(capsys: pytest.CaptureFixture[str]) -> None:
    devices = [
        InputDevice(index=0, name="Built-in Mic", max_input_channels=2, default_samplerate=44100.0),
        InputDevice(index=3, name="USB Pickup", max_input_channels=1, default_samplerate=96000.0),
    ]
    prompts: list[str] = []

    def _answer(prompt: str) -> str:
        prompts.append(prompt)
        return "3"

    assert cli.prompt_for_device(devices, read_input=_answer) == 3
    assert prompts == ["Which audio device? "]
    out = capsys.readouterr().out.splitlines()
    assert out == ["2 inputs", "0: Built-in Mic", "3: USB Pickup"]


class TestRunConsole:
    def test_prints_status_then_quits_when_idle(self, capsys: pytest.CaptureFixture[str]) -> None:
        clock = FakeClock()
        factory = FakeCaptureFactory()
        tracker = _tracker(clock, factory, readings=1)
        tracker.start(0)
        try:
            tracker.process_buffer(make_buffer(LOUD))
            tracker.process_buffer(make_buffer(QUIET))
            code = cli.run_console(tracker, _display(), clock=clock, sleep=clock.advance)
        finally:
            tracker.stop()

        assert code == cli.EXIT_OK
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "Calibrating: do not pedal"
        assert lines[2] == "Calibration complete: start pedalling"
        status = [line for line in lines if line.endswith("mph")]
        # One line per refresh until the snapshot is five seconds old.
        assert status == ["23 feet (0.00 miles) @ 0.00 mph"] * 5
        assert lines[-1] == "60 seconds without update, quitting"

    def test_prints_dots_while_calibrating(self, capsys: pytest.CaptureFixture[str]) -> None:
        clock = FakeClock()
        factory = FakeCaptureFactory()
        tracker = _tracker(clock, factory, readings=3)
        tracker.start(0)

        def _sleep(seconds: float) -> None:
            tracker.process_buffer(make_buffer(LOUD))
            clock.advance(seconds)

        try:
            code = cli.run_console(tracker, _display(), clock=clock, sleep=_sleep)
        finally:
            tracker.stop()

        assert code == cli.EXIT_OK
        lines = capsys.readouterr().out.splitlines()
        assert lines[1] == "..."
        status = [line for line in lines if line.endswith("mph")]
        assert status == ["0 feet (0.00 miles) @ 0.00 mph"] * 5

    def test_stopped_tracker_during_calibration(self) -> None:
        tracker = _tracker(FakeClock(), FakeCaptureFactory(), readings=3)
        assert cli.run_console(tracker, _display(), sleep=lambda _: None) == cli.EXIT_ERROR


class TestMain:
    def test_list_devices(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(
            cli,
            "list_input_devices",
            lambda: [
                InputDevice(
                    index=1, name="USB Pickup", max_input_channels=1, default_samplerate=9.6e4
                )
            ],
        )
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["--list-devices"])
        assert excinfo.value.code == cli.EXIT_OK
        assert capsys.readouterr().out.splitlines() == ["1: USB Pickup"]

    def test_capture_failure_exits_with_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        factory = FakeCaptureFactory(fail_open=True)
        monkeypatch.setattr(
            cli,
            "RevolutionTracker",
            lambda detection, capture: RevolutionTracker(
                detection, capture, capture_factory=factory
            ),
        )
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["--device", "7"])
        assert excinfo.value.code == cli.EXIT_ERROR
        assert factory.created[0][0] == 7

    def test_invalid_config_exits_with_error(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text("detection:\n  dip_threshold_fraction: 2.0\n", encoding="utf-8")
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["--config", str(config_path)])
        assert excinfo.value.code == cli.EXIT_ERROR
