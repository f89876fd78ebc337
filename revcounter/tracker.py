"""Revolution tracker — producer loop, dip bookkeeping and snapshot exchange.

``RevolutionTracker`` owns the :class:`~revcounter.detection.ThresholdFSM`
and a single producer thread that pulls fixed-size buffers from a capture
source.  Two locks are involved:

- ``_lock`` guards the FSM (state + calibration baseline).  It is held only
  for a dispatch and the snapshot rebuild that follows a dip; never for I/O.
- ``_lifecycle_lock`` serializes :meth:`start` / :meth:`stop` so concurrent
  lifecycle calls cannot spawn two producers.

The published :class:`~revcounter.velocity.RevolutionData` is frozen and
swapped by a single reference assignment, so readers never need ``_lock``
and can never observe count, velocity and timestamp from different dips.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any

import numpy as np

from .capture import CaptureFactory, CaptureSource, DeviceId, SoundDeviceCapture
from .config import CaptureConfig, DetectionConfig, build_config
from .detection import DetectionState, DipDetected, Reading, ThresholdFSM
from .errors import CaptureInitError, OverloadError, ShortReadError
from .processing import CalibrationInfo, compute_buffer_statistics
from .velocity import RevolutionData, VelocityProjection, velocity_mph_for_interval

LOGGER = logging.getLogger(__name__)

_OVERLOAD_LOG_INTERVAL_S: float = 10.0


class RevolutionTracker:
    """Counts wheel revolutions from a stream of sample buffers.

    Parameters
    ----------
    detection:
        Calibration length, dip threshold fraction and wheel circumference.
    capture:
        Buffer size, poll interval and capture device settings.
    capture_factory:
        ``(device, capture_config) -> CaptureSource``.  Defaults to
        :class:`~revcounter.capture.SoundDeviceCapture`.
    clock:
        Monotonic time source in seconds, used for snapshot timestamps.
    """

    def __init__(
        self,
        detection: DetectionConfig | None = None,
        capture: CaptureConfig | None = None,
        *,
        capture_factory: CaptureFactory = SoundDeviceCapture,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if detection is None or capture is None:
            defaults = build_config()
            detection = detection or defaults.detection
            capture = capture or defaults.capture
        self.detection_config = detection
        self.capture_config = capture
        self.projection = VelocityProjection(detection.ft_per_rev)
        self._capture_factory = capture_factory
        self._clock = clock

        self._lock = threading.Lock()
        self._fsm = ThresholdFSM(
            calibration_readings=detection.calibration_readings,
            threshold_fraction=detection.dip_threshold_fraction,
        )
        self._accepting = True
        self._snapshot = RevolutionData(count=0, velocity_mph=0.0, timestamp=clock())

        self._lifecycle_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._source: CaptureSource | None = None
        self._active = threading.Event()
        self._stop_requested = threading.Event()

        self._processed_buffers = 0
        self._rejected_buffers = 0
        self._overloads = 0
        self._short_reads = 0
        self._last_overload_log_ts = 0.0
        self._suppressed_overload_warnings = 0

    @property
    def ft_per_rev(self) -> float:
        return self.detection_config.ft_per_rev

    # -- lifecycle ------------------------------------------------------------

    def start(self, source_id: DeviceId = None) -> None:
        """Open the capture source and spawn the producer thread.

        A no-op while already running.  Raises
        :class:`~revcounter.errors.CaptureInitError` if the source cannot be
        opened; the tracker then stays stopped.
        """
        with self._lifecycle_lock:
            if self._active.is_set():
                LOGGER.debug("start(%r) ignored: tracker already running", source_id)
                return
            previous = self._thread
            if previous is not None and previous is not threading.current_thread():
                # Producer exited on its own; reap it before starting anew.
                previous.join()

            source = self._capture_factory(source_id, self.capture_config)
            try:
                source.open()
            except CaptureInitError:
                LOGGER.error("Could not open capture source %r", source_id, exc_info=True)
                raise

            with self._lock:
                self._accepting = True
            self._source = source
            self._stop_requested.clear()
            self._active.set()
            self._thread = threading.Thread(
                target=self._run,
                args=(source,),
                name="revcounter-producer",
                daemon=True,
            )
            self._thread.start()
            LOGGER.info("Revolution tracker started on source %r", source_id)

    def stop(self) -> None:
        """Stop the producer and wait for it to release its capture source.

        Safe to call multiple times.  Once this returns no buffer is being
        processed and the snapshot no longer changes.
        """
        if self._thread is threading.current_thread():
            # Called from the producer itself: it exits at the next boundary.
            # The lifecycle lock may be held by a thread joining this one.
            self._stop_requested.set()
            return
        with self._lifecycle_lock:
            self._stop_requested.set()
            thread = self._thread
            if thread is not None:
                thread.join()
                self._thread = None
                LOGGER.info("Revolution tracker stopped")
            self._active.clear()
            with self._lock:
                self._accepting = False

    def is_running(self) -> bool:
        return self._active.is_set()

    def __enter__(self) -> RevolutionTracker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # -- producer -------------------------------------------------------------

    def _run(self, source: CaptureSource) -> None:
        buffer_size = self.capture_config.buffer_size
        poll_interval_s = self.capture_config.poll_interval_s
        try:
            while not self._stop_requested.is_set():
                try:
                    buffer = source.read_buffer(buffer_size)
                    if buffer is not None and len(buffer) < buffer_size:
                        raise ShortReadError(buffer_size, len(buffer))
                except OverloadError as exc:
                    self._overloads += 1
                    self._warn_overload(exc)
                    continue
                except ShortReadError as exc:
                    self._short_reads += 1
                    LOGGER.warning("Discarding short capture read: %s", exc)
                    continue
                if buffer is None:
                    self._stop_requested.wait(poll_interval_s)
                    continue
                self.process_buffer(buffer)
        except Exception:
            LOGGER.exception("Producer loop failed; stopping capture")
        finally:
            source.close()
            self._active.clear()

    def _warn_overload(self, exc: OverloadError) -> None:
        now = time.monotonic()
        if (now - self._last_overload_log_ts) < _OVERLOAD_LOG_INTERVAL_S:
            self._suppressed_overload_warnings += 1
            return
        suppressed = self._suppressed_overload_warnings
        self._suppressed_overload_warnings = 0
        self._last_overload_log_ts = now
        if suppressed > 0:
            LOGGER.warning(
                "Dropped capture backlog: %s; suppressed %d additional overload warnings",
                exc,
                suppressed,
            )
        else:
            LOGGER.warning("Dropped capture backlog: %s", exc)

    # -- processing -----------------------------------------------------------

    def process_buffer(self, buffer: np.ndarray | Sequence[float]) -> DipDetected | None:
        """Run one buffer through the detector.

        Returns the ``DipDetected`` effect when this buffer completed a
        revolution.  Malformed or too-short buffers are logged and dropped.
        Only the producer should call this while the tracker is running.
        """
        try:
            stats = compute_buffer_statistics(buffer)
        except ValueError as exc:
            with self._lock:
                self._rejected_buffers += 1
            LOGGER.debug("Rejecting buffer: %s", exc)
            return None

        reading = Reading(stdev=stats.stdev)
        with self._lock:
            if not self._accepting:
                return None
            self._processed_buffers += 1
            effect = self._fsm.dispatch(reading)
            if effect is not None:
                self._publish_revolution()
        return effect

    def _publish_revolution(self) -> None:
        """Replace the snapshot after a dip.  Caller holds ``_lock``."""
        now = self._clock()
        previous = self._snapshot
        velocity_mph = 0.0
        if previous.count > 0:
            interval_s = now - previous.timestamp
            if interval_s > 0.0:
                velocity_mph = velocity_mph_for_interval(self.ft_per_rev, interval_s)
            else:
                velocity_mph = previous.velocity_mph
        self._snapshot = RevolutionData(
            count=previous.count + 1,
            velocity_mph=velocity_mph,
            timestamp=now,
        )
        LOGGER.debug("Revolution %d at %.2f mph", previous.count + 1, velocity_mph)

    # -- queries --------------------------------------------------------------

    def get_snapshot(self) -> RevolutionData:
        return replace(self._snapshot)

    def is_calibrating(self) -> bool:
        with self._lock:
            return self._fsm.is_calibrating

    def detection_state(self) -> DetectionState:
        with self._lock:
            return self._fsm.state

    def calibration_info(self) -> CalibrationInfo:
        with self._lock:
            return self._fsm.calibration

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "running": self.is_running(),
                "state": self._fsm.state.value,
                "processed_buffers": self._processed_buffers,
                "rejected_buffers": self._rejected_buffers,
                "rejected_readings": self._fsm.rejected_readings,
                "overloads": self._overloads,
                "short_reads": self._short_reads,
                "status_flags": self._source.status_flags if self._source is not None else 0,
            }
