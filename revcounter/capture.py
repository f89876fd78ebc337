"""Audio capture sources feeding fixed-size sample buffers to the tracker.

``SoundDeviceCapture`` opens a mono int16 PortAudio input stream through
``sounddevice`` and queues the callback blocks; the producer thread pulls
fixed-size buffers out of that queue.  When the producer falls behind and the
queue grows past ``max_queued_samples`` the whole backlog is dropped.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from .config import CaptureConfig
from .errors import CaptureInitError, OverloadError

LOGGER = logging.getLogger(__name__)

DeviceId = int | str | None


class CaptureSource(Protocol):
    status_flags: int

    def open(self) -> None: ...

    def close(self) -> None: ...

    def read_buffer(self, n_samples: int) -> np.ndarray | None:
        """Return exactly *n_samples* samples, or ``None`` if not enough are queued.

        May raise :class:`~revcounter.errors.OverloadError` or
        :class:`~revcounter.errors.ShortReadError`.
        """
        ...


CaptureFactory = Callable[[DeviceId, CaptureConfig], CaptureSource]


@dataclass(frozen=True, slots=True)
class InputDevice:
    index: int
    name: str
    max_input_channels: int
    default_samplerate: float


def _import_sounddevice() -> Any:
    try:
        import sounddevice
    except OSError as exc:
        # Raised when the PortAudio shared library cannot be loaded.
        raise CaptureInitError(f"PortAudio is not available: {exc}") from exc
    return sounddevice


def list_input_devices() -> list[InputDevice]:
    """Enumerate devices that can record at least one channel."""
    sd = _import_sounddevice()
    devices: list[InputDevice] = []
    for index, info in enumerate(sd.query_devices()):
        channels = int(info.get("max_input_channels", 0))
        if channels < 1:
            continue
        devices.append(
            InputDevice(
                index=index,
                name=str(info.get("name", f"device {index}")),
                max_input_channels=channels,
                default_samplerate=float(info.get("default_samplerate", 0.0)),
            )
        )
    return devices


class SoundDeviceCapture:
    """Queued mono capture from a PortAudio input device.

    Parameters
    ----------
    device:
        ``sounddevice`` device index or name; ``None`` selects the default input.
    config:
        Sample rate, high-water mark and channel settings.
    stream_factory:
        Callable with the ``sounddevice.InputStream`` signature.  Tests inject
        a fake here; by default the real stream class is used.
    """

    def __init__(
        self,
        device: DeviceId,
        config: CaptureConfig,
        stream_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.device = device
        self.sample_rate_hz = config.sample_rate_hz
        self.channels = config.channels
        self.max_queued_samples = config.max_queued_samples
        self._stream_factory = stream_factory
        self._stream: Any | None = None
        self._lock = threading.Lock()
        self._chunks: deque[np.ndarray] = deque()
        self._queued = 0
        self.status_flags = 0

    @property
    def queued_samples(self) -> int:
        with self._lock:
            return self._queued

    # -- lifecycle ------------------------------------------------------------

    def open(self) -> None:
        if self._stream is not None:
            return
        kwargs: dict[str, Any] = {
            "device": self.device,
            "samplerate": self.sample_rate_hz,
            "channels": self.channels,
            "dtype": "int16",
            "callback": self._on_audio,
        }
        if self._stream_factory is not None:
            factory = self._stream_factory
            open_errors: tuple[type[BaseException], ...] = (OSError, ValueError)
        else:
            sd = _import_sounddevice()
            factory = sd.InputStream
            open_errors = (sd.PortAudioError, ValueError)
        stream = None
        try:
            stream = factory(**kwargs)
            stream.start()
        except open_errors as exc:
            if stream is not None:
                self._close_stream(stream)
            raise CaptureInitError(f"Cannot open input device {self.device!r}: {exc}") from exc
        self._stream = stream
        LOGGER.info(
            "Opened capture device %r at %d Hz (high-water mark %d samples)",
            self.device,
            self.sample_rate_hz,
            self.max_queued_samples,
        )

    def close(self) -> None:
        """Stop the stream and drop queued audio.  Safe to call multiple times."""
        stream, self._stream = self._stream, None
        if stream is not None and self._close_stream(stream):
            LOGGER.info("Closed capture device %r", self.device)
        with self._lock:
            self._chunks.clear()
            self._queued = 0

    def _close_stream(self, stream: Any) -> bool:
        try:
            stream.stop()
            stream.close()
        except Exception:
            LOGGER.warning("Error closing capture device %r", self.device, exc_info=True)
            return False
        return True

    # -- data path ------------------------------------------------------------

    def _on_audio(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        # Runs on the PortAudio thread; keep it to a copy and an append.
        block = np.array(indata[:frames, 0], dtype=np.int16, copy=True)
        with self._lock:
            if status:
                self.status_flags += 1
            self._chunks.append(block)
            self._queued += block.shape[0]

    def read_buffer(self, n_samples: int) -> np.ndarray | None:
        with self._lock:
            queued = self._queued
            if queued > self.max_queued_samples:
                self._chunks.clear()
                self._queued = 0
                raise OverloadError(queued, self.max_queued_samples)
            if queued < n_samples:
                return None
            return self._dequeue_locked(n_samples)

    def _dequeue_locked(self, n_samples: int) -> np.ndarray:
        out = np.empty(n_samples, dtype=np.int16)
        filled = 0
        while filled < n_samples:
            chunk = self._chunks[0]
            take = min(n_samples - filled, chunk.shape[0])
            out[filled : filled + take] = chunk[:take]
            filled += take
            if take == chunk.shape[0]:
                self._chunks.popleft()
            else:
                self._chunks[0] = chunk[take:]
        self._queued -= n_samples
        return out
