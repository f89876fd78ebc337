"""Exception types raised by the revolution counter."""

from __future__ import annotations


class RevCounterError(Exception):
    """Base class for all revcounter errors."""


class CaptureInitError(RevCounterError):
    """The capture source could not be opened."""


class OverloadError(RevCounterError):
    """Queued capture samples exceeded the high-water mark and were discarded."""

    def __init__(self, queued_samples: int, max_queued_samples: int) -> None:
        super().__init__(
            f"capture backlog of {queued_samples} samples exceeds {max_queued_samples}; "
            "not handling audio fast enough"
        )
        self.queued_samples = queued_samples
        self.max_queued_samples = max_queued_samples


class ShortReadError(RevCounterError):
    """The capture source returned fewer samples than one buffer."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"expected {expected} samples, got {received}")
        self.expected = expected
        self.received = received


class InsufficientSamplesError(RevCounterError, ValueError):
    """A buffer holds fewer than the two samples needed for a sample stdev."""
