"""Speed and distance projections from a revolution snapshot.

All functions are pure: they take a snapshot plus the current monotonic time
and never touch tracker state.  The displayed speed is a conservative cap,
not a measurement: absent a new dip, the implied speed never exceeds what the
last confirmed interval would give assuming no deceleration.  When the input
stalls the projection simply decays towards zero; it does not flag a gap.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .constants import DEFAULT_FT_PER_REV, FT_PER_MILE, SECONDS_PER_HOUR


@dataclass(frozen=True, slots=True)
class RevolutionData:
    """Immutable point-in-time view of the revolution count."""

    count: int = 0
    velocity_mph: float = 0.0
    timestamp: float = 0.0
    """``time.monotonic()`` instant of the last confirmed revolution."""


def elapsed_hours(seconds: float) -> float:
    return seconds / SECONDS_PER_HOUR


def velocity_mph_for_interval(ft_per_rev: float, interval_s: float) -> float:
    """Speed that covers one revolution in *interval_s* seconds.

    Returns ``math.inf`` for a non-positive interval.
    """
    if interval_s <= 0.0:
        return math.inf
    return (ft_per_rev / FT_PER_MILE) / elapsed_hours(interval_s)


def snapshot_age_s(snapshot: RevolutionData, now: float) -> float:
    return now - snapshot.timestamp


def projected_velocity_mph(
    snapshot: RevolutionData, now: float, ft_per_rev: float = DEFAULT_FT_PER_REV
) -> float:
    return velocity_mph_for_interval(ft_per_rev, snapshot_age_s(snapshot, now))


def instantaneous_velocity_mph(
    snapshot: RevolutionData, now: float, ft_per_rev: float = DEFAULT_FT_PER_REV
) -> float:
    return min(snapshot.velocity_mph, projected_velocity_mph(snapshot, now, ft_per_rev))


def distance_ft(
    snapshot: RevolutionData, now: float, ft_per_rev: float = DEFAULT_FT_PER_REV
) -> float:
    """Confirmed distance plus the distance anticipated since the last dip."""
    age_hours = max(0.0, elapsed_hours(snapshot_age_s(snapshot, now)))
    velocity = instantaneous_velocity_mph(snapshot, now, ft_per_rev)
    anticipated_ft = velocity * age_hours * FT_PER_MILE
    return ft_per_rev * snapshot.count + anticipated_ft


class VelocityProjection:
    """Binds a wheel circumference to the projection formulas."""

    def __init__(self, ft_per_rev: float = DEFAULT_FT_PER_REV) -> None:
        self.ft_per_rev = float(ft_per_rev)

    def projected_velocity_mph(self, snapshot: RevolutionData, now: float) -> float:
        return projected_velocity_mph(snapshot, now, self.ft_per_rev)

    def instantaneous_velocity_mph(self, snapshot: RevolutionData, now: float) -> float:
        return instantaneous_velocity_mph(snapshot, now, self.ft_per_rev)

    def distance_ft(self, snapshot: RevolutionData, now: float) -> float:
        return distance_ft(snapshot, now, self.ft_per_rev)

    @staticmethod
    def is_stale(snapshot: RevolutionData, now: float, stale_after_s: float) -> bool:
        """Whether consumers should stop trusting the projection."""
        return snapshot_age_s(snapshot, now) >= stale_after_s
