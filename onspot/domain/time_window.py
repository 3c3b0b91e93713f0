"""
Daily operating-hours evaluation.

Opening and closing times are stored as wall-clock times in the business's
own zone offset; "now" is converted into that offset before comparing.
"""

from datetime import datetime

import pendulum
from pendulum import DateTime

from .models import OperatingTime

MINUTES_PER_DAY = 24 * 60


def to_comparable_minutes(t: OperatingTime, reference_zone_offset_minutes: int) -> int:
    """
    Convert an operating time to minutes since midnight in the reference offset.

    Example: 09:30 at UTC+02:00 expressed in UTC (offset 0) is 450.
    The result always wraps into [0, 1440).
    """
    minutes = t.hour * 60 + t.minute - t.zone_offset_minutes + reference_zone_offset_minutes
    return minutes % MINUTES_PER_DAY


def localize(now: datetime, zone_offset_minutes: int) -> DateTime:
    """Express an instant in a fixed zone offset given in minutes east of UTC."""
    return pendulum.instance(now).in_timezone(pendulum.fixed_timezone(zone_offset_minutes * 60))


def _window_bounds(opening: OperatingTime, closing: OperatingTime) -> tuple[int, int, int]:
    reference = opening.zone_offset_minutes
    return (
        reference,
        to_comparable_minutes(opening, reference),
        to_comparable_minutes(closing, reference),
    )


def is_within_window(now: datetime, opening: OperatingTime, closing: OperatingTime) -> bool:
    """
    Check if ``now`` falls inside the daily window [opening, closing).

    A closing time at or before the opening time denotes a window spanning
    midnight: 22:00-02:00 contains 23:30 and 01:00 but not 03:00. Equal
    opening and closing times therefore mean open around the clock.
    """
    reference, open_minutes, close_minutes = _window_bounds(opening, closing)
    local_now = localize(now, reference)
    now_minutes = local_now.hour * 60 + local_now.minute

    if close_minutes > open_minutes:
        return open_minutes <= now_minutes < close_minutes
    return now_minutes >= open_minutes or now_minutes < close_minutes


def window_weekday(now: datetime, opening: OperatingTime, closing: OperatingTime) -> int:
    """
    Weekday (0=Monday) on which the window containing ``now`` opened.

    In the after-midnight tail of a window spanning midnight this is the
    previous day: a Friday 22:00-02:00 shift is still Friday at 01:00 Saturday.
    """
    reference, open_minutes, close_minutes = _window_bounds(opening, closing)
    local_now = localize(now, reference)
    now_minutes = local_now.hour * 60 + local_now.minute

    if close_minutes <= open_minutes and now_minutes < close_minutes and now_minutes < open_minutes:
        return local_now.subtract(days=1).weekday()
    return local_now.weekday()
