"""
Service-time helpers.

A service time is an "HH:MM:SS" string measured from the start of the service
day, where HH may run past 23 for trips that belong to the previous day
(e.g. "25:30:00" is 01:30 the next morning). Arithmetic is done on total
seconds; the string form only exists at the edges (cache keys, API output).
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

# Wall-clock times before this belong to the previous service day.
SERVICE_DAY_ROLLOVER = time(3, 0)


def service_time_to_seconds(value: str) -> int:
    parts = (value or "").strip().split(":")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Bad service time: {value!r}")

    h, m, s = (int(p) for p in parts)
    if m > 59 or s > 59:
        raise ValueError(f"Bad service time: {value!r}")
    return h * 3600 + m * 60 + s


def seconds_to_service_time(seconds: int) -> str:
    if seconds < 0:
        raise ValueError(f"Negative service time: {seconds}")
    h, rem = divmod(int(seconds), 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def add_to_service_time(value: str, seconds: int) -> str:
    return seconds_to_service_time(service_time_to_seconds(value) + seconds)


def service_time_diff(a: str, b: str) -> int:
    """Signed a - b in seconds."""
    return service_time_to_seconds(a) - service_time_to_seconds(b)


def instant_to_service_seconds(instant: datetime, tz: ZoneInfo, *, extend_past_midnight: bool = False) -> int:
    local = instant.astimezone(tz)
    seconds = local.hour * 3600 + local.minute * 60 + local.second
    if extend_past_midnight and local.time() < SERVICE_DAY_ROLLOVER:
        seconds += 24 * 3600
    return seconds


def instant_to_service_time(instant: datetime, tz: ZoneInfo, *, extend_past_midnight: bool = False) -> str:
    """
    Wall-clock time of instant as a service time.

    With extend_past_midnight, times before the 03:00 rollover are reported
    against the previous service day (00:30 -> "24:30:00"), which is what a
    block's schedule compares against.
    """
    return seconds_to_service_time(
        instant_to_service_seconds(instant, tz, extend_past_midnight=extend_past_midnight)
    )


def service_time_to_instant(service_date: date, value: str, tz: ZoneInfo) -> datetime:
    midnight = datetime.combine(service_date, time(0), tzinfo=tz)
    return midnight + timedelta(seconds=service_time_to_seconds(value))


def seconds_since_service_day_start(instant: datetime, service_date: date, tz: ZoneInfo) -> int:
    """Wall-clock seconds from local midnight of service_date to instant (negative if before)."""
    local = instant.astimezone(tz)
    days = (local.date() - service_date).days
    return days * 24 * 3600 + local.hour * 3600 + local.minute * 60 + local.second


def to_local(instant: datetime, tz: ZoneInfo) -> datetime:
    """Naive datetimes are taken to already be local transit time."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)
