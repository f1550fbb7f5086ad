"""Time conversions between calendar dates and MJD2000 day counts."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Union

from lowthrust.core.constants import DAY2SEC, MJD2000_JD


def ensure_utc(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def datetime_to_jd(dt: datetime) -> float:
    """
    Convert datetime to Julian Date.

    Args:
        dt: UTC datetime

    Returns:
        Julian date as float
    """
    dt = ensure_utc(dt)

    year = dt.year
    month = dt.month
    day = dt.day
    second = dt.hour * 3600 + dt.minute * 60 + dt.second + dt.microsecond / 1e6

    # Handle January/February as months 13/14 of previous year
    if month <= 2:
        year -= 1
        month += 12

    # Gregorian calendar
    A = int(year / 100)
    B = 2 - A + int(A / 4)

    return (
        int(365.25 * (year + 4716))
        + int(30.6001 * (month + 1))
        + day
        + B
        - 1524.5
        + second / DAY2SEC
    )


def jd_to_datetime(jd: float) -> datetime:
    """
    Convert Julian Date to UTC datetime.

    Args:
        jd: Julian date

    Returns:
        UTC datetime (rounded to the microsecond)
    """
    jd = jd + 0.5
    Z = int(jd)
    F = jd - Z

    if Z < 2299161:
        A = Z
    else:
        alpha = int((Z - 1867216.25) / 36524.25)
        A = Z + 1 + alpha - int(alpha / 4)

    B = A + 1524
    C = int((B - 122.1) / 365.25)
    D = int(365.25 * C)
    E = int((B - D) / 30.6001)

    day = B - D - int(30.6001 * E)
    month = E - 1 if E < 14 else E - 13
    year = C - 4716 if month > 2 else C - 4715

    microseconds = int(round(F * DAY2SEC * 1e6))
    seconds, microsecond = divmod(microseconds, 1_000_000)
    hour, rem = divmod(seconds, 3600)
    minute, second = divmod(rem, 60)

    if hour == 24:
        # Rounding spilled into the next day
        base = datetime(year, month, day, tzinfo=timezone.utc).timestamp() + DAY2SEC
        return datetime.fromtimestamp(base, tz=timezone.utc)

    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=timezone.utc)


def datetime_to_mjd2000(dt: datetime) -> float:
    """Days elapsed since 2000-01-01 00:00:00 UTC."""
    return datetime_to_jd(dt) - MJD2000_JD


def mjd2000_to_datetime(mjd2000: float) -> datetime:
    """Inverse of :func:`datetime_to_mjd2000`."""
    return jd_to_datetime(mjd2000 + MJD2000_JD)


def parse_epoch(value: Union[float, int, str, datetime]) -> float:
    """
    Interpret a configuration epoch as an MJD2000 day count.

    Args:
        value: MJD2000 number, ISO-8601 string or datetime

    Returns:
        MJD2000 day count
    """
    if isinstance(value, datetime):
        return datetime_to_mjd2000(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return datetime_to_mjd2000(datetime.fromisoformat(value))
    return float(value)
