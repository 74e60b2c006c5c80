"""
market_conventions.py — India/NSE Market Conventions
====================================================

Central repository for NSE session times, annualisation factors and
time-to-expiry calculations.

Expiry values travel through the pipeline as Unix **seconds**.
``normalize_epoch_seconds`` is the single place where a millisecond
timestamp (or a numeric string) is converted; everything downstream
assumes seconds.
"""

import datetime
import time
import warnings
from typing import Optional, Union

import pandas as pd

# ── Constants ────────────────────────────────────────────────────────

# Standard NSE trading hours (IST)
NSE_OPEN_TIME = datetime.time(9, 15)
NSE_CLOSE_TIME = datetime.time(15, 30)

# Annualization factors
DAYS_PER_YEAR = 365.0
TRADING_DAYS_PER_YEAR = 252.0

SECONDS_PER_DAY = 24.0 * 3600.0
SECONDS_PER_YEAR = DAYS_PER_YEAR * SECONDS_PER_DAY

# Anything at or above this is a millisecond timestamp (year 2286 in seconds)
_MS_THRESHOLD = 1e10


def normalize_epoch_seconds(value: Union[int, float, str]) -> int:
    """
    Coerce an expiry identifier to Unix seconds.

    Accepts int, float or a numeric string.  Millisecond timestamps are
    converted with a ``RuntimeWarning`` so the offending call site can be
    fixed upstream.

    Raises
    ------
    ValueError
        If ``value`` is not numeric or is negative.
    """
    if isinstance(value, bool):
        raise ValueError(f"expiry value must be numeric, got {value!r}")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = float(text)
        except ValueError as exc:
            raise ValueError(f"expiry value must be numeric, got {text!r}") from exc
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"expiry value must be numeric, got {value!r}") from exc
    if seconds != seconds or seconds < 0:
        raise ValueError(f"expiry value must be a non-negative epoch, got {value!r}")

    if seconds >= _MS_THRESHOLD:
        warnings.warn(
            f"normalize_epoch_seconds: {value!r} looks like milliseconds; converting to seconds",
            RuntimeWarning,
        )
        seconds = seconds / 1000.0
    return int(seconds)


def time_to_expiry_from_epoch(
    expiry_seconds: Union[int, float],
    now_seconds: Optional[float] = None,
    days_per_year: float = DAYS_PER_YEAR,
) -> float:
    """
    Annualised time to expiry (ACT/days_per_year, 365 by default) from
    Unix-second timestamps.

    Returns 0.0 once expired; the pricer applies its own small-T clamp.
    """
    now_s = time.time() if now_seconds is None else float(now_seconds)
    remaining = float(expiry_seconds) - now_s
    if remaining <= 0:
        return 0.0
    return remaining / (float(days_per_year) * SECONDS_PER_DAY)


def days_to_expiry(
    expiry_seconds: Union[int, float],
    now_seconds: Optional[float] = None,
) -> float:
    """Calendar days (fractional) until expiry, floored at 0."""
    now_s = time.time() if now_seconds is None else float(now_seconds)
    return max(0.0, float(expiry_seconds) - now_s) / SECONDS_PER_DAY


def time_to_expiry(
    current_time: Union[datetime.datetime, str],
    expiry_date: Union[datetime.datetime, datetime.date, str],
) -> float:
    """
    Calculate annualized time-to-expiry (T) following NSE conventions.

    Logic:
    1. If current_time >= expiry, T = 0.
    2. T is calculated in calendar days / 365.0.
    3. Intraday granularity is preserved.
    4. A date-only expiry is assumed to settle at 15:30 IST.

    Parameters
    ----------
    current_time : datetime or str
        Current timestamp (tz-naive, IST assumed).
    expiry_date : datetime, date or str
        Expiry; ``DD-MM-YYYY`` labels as shown in chain expiry lists are
        accepted.

    Returns
    -------
    float
        Time to expiry in years.
    """
    if isinstance(current_time, str):
        current_time = pd.to_datetime(current_time).to_pydatetime()

    if isinstance(expiry_date, str):
        expiry_date = pd.to_datetime(expiry_date, dayfirst=True).to_pydatetime()
    elif isinstance(expiry_date, datetime.date) and not isinstance(expiry_date, datetime.datetime):
        expiry_date = datetime.datetime.combine(expiry_date, NSE_CLOSE_TIME)

    if expiry_date.time() == datetime.time(0, 0):
        expiry_date = expiry_date.replace(hour=NSE_CLOSE_TIME.hour, minute=NSE_CLOSE_TIME.minute)

    if current_time >= expiry_date:
        return 0.0

    total_seconds = (expiry_date - current_time).total_seconds()
    return max(0.0, total_seconds / SECONDS_PER_YEAR)
