"""
historical_vol.py — Close-to-close historical volatility.

Ordering convention: closes are **oldest first**, newest last (the same
layout as a time-indexed frame).  ``prepare_closes`` is where other
orderings are normalised; the estimator itself never guesses.
"""

from __future__ import annotations

import warnings
from typing import Iterable, Union

import numpy as np
import pandas as pd

from chain_models import VolEstimate
from market_conventions import TRADING_DAYS_PER_YEAR

DEFAULT_WINDOW = 20
DEFAULT_FALLBACK = 0.3


def prepare_closes(
    closes: Union[pd.Series, np.ndarray, Iterable[float], None],
    newest_first: bool = False,
) -> np.ndarray:
    """
    Normalise a close series to an oldest-first float array.

    A pandas Series with a DatetimeIndex is sorted by its index, which
    makes ``newest_first`` irrelevant for it.  Non-finite values are dropped.
    """
    if closes is None:
        return np.array([], dtype=float)
    if isinstance(closes, pd.DataFrame):
        if 'close' not in closes.columns:
            raise ValueError("close frame needs a 'close' column")
        closes = closes['close']
    if isinstance(closes, pd.Series):
        if isinstance(closes.index, pd.DatetimeIndex):
            closes = closes.sort_index()
            newest_first = False
        arr = pd.to_numeric(closes, errors='coerce').to_numpy(dtype=float)
    else:
        arr = np.asarray(list(closes) if not isinstance(closes, np.ndarray) else closes, dtype=float)
    arr = arr[np.isfinite(arr)]
    return arr[::-1].copy() if newest_first else arr


def log_returns(closes: np.ndarray) -> np.ndarray:
    """ln(P_t / P_{t-1}) for consecutive strictly positive closes."""
    c = np.asarray(closes, dtype=float)
    if len(c) < 2:
        return np.array([], dtype=float)
    prev, cur = c[:-1], c[1:]
    ok = (prev > 0) & (cur > 0)
    return np.log(cur[ok] / prev[ok])


def historical_volatility(
    closes,
    window: int = DEFAULT_WINDOW,
    trading_days: float = TRADING_DAYS_PER_YEAR,
    fallback: float = DEFAULT_FALLBACK,
    newest_first: bool = False,
) -> VolEstimate:
    """
    Annualised volatility of the trailing ``window`` daily log returns.

        sigma = sqrt(var_{n-1}(returns) * trading_days)

    Needs at least ``window + 1`` closes; otherwise returns ``fallback``
    tagged ``is_estimated=True``.
    """
    window = int(window)
    arr = prepare_closes(closes, newest_first=newest_first)
    if window < 2 or len(arr) < window + 1:
        warnings.warn(
            f"historical_volatility: {len(arr)} closes for a {window}-return window; "
            f"using fallback {fallback}",
            RuntimeWarning,
        )
        return VolEstimate(float(fallback), is_estimated=True)

    rets = log_returns(arr[-(window + 1):])
    if len(rets) < 2:
        return VolEstimate(float(fallback), is_estimated=True)

    variance = float(np.var(rets, ddof=1))
    return VolEstimate(float(np.sqrt(variance * float(trading_days))), is_estimated=False)
