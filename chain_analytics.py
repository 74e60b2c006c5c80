"""
chain_analytics.py — Chain-wide aggregates
==========================================

ATM detection, support/resistance from OI clustering and volatility bands,
put-call ratios, max pain and put-call parity deviation.

All functions take the sorted ``StrikeRow`` sequence of a
``ChainSnapshot``; a missing side contributes zero OI/volume.
Undefined ratios are returned as None, never inf/NaN.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from black_scholes import DEFAULT_RISK_FREE, put_call_parity_gap
from chain_models import ParityDeviation, StrikeRow, SupportResistance, VolEstimate
from market_conventions import TRADING_DAYS_PER_YEAR

_FRAME_COLUMNS = [
    'strike',
    'call_ltp', 'call_oi', 'call_oi_change', 'call_volume',
    'put_ltp', 'put_oi', 'put_oi_change', 'put_volume',
]


def chain_to_frame(rows: Iterable[StrikeRow]) -> pd.DataFrame:
    """One row per strike; absent sides give NaN prices and zero OI/volume."""
    records = []
    for row in rows or []:
        rec = {'strike': float(row.strike_price)}
        for side, quote in (('call', row.call), ('put', row.put)):
            rec[f'{side}_ltp'] = quote.ltp if quote is not None else np.nan
            rec[f'{side}_oi'] = quote.oi if quote is not None else 0.0
            rec[f'{side}_oi_change'] = quote.oi_change if quote is not None else 0.0
            rec[f'{side}_volume'] = quote.volume if quote is not None else 0.0
        records.append(rec)
    if not records:
        return pd.DataFrame(columns=_FRAME_COLUMNS, dtype=float)
    df = pd.DataFrame.from_records(records, columns=_FRAME_COLUMNS)
    return df.sort_values('strike').reset_index(drop=True)


# ---------------------------------------------------------------------------
# ATM
# ---------------------------------------------------------------------------

def find_atm_row(rows: Sequence[StrikeRow], spot: Optional[float]) -> Optional[StrikeRow]:
    """Row whose strike minimises |strike - spot|; the lower strike wins ties."""
    if not rows or spot is None or not math.isfinite(spot) or spot <= 0:
        return None
    return min(rows, key=lambda r: (abs(r.strike_price - spot), r.strike_price))


def atm_strike(rows: Sequence[StrikeRow], spot: Optional[float]) -> Optional[float]:
    row = find_atm_row(rows, spot)
    return None if row is None else row.strike_price


# ---------------------------------------------------------------------------
# Support / resistance
# ---------------------------------------------------------------------------

def _top_oi_strikes(df: pd.DataFrame, column: str, top_n: int):
    sub = df.loc[df[column] > 0, ['strike', column]]
    # stable sort keeps ascending strike order among equal OI
    sub = sub.sort_values(column, ascending=False, kind='mergesort')
    return [float(k) for k in sub['strike'].head(int(top_n))]


def calculate_support_resistance(
    spot: Optional[float],
    rows: Sequence[StrikeRow],
    volatility: Union[VolEstimate, float, None] = 0.2,
    top_n: int = 3,
    trading_days: float = TRADING_DAYS_PER_YEAR,
) -> SupportResistance:
    """
    Levels from two sources, merged and de-duplicated:

      * top-N put-OI strikes below spot (support) and top-N call-OI
        strikes above spot (resistance)
      * spot -/+ 1 and 2 daily moves, daily move = spot * vol / sqrt(252)

    Support is sorted descending, resistance ascending (nearest first).
    """
    if not spot or spot <= 0 or not rows:
        return SupportResistance()

    df = chain_to_frame(rows)
    top_put = _top_oi_strikes(df, 'put_oi', top_n)
    top_call = _top_oi_strikes(df, 'call_oi', top_n)

    vol = volatility.value if isinstance(volatility, VolEstimate) else volatility
    bands_support, bands_resistance = [], []
    if vol is not None and math.isfinite(vol) and vol > 0:
        move = spot * vol / math.sqrt(float(trading_days))
        bands_support = [round(spot - move, 2), round(spot - 2.0 * move, 2)]
        bands_resistance = [round(spot + move, 2), round(spot + 2.0 * move, 2)]

    support = sorted({k for k in top_put if k < spot} | set(bands_support), reverse=True)
    resistance = sorted({k for k in top_call if k > spot} | set(bands_resistance))
    return SupportResistance(support=tuple(support), resistance=tuple(resistance))


# ---------------------------------------------------------------------------
# Put-call ratios
# ---------------------------------------------------------------------------

def _safe_ratio(num: float, den: float) -> Optional[float]:
    if den is None or not math.isfinite(den) or den <= 0:
        return None
    return float(num) / float(den)


def put_call_ratio(rows: Sequence[StrikeRow]) -> Optional[float]:
    """Sum put OI / sum call OI; None when there is no call OI."""
    df = chain_to_frame(rows)
    return _safe_ratio(df['put_oi'].sum(), df['call_oi'].sum())


def volume_put_call_ratio(rows: Sequence[StrikeRow]) -> Optional[float]:
    """Sum put volume / sum call volume; None when there is no call volume."""
    df = chain_to_frame(rows)
    return _safe_ratio(df['put_volume'].sum(), df['call_volume'].sum())


def calculate_volatility_metrics(rows: Sequence[StrikeRow]) -> Dict[str, Optional[float]]:
    """Chain totals and both put-call ratios."""
    df = chain_to_frame(rows)
    total_call_oi = float(df['call_oi'].sum())
    total_put_oi = float(df['put_oi'].sum())
    total_call_vol = float(df['call_volume'].sum())
    total_put_vol = float(df['put_volume'].sum())
    return {
        'put_call_oi_ratio': _safe_ratio(total_put_oi, total_call_oi),
        'put_call_volume_ratio': _safe_ratio(total_put_vol, total_call_vol),
        'total_call_oi': total_call_oi,
        'total_put_oi': total_put_oi,
        'total_call_volume': total_call_vol,
        'total_put_volume': total_put_vol,
    }


# ---------------------------------------------------------------------------
# Max pain
# ---------------------------------------------------------------------------

def writer_pain_by_strike(
    rows: Sequence[StrikeRow],
    candidates: Optional[Iterable[float]] = None,
) -> pd.Series:
    """
    Aggregate writer loss for each candidate settlement price.

        pain(s) = sum_k max(0, s - k) * callOI(k) + max(0, k - s) * putOI(k)
    """
    df = chain_to_frame(rows)
    if df.empty:
        return pd.Series(dtype=float)
    k = df['strike'].to_numpy(dtype=float)
    c_oi = df['call_oi'].to_numpy(dtype=float)
    p_oi = df['put_oi'].to_numpy(dtype=float)
    s = np.sort(np.asarray(list(candidates), dtype=float)) if candidates is not None else k

    diff = s[:, None] - k[None, :]
    pain = (np.maximum(diff, 0.0) * c_oi).sum(axis=1) + (np.maximum(-diff, 0.0) * p_oi).sum(axis=1)
    return pd.Series(pain, index=pd.Index(s, name='settlement'), name='writer_pain')


def calculate_max_pain(
    rows: Sequence[StrikeRow],
    candidates: Optional[Iterable[float]] = None,
) -> Optional[float]:
    """Settlement strike minimising total writer loss; None for an empty chain."""
    pain = writer_pain_by_strike(rows, candidates)
    if pain.empty:
        return None
    # first minimum -> lowest strike on ties
    return float(pain.index[int(np.argmin(pain.to_numpy()))])


# ---------------------------------------------------------------------------
# Put-call parity
# ---------------------------------------------------------------------------

def calculate_parity_deviation(
    call_ltp: Optional[float],
    put_ltp: Optional[float],
    spot: Optional[float],
    strike: float,
    T: float,
    r: float = DEFAULT_RISK_FREE,
    min_theoretical: float = 10.0,
) -> Optional[ParityDeviation]:
    """
    Deviation of the quoted C - P from S - K e^{-rT}.

    The percentage is only normalised when |S - K e^{-rT}| >= min_theoretical
    (near the zero crossing it would explode); otherwise it is 0.
    Returns None when a leg or the spot is missing.
    """
    legs = (call_ltp, put_ltp, spot)
    if any(v is None or not math.isfinite(v) or v <= 0 for v in legs):
        return None
    theoretical = put_call_parity_gap(spot, strike, T, r)
    actual = float(call_ltp) - float(put_ltp)
    deviation = actual - theoretical
    if abs(theoretical) >= min_theoretical:
        pct = deviation / abs(theoretical) * 100.0
    else:
        pct = 0.0
    return ParityDeviation(
        theoretical_diff=theoretical,
        actual_diff=actual,
        deviation=deviation,
        deviation_pct=pct,
    )
