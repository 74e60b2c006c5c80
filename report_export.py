"""
report_export.py — Tabular views of an AnalyticsBundle.

Nothing here writes files or talks to a network; callers hand the frame
or record to whatever sink they use.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Optional

import pandas as pd

from analytics_pipeline import AnalyticsBundle

MISSING = '-'


def format_number(value: Any, decimals: int = 2) -> str:
    """Fixed-point text; None, NaN and inf render as '-'."""
    if value is None:
        return MISSING
    try:
        x = float(value)
    except (TypeError, ValueError):
        return MISSING
    if not math.isfinite(x):
        return MISSING
    return f"{x:.{int(decimals)}f}"


def _side_columns(prefix: str, quote, pricing, vol) -> Dict[str, Any]:
    greeks = pricing.greeks if pricing is not None else None
    return {
        f'{prefix}_ltp': quote.ltp if quote is not None else None,
        f'{prefix}_mid': quote.mid if quote is not None else None,
        f'{prefix}_oi': quote.oi if quote is not None else None,
        f'{prefix}_oi_change': quote.oi_change if quote is not None else None,
        f'{prefix}_volume': quote.volume if quote is not None else None,
        f'{prefix}_iv': pricing.implied_volatility.value if pricing is not None else None,
        f'{prefix}_iv_estimated': pricing.implied_volatility.is_estimated if pricing is not None else None,
        f'{prefix}_theoretical': pricing.theoretical_price if pricing is not None else None,
        f'{prefix}_diff_pct': pricing.price_difference_pct if pricing is not None else None,
        f'{prefix}_signal': pricing.signal.get('signal') if pricing is not None else None,
        f'{prefix}_delta': greeks.delta if greeks is not None else None,
        f'{prefix}_gamma': greeks.gamma if greeks is not None else None,
        f'{prefix}_theta': greeks.theta if greeks is not None else None,
        f'{prefix}_vega': greeks.vega if greeks is not None else None,
        f'{prefix}_skew_ratio': vol.skew_ratio if vol is not None else None,
        f'{prefix}_skew_signal': vol.trading_signal if vol is not None else None,
    }


def enriched_rows_frame(bundle: Optional[AnalyticsBundle]) -> pd.DataFrame:
    """One row per strike, indexed by strike, with an ``is_atm`` flag."""
    if bundle is None or not bundle.enriched_rows:
        return pd.DataFrame()
    records = []
    for row in bundle.enriched_rows:
        parity = row.parity_deviation
        rec = {
            'strike': row.strike_price,
            'is_atm': row.strike_price == bundle.atm_strike,
            'parity_deviation': parity.deviation if parity is not None else None,
            'parity_deviation_pct': parity.deviation_pct if parity is not None else None,
        }
        rec.update(_side_columns('call', row.call, row.call_pricing, row.call_volatility))
        rec.update(_side_columns('put', row.put, row.put_pricing, row.put_volatility))
        records.append(rec)
    return pd.DataFrame.from_records(records).set_index('strike')


def atm_record(bundle: Optional[AnalyticsBundle]) -> Optional[Dict[str, Any]]:
    """
    Flat summary of the ATM strike: spot, expiry, chain IV/HV, per-side OI,
    IV, skew, market vs theoretical and the parity deviation.
    Returns None when the bundle has no ATM row.
    """
    row = bundle.atm_row if bundle is not None else None
    if row is None:
        return None

    rec: Dict[str, Any] = {
        'spot': bundle.spot,
        'expiry': bundle.expiry,
        'strike': row.strike_price,
        'chain_iv': bundle.chain_iv.value if bundle.chain_iv is not None else None,
        'historical_volatility': (bundle.historical_volatility.value
                                  if bundle.historical_volatility is not None else None),
        'parity_deviation': (bundle.parity_deviation.deviation
                             if bundle.parity_deviation is not None else None),
        'parity_deviation_pct': (bundle.parity_deviation.deviation_pct
                                 if bundle.parity_deviation is not None else None),
    }
    for prefix, quote, pricing, vol in (
        ('call', row.call, row.call_pricing, row.call_volatility),
        ('put', row.put, row.put_pricing, row.put_volatility),
    ):
        rec[f'{prefix}_oi'] = quote.oi if quote is not None else None
        rec[f'{prefix}_oi_change_pct'] = quote.oi_change_pct if quote is not None else None
        rec[f'{prefix}_ltp'] = quote.ltp if quote is not None else None
        rec[f'{prefix}_theoretical'] = pricing.theoretical_price if pricing is not None else None
        rec[f'{prefix}_diff_pct'] = pricing.price_difference_pct if pricing is not None else None
        rec[f'{prefix}_iv'] = pricing.implied_volatility.value if pricing is not None else None
        rec[f'{prefix}_skew_ratio'] = vol.skew_ratio if vol is not None else None
        rec[f'{prefix}_skew_difference'] = vol.skew_difference if vol is not None else None
        rec[f'{prefix}_skew_percentage'] = vol.skew_percentage if vol is not None else None
    return rec
