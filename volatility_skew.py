"""
volatility_skew.py — Implied vs historical volatility diagnostics.

    skew_ratio      = IV / HV
    skew_difference = IV - HV
    skew_percentage = (IV - HV) / HV * 100

Classification (strict inequalities):
    ratio > 1.3  -> SELL          (options rich)
    ratio > 1.1  -> NEUTRAL_SELL
    ratio < 0.7  -> BUY           (options cheap)
    ratio < 0.9  -> NEUTRAL_BUY
    otherwise    -> NEUTRAL
"""

from __future__ import annotations

import math
from typing import Optional, Union

from chain_models import PricingResult, VolatilityProfile, VolEstimate

SELL = 'SELL'
NEUTRAL_SELL = 'NEUTRAL_SELL'
BUY = 'BUY'
NEUTRAL_BUY = 'NEUTRAL_BUY'
NEUTRAL = 'NEUTRAL'
HOLD = 'HOLD'

INSUFFICIENT_DATA = "Insufficient data to analyze volatility skew"

_BANDS = (
    (lambda x: x > 1.3, SELL,
     "Implied volatility is significantly higher than historical volatility, "
     "suggesting options may be overpriced"),
    (lambda x: x < 0.7, BUY,
     "Implied volatility is significantly lower than historical volatility, "
     "suggesting options may be underpriced"),
    (lambda x: x > 1.1, NEUTRAL_SELL,
     "Implied volatility is higher than historical volatility, "
     "suggesting options may be slightly overpriced"),
    (lambda x: x < 0.9, NEUTRAL_BUY,
     "Implied volatility is lower than historical volatility, "
     "suggesting options may be slightly underpriced"),
)
_FAIR = (NEUTRAL, "Implied volatility is in line with historical volatility, "
                  "suggesting options are fairly priced")

VolInput = Union[VolEstimate, float, None]


def _unpack(v: VolInput):
    if v is None:
        return None, False
    if isinstance(v, VolEstimate):
        value, est = v.value, v.is_estimated
    else:
        value, est = v, False
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None, est
    if not math.isfinite(value) or value <= 0:
        return None, est
    return value, est


def classify_skew_ratio(skew_ratio: float):
    """Return (trading_signal, interpretation) for an IV/HV ratio."""
    for test, signal, text in _BANDS:
        if test(skew_ratio):
            return signal, text
    return _FAIR


def analyze_volatility_skew(
    implied_volatility: VolInput,
    historical_volatility: VolInput,
) -> VolatilityProfile:
    """
    Compare IV with HV.

    Missing or non-positive inputs give an insufficient-data profile
    (signal HOLD, ratios None) rather than a NEUTRAL reading.  When either
    input is a tagged fallback, ``is_estimated`` is set on the result.
    """
    iv, iv_est = _unpack(implied_volatility)
    hv, hv_est = _unpack(historical_volatility)
    estimated = bool(iv_est or hv_est)

    if iv is None or hv is None:
        return VolatilityProfile(
            implied_volatility=iv,
            historical_volatility=hv,
            skew_ratio=None,
            skew_difference=None,
            skew_percentage=None,
            interpretation=INSUFFICIENT_DATA,
            trading_signal=HOLD,
            insufficient_data=True,
            is_estimated=estimated,
        )

    ratio = iv / hv
    diff = iv - hv
    signal, text = classify_skew_ratio(ratio)
    return VolatilityProfile(
        implied_volatility=iv,
        historical_volatility=hv,
        skew_ratio=ratio,
        skew_difference=diff,
        skew_percentage=diff / hv * 100.0,
        interpretation=text,
        trading_signal=signal,
        insufficient_data=False,
        is_estimated=estimated,
    )


def analyze_option_volatility(
    pricing: Optional[PricingResult],
    historical_volatility: VolInput,
) -> Optional[VolatilityProfile]:
    """Per-side profile from a PricingResult's own implied volatility."""
    if pricing is None:
        return None
    return analyze_volatility_skew(pricing.implied_volatility, historical_volatility)
