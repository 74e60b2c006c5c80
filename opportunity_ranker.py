"""
opportunity_ranker.py — Mispricing signals and ranked trade candidates.

Signal logic:
    1. percent difference = (market - theoretical) / theoretical * 100
    2. |pct| >= threshold  ->  candidate
    3. positive (market rich)  -> SELL,  negative (market cheap) -> BUY
    4. score = |pct|, candidates sorted by descending score per side
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

from chain_models import CALL, PUT, Opportunity

DEFAULT_THRESHOLD_PCT = 10.0


def price_difference(
    market_price: Optional[float],
    theoretical_price: Optional[float],
) -> Tuple[Optional[float], Optional[float]]:
    """
    (market - theoretical, same as % of theoretical).

    Either value is None when it is undefined: no trade yet, no
    theoretical price, or a non-positive theoretical price.
    """
    if market_price is None or theoretical_price is None:
        return None, None
    if not (math.isfinite(market_price) and math.isfinite(theoretical_price)):
        return None, None
    if market_price <= 0:
        return None, None
    absolute = float(market_price) - float(theoretical_price)
    if theoretical_price <= 0:
        return absolute, None
    return absolute, absolute / float(theoretical_price) * 100.0


def trading_signal(percentage: Optional[float]) -> Dict[str, Any]:
    """
    Graded signal from a price difference percentage.

    > 10 SELL/Strong, > 5 SELL/Moderate, < -10 BUY/Strong, < -5 BUY/Moderate,
    otherwise HOLD.  An undefined percentage is HOLD.
    """
    if percentage is None:
        return {'signal': 'HOLD', 'strength': 'Neutral', 'confidence': 0.5}
    if percentage > 10:
        return {'signal': 'SELL', 'strength': 'Strong', 'confidence': 0.8}
    if percentage > 5:
        return {'signal': 'SELL', 'strength': 'Moderate', 'confidence': 0.6}
    if percentage < -10:
        return {'signal': 'BUY', 'strength': 'Strong', 'confidence': 0.8}
    if percentage < -5:
        return {'signal': 'BUY', 'strength': 'Moderate', 'confidence': 0.6}
    return {'signal': 'HOLD', 'strength': 'Neutral', 'confidence': 0.5}


def _candidate(strike, side, pricing, threshold) -> Optional[Opportunity]:
    if pricing is None:
        return None
    pct = pricing.price_difference_pct
    if pct is None or not math.isfinite(pct) or abs(pct) < threshold:
        return None
    return Opportunity(
        strike=float(strike),
        side=side,
        market_price=float(pricing.market_price),
        theoretical_price=float(pricing.theoretical_price),
        percent_difference=float(pct),
        action='SELL' if pct > 0 else 'BUY',
        score=abs(float(pct)),
        is_estimated=bool(pricing.implied_volatility.is_estimated),
    )


def identify_trading_opportunities(
    enriched_rows: Iterable[Any],
    threshold: float = DEFAULT_THRESHOLD_PCT,
) -> Dict[str, List[Opportunity]]:
    """
    Parameters
    ----------
    enriched_rows : iterable of rows exposing ``strike_price``,
                    ``call_pricing`` and ``put_pricing`` (PricingResult or None)
    threshold     : float - minimum |percent difference|

    Returns
    -------
    {'call': [Opportunity...], 'put': [Opportunity...]} each sorted by score
    """
    calls: List[Opportunity] = []
    puts: List[Opportunity] = []
    for row in enriched_rows or []:
        c = _candidate(row.strike_price, CALL, row.call_pricing, threshold)
        if c is not None:
            calls.append(c)
        p = _candidate(row.strike_price, PUT, row.put_pricing, threshold)
        if p is not None:
            puts.append(p)

    calls.sort(key=lambda o: o.score, reverse=True)
    puts.sort(key=lambda o: o.score, reverse=True)
    return {CALL: calls, PUT: puts}
