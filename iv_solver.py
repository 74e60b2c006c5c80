"""
iv_solver.py  --  Bisection Implied Volatility
==============================================

Inverts the closed-form pricer in ``black_scholes`` by bisection.

Key properties
--------------
  * Bracket sigma in [0.0001, 5.0]; the pricer is monotone in sigma
  * At most 100 halvings, stop once |model - market| < 1e-5
  * No "did not converge" error: the last midpoint is the best estimate
  * Invalid inputs (price <= 0, S <= 0, K <= 0, non-finite) return None

Public API
----------
  implied_volatility(market_price, S, K, T, r, option_type)
      -> sigma | None
  estimate_chain_iv(rows, spot, T, r, fallback)
      -> VolEstimate  (ATM call/put average)
"""

import math
import warnings
from typing import Iterable, Optional

from black_scholes import DEFAULT_RISK_FREE, option_price
from chain_analytics import find_atm_row
from chain_models import CALL, PUT, StrikeRow, VolEstimate

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SIGMA_LOW = 0.0001
SIGMA_HIGH = 5.0
PRICE_TOL = 1e-5
MAX_ITER = 100


def implied_volatility(market_price, S, K, T, r=DEFAULT_RISK_FREE, option_type='call',
                       low=SIGMA_LOW, high=SIGMA_HIGH, tol=PRICE_TOL, max_iter=MAX_ITER):
    """
    Black-Scholes implied volatility by bisection.

    Parameters
    ----------
    market_price : float  -- observed option price  (> 0)
    S            : float  -- spot price
    K            : float  -- strike price
    T            : float  -- time to expiry in years
    r            : float  -- risk-free rate
    option_type  : str    -- 'call' / 'CE' / 'put' / 'PE'

    Returns
    -------
    float or None -- annualised implied volatility
    """
    try:
        values = [float(v) for v in (market_price, S, K, T, r)]
    except (TypeError, ValueError):
        return None
    if not all(math.isfinite(v) for v in values):
        return None
    market_price, S, K, T, r = values
    if market_price <= 0 or S <= 0 or K <= 0:
        return None

    lo, hi = float(low), float(high)
    mid = 0.5 * (lo + hi)
    for _ in range(int(max_iter)):
        mid = 0.5 * (lo + hi)
        price = option_price(option_type, S, K, T, r, mid)
        if price is None:
            return None
        diff = price - market_price
        if abs(diff) < tol:
            return mid
        if diff > 0:
            hi = mid
        else:
            lo = mid
    return mid


def estimate_chain_iv(
    rows: Iterable[StrikeRow],
    spot: Optional[float],
    T: float,
    r: float = DEFAULT_RISK_FREE,
    fallback: float = 0.3,
) -> VolEstimate:
    """
    Chain-level IV: average of the solved ATM call and put IVs.

    Falls back to ``fallback`` (tagged ``is_estimated=True``) when the chain
    is empty, the spot is unknown, or neither ATM leg has a usable price.
    """
    rows = list(rows or [])
    if not rows or not spot or spot <= 0:
        return VolEstimate(float(fallback), is_estimated=True)

    atm = find_atm_row(rows, spot)
    solved = []
    for side, quote in ((CALL, atm.call), (PUT, atm.put)):
        if quote is None or not quote.ltp or quote.ltp <= 0:
            continue
        iv = implied_volatility(quote.ltp, spot, atm.strike_price, T, r, side)
        if iv is not None and iv > 0:
            solved.append(iv)

    if not solved:
        warnings.warn(
            f"estimate_chain_iv: no ATM price at strike {atm.strike_price}; "
            f"using fallback volatility {fallback}",
            RuntimeWarning,
        )
        return VolEstimate(float(fallback), is_estimated=True)
    return VolEstimate(sum(solved) / len(solved), is_estimated=False)
