"""
black_scholes.py  --  Closed-form European option pricer and Greeks
===================================================================

Black-Scholes-Merton prices and sensitivities on top of the A&S normal
kernel in ``normal_dist``.

Conventions
-----------
  * T in years; clamped to >= 1e-8 so expiry-day options still price
  * sigma capped at 5.0 to keep d1/d2 finite
  * theta per calendar day, vega and rho per 1 percentage point
  * invalid inputs (S <= 0, K <= 0, sigma <= 0, non-finite) return None

Public API
----------
  call_price(S, K, T, r, sigma)
  put_price(S, K, T, r, sigma)
  option_price(option_type, S, K, T, r, sigma)
  greeks(option_type, S, K, T, r, sigma)       -> Greeks | None
  put_call_parity_gap(S, K, T, r)              -> S - K e^{-rT}
"""

import math

from chain_models import CALL, Greeks, normalize_option_type
from normal_dist import normal_cdf, normal_pdf

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
MIN_T = 1e-8
MAX_SIGMA = 5.0
DEEP_MONEYNESS = 10.0        # S/K beyond which the tail guards short-circuit
DEFAULT_RISK_FREE = 0.065
DAYS_PER_YEAR = 365.0


def _valid(*values):
    for v in values:
        if v is None:
            return False
        try:
            if not math.isfinite(float(v)):
                return False
        except (TypeError, ValueError):
            return False
    return True


def _prepare(S, K, T, r, sigma):
    """Return clamped (S, K, T, r, sigma) or None for invalid inputs."""
    if not _valid(S, K, T, r, sigma):
        return None
    S, K, T, r, sigma = float(S), float(K), float(T), float(r), float(sigma)
    if S <= 0 or K <= 0 or sigma <= 0:
        return None
    return S, K, max(T, MIN_T), r, min(sigma, MAX_SIGMA)


def d1_d2(S, K, T, r, sigma):
    """
    d1 = (ln(S/K) + (r + sigma^2/2) T) / (sigma sqrt(T)),  d2 = d1 - sigma sqrt(T)

    Returns (d1, d2) or None for invalid inputs.
    """
    p = _prepare(S, K, T, r, sigma)
    if p is None:
        return None
    S, K, T, r, sigma = p
    vol_sqrt_t = sigma * math.sqrt(T)
    d1 = (math.log(S / K) + (r + 0.5 * sigma * sigma) * T) / vol_sqrt_t
    return d1, d1 - vol_sqrt_t


def call_price(S, K, T, r=DEFAULT_RISK_FREE, sigma=0.2):
    """
    European call:  S Phi(d1) - K e^{-rT} Phi(d2).

    Beyond S > 10K the price is S - K e^{-rT} and below S < K/10 it is 0.
    With a very large sigma*sqrt(T) the formula is still well above
    intrinsic at S = 10K, so the switch makes the price drop there and the
    call is not monotone in S across that boundary.
    """
    p = _prepare(S, K, T, r, sigma)
    if p is None:
        return None
    S, K, T, r, sigma = p
    disc_k = K * math.exp(-r * T)

    # Tail guards: the CDF approximation saturates, price is intrinsic/zero
    if S > K * DEEP_MONEYNESS:
        return max(0.0, S - disc_k)
    if S < K / DEEP_MONEYNESS:
        return 0.0

    d1, d2 = d1_d2(S, K, T, r, sigma)
    return S * normal_cdf(d1) - disc_k * normal_cdf(d2)


def put_price(S, K, T, r=DEFAULT_RISK_FREE, sigma=0.2):
    """European put:  K e^{-rT} Phi(-d2) - S Phi(-d1)."""
    p = _prepare(S, K, T, r, sigma)
    if p is None:
        return None
    S, K, T, r, sigma = p
    disc_k = K * math.exp(-r * T)

    if S < K / DEEP_MONEYNESS:
        return max(0.0, disc_k - S)
    if S > K * DEEP_MONEYNESS:
        return 0.0

    d1, d2 = d1_d2(S, K, T, r, sigma)
    return disc_k * normal_cdf(-d2) - S * normal_cdf(-d1)


def option_price(option_type, S, K, T, r=DEFAULT_RISK_FREE, sigma=0.2):
    """Dispatch on option_type ('call'/'CE'/'put'/'PE')."""
    if normalize_option_type(option_type) == CALL:
        return call_price(S, K, T, r, sigma)
    return put_price(S, K, T, r, sigma)


def greeks(option_type, S, K, T, r=DEFAULT_RISK_FREE, sigma=0.2, days_per_year=DAYS_PER_YEAR):
    """
    Analytical Greeks.  Theta is spread over ``days_per_year`` calendar days.

    Returns
    -------
    Greeks or None
        delta, gamma, theta (per day), vega (per vol point), rho (per rate point)
    """
    is_call = normalize_option_type(option_type) == CALL
    p = _prepare(S, K, T, r, sigma)
    if p is None:
        return None
    S, K, T, r, sigma = p

    d1, d2 = d1_d2(S, K, T, r, sigma)
    sqrt_t = math.sqrt(T)
    pdf_d1 = normal_pdf(d1)
    disc = math.exp(-r * T)

    gamma = pdf_d1 / (S * sigma * sqrt_t)
    vega = S * sqrt_t * pdf_d1 / 100.0
    decay = -S * pdf_d1 * sigma / (2.0 * sqrt_t)

    if is_call:
        delta = normal_cdf(d1)
        theta = decay - r * K * disc * normal_cdf(d2)
        rho = K * T * disc * normal_cdf(d2) / 100.0
    else:
        delta = normal_cdf(d1) - 1.0
        theta = decay + r * K * disc * normal_cdf(-d2)
        rho = -K * T * disc * normal_cdf(-d2) / 100.0

    return Greeks(
        delta=delta,
        gamma=gamma,
        theta=theta / float(days_per_year),
        vega=vega,
        rho=rho,
    )


def put_call_parity_gap(S, K, T, r=DEFAULT_RISK_FREE):
    """No-arbitrage C - P = S - K e^{-rT}  (T clamped like the pricer)."""
    return float(S) - float(K) * math.exp(-float(r) * max(float(T), MIN_T))
