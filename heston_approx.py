"""
heston_approx.py — Heston-style effective-volatility pricer.

Lightweight stochastic-vol proxy: the expected average variance over
[0, T] under Heston mean reversion is plugged into Black-Scholes.

    v_bar(T) = v0 * (1 - e^{-kT}) / (kT) + theta * (1 - (1 - e^{-kT}) / (kT))

This is a variance-averaging approximation, not a characteristic-function
Heston solution: vol-of-vol and correlation do not enter the price.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence

from black_scholes import MIN_T, option_price


@dataclass(frozen=True)
class HestonParams:
    """Defaults reflect typical NSE index-option regimes."""
    v0: float = 0.05      # initial variance
    kappa: float = 2.0    # mean-reversion speed
    theta: float = 0.04   # long-run variance
    sigma: float = 0.3    # vol of variance
    rho: float = -0.7     # spot/variance correlation

    @classmethod
    def from_config(cls, config) -> 'HestonParams':
        return cls(
            v0=float(config.heston_v0),
            kappa=float(config.heston_kappa),
            theta=float(config.heston_theta),
            sigma=float(config.heston_sigma),
            rho=float(config.heston_rho),
        )

    def is_valid(self) -> bool:
        return self.v0 > 0 and self.kappa > 0 and self.theta > 0 and self.sigma > 0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def calibrate_heston(market_data: Optional[Sequence] = None) -> HestonParams:
    """
    Return regime defaults.

    Market calibration (least squares against the quoted smile) is not
    performed; ``market_data`` is accepted so callers can pass quotes once
    a calibrator exists.
    """
    return HestonParams()


def effective_volatility(params: HestonParams, T: float) -> Optional[float]:
    """sqrt of the time-averaged expected variance; None for invalid params."""
    if not params.is_valid():
        return None
    t = max(float(T), MIN_T)
    kt = params.kappa * t
    # (1 - e^{-x}) / x, expm1 keeps it accurate for tiny kT
    decay = -math.expm1(-kt) / kt
    var = params.v0 * decay + params.theta * (1.0 - decay)
    if var <= 0:
        return None
    return math.sqrt(var)


def heston_price(option_type, S, K, T, r, params: Optional[HestonParams] = None):
    """
    Stochastic-vol theoretical price via the effective-vol approximation.

    Returns (price, effective_vol); price is None on invalid inputs.
    """
    p = params or HestonParams()
    eff = effective_volatility(p, T)
    if eff is None:
        return None, None
    return option_price(option_type, S, K, T, r, eff), eff
