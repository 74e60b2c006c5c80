"""
hybrid_pricer.py — Blended closed-form / stochastic-vol theoretical prices.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from analytics_config import AnalyticsConfig, get_config
from black_scholes import greeks, option_price
from chain_models import CALL, PUT, PricingResult, StrikeRow, VolEstimate, normalize_option_type
from heston_approx import HestonParams, heston_price
from iv_solver import implied_volatility
from opportunity_ranker import price_difference, trading_signal


CorrectionHook = Callable[..., float]


def determine_model_weights(
    moneyness: float,
    days_to_expiry: float,
    volatility_index: Optional[float] = None,
) -> Dict[str, float]:
    """
    Weights for the closed-form and stochastic-vol legs.

    Start 50/50, then:
      * moneyness outside [0.95, 1.05]  -> +0.2 stochastic vol
      * fewer than 7 days               -> +0.3 closed form
      * more than 30 days               -> +0.2 stochastic vol
      * volatility index above 20       -> +0.1 stochastic vol
    and normalise to sum to 1.
    """
    bs_w = 0.5
    sv_w = 0.5

    if moneyness < 0.95 or moneyness > 1.05:
        bs_w -= 0.2
        sv_w += 0.2

    if days_to_expiry < 7:
        bs_w += 0.3
        sv_w -= 0.3
    elif days_to_expiry > 30:
        bs_w -= 0.2
        sv_w += 0.2

    if volatility_index is not None and volatility_index > 20:
        bs_w -= 0.1
        sv_w += 0.1

    total = bs_w + sv_w
    return {
        'black_scholes': bs_w / total,
        'stochastic_vol': sv_w / total,
    }


def sentiment_tenor_correction(
    moneyness: float,
    time_to_expiry: float,
    put_call_ratio: Optional[float] = None,
    volatility_index: Optional[float] = None,
) -> float:
    """
    Rule-of-thumb multiplicative nudge applied to the blended price.

    Not a fitted model.  Terms:
      * volatility index > 20        -> +0.02 * moneyness
      * PCR > 1.2 (bearish)          -> -0.01
      * PCR < 0.8 (bullish)          -> +0.01
      * T < 0.05y (~18 days)         -> +0.03 * (1 - moneyness)
    """
    correction = 0.0
    if volatility_index is not None and volatility_index > 20:
        correction += 0.02 * moneyness
    if put_call_ratio is not None:
        if put_call_ratio > 1.2:
            correction -= 0.01
        elif put_call_ratio < 0.8:
            correction += 0.01
    if time_to_expiry < 0.05:
        correction += 0.03 * (1.0 - moneyness)
    return correction


def no_correction(*args, **kwargs) -> float:
    return 0.0


class HybridPricer:
    """
    Price one option side as a weighted blend of:
      Leg 0: Black-Scholes at the chain ATM implied volatility
      Leg 1: Heston effective-vol approximation
    scaled by ``1 + correction`` from a pluggable hook.

    Greeks come from Black-Scholes at the option's own implied volatility.
    """

    def __init__(
        self,
        config: Optional[AnalyticsConfig] = None,
        heston_params: Optional[HestonParams] = None,
        correction: Optional[CorrectionHook] = None,
    ):
        self.config = config or get_config()
        self.heston_params = heston_params or HestonParams.from_config(self.config)
        if correction is None:
            correction = sentiment_tenor_correction if self.config.apply_heuristic_correction else no_correction
        self.correction = correction

    def _option_iv(self, market_price, spot, strike, T, option_type) -> VolEstimate:
        fallback = VolEstimate(float(self.config.fallback_volatility), is_estimated=True)
        if not market_price or market_price <= 0:
            return fallback
        iv = implied_volatility(market_price, spot, strike, T, self.config.risk_free_rate, option_type)
        if iv is None or iv <= 0:
            return fallback
        return VolEstimate(iv, is_estimated=False)

    def price_option(
        self,
        *,
        option_type: str,
        strike: float,
        market_price: Optional[float],
        spot: float,
        T: float,
        chain_iv: VolEstimate,
        put_call_ratio: Optional[float] = None,
        volatility_index: Optional[float] = None,
    ) -> PricingResult:
        side = normalize_option_type(option_type)
        r = self.config.risk_free_rate
        vix = self.config.volatility_index if volatility_index is None else volatility_index

        option_iv = self._option_iv(market_price, spot, strike, T, side)

        bs_price = option_price(side, spot, strike, T, r, chain_iv.value)
        sv_price, _ = heston_price(side, spot, strike, T, r, self.heston_params)

        moneyness = spot / strike
        weights = determine_model_weights(moneyness, T * self.config.days_per_year, vix)
        correction = float(self.correction(
            moneyness=moneyness,
            time_to_expiry=T,
            put_call_ratio=put_call_ratio,
            volatility_index=vix,
        ))

        if bs_price is None and sv_price is None:
            theoretical = None
        elif sv_price is None:
            theoretical = bs_price * (1.0 + correction)
        elif bs_price is None:
            theoretical = sv_price * (1.0 + correction)
        else:
            blended = weights['black_scholes'] * bs_price + weights['stochastic_vol'] * sv_price
            theoretical = blended * (1.0 + correction)

        absolute, pct = price_difference(market_price, theoretical)

        return PricingResult(
            option_type=side,
            market_price=market_price if market_price else None,
            implied_volatility=option_iv,
            theoretical_price=theoretical,
            black_scholes_price=bs_price,
            stochastic_vol_price=sv_price,
            weights=weights,
            correction=correction,
            greeks=greeks(side, spot, strike, T, r, option_iv.value, self.config.days_per_year),
            price_difference=absolute,
            price_difference_pct=pct,
            signal=trading_signal(pct),
        )

    def price_row(
        self,
        row: StrikeRow,
        *,
        spot: float,
        T: float,
        chain_iv: VolEstimate,
        put_call_ratio: Optional[float] = None,
    ) -> Dict[str, Optional[PricingResult]]:
        """Price both sides of a strike; an absent side stays None."""
        out: Dict[str, Optional[PricingResult]] = {CALL: None, PUT: None}
        for side, quote in ((CALL, row.call), (PUT, row.put)):
            if quote is None:
                continue
            out[side] = self.price_option(
                option_type=side,
                strike=row.strike_price,
                market_price=quote.ltp,
                spot=spot,
                T=T,
                chain_iv=chain_iv,
                put_call_ratio=put_call_ratio,
            )
        return out
