"""
test_hybrid_pricer.py — Model blender and correction hook
=========================================================
"""

import pytest

from analytics_config import AnalyticsConfig
from black_scholes import call_price, greeks, put_price
from chain_models import Quote, StrikeRow, VolEstimate
from heston_approx import HestonParams, heston_price
from hybrid_pricer import (
    HybridPricer,
    determine_model_weights,
    no_correction,
    sentiment_tenor_correction,
)

T30 = 30.0 / 365.0


# ── Weights ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("moneyness, days, vix, expected_bs", [
    (1.00, 15, 15.0, 0.5),
    (0.95, 15, 15.0, 0.5),      # band edges are inside
    (1.05, 7, 20.0, 0.5),
    (1.00, 30, None, 0.5),
    (1.10, 15, 15.0, 0.3),
    (1.00, 3, 15.0, 0.8),
    (0.90, 3, 15.0, 0.6),
    (1.00, 45, 15.0, 0.3),
    (1.00, 15, 25.0, 0.4),
    (1.10, 45, 25.0, 0.0),
])
def test_model_weights(moneyness, days, vix, expected_bs):
    w = determine_model_weights(moneyness, days, vix)
    assert w['black_scholes'] == pytest.approx(expected_bs)
    assert w['black_scholes'] + w['stochastic_vol'] == pytest.approx(1.0)


# ── Correction hook ─────────────────────────────────────────────────

def test_correction_terms():
    assert sentiment_tenor_correction(1.0, 0.1) == 0.0
    assert sentiment_tenor_correction(1.0, 0.1, volatility_index=25.0) == pytest.approx(0.02)
    assert sentiment_tenor_correction(1.0, 0.1, put_call_ratio=1.3) == pytest.approx(-0.01)
    assert sentiment_tenor_correction(1.0, 0.1, put_call_ratio=0.7) == pytest.approx(0.01)
    assert sentiment_tenor_correction(1.0, 0.1, put_call_ratio=1.0) == 0.0
    assert sentiment_tenor_correction(0.9, 0.01) == pytest.approx(0.003)
    assert sentiment_tenor_correction(1.1, 0.01, 1.5, 30.0) == pytest.approx(0.022 - 0.01 - 0.003)


def test_correction_disabled_by_config():
    pricer = HybridPricer(config=AnalyticsConfig(apply_heuristic_correction=False))
    assert pricer.correction is no_correction


# ── Pricing ─────────────────────────────────────────────────────────

@pytest.fixture
def plain_pricer():
    return HybridPricer(config=AnalyticsConfig(apply_heuristic_correction=False))


def test_price_is_weighted_blend(plain_pricer):
    chain_iv = VolEstimate(0.18)
    market = call_price(18000, 18200, T30, 0.065, 0.21)
    res = plain_pricer.price_option(option_type='CE', strike=18200, market_price=market,
                                    spot=18000, T=T30, chain_iv=chain_iv)
    bs = call_price(18000, 18200, T30, 0.065, 0.18)
    sv, _ = heston_price('call', 18000, 18200, T30, 0.065, HestonParams())
    w = determine_model_weights(18000 / 18200, T30 * 365.0, 18.5)

    assert res.option_type == 'call'
    assert res.black_scholes_price == pytest.approx(bs)
    assert res.stochastic_vol_price == pytest.approx(sv)
    assert res.theoretical_price == pytest.approx(w['black_scholes'] * bs + w['stochastic_vol'] * sv)
    assert res.correction == 0.0
    assert res.implied_volatility.value == pytest.approx(0.21, abs=1e-3)
    assert not res.implied_volatility.is_estimated


def test_greeks_use_option_iv(plain_pricer):
    market = put_price(18000, 17800, T30, 0.065, 0.26)
    res = plain_pricer.price_option(option_type='put', strike=17800, market_price=market,
                                    spot=18000, T=T30, chain_iv=VolEstimate(0.18))
    ref = greeks('put', 18000, 17800, T30, 0.065, res.implied_volatility.value)
    assert res.greeks.delta == pytest.approx(ref.delta)
    assert res.greeks.vega == pytest.approx(ref.vega)


def test_missing_market_price_uses_tagged_fallback(plain_pricer):
    res = plain_pricer.price_option(option_type='call', strike=18000, market_price=0.0,
                                    spot=18000, T=T30, chain_iv=VolEstimate(0.2))
    assert res.implied_volatility == VolEstimate(0.3, is_estimated=True)
    assert res.market_price is None
    assert res.price_difference is None and res.price_difference_pct is None
    assert res.signal['signal'] == 'HOLD'
    assert res.theoretical_price > 0


def test_custom_correction_hook_receives_named_inputs():
    seen = {}

    def hook(**kwargs):
        seen.update(kwargs)
        return 0.1

    pricer = HybridPricer(config=AnalyticsConfig(), correction=hook)
    res = pricer.price_option(option_type='call', strike=18000, market_price=400.0,
                              spot=18000, T=T30, chain_iv=VolEstimate(0.2),
                              put_call_ratio=1.1, volatility_index=22.0)
    assert set(seen) == {'moneyness', 'time_to_expiry', 'put_call_ratio', 'volatility_index'}
    assert seen['moneyness'] == pytest.approx(1.0)
    assert seen['volatility_index'] == 22.0
    w = res.weights
    blended = w['black_scholes'] * res.black_scholes_price + w['stochastic_vol'] * res.stochastic_vol_price
    assert res.theoretical_price == pytest.approx(blended * 1.1)


def test_price_row_skips_missing_side(plain_pricer):
    row = StrikeRow(18000.0, call=Quote(ltp=420.0, oi=100.0))
    out = plain_pricer.price_row(row, spot=18000.0, T=T30, chain_iv=VolEstimate(0.2))
    assert out['put'] is None
    assert out['call'].market_price == 420.0


def test_to_dict_flattens_vol_estimate(plain_pricer):
    res = plain_pricer.price_option(option_type='call', strike=18000, market_price=420.0,
                                    spot=18000, T=T30, chain_iv=VolEstimate(0.2))
    d = res.to_dict()
    assert d['implied_volatility'] == res.implied_volatility.value
    assert d['iv_is_estimated'] is False
    assert set(d['greeks']) == {'delta', 'gamma', 'theta', 'vega', 'rho'}
