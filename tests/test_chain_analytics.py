"""
test_chain_analytics.py — ATM, support/resistance, PCR, max pain, parity
========================================================================
"""

import math

import numpy as np
import pytest

from black_scholes import call_price, put_price
from chain_analytics import (
    atm_strike,
    calculate_max_pain,
    calculate_parity_deviation,
    calculate_support_resistance,
    calculate_volatility_metrics,
    chain_to_frame,
    find_atm_row,
    put_call_ratio,
    volume_put_call_ratio,
    writer_pain_by_strike,
)
from chain_models import Quote, StrikeRow, VolEstimate


def _oi_row(k, call_oi=None, put_oi=None, call_vol=0.0, put_vol=0.0):
    call = Quote(ltp=10.0, oi=call_oi, volume=call_vol) if call_oi is not None else None
    put = Quote(ltp=10.0, oi=put_oi, volume=put_vol) if put_oi is not None else None
    return StrikeRow(float(k), call=call, put=put)


@pytest.fixture
def three_strike_chain():
    return [
        _oi_row(17900, call_oi=0, put_oi=500),
        _oi_row(18000, call_oi=300, put_oi=300),
        _oi_row(18100, call_oi=500, put_oi=0),
    ]


# ── Frame / ATM ─────────────────────────────────────────────────────

def test_chain_to_frame(chain):
    df = chain_to_frame(chain.rows)
    assert list(df['strike']) == chain.strikes
    assert df['call_oi'].sum() > 0
    partial = chain_to_frame([_oi_row(18000, call_oi=100)])
    assert math.isnan(partial.loc[0, 'put_ltp'])
    assert partial.loc[0, 'put_oi'] == 0.0
    assert chain_to_frame([]).empty


def test_atm_detection(chain):
    assert atm_strike(chain.rows, 18020.0) == 18000.0
    assert atm_strike(chain.rows, 18060.0) == 18100.0
    assert atm_strike(chain.rows, 18050.0) == 18000.0   # tie goes to the lower strike
    assert atm_strike(chain.rows[::-1], 18050.0) == 18000.0
    assert find_atm_row(chain.rows, None) is None
    assert find_atm_row([], 18000.0) is None


# ── Support / resistance ────────────────────────────────────────────

def test_support_resistance_levels(chain):
    sr = calculate_support_resistance(18000.0, chain.rows, VolEstimate(0.2), top_n=3)
    move = 18000.0 * 0.2 / math.sqrt(252)
    for level in (17900.0, 17800.0, 17700.0, round(18000 - move, 2), round(18000 - 2 * move, 2)):
        assert level in sr.support
    for level in (18100.0, 18200.0, 18300.0, round(18000 + move, 2), round(18000 + 2 * move, 2)):
        assert level in sr.resistance
    assert list(sr.support) == sorted(sr.support, reverse=True)
    assert list(sr.resistance) == sorted(sr.resistance)
    assert all(s < 18000 for s in sr.support)
    assert all(r > 18000 for r in sr.resistance)


def test_support_resistance_dedupes():
    rows = [_oi_row(17900, call_oi=10, put_oi=900), _oi_row(18100, call_oi=900, put_oi=10)]
    # a vol that puts the 1-sigma band exactly on the OI strikes
    vol = 100.0 * math.sqrt(252) / 18000.0
    sr = calculate_support_resistance(18000.0, rows, vol, top_n=3)
    assert sr.support.count(17900.0) == 1
    assert sr.resistance.count(18100.0) == 1


def test_support_resistance_without_vol_or_spot(chain):
    sr = calculate_support_resistance(18000.0, chain.rows, None, top_n=1)
    assert sr.support == (17900.0,)
    assert sr.resistance == (18100.0,)
    empty = calculate_support_resistance(None, chain.rows, 0.2)
    assert empty.support == () and empty.resistance == ()


# ── Ratios ──────────────────────────────────────────────────────────

def test_put_call_ratios():
    rows = [_oi_row(18000, call_oi=200, put_oi=300, call_vol=50, put_vol=100),
            _oi_row(18100, call_oi=300, put_oi=200, call_vol=50, put_vol=0)]
    assert put_call_ratio(rows) == pytest.approx(1.0)
    assert volume_put_call_ratio(rows) == pytest.approx(1.0)
    metrics = calculate_volatility_metrics(rows)
    assert metrics['total_call_oi'] == 500.0
    assert metrics['total_put_volume'] == 100.0


def test_ratio_undefined_without_call_side():
    rows = [_oi_row(18000, put_oi=300), _oi_row(18100, call_oi=0, put_oi=100)]
    assert put_call_ratio(rows) is None
    assert volume_put_call_ratio(rows) is None
    assert put_call_ratio([]) is None
    assert calculate_volatility_metrics([])['put_call_oi_ratio'] is None


# ── Max pain ────────────────────────────────────────────────────────

def test_max_pain_three_strikes(three_strike_chain):
    assert calculate_max_pain(three_strike_chain) == 18000.0
    pain = writer_pain_by_strike(three_strike_chain)
    assert pain.loc[17900.0] == 300 * 100
    assert pain.loc[18000.0] == 0.0
    assert pain.loc[18100.0] == 300 * 100


def test_max_pain_matches_brute_force(chain):
    rows = chain.rows

    def pain(settle):
        total = 0.0
        for r in rows:
            total += max(0.0, settle - r.strike_price) * r.call.oi
            total += max(0.0, r.strike_price - settle) * r.put.oi
        return total

    expected = min(chain.strikes, key=pain)
    assert calculate_max_pain(rows) == expected


def test_max_pain_ties_and_empty():
    rows = [_oi_row(18000, call_oi=0, put_oi=0), _oi_row(18100, call_oi=0, put_oi=0)]
    assert calculate_max_pain(rows) == 18000.0
    assert calculate_max_pain([]) is None


def test_max_pain_custom_candidates(three_strike_chain):
    assert calculate_max_pain(three_strike_chain, candidates=[18100.0, 17950.0]) == 17950.0


# ── Parity ──────────────────────────────────────────────────────────

def test_parity_deviation_zero_for_model_prices():
    T = 30 / 365
    c = call_price(18000, 17500, T, 0.065, 0.2)
    p = put_price(18000, 17500, T, 0.065, 0.2)
    dev = calculate_parity_deviation(c, p, 18000.0, 17500.0, T, 0.065)
    assert dev.theoretical_diff == pytest.approx(18000 - 17500 * math.exp(-0.065 * T))
    assert dev.deviation == pytest.approx(0.0, abs=1e-6)
    assert dev.deviation_pct == pytest.approx(0.0, abs=1e-6)


def test_parity_deviation_percentage():
    T = 30 / 365
    theo = 18000 - 17500 * math.exp(-0.065 * T)
    dev = calculate_parity_deviation(theo + 60.0, 10.0, 18000.0, 17500.0, T, 0.065)
    assert dev.deviation == pytest.approx(50.0)
    assert dev.deviation_pct == pytest.approx(50.0 / abs(theo) * 100.0)


def test_parity_percentage_suppressed_near_zero_crossing():
    # K e^{-rT} within 10 of spot
    T = 30 / 365
    K = 18000.0 * math.exp(0.065 * T) + 5.0
    dev = calculate_parity_deviation(300.0, 280.0, 18000.0, K, T, 0.065)
    assert abs(dev.theoretical_diff) < 10
    assert dev.deviation != 0.0
    assert dev.deviation_pct == 0.0


@pytest.mark.parametrize("c, p, s", [(None, 100.0, 18000.0), (100.0, 0.0, 18000.0),
                                     (100.0, 100.0, None), (np.nan, 100.0, 18000.0)])
def test_parity_missing_leg(c, p, s):
    assert calculate_parity_deviation(c, p, s, 18000.0, 0.1) is None
