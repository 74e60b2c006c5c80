import math

import numpy as np
import pytest
from scipy.stats import norm

from black_scholes import call_price, put_price
from chain_models import ChainSnapshot, Expiry, Quote, StrikeRow, Underlying

NOW = 1_700_000_000
SPOT = 18000.0
EXPIRY = NOW + 30 * 86400
T_30D = 30.0 / 365.0
RATE = 0.065


def bs_reference(option_type, S, K, T, r, sigma):
    """Independent closed form using scipy's normal CDF."""
    d1 = (math.log(S / K) + (r + 0.5 * sigma ** 2) * T) / (sigma * math.sqrt(T))
    d2 = d1 - sigma * math.sqrt(T)
    if option_type == 'call':
        return S * norm.cdf(d1) - K * math.exp(-r * T) * norm.cdf(d2)
    return K * math.exp(-r * T) * norm.cdf(-d2) - S * norm.cdf(-d1)


def make_chain(spot=SPOT, sigma=0.2, strikes=None, T=T_30D, r=RATE, overrides=None):
    """
    Synthetic chain priced at a flat ``sigma``.  Put OI peaks below spot,
    call OI above it.  ``overrides`` maps (strike, side) -> ltp.
    """
    strikes = strikes if strikes is not None else np.arange(17500.0, 18501.0, 100.0)
    overrides = overrides or {}
    rows = []
    for k in strikes:
        k = float(k)
        dist = abs(k - spot) / 100.0
        call_oi = 1000.0 + (4000.0 - 500.0 * dist if k > spot else 0.0)
        put_oi = 1000.0 + (4000.0 - 500.0 * dist if k < spot else 0.0)
        c = overrides.get((k, 'call'), call_price(spot, k, T, r, sigma))
        p = overrides.get((k, 'put'), put_price(spot, k, T, r, sigma))
        rows.append(StrikeRow(
            strike_price=k,
            call=Quote(ltp=c, oi=call_oi, oi_change=10.0, oi_change_pct=2.0, volume=5000.0),
            put=Quote(ltp=p, oi=put_oi, oi_change=20.0, oi_change_pct=1.0, volume=4000.0),
        ))
    return ChainSnapshot.build(
        Underlying(ltp=spot, symbol='NSE:NIFTY50-INDEX'),
        rows,
        [Expiry(label='30-day', value=EXPIRY), Expiry(label='60-day', value=EXPIRY + 30 * 86400)],
    )


def make_closes(n=60, seed=7, start=18000.0, daily_vol=0.01):
    rng = np.random.default_rng(seed)
    rets = rng.normal(0.0, daily_vol, size=n - 1)
    return start * np.exp(np.concatenate([[0.0], np.cumsum(rets)]))


@pytest.fixture
def chain():
    return make_chain()


@pytest.fixture
def closes():
    return make_closes()
