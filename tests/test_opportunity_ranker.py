from types import SimpleNamespace

import pytest

from chain_models import PricingResult, VolEstimate
from opportunity_ranker import identify_trading_opportunities, price_difference, trading_signal


def _pricing(market, theoretical, side='call', estimated=False):
    absolute, pct = price_difference(market, theoretical)
    return PricingResult(
        option_type=side,
        market_price=market,
        implied_volatility=VolEstimate(0.3 if estimated else 0.2, is_estimated=estimated),
        theoretical_price=theoretical,
        black_scholes_price=theoretical,
        stochastic_vol_price=theoretical,
        weights={'black_scholes': 0.5, 'stochastic_vol': 0.5},
        correction=0.0,
        greeks=None,
        price_difference=absolute,
        price_difference_pct=pct,
        signal=trading_signal(pct),
    )


def _row(strike, call=None, put=None):
    return SimpleNamespace(strike_price=strike, call_pricing=call, put_pricing=put)


class TestPriceDifference:

    def test_basic(self):
        absolute, pct = price_difference(112.0, 100.0)
        assert absolute == pytest.approx(12.0)
        assert pct == pytest.approx(12.0)

    @pytest.mark.parametrize("market, theo", [(None, 100.0), (100.0, None), (0.0, 100.0),
                                              (float('nan'), 100.0)])
    def test_undefined(self, market, theo):
        assert price_difference(market, theo) == (None, None)

    def test_non_positive_theoretical_has_no_percentage(self):
        absolute, pct = price_difference(5.0, 0.0)
        assert absolute == 5.0
        assert pct is None


@pytest.mark.parametrize("pct, signal, strength", [
    (15.0, 'SELL', 'Strong'),
    (7.0, 'SELL', 'Moderate'),
    (5.0, 'HOLD', 'Neutral'),
    (-7.0, 'BUY', 'Moderate'),
    (-10.5, 'BUY', 'Strong'),
    (None, 'HOLD', 'Neutral'),
])
def test_trading_signal(pct, signal, strength):
    out = trading_signal(pct)
    assert out['signal'] == signal
    assert out['strength'] == strength
    assert 0 < out['confidence'] < 1


def test_threshold_filters_and_sorts():
    rows = [
        _row(17900.0, call=_pricing(108.0, 100.0)),           # 8%  -> below threshold
        _row(18000.0, call=_pricing(112.0, 100.0)),           # 12% -> SELL
        _row(18100.0, call=_pricing(75.0, 100.0)),            # -25% -> BUY
        _row(18200.0, call=_pricing(110.0, 100.0)),           # exactly 10% qualifies
    ]
    opps = identify_trading_opportunities(rows, threshold=10.0)
    calls = opps['call']
    assert [o.strike for o in calls] == [18100.0, 18000.0, 18200.0]
    assert [o.action for o in calls] == ['BUY', 'SELL', 'SELL']
    assert all(a.score > b.score for a, b in zip(calls, calls[1:]))
    assert opps['put'] == []


def test_twelve_vs_eight_percent():
    rows = [_row(18000.0, put=_pricing(112.0, 100.0, 'put')),
            _row(18100.0, put=_pricing(92.0, 100.0, 'put'))]
    opps = identify_trading_opportunities(rows, threshold=10.0)
    assert [o.strike for o in opps['put']] == [18000.0]
    assert opps['put'][0].percent_difference == pytest.approx(12.0)


def test_rows_without_pricing_are_ignored():
    rows = [_row(18000.0), _row(18100.0, call=_pricing(None, 100.0))]
    assert identify_trading_opportunities(rows) == {'call': [], 'put': []}
    assert identify_trading_opportunities([]) == {'call': [], 'put': []}


def test_estimated_vol_is_carried():
    rows = [_row(18000.0, call=_pricing(150.0, 100.0, estimated=True))]
    assert identify_trading_opportunities(rows)['call'][0].is_estimated is True
