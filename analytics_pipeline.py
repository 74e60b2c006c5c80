"""
analytics_pipeline.py — Snapshot in, derived analytics out
==========================================================

``recompute_derived_analytics`` runs every analytic over one chain snapshot
and returns an immutable ``AnalyticsBundle``.  ``OptionChainState`` keeps
the last published ``(snapshot, bundle)`` pair and replaces it in a single
assignment once the new bundle is complete, so a reader never sees fresh
raw data next to stale derived values.

Usage:
    state = OptionChainState(AnalyticsConfig(risk_free_rate=0.07))
    bundle = state.apply_snapshot(format_option_chain(payload), closes=closes)
    bundle.trading_opportunities['call']
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from analytics_config import AnalyticsConfig, get_config
from chain_analytics import (
    calculate_max_pain,
    calculate_parity_deviation,
    calculate_support_resistance,
    find_atm_row,
    put_call_ratio,
    volume_put_call_ratio,
)
from chain_models import (
    CALL,
    PUT,
    ChainSnapshot,
    Expiry,
    Opportunity,
    ParityDeviation,
    PricingResult,
    Quote,
    SupportResistance,
    VolatilityProfile,
    VolEstimate,
)
from historical_vol import historical_volatility
from hybrid_pricer import HybridPricer
from iv_solver import estimate_chain_iv
from market_conventions import normalize_epoch_seconds, time_to_expiry_from_epoch
from opportunity_ranker import identify_trading_opportunities
from volatility_skew import analyze_option_volatility, analyze_volatility_skew

BULLISH = 'bullish'
BEARISH = 'bearish'
NEUTRAL = 'neutral'


@dataclass(frozen=True)
class EnrichedRow:
    strike_price: float
    call: Optional[Quote] = None
    put: Optional[Quote] = None
    call_pricing: Optional[PricingResult] = None
    put_pricing: Optional[PricingResult] = None
    call_volatility: Optional[VolatilityProfile] = None
    put_volatility: Optional[VolatilityProfile] = None
    parity_deviation: Optional[ParityDeviation] = None


@dataclass(frozen=True)
class AnalyticsBundle:
    spot: Optional[float]
    expiry: Optional[int]
    time_to_expiry: float
    enriched_rows: Tuple[EnrichedRow, ...] = ()
    atm_strike: Optional[float] = None
    chain_iv: Optional[VolEstimate] = None
    historical_volatility: Optional[VolEstimate] = None
    volatility_skew: Optional[VolatilityProfile] = None
    support_resistance: SupportResistance = field(default_factory=SupportResistance)
    put_call_ratio: Optional[float] = None
    volume_put_call_ratio: Optional[float] = None
    max_pain_strike: Optional[float] = None
    trading_opportunities: Dict[str, List[Opportunity]] = field(
        default_factory=lambda: {CALL: [], PUT: []})
    parity_deviation: Optional[ParityDeviation] = None
    sentiment: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def atm_row(self) -> Optional[EnrichedRow]:
        if self.atm_strike is None:
            return None
        for row in self.enriched_rows:
            if row.strike_price == self.atm_strike:
                return row
        return None


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------

def _band(value, high, low, above=BEARISH, below=BULLISH):
    if value is None:
        return NEUTRAL
    if value > high:
        return above
    if value < low:
        return below
    return NEUTRAL


def _call_vs_put(call_value: float, put_value: float) -> str:
    if call_value > put_value:
        return BULLISH
    if call_value < put_value:
        return BEARISH
    return NEUTRAL


def sentiment_summary(
    implied_volatility: Optional[float],
    historical_volatility: Optional[float],
    put_call_ratio: Optional[float],
    parity: Optional[ParityDeviation],
    atm_call: Optional[Quote] = None,
    atm_put: Optional[Quote] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    Bullish / bearish / neutral readings keyed by indicator.

        IV        > 0.25 bearish, < 0.18 bullish
        IV/HV     > 1.2  bearish, < 0.8  bullish
        PCR       > 1    bearish, < 0.8  bullish
        Arbitrage parity deviation > 0 bullish, < 0 bearish
        Volume    ATM call vs put volume
        OIChange  ATM call vs put OI change %
    """
    iv_hv = None
    if implied_volatility is not None and historical_volatility:
        iv_hv = implied_volatility / historical_volatility
    deviation = parity.deviation if parity is not None else None

    call_vol = atm_call.volume if atm_call is not None else 0.0
    put_vol = atm_put.volume if atm_put is not None else 0.0
    call_oich = atm_call.oi_change_pct if atm_call is not None else 0.0
    put_oich = atm_put.oi_change_pct if atm_put is not None else 0.0

    return {
        'IV': {'value': implied_volatility,
               'sentiment': _band(implied_volatility, 0.25, 0.18)},
        'IV/HV': {'value': iv_hv, 'sentiment': _band(iv_hv, 1.2, 0.8)},
        'PCR': {'value': put_call_ratio, 'sentiment': _band(put_call_ratio, 1.0, 0.8)},
        'Arbitrage': {'value': deviation,
                      'sentiment': _band(deviation, 0.0, 0.0, above=BULLISH, below=BEARISH)},
        'Volume': {'value': {'CE': call_vol, 'PE': put_vol},
                   'sentiment': _call_vs_put(call_vol, put_vol)},
        'OIChange': {'value': {'CE': call_oich, 'PE': put_oich},
                     'sentiment': _call_vs_put(call_oich, put_oich)},
    }


# ---------------------------------------------------------------------------
# Recompute
# ---------------------------------------------------------------------------

def _expiry_seconds(snapshot: ChainSnapshot, expiry) -> Optional[int]:
    if expiry is None:
        return snapshot.expiries[0].value if snapshot.expiries else None
    if isinstance(expiry, Expiry):
        return expiry.value
    return normalize_epoch_seconds(expiry)


def recompute_derived_analytics(
    snapshot: ChainSnapshot,
    expiry: Union[Expiry, int, float, str, None] = None,
    closes=None,
    config: Optional[AnalyticsConfig] = None,
    now: Optional[float] = None,
    pricer: Optional[HybridPricer] = None,
) -> AnalyticsBundle:
    """
    Compute every derived analytic for one snapshot.

    Parameters
    ----------
    snapshot : ChainSnapshot
    expiry   : Expiry or Unix seconds; defaults to the snapshot's first expiry.
               With no expiry at all, T is 0 and prices collapse to intrinsic.
    closes   : oldest-first underlying closes for historical volatility
    config   : AnalyticsConfig (module default when None)
    now      : Unix seconds used as the valuation time (wall clock when None)
    pricer   : HybridPricer to use; built from ``config`` when None
    """
    cfg = config or get_config()
    pricer = pricer or HybridPricer(config=cfg)
    now_s = time.time() if now is None else float(now)

    expiry_s = _expiry_seconds(snapshot, expiry)
    T = (time_to_expiry_from_epoch(expiry_s, now_s, cfg.days_per_year)
         if expiry_s is not None else 0.0)

    spot = snapshot.spot
    rows = snapshot.rows
    if spot is None or not rows:
        return AnalyticsBundle(spot=spot, expiry=expiry_s, time_to_expiry=T)

    r = cfg.risk_free_rate
    chain_iv = estimate_chain_iv(rows, spot, T, r, fallback=cfg.fallback_volatility)
    hv = historical_volatility(
        closes,
        window=cfg.hv_window,
        trading_days=cfg.trading_days_per_year,
        fallback=cfg.fallback_volatility,
    )
    pcr = put_call_ratio(rows)

    enriched = []
    parity_by_strike: Dict[float, ParityDeviation] = {}
    for row in rows:
        parity = calculate_parity_deviation(
            row.call.ltp if row.call is not None else None,
            row.put.ltp if row.put is not None else None,
            spot,
            row.strike_price,
            T,
            r,
            min_theoretical=cfg.parity_min_theoretical,
        )
        if parity is not None:
            parity_by_strike[row.strike_price] = parity
        priced = pricer.price_row(row, spot=spot, T=T, chain_iv=chain_iv, put_call_ratio=pcr)
        enriched.append(EnrichedRow(
            strike_price=row.strike_price,
            call=row.call,
            put=row.put,
            call_pricing=priced[CALL],
            put_pricing=priced[PUT],
            call_volatility=analyze_option_volatility(priced[CALL], hv),
            put_volatility=analyze_option_volatility(priced[PUT], hv),
            parity_deviation=parity,
        ))

    atm = find_atm_row(rows, spot)
    parity = parity_by_strike.get(atm.strike_price) if atm is not None else None

    return AnalyticsBundle(
        spot=spot,
        expiry=expiry_s,
        time_to_expiry=T,
        enriched_rows=tuple(enriched),
        atm_strike=atm.strike_price if atm is not None else None,
        chain_iv=chain_iv,
        historical_volatility=hv,
        volatility_skew=analyze_volatility_skew(chain_iv, hv),
        support_resistance=calculate_support_resistance(
            spot, rows, chain_iv, top_n=cfg.oi_top_n,
            trading_days=cfg.trading_days_per_year,
        ),
        put_call_ratio=pcr,
        volume_put_call_ratio=volume_put_call_ratio(rows),
        max_pain_strike=calculate_max_pain(rows),
        trading_opportunities=identify_trading_opportunities(
            enriched, threshold=cfg.mispricing_threshold_pct),
        parity_deviation=parity,
        sentiment=sentiment_summary(
            chain_iv.value,
            hv.value,
            pcr,
            parity,
            atm.call if atm is not None else None,
            atm.put if atm is not None else None,
        ),
    )


class OptionChainState:
    """
    Holds the currently published snapshot and its analytics.

    ``apply_snapshot`` computes the full bundle first, then swaps the
    ``(snapshot, bundle)`` pair in one assignment.
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or get_config()
        self.pricer = HybridPricer(config=self.config)
        self._published: Tuple[Optional[ChainSnapshot], Optional[AnalyticsBundle]] = (None, None)
        self._expiry: Optional[int] = None
        self._closes = None
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> Optional[ChainSnapshot]:
        return self._published[0]

    @property
    def bundle(self) -> Optional[AnalyticsBundle]:
        return self._published[1]

    @property
    def selected_expiry(self) -> Optional[int]:
        return self._expiry

    def apply_snapshot(
        self,
        snapshot: ChainSnapshot,
        expiry=None,
        closes=None,
        now: Optional[float] = None,
    ) -> AnalyticsBundle:
        """Recompute analytics for ``snapshot`` and publish both together."""
        with self._lock:
            if expiry is not None:
                self._expiry = _expiry_seconds(snapshot, expiry)
            if closes is not None:
                self._closes = closes
            bundle = recompute_derived_analytics(
                snapshot,
                expiry=self._expiry,
                closes=self._closes,
                config=self.config,
                now=now,
                pricer=self.pricer,
            )
            self._published = (snapshot, bundle)
            if self._expiry is None:
                self._expiry = bundle.expiry
            return bundle

    def select_expiry(self, expiry, now: Optional[float] = None) -> Optional[AnalyticsBundle]:
        """
        Switch the active expiry.  The current snapshot, if any, is
        re-analysed against it; callers normally follow up with a fresh
        snapshot for the new expiry.
        """
        with self._lock:
            snapshot = self._published[0]
            self._expiry = normalize_epoch_seconds(expiry.value if isinstance(expiry, Expiry) else expiry)
            if snapshot is None:
                return None
        return self.apply_snapshot(snapshot, now=now)
