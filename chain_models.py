"""
chain_models.py — Option-chain snapshot types and broker payload ingestion
=========================================================================

Raw market data (``Quote``, ``StrikeRow``, ``Underlying``, ``Expiry``,
``ChainSnapshot``) and the derived results produced by the analytics
modules (``Greeks``, ``VolEstimate``, ``PricingResult``,
``VolatilityProfile``, ``SupportResistance``, ``Opportunity``,
``ParityDeviation``).

All types are frozen: a chain refresh builds new objects instead of
patching old ones.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from market_conventions import normalize_epoch_seconds


CALL = 'call'
PUT = 'put'


class ChainFormatError(ValueError):
    """Raised when a chain payload has a malformed shape."""


def normalize_option_type(option_type: str) -> str:
    """Map 'call'/'CE'/'put'/'PE' (any case) to 'call' or 'put'."""
    t = str(option_type or '').strip().lower()
    if t in ('call', 'ce', 'c'):
        return CALL
    if t in ('put', 'pe', 'p'):
        return PUT
    raise ValueError(f"unknown option type {option_type!r}")


def _num(value: Any, default: float = 0.0) -> float:
    if value is None or value == '':
        return default
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    return out if math.isfinite(out) else default


def _opt_num(value: Any) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


# ---------------------------------------------------------------------------
# Raw market data
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Quote:
    """One side (call or put) of one strike."""
    ltp: float
    oi: float = 0.0
    oi_change: float = 0.0
    oi_change_pct: float = 0.0
    volume: float = 0.0
    bid: Optional[float] = None
    ask: Optional[float] = None
    symbol: str = ''

    @property
    def mid(self) -> float:
        """Bid/ask mid when both sides are quoted, else the last traded price."""
        if self.bid is not None and self.ask is not None and self.bid > 0 and self.ask > 0:
            return 0.5 * (self.bid + self.ask)
        return self.ltp

    @classmethod
    def from_payload(cls, item: Mapping[str, Any]) -> 'Quote':
        return cls(
            ltp=_num(item.get('ltp')),
            oi=_num(item.get('oi')),
            oi_change=_num(item.get('oich')),
            oi_change_pct=_num(item.get('oichp')),
            volume=_num(item.get('volume')),
            bid=_opt_num(item.get('bid')),
            ask=_opt_num(item.get('ask')),
            symbol=str(item.get('symbol') or ''),
        )


@dataclass(frozen=True)
class StrikeRow:
    strike_price: float
    call: Optional[Quote] = None
    put: Optional[Quote] = None

    def __post_init__(self):
        # numpy scalars are numbers.Real; bool is not a strike
        if isinstance(self.strike_price, bool) or not isinstance(self.strike_price, numbers.Real):
            raise ChainFormatError(f"strike_price must be numeric, got {self.strike_price!r}")
        strike = float(self.strike_price)
        if not (math.isfinite(strike) and strike > 0):
            raise ChainFormatError(f"strike_price must be > 0, got {self.strike_price!r}")
        object.__setattr__(self, 'strike_price', strike)

    def side(self, option_type: str) -> Optional[Quote]:
        return self.call if normalize_option_type(option_type) == CALL else self.put


@dataclass(frozen=True)
class Underlying:
    ltp: float
    ltpch: float = 0.0
    ltpchp: float = 0.0
    symbol: str = ''
    description: str = ''

    @classmethod
    def from_payload(cls, item: Mapping[str, Any]) -> 'Underlying':
        return cls(
            ltp=_num(item.get('ltp')),
            ltpch=_num(item.get('ltpch')),
            ltpchp=_num(item.get('ltpchp')),
            symbol=str(item.get('symbol') or ''),
            description=str(item.get('description') or ''),
        )


@dataclass(frozen=True)
class Expiry:
    """Display label plus Unix-seconds value."""
    label: str
    value: int

    @classmethod
    def from_raw(cls, label: Any, value: Any) -> 'Expiry':
        """Ingestion boundary: converts ms / numeric strings to seconds."""
        return cls(label=str(label or ''), value=normalize_epoch_seconds(value))


@dataclass(frozen=True)
class ChainSnapshot:
    underlying: Optional[Underlying]
    rows: Tuple[StrikeRow, ...] = ()
    expiries: Tuple[Expiry, ...] = ()

    @classmethod
    def build(
        cls,
        underlying: Optional[Underlying],
        rows: Iterable[StrikeRow],
        expiries: Iterable[Expiry] = (),
    ) -> 'ChainSnapshot':
        """Sort rows by strike and reject duplicate strikes."""
        ordered = sorted(rows, key=lambda r: r.strike_price)
        for prev, cur in zip(ordered, ordered[1:]):
            if prev.strike_price == cur.strike_price:
                raise ChainFormatError(f"duplicate strike {cur.strike_price}")
        return cls(underlying=underlying, rows=tuple(ordered), expiries=tuple(expiries))

    @property
    def spot(self) -> Optional[float]:
        if self.underlying is None or not self.underlying.ltp or self.underlying.ltp <= 0:
            return None
        return self.underlying.ltp

    @property
    def strikes(self) -> List[float]:
        return [r.strike_price for r in self.rows]


# ---------------------------------------------------------------------------
# Derived results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Greeks:
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class VolEstimate:
    """
    Volatility tagged with its provenance.

    ``is_estimated`` is True when ``value`` is a configured fallback rather
    than something derived from market data.
    """
    value: float
    is_estimated: bool = False

    def __float__(self):
        return float(self.value)


@dataclass(frozen=True)
class PricingResult:
    option_type: str
    market_price: Optional[float]
    implied_volatility: VolEstimate
    theoretical_price: Optional[float]
    black_scholes_price: Optional[float]
    stochastic_vol_price: Optional[float]
    weights: Dict[str, float]
    correction: float
    greeks: Optional[Greeks]
    price_difference: Optional[float]
    price_difference_pct: Optional[float]
    signal: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out['implied_volatility'] = self.implied_volatility.value
        out['iv_is_estimated'] = self.implied_volatility.is_estimated
        return out


@dataclass(frozen=True)
class VolatilityProfile:
    implied_volatility: Optional[float]
    historical_volatility: Optional[float]
    skew_ratio: Optional[float]
    skew_difference: Optional[float]
    skew_percentage: Optional[float]
    interpretation: str
    trading_signal: str
    insufficient_data: bool = False
    is_estimated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SupportResistance:
    support: Tuple[float, ...] = ()
    resistance: Tuple[float, ...] = ()


@dataclass(frozen=True)
class Opportunity:
    strike: float
    side: str
    market_price: float
    theoretical_price: float
    percent_difference: float
    action: str
    score: float
    is_estimated: bool = False


@dataclass(frozen=True)
class ParityDeviation:
    theoretical_diff: float
    actual_diff: float
    deviation: float
    deviation_pct: float


# ---------------------------------------------------------------------------
# Broker payload ingestion
# ---------------------------------------------------------------------------

def _parse_strike(raw: Any) -> Optional[float]:
    if raw is None or raw == '':
        return None
    try:
        strike = float(raw)
    except (TypeError, ValueError) as exc:
        raise ChainFormatError(f"non-numeric strike_price {raw!r}") from exc
    if not math.isfinite(strike):
        raise ChainFormatError(f"non-finite strike_price {raw!r}")
    return strike


def format_option_chain(payload: Optional[Mapping[str, Any]]) -> ChainSnapshot:
    """
    Convert a broker option-chain payload into a :class:`ChainSnapshot`.

    Expected shape::

        {
          "optionsChain": [
             {"strike_price": -1, "ltp": 22510.4, ...},          # underlying
             {"strike_price": 22500, "option_type": "CE", "ltp": 120.5,
              "oi": 15000, "oich": 300, "oichp": 2.0, "volume": 9000,
              "bid": 120.0, "ask": 121.0},
             ...
          ],
          "expiryData": [{"date": "29-05-2025", "expiry": "1748512800"}, ...]
        }

    A missing payload or chain yields an empty snapshot.  Items without a
    strike are skipped; non-numeric strikes or a repeated (strike, side)
    pair raise :class:`ChainFormatError`.
    """
    if not payload:
        return ChainSnapshot(underlying=None)
    if not isinstance(payload, Mapping):
        raise ChainFormatError(f"payload must be a mapping, got {type(payload).__name__}")

    items = payload.get('optionsChain')
    if not items:
        return ChainSnapshot(underlying=None)

    underlying = None
    sides: Dict[float, Dict[str, Quote]] = {}

    for item in items:
        if not isinstance(item, Mapping):
            raise ChainFormatError(f"chain item must be a mapping, got {type(item).__name__}")
        strike = _parse_strike(item.get('strike_price'))
        if strike is None:
            continue
        if strike == -1:
            underlying = Underlying.from_payload(item)
            continue
        if strike <= 0:
            raise ChainFormatError(f"strike_price must be > 0, got {strike}")

        opt_type = str(item.get('option_type') or '').upper()
        if opt_type == 'CE':
            key = CALL
        elif opt_type == 'PE':
            key = PUT
        else:
            continue

        bucket = sides.setdefault(strike, {})
        if key in bucket:
            raise ChainFormatError(f"duplicate {opt_type} quote at strike {strike}")
        bucket[key] = Quote.from_payload(item)

    rows = [
        StrikeRow(strike_price=k, call=v.get(CALL), put=v.get(PUT))
        for k, v in sides.items()
    ]
    expiries = [
        Expiry.from_raw(e.get('date'), e.get('expiry'))
        for e in (payload.get('expiryData') or [])
        if isinstance(e, Mapping) and e.get('expiry') not in (None, '')
    ]
    return ChainSnapshot.build(underlying, rows, expiries)
