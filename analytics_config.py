#!/usr/bin/env python3
"""
analytics_config.py — Centralized Settings for the Chain Analytics Pipeline
==========================================================================

All analytics constants live here: risk-free rate, annualisation
conventions, mispricing threshold, OI ranking depth, historical-volatility
window and the stochastic-volatility defaults.

Override via environment variable:
    export OPTION_ANALYTICS_JSON='{"risk_free_rate": 0.07, "oi_top_n": 5}'

Or programmatically:
    from analytics_config import AnalyticsConfig
    cfg = AnalyticsConfig(mispricing_threshold_pct=5.0)
"""

import os
import json
import warnings


ENV_VAR = 'OPTION_ANALYTICS_JSON'


class AnalyticsConfig:
    """
    Immutable settings container.

    Attributes
    ----------
    risk_free_rate : float
        Annualised risk-free rate (RBI repo proxy).
    trading_days_per_year : int
        Annualisation for historical volatility and daily-move bands.
    days_per_year : int
        Calendar convention for time-to-expiry and per-day theta.
    mispricing_threshold_pct : float
        Minimum |market - theoretical| / theoretical (in %) to flag an
        opportunity.
    oi_top_n : int
        Number of highest-OI strikes considered for support/resistance.
    hv_window : int
        Trailing log-returns used by the historical-volatility estimator.
    fallback_volatility : float
        Volatility used when IV/HV cannot be computed (tagged as estimated).
    volatility_index : float
        Market volatility index level (India VIX) fed to the blender.
    apply_heuristic_correction : bool
        Whether the blender scales its price by the sentiment/tenor hook.
    parity_min_theoretical : float
        Below this |S - K e^(-rT)| the parity deviation % is reported as 0.
    heston_v0, heston_kappa, heston_theta, heston_sigma, heston_rho : float
        Stochastic-volatility defaults for index options.
    """

    _DEFAULTS = {
        'risk_free_rate': 0.065,
        'trading_days_per_year': 252,
        'days_per_year': 365,
        'mispricing_threshold_pct': 10.0,
        'oi_top_n': 3,
        'hv_window': 20,
        'fallback_volatility': 0.3,
        'volatility_index': 18.5,
        'apply_heuristic_correction': True,
        'parity_min_theoretical': 10.0,
        'heston_v0': 0.05,
        'heston_kappa': 2.0,
        'heston_theta': 0.04,
        'heston_sigma': 0.3,
        'heston_rho': -0.7,
    }

    _ALIASES = {
        'r': 'risk_free_rate',
        'threshold': 'mispricing_threshold_pct',
        'strike_count': 'oi_top_n',
        'vix': 'volatility_index',
        'india_vix': 'volatility_index',
    }

    def __init__(self, **overrides):
        """
        Parameters
        ----------
        **overrides
            Keyword arguments matching setting names (or aliases).
            Unknown keys are ignored.
        """
        values = dict(self._DEFAULTS)

        def _canonical_key(key):
            if key in values:
                return key
            return self._ALIASES.get(str(key), '')

        def _cast(key, val):
            default = self._DEFAULTS[key]
            if isinstance(default, bool):
                return bool(val)
            if isinstance(default, int):
                return int(val)
            return float(val)

        env_json = os.environ.get(ENV_VAR, '')
        if env_json:
            try:
                env_overrides = json.loads(env_json)
                if not isinstance(env_overrides, dict):
                    raise TypeError('expected a JSON object')
                for key, val in env_overrides.items():
                    ckey = _canonical_key(key)
                    if ckey:
                        values[ckey] = _cast(ckey, val)
            except (json.JSONDecodeError, TypeError, ValueError) as exc:
                warnings.warn(
                    f"AnalyticsConfig: ignoring malformed {ENV_VAR} ({exc})",
                    RuntimeWarning,
                )

        for key, val in overrides.items():
            ckey = _canonical_key(key)
            if ckey:
                values[ckey] = _cast(ckey, val)

        for key, val in values.items():
            object.__setattr__(self, key, val)

        object.__setattr__(self, '_frozen', True)

    def __setattr__(self, name, value):
        if getattr(self, '_frozen', False):
            raise AttributeError(
                "AnalyticsConfig is immutable. Use replace() to derive a new instance."
            )
        object.__setattr__(self, name, value)

    def to_dict(self) -> dict:
        """Return all settings as a plain dict."""
        return {k: getattr(self, k) for k in self._DEFAULTS}

    def replace(self, **changes) -> 'AnalyticsConfig':
        """Return a new instance with ``changes`` applied on top of this one."""
        merged = self.to_dict()
        merged.update(changes)
        return AnalyticsConfig(**merged)

    def __eq__(self, other):
        if not isinstance(other, AnalyticsConfig):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(tuple(sorted(self.to_dict().items())))

    def __repr__(self) -> str:
        vals = ', '.join(f'{k}={getattr(self, k)!r}' for k in self._DEFAULTS)
        return f'AnalyticsConfig({vals})'


# Module-level default
CONFIG = AnalyticsConfig()


def get_config() -> AnalyticsConfig:
    """Return the module-level default settings."""
    return CONFIG


def set_config(**kwargs) -> AnalyticsConfig:
    """
    Replace the module-level default with new settings.

    Usage:
        set_config(risk_free_rate=0.07)
    """
    global CONFIG
    CONFIG = AnalyticsConfig(**kwargs)
    return CONFIG
