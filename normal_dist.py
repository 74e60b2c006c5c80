"""
normal_dist.py — Standard normal CDF / PDF kernel.

Abramowitz & Stegun 7.1.26 rational approximation of erf, accurate to
~1.5e-7.  Odd symmetry is exact: normal_cdf(x) + normal_cdf(-x) == 1,
which keeps put-call parity exact in the closed-form pricer.
"""

import math

# ---------------------------------------------------------------------------
# A&S 7.1.26 coefficients
# ---------------------------------------------------------------------------
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911

_SQRT2 = math.sqrt(2.0)
_INV_SQRT_2PI = 1.0 / math.sqrt(2.0 * math.pi)

# Beyond this |x| the CDF is returned as exactly 0 or 1
_SATURATION = 8.0


def normal_cdf(x):
    """Standard normal CDF  Phi(x)."""
    x = float(x)
    if x < -_SATURATION:
        return 0.0
    if x > _SATURATION:
        return 1.0
    sign = -1.0 if x < 0 else 1.0
    z = abs(x) / _SQRT2
    t = 1.0 / (1.0 + _P * z)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-z * z)
    return 0.5 * (1.0 + sign * y)


def normal_pdf(x):
    """Standard normal PDF  phi(x)."""
    x = float(x)
    return _INV_SQRT_2PI * math.exp(-0.5 * x * x)
