import numpy as np
import pytest
from scipy.stats import norm

from normal_dist import normal_cdf, normal_pdf


def test_cdf_midpoint():
    assert normal_cdf(0.0) == pytest.approx(0.5, abs=1e-8)


@pytest.mark.parametrize("x", np.linspace(-6.0, 6.0, 49))
def test_cdf_matches_reference(x):
    assert normal_cdf(x) == pytest.approx(norm.cdf(x), abs=2e-7)


@pytest.mark.parametrize("x", [0.1, 0.5, 1.0, 1.96, 3.3, 7.9])
def test_cdf_odd_symmetry_is_exact(x):
    assert normal_cdf(x) + normal_cdf(-x) == pytest.approx(1.0, abs=1e-12)


def test_cdf_saturates_in_tails():
    assert normal_cdf(9.0) == 1.0
    assert normal_cdf(-9.0) == 0.0
    assert normal_cdf(50.0) == 1.0


def test_pdf_matches_reference():
    for x in (-3.0, -1.0, 0.0, 0.4, 2.5):
        assert normal_pdf(x) == pytest.approx(norm.pdf(x), rel=1e-12)
