"""Unit tests for rate annualization."""
from __future__ import annotations

import math

import pytest

from lending_mirror.engine.rates import SECONDS_PER_YEAR, annualize
from lending_mirror.models import ScaledValue

FIVE_PERCENT_PER_SECOND = ScaledValue(1_585_489_599, 18)


class TestAnnualize:
    def test_seconds_per_year(self) -> None:
        assert SECONDS_PER_YEAR == 31_536_000

    def test_zero_rate(self) -> None:
        projection = annualize(ScaledValue.zero(18))
        assert projection.apr == 0.0
        assert projection.apy == 0.0
        assert projection.apr_wad.is_zero

    def test_apr_is_linear(self) -> None:
        projection = annualize(FIVE_PERCENT_PER_SECOND)
        assert projection.apr_wad.raw == 1_585_489_599 * SECONDS_PER_YEAR
        assert projection.apr == pytest.approx(0.05, rel=1e-6)
        assert projection.apr_percent == pytest.approx(5.0, rel=1e-6)

    def test_apy_compounds_per_second(self) -> None:
        projection = annualize(FIVE_PERCENT_PER_SECOND)
        assert projection.apy == pytest.approx(math.exp(0.05) - 1, rel=1e-6)
        assert projection.apy > projection.apr

    def test_rate_in_other_scale(self) -> None:
        # 1e-9 per second at 27 decimals (ray)
        projection = annualize(ScaledValue(10**18, 27))
        assert projection.apr_wad.raw == 10**9 * SECONDS_PER_YEAR

    def test_huge_rate_does_not_raise(self) -> None:
        projection = annualize(ScaledValue.one(18))
        assert math.isinf(projection.apy)
