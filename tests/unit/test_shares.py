"""Unit tests for share <-> underlying conversion."""
from __future__ import annotations

import random

import pytest

from lending_mirror.engine.shares import shares_to_underlying, underlying_to_shares
from lending_mirror.errors import ScaleMismatch
from lending_mirror.models import ScaledValue


def _wad(n: int) -> ScaledValue:
    return ScaledValue(n * 10**18, 18)


class TestSharesToUnderlying:
    def test_proportional_claim(self) -> None:
        assert shares_to_underlying(_wad(250), _wad(1000), _wad(2000)) == _wad(500)

    def test_result_takes_underlying_decimals(self) -> None:
        result = shares_to_underlying(_wad(1), _wad(4), ScaledValue(1000 * 10**6, 6))
        assert result == ScaledValue(250 * 10**6, 6)

    def test_truncates(self) -> None:
        result = shares_to_underlying(ScaledValue(1, 18), ScaledValue(3, 18), ScaledValue(2, 18))
        assert result == ScaledValue(0, 18)

    def test_no_shares_minted(self) -> None:
        result = shares_to_underlying(_wad(0), ScaledValue.zero(18), ScaledValue(5, 6))
        assert result == ScaledValue.zero(6)

    def test_all_shares_claim_everything(self) -> None:
        assert shares_to_underlying(_wad(1000), _wad(1000), _wad(2000)) == _wad(2000)

    def test_share_scale_mismatch(self) -> None:
        with pytest.raises(ScaleMismatch):
            shares_to_underlying(ScaledValue(1, 6), _wad(1000), _wad(2000))

    @pytest.mark.parametrize(
        ("total_shares", "total_underlying"),
        [
            (_wad(1000), ScaledValue(2000 * 10**6, 6)),
            (_wad(3), ScaledValue(7 * 10**18 + 1, 18)),
            (ScaledValue(999_999_999_999, 18), ScaledValue(1, 6)),
            (_wad(7), ScaledValue(5, 0)),
        ],
    )
    def test_monotonic_in_shares(
        self, total_shares: ScaledValue, total_underlying: ScaledValue
    ) -> None:
        rng = random.Random(total_shares.raw ^ total_underlying.raw)
        edges = [0, 1, total_shares.raw - 1, total_shares.raw]
        raws = sorted(edges + [rng.randrange(total_shares.raw + 1) for _ in range(200)])

        claims = [
            shares_to_underlying(ScaledValue(raw, 18), total_shares, total_underlying)
            for raw in raws
        ]

        for smaller, larger in zip(claims, claims[1:]):
            assert smaller <= larger
        assert claims[-1] == total_underlying


class TestUnderlyingToShares:
    def test_proportional(self) -> None:
        assert underlying_to_shares(_wad(500), _wad(1000), _wad(2000)) == _wad(250)

    def test_empty_pool_is_one_to_one(self) -> None:
        amount = ScaledValue(5 * 10**6, 6)
        result = underlying_to_shares(amount, ScaledValue.zero(18), ScaledValue.zero(6))
        assert result == _wad(5)

    def test_amount_scale_mismatch(self) -> None:
        with pytest.raises(ScaleMismatch):
            underlying_to_shares(ScaledValue(1, 6), _wad(1000), _wad(2000))
