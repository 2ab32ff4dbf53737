"""Unit tests for borrow-index debt accrual."""
from __future__ import annotations

import pytest

from lending_mirror.engine.debt import IndexWatermark, accrued_interest, current_debt
from lending_mirror.errors import InconsistentState, ScaleMismatch
from lending_mirror.models import ScaledValue


def _index(text: str) -> ScaledValue:
    return ScaledValue.parse(text, 18)


def _usdc(text: str) -> ScaledValue:
    return ScaledValue.parse(text, 6)


class TestCurrentDebt:
    def test_accrues_with_index(self) -> None:
        assert current_debt(_usdc("100"), _index("1.0"), _index("1.1")) == _usdc("110")

    def test_borrowed_mid_way(self) -> None:
        assert current_debt(_usdc("100"), _index("1.1"), _index("1.21")) == _usdc("110")

    def test_truncates_to_token_unit(self) -> None:
        debt = current_debt(_usdc("1"), _index("3"), _index("4"))
        assert debt == _usdc("1.333333")

    def test_zero_principal_owes_nothing(self) -> None:
        debt = current_debt(_usdc("0"), ScaledValue.zero(18), _index("1.5"))
        assert debt == ScaledValue.zero(6)

    def test_unrecorded_user_index_means_no_interest(self) -> None:
        debt = current_debt(_usdc("100"), ScaledValue.zero(18), _index("1.5"))
        assert debt == _usdc("100")

    def test_index_scale_mismatch(self) -> None:
        with pytest.raises(ScaleMismatch):
            current_debt(_usdc("100"), ScaledValue(1, 6), _index("1.1"))


class TestAccruedInterest:
    def test_interest_only(self) -> None:
        assert accrued_interest(_usdc("100"), _index("1.0"), _index("1.1")) == _usdc("10")

    def test_no_interest_at_same_index(self) -> None:
        assert accrued_interest(_usdc("100"), _index("1.1"), _index("1.1")) == _usdc("0")


class TestIndexWatermark:
    def test_starts_empty(self) -> None:
        assert IndexWatermark().highest is None

    def test_tracks_highest(self) -> None:
        mark = IndexWatermark()
        mark.observe(_index("1.0"))
        mark.observe(_index("1.1"))
        mark.observe(_index("1.1"))
        assert mark.highest == _index("1.1")

    def test_regression_raises_and_keeps_watermark(self) -> None:
        mark = IndexWatermark()
        mark.observe(_index("1.1"))

        with pytest.raises(InconsistentState, match="regressed"):
            mark.observe(_index("1.05"))

        assert mark.highest == _index("1.1")

    def test_reset(self) -> None:
        mark = IndexWatermark()
        mark.observe(_index("1.1"))
        mark.reset()
        mark.observe(_index("1.0"))
        assert mark.highest == _index("1.0")
