"""Borrow-index based debt accrual."""
from __future__ import annotations

import logging

from ..errors import InconsistentState, ScaleMismatch
from ..models import ScaledValue
from .fixed_point import mul_div

logger = logging.getLogger(__name__)


def current_debt(
    principal: ScaledValue,
    user_index: ScaledValue,
    global_index: ScaledValue,
) -> ScaledValue:
    """Debt owed now for ``principal`` borrowed when the index was ``user_index``.

    debt = principal * global_index / user_index

    A zero principal owes nothing whatever the indices say. A zero
    ``user_index`` means the index was never recorded and counts as the
    current one (no accrued interest).
    """
    if user_index.decimals != global_index.decimals:
        raise ScaleMismatch(
            f"user index has {user_index.decimals} decimals, "
            f"global index {global_index.decimals}"
        )
    if principal.is_zero:
        return ScaledValue.zero(principal.decimals)
    if user_index.is_zero:
        user_index = global_index
    return mul_div(principal, global_index, user_index)


def accrued_interest(
    principal: ScaledValue,
    user_index: ScaledValue,
    global_index: ScaledValue,
) -> ScaledValue:
    """Interest accrued on top of ``principal``."""
    return current_debt(principal, user_index, global_index) - principal


class IndexWatermark:
    """Highest global borrow index observed during one account session.

    The ledger's index never decreases; observing a lower value means the
    read came from a lagging node or a reorg, and the derived debt would
    shrink. :meth:`observe` raises instead of accepting it.
    """

    def __init__(self) -> None:
        self._highest: ScaledValue | None = None

    @property
    def highest(self) -> ScaledValue | None:
        return self._highest

    def observe(self, global_index: ScaledValue) -> None:
        """Record ``global_index``.

        Raises:
            InconsistentState: the index is lower than one already observed.
                The watermark is left unchanged.
        """
        if self._highest is not None and global_index < self._highest:
            raise InconsistentState(
                f"borrow index regressed from {self._highest} to {global_index}"
            )
        if self._highest is None or global_index > self._highest:
            logger.debug("Borrow index watermark now %s", global_index)
        self._highest = global_index

    def reset(self) -> None:
        self._highest = None
