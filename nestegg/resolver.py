"""Solve for the gross tax-deferred withdrawal that yields a net income target."""

from __future__ import annotations

import logging
from typing import Final

from .household import Demographics, FiscalData
from .income import FixedIncomeStreams, IncomeBreakdown
from .tax import TaxEngine, require_finite

logger = logging.getLogger(__name__)

BISECTION_ITERATIONS: Final[int] = 80


def resolve_gross_withdrawal_for_net_target(
    target_net_income: float,
    streams: FixedIncomeStreams,
    demographics: Demographics,
    fiscal: FiscalData,
    *,
    tax_engine: TaxEngine,
    iterations: int = BISECTION_ITERATIONS,
) -> float:
    """Bisect on the withdrawal until after-tax income meets ``target_net_income``.

    The target is the household's total net income (fixed income plus the
    shortfall), because brackets and Social Security taxation apply to combined
    income. Returns the upper bound of the final bracket, unrounded.
    """
    target = require_finite(target_net_income, "target_net_income")
    if target <= 0:
        return 0.0

    lo = 0.0
    hi = 2.0 * target
    for _ in range(iterations):
        mid = (lo + hi) / 2.0
        net = IncomeBreakdown.compute(streams, mid, demographics, fiscal, tax_engine).net_income
        if net < target:
            lo = mid
        else:
            hi = mid

    logger.debug("resolved withdrawal %.2f for net target %.2f in %d", hi, target, fiscal.tax_year)
    return hi
