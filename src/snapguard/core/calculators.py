"""
Company account calculators: per-entry margin and the cash accrual recurrence.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .utils import clamp, to_number

DEFAULT_FIXED_COST_KEYS: tuple[str, ...] = ("labor", "rent")
DEFAULT_MARGIN_KEY = "monthlyMargin"


def clamp_cost_ratio(cost_ratio: Any) -> float:
    """Coerce a cost ratio and clamp it into ``[0, 1]``."""
    return clamp(to_number(cost_ratio), 0.0, 1.0)


def monthly_margin(sales: Any, price: Any, cost_ratio: Any) -> float:
    """
    Monthly gross margin of one entry.

    margin = sales * price * (1 - clamp(cost_ratio, 0, 1))

    Non-numeric inputs count as 0, and a product that overflows is reported as
    0 as well, so the result is always a finite number.

    **Example:**
        ```python
        monthly_margin(100, 10, 0.3)  # 700.0
        monthly_margin(100, 10, 1.5)  # 0.0, ratio clamped to 1
        ```
    """
    margin = to_number(sales) * to_number(price) * (1.0 - clamp_cost_ratio(cost_ratio))
    return margin if math.isfinite(margin) else 0.0


def total_fixed_cost(
    fixed_costs: Any, keys: Iterable[str] = DEFAULT_FIXED_COST_KEYS
) -> float:
    """Sum of the named monthly fixed costs; missing or junk values count as 0."""
    if not isinstance(fixed_costs, Mapping):
        return 0.0
    return sum(to_number(fixed_costs.get(key)) for key in keys)


def total_margin(entries: Any, margin_key: str = DEFAULT_MARGIN_KEY) -> float:
    """Sum of the recorded monthly margins of all entries that carry one."""
    if not isinstance(entries, Mapping):
        return 0.0
    return sum(
        to_number(entry[margin_key])
        for entry in entries.values()
        if isinstance(entry, Mapping) and margin_key in entry
    )


def entry_margins(
    entries: Any, margin_key: str = DEFAULT_MARGIN_KEY
) -> dict[str, float]:
    """Recorded margin per entry name, for entries that carry one."""
    if not isinstance(entries, Mapping):
        return {}
    return {
        str(name): to_number(entry[margin_key])
        for name, entry in entries.items()
        if isinstance(entry, Mapping) and margin_key in entry
    }


@dataclass(frozen=True)
class AccrualBreakdown:
    """
    Inputs and result of one cash accrual step.

    Attributes:
        old_cash: Cash balance the step started from
        one_time_change: Non-operating movement applied once
        months_crossed: Month boundaries crossed in this transition
        fixed_cost: Monthly fixed cost rate (from the previous state)
        margin_total: Monthly margin rate (from the previous state)
        cash: Resulting cash balance
    """

    old_cash: float
    one_time_change: float
    months_crossed: int
    fixed_cost: float
    margin_total: float
    cash: float

    @property
    def operating_delta(self) -> float:
        """Accrued operating result: (margin - fixed cost) per month crossed."""
        if self.months_crossed < 1:
            return 0.0
        return (self.margin_total - self.fixed_cost) * self.months_crossed


def accrue_cash(
    old_cash: Any,
    one_time_change: Any,
    months_crossed: int,
    old_fixed_costs: Any,
    old_entries: Any,
    *,
    fixed_cost_keys: Iterable[str] = DEFAULT_FIXED_COST_KEYS,
    margin_key: str = DEFAULT_MARGIN_KEY,
) -> AccrualBreakdown:
    """
    Run the cash recurrence and keep every intermediate figure.

    cash = old_cash + one_time_change
    and, when at least one month boundary was crossed,
    cash += (margin_total - fixed_cost) * months_crossed

    Rates are taken from the state in effect before the transition
    (``old_fixed_costs`` and ``old_entries``). A price change made this
    round therefore shows up in next round's cash, not this one.
    """
    start = to_number(old_cash)
    change = to_number(one_time_change)
    months = max(int(months_crossed), 0)

    cash = start + change
    fixed = 0.0
    margin = 0.0
    if months >= 1:
        fixed = total_fixed_cost(old_fixed_costs, fixed_cost_keys)
        margin = total_margin(old_entries, margin_key)
        cash -= fixed * months
        cash += margin * months

    return AccrualBreakdown(
        old_cash=start,
        one_time_change=change,
        months_crossed=months,
        fixed_cost=fixed,
        margin_total=margin,
        cash=cash,
    )


def company_cash(
    old_cash: Any,
    one_time_change: Any,
    months_crossed: int,
    old_fixed_costs: Any,
    old_entries: Any,
    *,
    fixed_cost_keys: Iterable[str] = DEFAULT_FIXED_COST_KEYS,
    margin_key: str = DEFAULT_MARGIN_KEY,
) -> float:
    """New company cash balance; see :func:`accrue_cash` for the recurrence."""
    return accrue_cash(
        old_cash,
        one_time_change,
        months_crossed,
        old_fixed_costs,
        old_entries,
        fixed_cost_keys=fixed_cost_keys,
        margin_key=margin_key,
    ).cash
