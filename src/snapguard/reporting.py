"""
Reporting helpers built on pandas.

These functions read snapshots (they never write them) and return tables for
inspection: the margin breakdown of a single snapshot, and a replay of the
derivation pass over a recorded history.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import numpy as np
import pandas as pd

from .core.calculators import clamp_cost_ratio, monthly_margin, total_fixed_cost
from .core.derivation import CashOutcome, derive
from .core.layout import EngineConfig
from .core.utils import get_path, to_number

ENTRY_COLUMNS = ["monthly_sales", "unit_price", "cost_ratio", "monthly_margin"]
REPLAY_COLUMNS = [
    "date",
    "months_crossed",
    "one_time_change",
    "fixed_cost",
    "margin_total",
    "cash",
    "cash_outcome",
]


def entries_frame(
    snapshot: Mapping[str, Any], config: EngineConfig | None = None
) -> pd.DataFrame:
    """
    Per-entry margin table of one snapshot.

    Margins are recomputed from each entry's inputs, so the table shows what
    a derivation pass would store, whatever the snapshot currently holds.

    Returns:
        DataFrame indexed by entry name with columns ``ENTRY_COLUMNS``
    """
    config = config or EngineConfig()
    layout = config.layout
    entries = get_path(snapshot, layout.path("entries"))

    names: list[str] = []
    rows: list[dict[str, float]] = []
    if isinstance(entries, Mapping):
        for name, entry in entries.items():
            if not isinstance(entry, Mapping):
                continue
            sales = entry.get(layout.entry_sales)
            price = entry.get(layout.entry_price)
            ratio = entry.get(layout.entry_cost_ratio)
            names.append(str(name))
            rows.append(
                {
                    "monthly_sales": to_number(sales),
                    "unit_price": to_number(price),
                    "cost_ratio": clamp_cost_ratio(ratio),
                    "monthly_margin": monthly_margin(sales, price, ratio),
                }
            )

    return pd.DataFrame(
        rows,
        index=pd.Index(names, name="entry", dtype=object),
        columns=ENTRY_COLUMNS,
        dtype=float,
    )


def replay(
    history: Iterable[Mapping[str, Any]], config: EngineConfig | None = None
) -> pd.DataFrame:
    """
    Chain the derivation pass over a recorded snapshot history.

    The first snapshot is taken as already accepted. Each following snapshot
    is derived against the corrected version of its predecessor, exactly as
    the transition handler would have done live.

    Returns:
        DataFrame with one row per transition and columns ``REPLAY_COLUMNS``
    """
    config = config or EngineConfig()
    layout = config.layout
    snapshots = list(history)

    rows: list[dict[str, Any]] = []
    previous = snapshots[0] if snapshots else None
    for candidate in snapshots[1:]:
        result = derive(previous, candidate, config)
        accrual = result.accrual
        corrected = result.snapshot
        # A skipped step leaves whatever cash the candidate carried
        if result.cash_outcome is CashOutcome.SKIPPED:
            cash = np.nan
        else:
            cash = to_number(get_path(corrected, layout.path("cash")))
        rows.append(
            {
                "date": get_path(corrected, layout.path("current_date")),
                "months_crossed": result.months_crossed,
                "one_time_change": to_number(
                    get_path(corrected, layout.path("one_time_change"))
                ),
                "fixed_cost": accrual.fixed_cost if accrual else 0.0,
                "margin_total": accrual.margin_total if accrual else 0.0,
                "cash": cash,
                "cash_outcome": result.cash_outcome.value,
            }
        )
        previous = corrected

    return pd.DataFrame(rows, columns=REPLAY_COLUMNS)


def monthly_operating_result(
    snapshot: Mapping[str, Any], config: EngineConfig | None = None
) -> float:
    """
    Monthly operating result implied by a snapshot: margins minus fixed costs.

    Uses freshly computed margins rather than the stored ones.
    """
    config = config or EngineConfig()
    margins = entries_frame(snapshot, config)["monthly_margin"].sum()
    fixed = total_fixed_cost(
        get_path(snapshot, config.layout.path("fixed_costs")),
        config.layout.fixed_cost_keys,
    )
    return float(margins) - fixed
