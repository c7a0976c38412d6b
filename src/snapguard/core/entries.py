"""
Entry editing helpers for the company account.

Form input arrives as strings; these helpers validate it, clamp the cost
ratio and precompute the margin so the stored entry is consistent before the
next derivation pass even runs.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from .calculators import monthly_margin
from .errors import EntryValidationError
from .layout import DEFAULT_LAYOUT, SnapshotLayout
from .utils import MISSING, clamp, clone_tree, delete_path, get_path, set_path

DEFAULT_COST_RATIO = 0.5


def _parse_number(value: Any, field: str, default: float) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise EntryValidationError(field, f"{field} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise EntryValidationError(field, f"{field} must be a number") from exc


def build_entry(
    sales: Any,
    price: Any,
    cost_ratio: Any = DEFAULT_COST_RATIO,
    layout: SnapshotLayout = DEFAULT_LAYOUT,
) -> dict[str, float]:
    """
    Validate raw form values and build an entry mapping.

    Blank sales/price default to 0 and a blank ratio to 0.5.

    **Raises:**
        EntryValidationError: when a value is not numeric or the cost ratio
            lies outside ``[0, 1]``.
    """
    sales_value = _parse_number(sales, "sales", 0.0)
    price_value = _parse_number(price, "price", 0.0)
    ratio_value = _parse_number(cost_ratio, "cost_ratio", DEFAULT_COST_RATIO)
    for field, value in (
        ("sales", sales_value),
        ("price", price_value),
        ("cost_ratio", ratio_value),
    ):
        if not math.isfinite(value):
            raise EntryValidationError(field, f"{field} must be a number")
    if ratio_value < 0 or ratio_value > 1:
        raise EntryValidationError("cost_ratio", "cost_ratio must be between 0 and 1")

    return {
        layout.entry_sales: sales_value,
        layout.entry_price: price_value,
        layout.entry_cost_ratio: clamp(ratio_value, 0.0, 1.0),
        layout.entry_margin: monthly_margin(sales_value, price_value, ratio_value),
    }


def _ensure_company(snapshot: dict[str, Any], layout: SnapshotLayout) -> None:
    defaults = (
        (layout.path("entries"), {}),
        (layout.path("fixed_costs"), {key: 0 for key in layout.fixed_cost_keys}),
        (layout.path("one_time_change"), 0),
        (layout.path("cash"), 0),
    )
    for keys, value in defaults:
        if get_path(snapshot, keys, MISSING) is MISSING:
            set_path(snapshot, keys, value)
    if not isinstance(get_path(snapshot, layout.path("entries")), Mapping):
        set_path(snapshot, layout.path("entries"), {})


def upsert_entry(
    snapshot: Mapping[str, Any],
    name: str,
    sales: Any,
    price: Any,
    cost_ratio: Any = DEFAULT_COST_RATIO,
    layout: SnapshotLayout = DEFAULT_LAYOUT,
) -> dict[str, Any]:
    """
    Return a copy of ``snapshot`` with entry ``name`` added or replaced.

    A missing company account is created with zeroed fixed costs, cash and
    one-time change.
    """
    name = str(name).strip() if name is not None else ""
    if not name:
        raise EntryValidationError("name", "entry name is required")
    entry = build_entry(sales, price, cost_ratio, layout)

    updated = clone_tree(dict(snapshot))
    _ensure_company(updated, layout)
    set_path(updated, layout.entry_path(name), entry)
    return updated


def remove_entry(
    snapshot: Mapping[str, Any],
    name: str,
    layout: SnapshotLayout = DEFAULT_LAYOUT,
) -> tuple[dict[str, Any], bool]:
    """Return a copy of ``snapshot`` without entry ``name`` and whether it existed."""
    updated = clone_tree(dict(snapshot))
    removed = delete_path(updated, layout.entry_path(name))
    return updated, removed
