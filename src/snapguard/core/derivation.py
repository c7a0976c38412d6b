"""
Derivation pass: recompute the read-only fields of a snapshot.

Given the previous accepted snapshot (``old``) and a candidate snapshot
(``new``), :func:`derive` returns a corrected copy of ``new`` in which:

1. the profile age is recomputed from the world date and the birthday,
2. the company cash is accrued from ``old`` (or carried forward),
3. every entry's monthly margin is recomputed from its own inputs.

The three steps are independent of each other. Step 2 reads fixed costs and
entry margins from ``old`` only. Neither input is mutated; callers persist
``DerivationResult.snapshot`` or apply its patches themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .calculators import AccrualBreakdown, accrue_cash, clamp_cost_ratio, monthly_margin
from .dates import calculate_age, count_month_boundaries
from .exceptions import DerivationError
from .layout import EngineConfig
from .utils import (
    MISSING,
    clone_tree,
    get_path,
    join_path,
    set_path,
    split_path,
    to_number,
)

logger = logging.getLogger(__name__)


class DerivationMode(Enum):
    """Which entry point asked for the pass."""

    TRANSITION = "transition"
    MANUAL = "manual"


class CashOutcome(Enum):
    """How the cash field was produced in a pass."""

    ACCRUED = "accrued"
    CARRIED_FORWARD = "carried_forward"
    ONE_TIME_ONLY = "one_time_only"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class FieldPatch:
    """One write performed by a derivation pass."""

    keys: tuple[str, ...]
    before: Any
    after: Any

    @property
    def path(self) -> str:
        return join_path(*self.keys)

    @property
    def changed(self) -> bool:
        return self.before is MISSING or self.before != self.after

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "before": None if self.before is MISSING else self.before,
            "after": self.after,
        }


@dataclass
class DerivationResult:
    """
    Output of :func:`derive`.

    Attributes:
        snapshot: Corrected copy of the new snapshot
        patches: Every field write, in the order it happened
        mode: Entry point that ran the pass
        age: Computed age, or None when it could not be derived
        months_crossed: Month boundaries between the two world dates
        cash_outcome: How the cash field was handled
        accrual: Figures behind the cash value (None unless computed)
    """

    snapshot: dict[str, Any]
    patches: list[FieldPatch] = field(default_factory=list)
    mode: DerivationMode = DerivationMode.TRANSITION
    age: int | None = None
    months_crossed: int = 0
    cash_outcome: CashOutcome = CashOutcome.SKIPPED
    accrual: AccrualBreakdown | None = None

    @property
    def cash(self) -> float | None:
        return self.accrual.cash if self.accrual is not None else None

    def changed_paths(self) -> list[str]:
        """Dotted paths whose value actually changed."""
        return [patch.path for patch in self.patches if patch.changed]

    def apply_to(self, target: MutableMapping) -> MutableMapping:
        """Replay the patches onto another tree (in place) and return it."""
        for patch in self.patches:
            set_path(target, patch.keys, clone_tree(patch.after))
        return target


class _Writer:
    """Applies writes to the working copy and records them as patches."""

    def __init__(self, tree: dict[str, Any]):
        self.tree = tree
        self.patches: list[FieldPatch] = []

    def write(self, keys: tuple[str, ...], value: Any) -> None:
        before = get_path(self.tree, keys, MISSING)
        set_path(self.tree, keys, value)
        self.patches.append(FieldPatch(keys=keys, before=before, after=value))


def _usable_date(value: Any, placeholder: str) -> bool:
    return value is not None and value != "" and value != placeholder


def _derive_age(
    new: Mapping, writer: _Writer, config: EngineConfig
) -> int | None:
    layout = config.layout
    current = get_path(new, layout.path("current_date"))
    birthday = get_path(new, layout.path("birthday"))
    if not (
        _usable_date(current, config.placeholder)
        and _usable_date(birthday, config.placeholder)
    ):
        return None

    age = calculate_age(current, birthday, config.placeholder)
    if age is None:
        logger.warning(
            "Age not derived: current date=%r, birthday=%r", current, birthday
        )
        return None

    writer.write(layout.path("age"), age)
    logger.info("Age derived: current date=%s, birthday=%s, age=%d", current, birthday, age)
    return age


def _derive_cash(
    old: Mapping,
    new: Mapping,
    writer: _Writer,
    config: EngineConfig,
    mode: DerivationMode,
) -> tuple[CashOutcome, int, AccrualBreakdown | None]:
    layout = config.layout
    old_date = get_path(old, layout.path("current_date"))
    new_date = get_path(new, layout.path("current_date"))
    old_cash = get_path(old, layout.path("cash"), MISSING)
    one_time = get_path(new, layout.path("one_time_change"), 0)
    dates_usable = _usable_date(old_date, config.placeholder) and _usable_date(
        new_date, config.placeholder
    )

    if mode is DerivationMode.MANUAL:
        # Manual recompute treats a missing previous balance as zero and,
        # without both dates, only applies the one-time change on top of the
        # latest balance.
        if old_cash is MISSING:
            old_cash = 0
        if not dates_usable:
            current_cash = get_path(new, layout.path("cash"), 0)
            accrual = accrue_cash(current_cash, one_time, 0, None, None)
            writer.write(layout.path("cash"), accrual.cash)
            logger.info(
                "Cash recomputed without dates: current=%s, one-time change=%s, new=%s",
                accrual.old_cash,
                accrual.one_time_change,
                accrual.cash,
            )
            return CashOutcome.ONE_TIME_ONLY, 0, accrual

    if old_cash is MISSING:
        return CashOutcome.SKIPPED, 0, None

    if not dates_usable:
        writer.write(layout.path("cash"), clone_tree(old_cash))
        logger.warning(
            "Cash derivation skipped (incomplete dates): old date=%r, new date=%r, keeping %r",
            old_date,
            new_date,
            old_cash,
        )
        return CashOutcome.CARRIED_FORWARD, 0, None

    months = count_month_boundaries(old_date, new_date, config.placeholder)
    logger.info(
        "Months crossed: old date=%s, new date=%s, months=%d", old_date, new_date, months
    )

    accrual = accrue_cash(
        old_cash,
        one_time,
        months,
        get_path(old, layout.path("fixed_costs")),
        get_path(old, layout.path("entries")),
        fixed_cost_keys=layout.fixed_cost_keys,
        margin_key=layout.entry_margin,
    )
    writer.write(layout.path("cash"), accrual.cash)

    if months == 0:
        logger.info(
            "Cash derived (same month): old=%s, one-time change=%s, new=%s",
            accrual.old_cash,
            accrual.one_time_change,
            accrual.cash,
        )
    else:
        logger.info(
            "Cash derived (%d months): old=%s, one-time change=%s, fixed cost=%s, "
            "margin total=%s, new=%s",
            months,
            accrual.old_cash,
            accrual.one_time_change,
            accrual.fixed_cost,
            accrual.margin_total,
            accrual.cash,
        )
    return CashOutcome.ACCRUED, months, accrual


def _derive_margins(new: Mapping, writer: _Writer, config: EngineConfig) -> None:
    layout = config.layout
    entries = get_path(new, layout.path("entries"))
    if not isinstance(entries, Mapping):
        return

    for name, entry in entries.items():
        if not isinstance(entry, Mapping):
            continue
        name = str(name)
        sales = entry.get(layout.entry_sales)
        price = entry.get(layout.entry_price)
        raw_ratio = entry.get(layout.entry_cost_ratio)
        margin = monthly_margin(sales, price, raw_ratio)

        ratio = clamp_cost_ratio(raw_ratio)
        if layout.entry_cost_ratio in entry and ratio != to_number(raw_ratio):
            writer.write(layout.entry_path(name, layout.entry_cost_ratio), ratio)
        writer.write(layout.entry_path(name, layout.entry_margin), margin)
        logger.info(
            "Entry margin derived: entry=%s, sales=%s, price=%s, cost ratio=%s, margin=%s",
            name,
            sales,
            price,
            raw_ratio,
            margin,
        )


def derive(
    old: Mapping | None,
    new: Mapping,
    config: EngineConfig | None = None,
    *,
    mode: DerivationMode = DerivationMode.TRANSITION,
) -> DerivationResult:
    """
    Recompute every derived field of ``new`` from trustworthy inputs.

    **Args:**
        old: Previous accepted snapshot (None is treated as empty)
        new: Candidate snapshot whose derived fields may be stale
        config: Layout and placeholder settings (defaults apply when None)
        mode: ``TRANSITION`` for the event path, ``MANUAL`` for a user-triggered
            recompute (see :func:`_derive_cash` for how the two differ)

    **Returns:**
        A :class:`DerivationResult` holding the corrected copy and its patches.

    **Raises:**
        DerivationError: if ``new`` (or its configured root) is not a mapping.

    **Example:**
        ```python
        result = derive(previous, candidate)
        store.save(result.snapshot)
        print(result.changed_paths())
        ```
    """
    config = config or EngineConfig()
    root = tuple(split_path(config.layout.root))
    if not isinstance(new, Mapping) or not isinstance(get_path(new, root), Mapping):
        raise DerivationError(
            mode.value,
            "new snapshot is missing or not a mapping",
            [join_path(*root)] if root else None,
        )
    old = old if isinstance(old, Mapping) else {}

    logger.info("Derivation pass started (%s)", mode.value)
    working = clone_tree(dict(new))
    writer = _Writer(working)

    age = _derive_age(new, writer, config)
    outcome, months, accrual = _derive_cash(old, new, writer, config, mode)
    _derive_margins(new, writer, config)

    logger.info(
        "Derivation pass finished (%s): %d field(s) written",
        mode.value,
        len(writer.patches),
    )
    return DerivationResult(
        snapshot=working,
        patches=writer.patches,
        mode=mode,
        age=age,
        months_crossed=months,
        cash_outcome=outcome,
        accrual=accrual,
    )
