"""
Snapshot layout and engine configuration.

A layout maps each logical field the engine reads or writes to a dotted path
inside the host's snapshot tree. Entry-level keys are relative to each entry
and fixed-cost keys are relative to the fixed-cost mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .dates import PLACEHOLDER
from .utils import join_path, split_path


@dataclass(frozen=True)
class SnapshotLayout:
    """
    Where the engine finds its inputs and writes its derived fields.

    Attributes:
        root: Prefix applied to every top-level path ("" = whole document)
        current_date: World date string
        birthday: Profile birthday string
        age: Derived profile age
        entries: Mapping of entry name -> entry
        fixed_costs: Mapping of named monthly fixed costs
        one_time_change: Signed non-operating movement for this transition
        cash: Derived company cash balance
        entry_sales / entry_price / entry_cost_ratio / entry_margin: Keys inside each entry
        fixed_cost_keys: Keys summed from the fixed-cost mapping
    """

    root: str = ""
    current_date: str = "world.date"
    birthday: str = "profile.birthday"
    age: str = "profile.age"
    entries: str = "company.entries"
    fixed_costs: str = "company.fixedCosts"
    one_time_change: str = "company.oneTimeLedgerChange"
    cash: str = "company.cash"
    entry_sales: str = "monthlySales"
    entry_price: str = "unitPrice"
    entry_cost_ratio: str = "costRatio"
    entry_margin: str = "monthlyMargin"
    fixed_cost_keys: tuple[str, ...] = ("labor", "rent")

    def path(self, name: str) -> tuple[str, ...]:
        """Absolute key path (root included) of a top-level logical field."""
        return tuple(split_path(self.root) + split_path(getattr(self, name)))

    def entry_path(self, entry_name: str, key: str | None = None) -> tuple[str, ...]:
        """Absolute key path of an entry, or of one key inside it."""
        keys = self.path("entries") + (entry_name,)
        return keys + (key,) if key else keys

    @property
    def derived_paths(self) -> tuple[str, ...]:
        """Dotted top-level fields only the engine may produce."""
        return (join_path(*self.path("age")), join_path(*self.path("cash")))


DEFAULT_LAYOUT = SnapshotLayout()

LEGACY_LAYOUT = SnapshotLayout(
    root="stat_data",
    current_date="世界.当前日期",
    birthday="主角.生日",
    age="主角._年龄",
    entries="公司账户.运行项目",
    fixed_costs="公司账户.固定成本",
    one_time_change="公司账户.公账一次性变动",
    cash="公司账户._现金",
    entry_sales="月销量",
    entry_price="单价",
    entry_cost_ratio="边际成本率",
    entry_margin="_月毛利",
    fixed_cost_keys=("人力成本", "房租"),
)

PRESETS: dict[str, SnapshotLayout] = {
    "default": DEFAULT_LAYOUT,
    "legacy": LEGACY_LAYOUT,
}


@dataclass(frozen=True)
class EngineConfig:
    """Configuration options for derivation passes."""

    layout: SnapshotLayout = field(default_factory=SnapshotLayout)
    placeholder: str = PLACEHOLDER
