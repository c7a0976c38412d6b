"""
Tests for the pure derivation pass.
"""

from copy import deepcopy

import pytest
from snapguard.core.derivation import (
    CashOutcome,
    DerivationMode,
    DerivationResult,
    derive,
)
from snapguard.core.exceptions import DerivationError
from snapguard.core.layout import EngineConfig, SnapshotLayout


def _snapshot(date="2002-07-15 周一 08:00", cash=1000, **company):
    data = {
        "world": {"date": date, "location": "Busan"},
        "profile": {"name": "Ha", "birthday": "1980-07-20", "age": 0},
        "company": {
            "entries": {
                "Shop": {
                    "monthlySales": 100,
                    "unitPrice": 10,
                    "costRatio": 0.3,
                    "monthlyMargin": 700,
                }
            },
            "fixedCosts": {"labor": 200, "rent": 100},
            "oneTimeLedgerChange": 0,
            "cash": cash,
        },
        "social": {"contacts": ["Jin"]},
    }
    data["company"].update(company)
    return data


@pytest.fixture
def old():
    return _snapshot()


@pytest.fixture
def new():
    return _snapshot(date="2002-09-15 周日 21:00", cash=999999)


class TestDeriveAge:
    """Test the age step."""

    def test_age_overwritten(self, old, new):
        new["profile"]["age"] = 3
        result = derive(old, new)
        assert result.age == 22
        assert result.snapshot["profile"]["age"] == 22

    def test_placeholder_birthday_leaves_age_untouched(self, old, new):
        new["profile"]["birthday"] = "待定"
        new["profile"]["age"] = 41
        result = derive(old, new)
        assert result.age is None
        assert result.snapshot["profile"]["age"] == 41

    def test_missing_age_stays_unset(self, old, new):
        del new["profile"]["age"]
        new["world"]["date"] = "待定"
        result = derive(old, new)
        assert "age" not in result.snapshot["profile"]

    def test_unparsable_birthday_logs_and_skips(self, old, new, caplog):
        new["profile"]["birthday"] = "sometime in spring"
        new["profile"]["age"] = 7
        with caplog.at_level("WARNING", logger="snapguard.core.derivation"):
            result = derive(old, new)
        assert result.snapshot["profile"]["age"] == 7
        assert "Age not derived" in caplog.text

    def test_birthday_in_future_is_not_written(self, old, new):
        new["profile"]["birthday"] = "2010-01-01"
        new["profile"]["age"] = 5
        result = derive(old, new)
        assert result.snapshot["profile"]["age"] == 5


class TestDeriveCash:
    """Test the cash step on the transition path."""

    def test_generated_cash_is_overwritten(self, old, new):
        result = derive(old, new)
        # 1000 + 0 - 300*2 + 700*2
        assert result.cash_outcome is CashOutcome.ACCRUED
        assert result.months_crossed == 2
        assert result.snapshot["company"]["cash"] == pytest.approx(1800)

    def test_rates_come_from_old_snapshot(self, old, new):
        new["company"]["fixedCosts"] = {"labor": 5000, "rent": 5000}
        new["company"]["entries"]["Shop"]["unitPrice"] = 1000
        result = derive(old, new)
        assert result.accrual.fixed_cost == 300
        assert result.accrual.margin_total == 700
        assert result.snapshot["company"]["cash"] == pytest.approx(1800)

    def test_one_time_change_from_new_snapshot(self, old, new):
        old["company"]["oneTimeLedgerChange"] = 99999
        new["company"]["oneTimeLedgerChange"] = -50
        new["world"]["date"] = old["world"]["date"]
        result = derive(old, new)
        assert result.months_crossed == 0
        assert result.snapshot["company"]["cash"] == 950

    def test_same_date_is_noop_beyond_one_time_change(self, old):
        candidate = deepcopy(old)
        candidate["company"]["cash"] = -1
        result = derive(old, candidate)
        assert result.snapshot["company"]["cash"] == 1000

    def test_incomplete_dates_carry_old_cash_forward(self, old, new):
        new["world"]["date"] = "待定"
        result = derive(old, new)
        assert result.cash_outcome is CashOutcome.CARRIED_FORWARD
        assert result.snapshot["company"]["cash"] == 1000

    def test_missing_old_date_carries_forward(self, old, new):
        del old["world"]["date"]
        result = derive(old, new)
        assert result.snapshot["company"]["cash"] == 1000

    def test_no_old_cash_leaves_cash_untouched(self, old, new):
        del old["company"]["cash"]
        result = derive(old, new)
        assert result.cash_outcome is CashOutcome.SKIPPED
        assert result.snapshot["company"]["cash"] == 999999

    def test_old_snapshot_none(self, new):
        result = derive(None, new)
        assert result.cash_outcome is CashOutcome.SKIPPED
        assert result.snapshot["company"]["cash"] == 999999

    def test_old_entries_without_margin_contribute_nothing(self, old, new):
        old["company"]["entries"]["Shop"].pop("monthlyMargin")
        result = derive(old, new)
        assert result.snapshot["company"]["cash"] == pytest.approx(1000 - 600)


class TestDeriveMargins:
    """Test the per-entry margin step."""

    def test_margin_recomputed_from_new_inputs(self, old, new):
        new["company"]["entries"]["Shop"]["unitPrice"] = 20
        new["company"]["entries"]["Shop"]["monthlyMargin"] = 1
        result = derive(old, new)
        assert result.snapshot["company"]["entries"]["Shop"][
            "monthlyMargin"
        ] == pytest.approx(1400)

    def test_new_entry_gets_margin(self, old, new):
        new["company"]["entries"]["Cafe"] = {
            "monthlySales": "50",
            "unitPrice": "4",
            "costRatio": "0.5",
        }
        result = derive(old, new)
        assert result.snapshot["company"]["entries"]["Cafe"]["monthlyMargin"] == 100

    def test_removed_entry_is_not_carried_over(self, old, new):
        new["company"]["entries"] = {}
        result = derive(old, new)
        assert result.snapshot["company"]["entries"] == {}

    def test_out_of_range_ratio_is_clamped_in_storage(self, old, new):
        new["company"]["entries"]["Shop"]["costRatio"] = 1.5
        result = derive(old, new)
        entry = result.snapshot["company"]["entries"]["Shop"]
        assert entry["costRatio"] == 1.0
        assert entry["monthlyMargin"] == 0

    def test_in_range_ratio_keeps_its_format(self, old, new):
        new["company"]["entries"]["Shop"]["costRatio"] = "0.3"
        result = derive(old, new)
        assert result.snapshot["company"]["entries"]["Shop"]["costRatio"] == "0.3"

    def test_entry_names_with_dots(self, old, new):
        new["company"]["entries"]["v2.0 launch"] = {
            "monthlySales": 10,
            "unitPrice": 10,
            "costRatio": 0,
        }
        result = derive(old, new)
        assert result.snapshot["company"]["entries"]["v2.0 launch"]["monthlyMargin"] == 100
        assert "v2" not in result.snapshot["company"]["entries"]

    def test_non_mapping_entries_ignored(self, old, new):
        new["company"]["entries"]["junk"] = "oops"
        result = derive(old, new)
        assert result.snapshot["company"]["entries"]["junk"] == "oops"

    def test_oversized_inputs_give_zero_margin(self, old, new):
        # json.loads keeps a 400-digit literal as an int
        new["company"]["entries"]["Shop"]["monthlySales"] = 10**400
        new["company"]["entries"]["Huge"] = {
            "monthlySales": 1e200,
            "unitPrice": 1e200,
            "costRatio": 1.0,
        }
        result = derive(old, new)
        entries = result.snapshot["company"]["entries"]
        assert entries["Shop"]["monthlyMargin"] == 0.0
        assert entries["Huge"]["monthlyMargin"] == 0.0

        following = derive(result.snapshot, _snapshot(date="2002-10-15", cash=0))
        assert following.snapshot["company"]["cash"] == pytest.approx(
            result.snapshot["company"]["cash"] - 300
        )

    def test_margins_run_even_without_dates(self, old, new):
        new["world"]["date"] = "待定"
        new["company"]["entries"]["Shop"]["monthlyMargin"] = -5
        result = derive(old, new)
        assert result.snapshot["company"]["entries"]["Shop"][
            "monthlyMargin"
        ] == pytest.approx(700)

    def test_recompute_twice_is_idempotent(self, old, new):
        first = derive(old, new).snapshot
        second = derive(old, first).snapshot
        assert (
            first["company"]["entries"]["Shop"]["monthlyMargin"]
            == second["company"]["entries"]["Shop"]["monthlyMargin"]
        )


class TestDerivationResult:
    """Test the explicit input/output contract."""

    def test_inputs_are_not_mutated(self, old, new):
        old_copy, new_copy = deepcopy(old), deepcopy(new)
        derive(old, new)
        assert old == old_copy
        assert new == new_copy

    def test_non_derived_fields_preserved(self, old, new):
        result = derive(old, new)
        assert result.snapshot["social"] == new["social"]
        assert result.snapshot["world"]["location"] == "Busan"

    def test_patches_and_changed_paths(self, old, new):
        result = derive(old, new)
        paths = [patch.path for patch in result.patches]
        assert "profile.age" in paths
        assert "company.cash" in paths
        assert "company.entries.Shop.monthlyMargin" in paths
        # Margin was already correct, so it is written but unchanged
        assert "company.entries.Shop.monthlyMargin" not in result.changed_paths()
        assert "company.cash" in result.changed_paths()

    def test_apply_to_mutates_target(self, old, new):
        result = derive(old, new)
        target = deepcopy(new)
        result.apply_to(target)
        assert target == result.snapshot

    def test_patch_to_dict(self, old, new):
        result = derive(old, new)
        cash_patch = next(p for p in result.patches if p.path == "company.cash")
        assert cash_patch.to_dict() == {
            "path": "company.cash",
            "before": 999999,
            "after": pytest.approx(1800),
        }

    def test_new_must_be_mapping(self, old):
        with pytest.raises(DerivationError, match="not a mapping"):
            derive(old, None)

    def test_result_type(self, old, new):
        result = derive(old, new)
        assert isinstance(result, DerivationResult)
        assert result.mode is DerivationMode.TRANSITION
        assert result.cash == pytest.approx(1800)


class TestManualMode:
    """Test the manual recompute semantics."""

    def test_manual_accrues_like_transition_when_dates_present(self, old, new):
        auto = derive(old, new)
        manual = derive(old, new, mode=DerivationMode.MANUAL)
        assert manual.snapshot["company"]["cash"] == auto.snapshot["company"]["cash"]

    def test_manual_without_dates_applies_one_time_change_to_latest(self, old, new):
        new["world"]["date"] = "待定"
        new["company"]["cash"] = 5000
        new["company"]["oneTimeLedgerChange"] = 250
        result = derive(old, new, mode=DerivationMode.MANUAL)
        assert result.cash_outcome is CashOutcome.ONE_TIME_ONLY
        assert result.snapshot["company"]["cash"] == 5250

    def test_manual_missing_old_cash_defaults_to_zero(self, old, new):
        del old["company"]["cash"]
        result = derive(old, new, mode=DerivationMode.MANUAL)
        assert result.snapshot["company"]["cash"] == pytest.approx(-600 + 1400)

    def test_latest_as_both_old_and_new(self, new):
        new["company"]["oneTimeLedgerChange"] = -50
        new["company"]["cash"] = 1000
        result = derive(new, new, mode=DerivationMode.MANUAL)
        assert result.months_crossed == 0
        assert result.snapshot["company"]["cash"] == 950


class TestCustomLayout:
    """Test derivation against a non-default layout."""

    def test_root_and_renamed_fields(self):
        layout = SnapshotLayout(
            root="state",
            current_date="clock.today",
            cash="books.cash",
            entries="books.lines",
            fixed_costs="books.overhead",
            one_time_change="books.oneOff",
            fixed_cost_keys=("staff",),
        )
        config = EngineConfig(layout=layout, placeholder="TBD")
        old = {
            "state": {
                "clock": {"today": "2024-01-10"},
                "books": {
                    "cash": 100,
                    "overhead": {"staff": 10, "rent": 1000},
                    "lines": {"x": {"monthlyMargin": 30}},
                },
            }
        }
        new = {
            "state": {
                "clock": {"today": "2024-02-10"},
                "books": {
                    "cash": 0,
                    "oneOff": 5,
                    "lines": {"x": {"monthlySales": 3, "unitPrice": 10, "costRatio": 0}},
                },
            }
        }
        result = derive(old, new, config)
        books = result.snapshot["state"]["books"]
        assert books["cash"] == 100 + 5 - 10 + 30
        assert books["lines"]["x"]["monthlyMargin"] == 30

    def test_missing_root_raises(self):
        config = EngineConfig(layout=SnapshotLayout(root="stat_data"))
        with pytest.raises(DerivationError):
            derive({}, {"other": {}}, config)
