"""
snapguard - Derived Field Engine for Snapshot State Trees

snapguard keeps a handful of read-only fields inside a free-form state tree
honest. The tree ("snapshot") is written by an upstream generator that cannot
be trusted with arithmetic, so every time a new snapshot is accepted the
engine recomputes the derived fields from the previous snapshot and the
non-derived parts of the new one, overwriting whatever was generated.

Derived fields:
- **Age**: from the world date and the profile birthday
- **Company cash**: previous cash + one-time change, plus (margins - fixed
  costs) for every month boundary crossed, at the rates recorded *before*
  the transition
- **Entry margins**: monthly sales x unit price x (1 - clamped cost ratio)

Architecture Overview:
- **dates / calculators**: stateless, total functions shared by every entry point
- **derive()**: pure pass returning a corrected copy plus field patches
- **DerivationOrchestrator**: subscribes to state transitions on an injected
  event bus and runs the manual recompute against an injected snapshot store
- **reporting**: pandas tables for entry margins and history replays

Quick Start:
    ```python
    from snapguard import derive

    old = {"world": {"date": "2002-07-15"}, "company": {"cash": 1000,
           "fixedCosts": {"labor": 200, "rent": 100},
           "entries": {"Shop": {"monthlyMargin": 500}}}}
    new = {"world": {"date": "2002-09-15"}, "company": {"cash": 123,
           "oneTimeLedgerChange": 0,
           "entries": {"Shop": {"monthlySales": 100, "unitPrice": 10, "costRatio": 0.3}}}}

    result = derive(old, new)
    result.snapshot["company"]["cash"]                          # 1400.0
    result.snapshot["company"]["entries"]["Shop"]["monthlyMargin"]  # 700.0
    ```
"""

# Version information
__version__ = "0.1.0"
__description__ = "Derived field engine for snapshot state trees"

from .core import (
    DEFAULT_LAYOUT,
    LATEST,
    LEGACY_LAYOUT,
    PLACEHOLDER,
    PREVIOUS,
    STATE_TRANSITION_ACCEPTED,
    AccrualBreakdown,
    CashOutcome,
    ConfigError,
    DerivationError,
    DerivationMode,
    DerivationOrchestrator,
    DerivationResult,
    EngineConfig,
    EntryValidationError,
    EventBus,
    FieldPatch,
    InMemoryEventBus,
    InMemorySnapshotStore,
    Notice,
    SnapshotLayout,
    SnapshotStore,
    StoreError,
    TransitionEvent,
    accrue_cash,
    calculate_age,
    company_cash,
    count_month_boundaries,
    derive,
    load_config,
    monthly_margin,
    parse_date,
    remove_entry,
    upsert_entry,
)
from .reporting import entries_frame, monthly_operating_result, replay

# Define what gets imported with "from snapguard import *"
__all__ = [
    # Calculators
    "parse_date",
    "count_month_boundaries",
    "calculate_age",
    "monthly_margin",
    "company_cash",
    "accrue_cash",
    "AccrualBreakdown",
    "PLACEHOLDER",
    # Derivation
    "derive",
    "DerivationMode",
    "DerivationResult",
    "CashOutcome",
    "FieldPatch",
    # Config
    "EngineConfig",
    "SnapshotLayout",
    "DEFAULT_LAYOUT",
    "LEGACY_LAYOUT",
    "load_config",
    # Entries
    "upsert_entry",
    "remove_entry",
    # Host integration
    "DerivationOrchestrator",
    "Notice",
    "EventBus",
    "InMemoryEventBus",
    "TransitionEvent",
    "STATE_TRANSITION_ACCEPTED",
    "SnapshotStore",
    "InMemorySnapshotStore",
    "LATEST",
    "PREVIOUS",
    # Errors
    "ConfigError",
    "StoreError",
    "EntryValidationError",
    "DerivationError",
    # Reporting
    "entries_frame",
    "replay",
    "monthly_operating_result",
    # Version info
    "__version__",
    "__description__",
]
