"""
Core module for snapguard.

This module contains the calculators, the derivation pass and the host-facing
entry points.
"""

from .calculators import (
    AccrualBreakdown,
    accrue_cash,
    clamp_cost_ratio,
    company_cash,
    entry_margins,
    monthly_margin,
    total_fixed_cost,
    total_margin,
)
from .config_loader import layout_from_mapping, load_config
from .dates import PLACEHOLDER, calculate_age, count_month_boundaries, parse_date
from .derivation import (
    CashOutcome,
    DerivationMode,
    DerivationResult,
    FieldPatch,
    derive,
)
from .entries import build_entry, remove_entry, upsert_entry
from .errors import ConfigError, EntryValidationError, StoreError
from .events import (
    STATE_TRANSITION_ACCEPTED,
    EventBus,
    InMemoryEventBus,
    TransitionEvent,
)
from .exceptions import DerivationError
from .layout import DEFAULT_LAYOUT, LEGACY_LAYOUT, EngineConfig, SnapshotLayout
from .orchestrator import DerivationOrchestrator, Notice
from .store import LATEST, PREVIOUS, InMemorySnapshotStore, SnapshotStore
from .utils import clamp, get_path, set_path, to_number

__all__ = [
    # Errors
    "ConfigError",
    "StoreError",
    "EntryValidationError",
    "DerivationError",
    # Dates
    "PLACEHOLDER",
    "parse_date",
    "count_month_boundaries",
    "calculate_age",
    # Calculators
    "AccrualBreakdown",
    "monthly_margin",
    "clamp_cost_ratio",
    "total_fixed_cost",
    "total_margin",
    "entry_margins",
    "accrue_cash",
    "company_cash",
    # Layout and config
    "SnapshotLayout",
    "EngineConfig",
    "DEFAULT_LAYOUT",
    "LEGACY_LAYOUT",
    "load_config",
    "layout_from_mapping",
    # Derivation
    "derive",
    "DerivationMode",
    "DerivationResult",
    "CashOutcome",
    "FieldPatch",
    # Entries
    "build_entry",
    "upsert_entry",
    "remove_entry",
    # Events and store
    "STATE_TRANSITION_ACCEPTED",
    "EventBus",
    "InMemoryEventBus",
    "TransitionEvent",
    "LATEST",
    "PREVIOUS",
    "SnapshotStore",
    "InMemorySnapshotStore",
    # Orchestration
    "DerivationOrchestrator",
    "Notice",
    # Utils
    "to_number",
    "clamp",
    "get_path",
    "set_path",
]
