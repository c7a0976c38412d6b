"""
Entry points that connect the derivation pass to a host.

Two paths lead into the same pure :func:`~snapguard.core.derivation.derive`:

- the transition handler, subscribed to ``STATE_TRANSITION_ACCEPTED`` on an
  injected event bus, which receives ``(old, new)`` from the host;
- the manual recompute, which fetches the latest and the one-before-latest
  snapshots from the store and persists the result as latest.

The manual path keeps its own cash semantics (see ``DerivationMode.MANUAL``).
Its previous snapshot can lag several transitions behind latest, so the two
paths are not guaranteed to agree on the accrued amount.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .derivation import CashOutcome, DerivationMode, DerivationResult, derive
from .entries import remove_entry, upsert_entry
from .errors import ConfigError, EntryValidationError, StoreError
from .exceptions import DerivationError
from .events import STATE_TRANSITION_ACCEPTED, EventBus
from .layout import EngineConfig
from .store import LATEST, PREVIOUS, SnapshotStore, Target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    """User-facing outcome of an orchestrator action."""

    level: str  # "success" | "warning" | "error"
    title: str
    message: str
    result: DerivationResult | None = None

    @property
    def ok(self) -> bool:
        return self.level == "success"


def _money(value: float) -> str:
    return f"¥{value:,.2f}"


class DerivationOrchestrator:
    """
    Explicit application context for derivation: config, store and bus.

    Attributes:
        config: Layout and placeholder settings
        store: Snapshot store used by the manual and editing paths
        bus: Event bus the transition handler subscribes to
        write_back: When True, the transition handler also applies its patches
            to the ``new`` snapshot it received, for hosts that persist that
            object themselves

    **Example Usage:**
        ```python
        orchestrator = DerivationOrchestrator(store=store, bus=bus)
        orchestrator.attach()
        ...
        notice = await orchestrator.recompute_latest()
        orchestrator.detach()
        ```
    """

    def __init__(
        self,
        store: SnapshotStore | None = None,
        bus: EventBus | None = None,
        config: EngineConfig | None = None,
        *,
        write_back: bool = False,
    ):
        self.config = config or EngineConfig()
        self.store = store
        self.bus = bus
        self.write_back = write_back
        self._token: int | None = None
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    # -- transition path -------------------------------------------------

    @property
    def attached(self) -> bool:
        return self._token is not None

    def attach(self) -> None:
        """Subscribe the transition handler to the bus (idempotent)."""
        if self.bus is None:
            raise ConfigError("Cannot attach: no event bus configured")
        if self._token is None:
            self._token = self.bus.subscribe(
                STATE_TRANSITION_ACCEPTED, self.on_transition
            )
            logger.info("Derivation handler attached to %s", STATE_TRANSITION_ACCEPTED)

    def detach(self) -> None:
        """Unsubscribe the transition handler."""
        if self.bus is not None and self._token is not None:
            self.bus.unsubscribe(self._token)
            logger.info("Derivation handler detached")
        self._token = None

    def on_transition(
        self, old: dict[str, Any] | None, new: dict[str, Any]
    ) -> DerivationResult | None:
        """
        Handle one accepted state transition.

        Returns the derivation result, or None when the pass failed. A failed
        pass is logged and leaves ``new`` untouched.
        """
        try:
            result = derive(old, new, self.config, mode=DerivationMode.TRANSITION)
        except Exception:
            logger.exception("Derivation pass failed; snapshot left untouched")
            return None
        if self.write_back:
            result.apply_to(new)
        return result

    # -- store-backed paths ----------------------------------------------

    def _guard(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def _require_store(self) -> SnapshotStore:
        if self.store is None:
            raise StoreError("No snapshot store configured")
        return self.store

    def _fetch(self, target: Target) -> dict[str, Any] | None:
        return self._require_store().get(target)

    async def _persist(self, snapshot: dict[str, Any], target: Target) -> None:
        await self._require_store().replace(snapshot, target)

    async def recompute_latest(self) -> Notice:
        """
        Recompute the derived fields of the latest snapshot and persist them.

        The previous snapshot is the one before latest; without one, latest
        serves as both old and new, which leaves only the one-time change.
        """
        title = "Recompute cash"
        async with self._guard():
            try:
                latest = self._fetch(LATEST)
                if latest is None:
                    return Notice("error", title, "No snapshot to recompute")
                try:
                    previous = self._fetch(PREVIOUS)
                except Exception as exc:
                    logger.warning(
                        "Previous snapshot unavailable (%s); using latest", exc
                    )
                    previous = None
                if previous is None:
                    previous = latest

                result = derive(
                    previous, latest, self.config, mode=DerivationMode.MANUAL
                )
                await self._persist(result.snapshot, LATEST)
            except (StoreError, DerivationError) as exc:
                logger.error("Cash recompute failed: %s", exc)
                return Notice("error", title, f"Cash recompute failed: {exc}")
            except Exception as exc:
                logger.exception("Cash recompute failed")
                return Notice("error", title, f"Cash recompute failed: {exc}")

        return Notice("success", title, self._describe_recompute(result), result)

    @staticmethod
    def _describe_recompute(result: DerivationResult) -> str:
        """Summarize a manual pass; manual passes always carry an accrual."""
        accrual = result.accrual
        if result.cash_outcome is CashOutcome.ONE_TIME_ONLY:
            sign = "+" if accrual.one_time_change >= 0 else "-"
            return (
                "Cash recompute finished\n"
                f"Current cash: {_money(accrual.old_cash)}\n"
                f"One-time change: {sign}{_money(abs(accrual.one_time_change))}\n"
                f"New cash: {_money(accrual.cash)}"
            )
        message = (
            "Cash recompute finished\n"
            f"Old cash: {_money(accrual.old_cash)}\n"
            f"New cash: {_money(accrual.cash)}"
        )
        if accrual.months_crossed > 0:
            message += (
                f"\nMonths crossed: {accrual.months_crossed}"
                f"\nFixed cost: {_money(accrual.fixed_cost)}/month"
                f"\nMargin total: {_money(accrual.margin_total)}/month"
            )
        return message

    async def save_entry(
        self, name: str, sales: Any, price: Any, cost_ratio: Any = None
    ) -> Notice:
        """Add or replace an entry on the latest snapshot."""
        title = "Save entry"
        async with self._guard():
            try:
                latest = self._fetch(LATEST)
                if latest is None:
                    return Notice("error", title, "No snapshot to edit")
                updated = upsert_entry(
                    latest, name, sales, price, cost_ratio, self.config.layout
                )
                await self._persist(updated, LATEST)
            except EntryValidationError as exc:
                return Notice("warning", title, str(exc))
            except StoreError as exc:
                logger.error("Saving entry %r failed: %s", name, exc)
                return Notice("error", title, f"Save failed: {exc}")
            except Exception as exc:
                logger.exception("Saving entry %r failed", name)
                return Notice("error", title, f"Save failed: {exc}")
        logger.info("Entry %r saved", name)
        return Notice("success", title, f"Entry {name!r} saved")

    async def delete_entry(self, name: str) -> Notice:
        """Remove an entry from the latest snapshot."""
        title = "Delete entry"
        async with self._guard():
            try:
                latest = self._fetch(LATEST)
                if latest is None:
                    return Notice("error", title, "No snapshot to edit")
                updated, removed = remove_entry(latest, name, self.config.layout)
                if not removed:
                    return Notice("warning", title, f"Entry {name!r} not found")
                await self._persist(updated, LATEST)
            except StoreError as exc:
                logger.error("Deleting entry %r failed: %s", name, exc)
                return Notice("error", title, f"Delete failed: {exc}")
            except Exception as exc:
                logger.exception("Deleting entry %r failed", name)
                return Notice("error", title, f"Delete failed: {exc}")
        logger.info("Entry %r deleted", name)
        return Notice("success", title, f"Entry {name!r} deleted")
