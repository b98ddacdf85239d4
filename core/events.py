"""
Domain events for the billing ledger.

Immutable event objects describing what the ledger just did. Services
publish them after persistence succeeds; handlers (notifications, cache
refresh, reporting) react without the ledger knowing who is listening.

Events carry the full cycle snapshot so handlers don't need to re-read the
store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class LedgerEvent:
    """Base class for all ledger domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# CYCLE EVENTS
# =============================================================================


@dataclass(frozen=True)
class CycleEvent(LedgerEvent):
    """Events related to billing cycle lifecycle."""
    cycle: Any = None  # BillingCycle; Any avoids a circular import


@dataclass(frozen=True)
class CycleCreated(CycleEvent):
    """An initial cycle was opened for a new connection."""

    @classmethod
    def create(cls, cycle: Any) -> "CycleCreated":
        return cls(cycle=cycle)


@dataclass(frozen=True)
class CycleRenewed(CycleEvent):
    """A renewal cycle was opened."""

    @classmethod
    def create(cls, cycle: Any) -> "CycleRenewed":
        return cls(cycle=cycle)


@dataclass(frozen=True)
class InstallmentRecorded(CycleEvent):
    """A payment was appended to a cycle."""
    installment: Any = None

    @classmethod
    def create(cls, cycle: Any, installment: Any) -> "InstallmentRecorded":
        return cls(cycle=cycle, installment=installment)


@dataclass(frozen=True)
class CycleCleared(CycleEvent):
    """A cycle's pending balance reached zero through a payment."""

    @classmethod
    def create(cls, cycle: Any) -> "CycleCleared":
        return cls(cycle=cycle)


# =============================================================================
# CUSTOMER EVENTS
# =============================================================================


@dataclass(frozen=True)
class CyclesPurged(LedgerEvent):
    """All cycles of a permanently deleted customer were removed."""
    customer_id: Any = None
    count: int = 0

    @classmethod
    def create(cls, customer_id: Any, count: int) -> "CyclesPurged":
        return cls(customer_id=customer_id, count=count)
