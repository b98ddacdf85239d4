"""Shared test fixtures for the billing ledger test suite."""

from datetime import date

import pytest

from clients.record_store import InMemoryRecordStore
from core.audit import AuditLogger
from core.event_bus import EventBus


# =============================================================================
# CLOCK
# =============================================================================

# Default "today" for ledger tests: after the 2026-02-28 cycle's payments,
# before its 2026-03-29 end date
DEFAULT_TODAY = date(2026, 3, 20)


class FixedClock:
    """Callable "today" provider tests can move around."""

    def __init__(self, current: date):
        self.current = current

    def set(self, current: date) -> None:
        self.current = current

    def __call__(self) -> date:
        return self.current


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(DEFAULT_TODAY)


# =============================================================================
# STORE AND SERVICES (fresh per test)
# =============================================================================


@pytest.fixture
def store():
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def audit(store):
    return AuditLogger(store)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def ledger(store, audit, event_bus, clock):
    from core.services.ledger_service import BillingLedger
    return BillingLedger(store, audit, event_bus, clock=clock)


@pytest.fixture
def renewal_service(ledger):
    from core.services.renewal_service import RenewalService
    return RenewalService(ledger)


@pytest.fixture
def summary_service(ledger):
    from core.services.summary_service import BillingSummaryService
    return BillingSummaryService(ledger, expiring_window_days=5)


@pytest.fixture
def published(event_bus):
    """Every event published on the bus, in order."""
    received = []
    for name in (
        "CycleCreated", "CycleRenewed", "InstallmentRecorded", "CycleCleared", "CyclesPurged",
    ):
        event_bus.subscribe(name, received.append)
    return received
