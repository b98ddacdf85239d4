"""
Billing cycle ledger.

Opens cycles, records installments and answers "what does this customer
owe" questions. The ledger is the only writer of amount_paid,
amount_pending and status; everything else reads snapshots.

Cycles are materialised in memory from the `paymentCycles` table. The
in-memory copy only advances after the store write succeeds, so a failed
write never leaves a half-applied cycle visible to readers.
"""

import logging
import threading
from datetime import date
from typing import Any, Callable, Dict, List
from uuid import uuid4

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from clients.record_store import RecordStore
from core.audit import AuditLogger, AuditAction, compute_changes
from core.event_bus import EventBus
from core.events import CycleCreated, CycleRenewed, InstallmentRecorded, CycleCleared, CyclesPurged
from core.exceptions import CycleNotFoundError, LedgerValidationError, StoreError
from core.models import (
    BillingCycle,
    BillingCycleCreate,
    CustomerStatus,
    CycleFacts,
    CycleStatus,
    DisplayStatus,
    Installment,
    InstallmentCreate,
)
from core.status import get_cycle_facts, compute_display_status
from utils.dates import CYCLE_LENGTH_DAYS, add_days, parse_date, today as local_today
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

CYCLES_TABLE = "paymentCycles"

# Only add_installment / cycle creation may write these
_LEDGER_OWNED_FIELDS = {
    "id", "customer_id", "cycle_start_date", "cycle_end_date",
    "total_amount", "amount_paid", "amount_pending", "status",
    "installments", "is_renewal", "created_at",
}


_FIELD_BY_ALIAS = {to_camel(name): name for name in BillingCycle.model_fields}


def _status_for(amount_pending: int) -> CycleStatus:
    return CycleStatus.CLEAR if amount_pending == 0 else CycleStatus.PENDING


def _normalize_metadata(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map camelCase keys onto field names and reject ledger-owned fields.

    Raises:
        LedgerValidationError: If any key names a ledger-owned field
    """
    normalized = {_FIELD_BY_ALIAS.get(key, key): value for key, value in fields.items()}
    owned = sorted(set(normalized) & _LEDGER_OWNED_FIELDS)
    if owned:
        raise LedgerValidationError(
            f"Fields managed by the ledger cannot be patched: {', '.join(owned)}"
        )
    return normalized


class BillingLedger:
    """
    Ledger operations over one record store.

    Usage:
        ledger = BillingLedger(store, AuditLogger(store), EventBus())
        cycle = ledger.create_initial_cycle(7, "2026-02-28", 2500)
        ledger.add_installment(cycle.id, 1000, "2026-03-01", "partial")
        ledger.compute_display_status("active", ledger.get_active_cycle(7))
    """

    def __init__(
        self,
        store: RecordStore,
        audit: AuditLogger,
        event_bus: EventBus,
        clock: Callable[[], date] | None = None,
    ):
        self.cycles = store.table(CYCLES_TABLE)
        self.audit = audit
        self.event_bus = event_bus
        self._clock = clock or local_today
        self._cache: Dict[int, BillingCycle] = {}
        self._cache_lock = threading.RLock()
        self._cycle_locks: Dict[int, threading.Lock] = {}
        self.load_cycles()

    def today(self) -> date:
        """Reference date for expiry and payment-date checks."""
        return self._clock()

    def _lock_for(self, cycle_id: int) -> threading.Lock:
        """Per-cycle lock around read-modify-write sequences."""
        with self._cache_lock:
            return self._cycle_locks.setdefault(cycle_id, threading.Lock())

    def _remember(self, cycle: BillingCycle) -> None:
        with self._cache_lock:
            self._cache[cycle.id] = cycle

    def _forget(self, cycle_ids: List[int]) -> None:
        with self._cache_lock:
            for cycle_id in cycle_ids:
                self._cache.pop(cycle_id, None)
                self._cycle_locks.pop(cycle_id, None)

    def _record_audit(
        self,
        entity_type: str,
        entity_id: int | str,
        action: AuditAction,
        changes: Dict[str, Any],
    ) -> None:
        """
        Write an audit entry for a mutation that has already committed.

        A failed audit write is logged, not raised. Callers see the operation
        succeed because the cycle change is already persisted.
        """
        try:
            self.audit.log_change(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                changes=changes,
            )
        except StoreError:
            logger.exception(
                "Audit write failed for %s %s (%s)", entity_type, entity_id, action.value
            )

    # -------------------------------------------------------------------------
    # Loading and reads
    # -------------------------------------------------------------------------

    def load_cycles(self) -> int:
        """
        Rebuild the in-memory collection from the store.

        Rows that fail validation are logged and skipped, never rewritten.

        Returns:
            Number of cycles loaded
        """
        loaded: Dict[int, BillingCycle] = {}
        for row in self.cycles.list():
            try:
                cycle = BillingCycle.model_validate(row)
            except ValidationError as e:
                logger.warning("Skipping malformed cycle row %s: %s", row.get("id"), e)
                continue
            loaded[cycle.id] = cycle

        with self._cache_lock:
            self._cache = loaded

        logger.info("Loaded %d billing cycles", len(loaded))
        return len(loaded)

    def get_cycle(self, cycle_id: int) -> BillingCycle | None:
        """Cycle snapshot by id, or None."""
        with self._cache_lock:
            return self._cache.get(cycle_id)

    def list_cycles(self) -> List[BillingCycle]:
        """All cycles, most recent start first."""
        with self._cache_lock:
            cycles = list(self._cache.values())
        return sorted(cycles, key=lambda c: (c.cycle_start_date, c.id), reverse=True)

    def get_cycles_for_customer(self, customer_id: int | str) -> List[BillingCycle]:
        """
        All cycles for a customer, most recent start first.

        Cycles sharing a start date are ordered by id descending.
        """
        return [c for c in self.list_cycles() if c.customer_id == customer_id]

    def get_active_cycle(self, customer_id: int | str) -> BillingCycle | None:
        """
        Latest cycle for a customer, or None if there are none.

        "Active" means most recently started, not unexpired: a customer whose
        only cycle ended last month still gets that cycle back.
        """
        cycles = self.get_cycles_for_customer(customer_id)
        return cycles[0] if cycles else None

    def get_cycle_facts(self, cycle: BillingCycle | None, today: date | None = None) -> CycleFacts:
        """Expired/unpaid facts for a cycle as of today (or the given date)."""
        return get_cycle_facts(cycle, today if today is not None else self.today())

    def compute_display_status(
        self,
        customer_status: CustomerStatus | str,
        cycle: BillingCycle | None,
        today: date | None = None,
    ) -> DisplayStatus:
        """Five-state badge from manual status and cycle facts."""
        return compute_display_status(
            customer_status, cycle, today if today is not None else self.today()
        )

    # -------------------------------------------------------------------------
    # Cycle creation
    # -------------------------------------------------------------------------

    def create_initial_cycle(
        self,
        customer_id: int | str,
        start_date: date | str,
        total_amount: int,
        metadata: Dict[str, Any] | None = None,
    ) -> BillingCycle:
        """
        Open the first cycle for a new connection.

        Args:
            customer_id: Customer reference (opaque to the ledger)
            start_date: Day 1 of the cycle
            total_amount: Amount due for the cycle, minor units, >= 0
            metadata: Optional pass-through fields (breakdown, ...)

        Returns:
            Created cycle. Status is clear only when total_amount is 0.

        Raises:
            LedgerValidationError: If the date or amount is invalid
        """
        return self._open_cycle(customer_id, start_date, total_amount, False, metadata)

    def renew_cycle(
        self,
        customer_id: int | str,
        start_date: date | str,
        total_amount: int,
        metadata: Dict[str, Any] | None = None,
    ) -> BillingCycle:
        """
        Open a renewal cycle.

        Prior cycles are not inspected or modified. Carrying unpaid debt
        forward is the caller's job (see RenewalService): fold it into
        total_amount and record it as previous_balance metadata.
        """
        return self._open_cycle(customer_id, start_date, total_amount, True, metadata)

    def _open_cycle(
        self,
        customer_id: int | str,
        start_date: date | str,
        total_amount: int,
        is_renewal: bool,
        metadata: Dict[str, Any] | None,
    ) -> BillingCycle:
        try:
            data = BillingCycleCreate(
                customer_id=customer_id,
                start_date=parse_date(start_date),
                total_amount=total_amount,
            )
        except (ValueError, TypeError) as e:
            raise LedgerValidationError(f"Invalid billing cycle: {e}") from e

        extra = _normalize_metadata(metadata or {})

        try:
            draft = BillingCycle(
                id=0,
                customer_id=data.customer_id,
                cycle_start_date=data.start_date,
                cycle_end_date=add_days(data.start_date, CYCLE_LENGTH_DAYS),
                total_amount=data.total_amount,
                amount_paid=0,
                amount_pending=data.total_amount,
                status=_status_for(data.total_amount),
                installments=[],
                is_renewal=is_renewal,
                created_at=now_utc(),
                **extra,
            )
        except ValidationError as e:
            raise LedgerValidationError(f"Invalid billing cycle metadata: {e}") from e

        cycle = BillingCycle.model_validate(self.cycles.add(draft.to_row()))
        self._remember(cycle)

        self._record_audit(
            entity_type="billing_cycle",
            entity_id=cycle.id,
            action=AuditAction.CREATE,
            changes={"created": cycle.to_row()}
        )

        logger.info(
            "%s cycle %s for customer %s: %s to %s, total %s",
            "Renewal" if is_renewal else "Initial",
            cycle.id, cycle.customer_id,
            cycle.cycle_start_date, cycle.cycle_end_date, cycle.total_amount,
        )

        event = CycleRenewed.create(cycle=cycle) if is_renewal else CycleCreated.create(cycle=cycle)
        self.event_bus.publish(event)

        return cycle

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def add_installment(
        self,
        cycle_id: int,
        amount_paid: int,
        date_paid: date | str,
        note: str | None = "",
    ) -> BillingCycle:
        """
        Record a payment against a cycle.

        amount_paid is recomputed as the sum of every installment, then
        amount_pending = max(0, total - paid) and status follow from it.
        Over-payment is recorded; pending stays clamped at 0. Not idempotent:
        two identical calls record two payments.

        Args:
            cycle_id: Cycle to pay against
            amount_paid: Payment in minor units, > 0
            date_paid: Payment date, today or earlier (backdating allowed)
            note: Optional free text

        Returns:
            Updated cycle

        Raises:
            CycleNotFoundError: If cycle doesn't exist
            LedgerValidationError: If amount or date is invalid
        """
        try:
            data = InstallmentCreate(
                amount_paid=amount_paid,
                date_paid=parse_date(date_paid),
                note=note or "",
            )
        except (ValueError, TypeError) as e:
            raise LedgerValidationError(f"Invalid installment: {e}") from e

        if data.date_paid > self.today():
            raise LedgerValidationError(
                f"Payment date {data.date_paid.isoformat()} is in the future"
            )

        with self._lock_for(cycle_id):
            row = self.cycles.get(cycle_id)
            if row is None:
                raise CycleNotFoundError(cycle_id)
            current = BillingCycle.model_validate(row)

            installment = Installment(
                id=str(uuid4()),
                amount_paid=data.amount_paid,
                date_paid=data.date_paid,
                note=data.note,
                created_at=now_utc(),
            )
            installments = list(current.installments) + [installment]

            total_paid = sum(i.amount_paid for i in installments)
            amount_pending = max(0, current.total_amount - total_paid)
            status = _status_for(amount_pending)

            updates = {
                "installments": [i.model_dump(mode="json", by_alias=True) for i in installments],
                "amountPaid": total_paid,
                "amountPending": amount_pending,
                "status": status.value,
            }
            if not self.cycles.update(cycle_id, updates):
                raise CycleNotFoundError(cycle_id)

            updated = BillingCycle.model_validate({**row, **updates})
            self._remember(updated)

        self._record_audit(
            entity_type="billing_cycle",
            entity_id=cycle_id,
            action=AuditAction.UPDATE,
            changes={
                **compute_changes(current.to_row(), updated.to_row()),
                "installment_recorded": installment.model_dump(mode="json", by_alias=True),
            }
        )

        self.event_bus.publish(InstallmentRecorded.create(cycle=updated, installment=installment))

        if current.status == CycleStatus.PENDING and status == CycleStatus.CLEAR:
            logger.info("Cycle %s cleared (paid %s of %s)", cycle_id, total_paid, updated.total_amount)
            self.event_bus.publish(CycleCleared.create(cycle=updated))

        return updated

    # -------------------------------------------------------------------------
    # Metadata and deletion
    # -------------------------------------------------------------------------

    def patch_metadata(self, cycle_id: int, **fields: Any) -> BillingCycle:
        """
        Attach non-financial fields to a cycle (breakdown, previous_balance,
        shifted_amount, or any extra key).

        Raises:
            CycleNotFoundError: If cycle doesn't exist
            LedgerValidationError: If a ledger-owned field is included or a
                value has the wrong type
        """
        fields = _normalize_metadata(fields)

        with self._lock_for(cycle_id):
            row = self.cycles.get(cycle_id)
            if row is None:
                raise CycleNotFoundError(cycle_id)
            current = BillingCycle.model_validate(row)

            try:
                patched = BillingCycle.model_validate({**current.model_dump(), **fields})
            except ValidationError as e:
                raise LedgerValidationError(f"Invalid metadata: {e}") from e

            patched_row = patched.to_row()
            keys = {to_camel(k) if k in BillingCycle.model_fields else k for k in fields}
            updates = {k: patched_row.get(k) for k in keys}

            if not self.cycles.update(cycle_id, updates):
                raise CycleNotFoundError(cycle_id)

            updated = BillingCycle.model_validate({**row, **updates})
            self._remember(updated)

        self._record_audit(
            entity_type="billing_cycle",
            entity_id=cycle_id,
            action=AuditAction.UPDATE,
            changes=compute_changes(current.to_row(), updated.to_row())
        )

        return updated

    def delete_cycle(self, cycle_id: int) -> None:
        """
        Permanently delete one cycle.

        Raises:
            CycleNotFoundError: If cycle doesn't exist
        """
        with self._lock_for(cycle_id):
            row = self.cycles.get(cycle_id)
            if row is None or not self.cycles.delete(cycle_id):
                raise CycleNotFoundError(cycle_id)

            self._forget([cycle_id])

        self._record_audit(
            entity_type="billing_cycle",
            entity_id=cycle_id,
            action=AuditAction.DELETE,
            changes={"deleted": {k: v for k, v in row.items() if k != "id"}}
        )

    def delete_cycles_for_customer(self, customer_id: int | str) -> int:
        """
        Remove every cycle of a customer being permanently deleted.

        Returns:
            Number of cycles removed (0 if the customer had none)
        """
        removed = self.cycles.delete_where("customerId", customer_id)

        self._forget([c.id for c in self.get_cycles_for_customer(customer_id)])

        if removed:
            self._record_audit(
                entity_type="customer",
                entity_id=customer_id,
                action=AuditAction.DELETE,
                changes={"cycles_deleted": removed}
            )
            logger.info("Purged %d cycles for customer %s", removed, customer_id)
            self.event_bus.publish(CyclesPurged.create(customer_id=customer_id, count=removed))

        return removed
