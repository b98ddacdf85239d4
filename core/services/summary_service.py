"""
Dashboard billing summary.

Counts come from cycle facts, not display status, so suspended customers are
still counted as overdue or due for renewal when their cycle says so.
"""

from datetime import date
from typing import Iterable

from core.models import BillingSummary, CustomerRef, CustomerStatus, DisplayStatus
from core.services.ledger_service import BillingLedger


class BillingSummaryService:
    """Aggregates ledger state for the dashboard."""

    def __init__(self, ledger: BillingLedger, expiring_window_days: int = 5):
        self.ledger = ledger
        self.expiring_window_days = expiring_window_days

    def summarize(self, customers: Iterable[CustomerRef], today: date | None = None) -> BillingSummary:
        """
        Summary over the latest cycle of each non-archived customer.

        Args:
            customers: Customers known to the registry
            today: Reference date (defaults to the ledger's today)
        """
        if today is None:
            today = self.ledger.today()

        summary = BillingSummary(
            by_display_status={status.value: 0 for status in DisplayStatus}
        )

        for customer in customers:
            if customer.is_archived:
                continue

            summary.total_customers += 1
            if customer.status == CustomerStatus.SUSPENDED:
                summary.suspended_count += 1
            else:
                summary.active_count += 1

            cycle = self.ledger.get_active_cycle(customer.id)
            display = self.ledger.compute_display_status(customer.status, cycle, today)
            summary.by_display_status[display.value] += 1

            if cycle is None:
                continue

            facts = self.ledger.get_cycle_facts(cycle, today)
            summary.collected += cycle.amount_paid

            if facts.unpaid:
                if facts.expired:
                    summary.overdue_amount += cycle.amount_pending
                    summary.overdue_count += 1
                else:
                    summary.pending_active_amount += cycle.amount_pending

            if facts.expired:
                summary.renewal_count += 1
            elif facts.days_left <= self.expiring_window_days:
                summary.expiring_count += 1

        summary.total_collected_ever = sum(
            installment.amount_paid
            for cycle in self.ledger.list_cycles()
            for installment in cycle.installments
        )

        return summary
