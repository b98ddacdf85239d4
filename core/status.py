"""
Billing status derivation.

customer status (active/suspended) is set by an operator and stored on the
customer. Everything else is derived from the latest cycle on every call:

    suspended  operator suspended the account (wins the badge)
    pending    no cycle yet, or cycle running with a balance
    expired    cycle ended with a balance
    renewal    cycle ended fully paid, a new cycle is due
    clear      cycle running, fully paid

A suspended customer can still have an expired, unpaid cycle. The badge says
"suspended", but filters and counts should use get_cycle_facts() so that
customer still appears under expired / balance due.
"""

from datetime import date

from core.models import BillingCycle, CustomerStatus, CycleFacts, DisplayStatus
from utils.dates import days_until, today as local_today


def get_cycle_facts(cycle: BillingCycle | None, today: date | None = None) -> CycleFacts:
    """
    Raw billing facts for one cycle.

    Args:
        cycle: Cycle to inspect, or None when the customer has none
        today: Reference date (defaults to the local date)
    """
    if cycle is None:
        return CycleFacts(expired=False, unpaid=False, days_left=None)

    days = days_until(cycle.cycle_end_date, today if today is not None else local_today())
    return CycleFacts(
        expired=days < 0,
        unpaid=cycle.amount_pending > 0,
        days_left=days,
    )


def compute_display_status(
    customer_status: CustomerStatus | str,
    cycle: BillingCycle | None,
    today: date | None = None,
) -> DisplayStatus:
    """Badge for one customer. Pure: never touches the cycle or the store."""
    if customer_status == CustomerStatus.SUSPENDED:
        return DisplayStatus.SUSPENDED
    if cycle is None:
        return DisplayStatus.PENDING

    facts = get_cycle_facts(cycle, today)

    if facts.expired and facts.unpaid:
        return DisplayStatus.EXPIRED
    if facts.expired:
        return DisplayStatus.RENEWAL
    if facts.unpaid:
        return DisplayStatus.PENDING
    return DisplayStatus.CLEAR
