"""Billing dashboard summary model. Amounts in minor units."""

from pydantic import BaseModel, Field


class BillingSummary(BaseModel):
    """Counts and totals over each customer's latest cycle."""

    total_customers: int = 0
    active_count: int = 0
    suspended_count: int = 0
    collected: int = 0              # Paid on latest cycles
    pending_active_amount: int = 0  # Owed on cycles still running
    overdue_amount: int = 0         # Owed on expired cycles
    overdue_count: int = 0
    expiring_count: int = 0         # Running cycles ending within the window
    renewal_count: int = 0          # Expired cycles, paid or not
    total_collected_ever: int = 0   # Every installment on every cycle
    by_display_status: dict[str, int] = Field(default_factory=dict)
