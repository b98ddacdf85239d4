"""Core domain models."""

from core.models.billing_cycle import (
    BillingCycle,
    BillingCycleCreate,
    CycleFacts,
    CycleStatus,
    DisplayStatus,
    Installment,
    InstallmentCreate,
)
from core.models.customer import CustomerRef, CustomerStatus
from core.models.summary import BillingSummary

__all__ = [
    # Billing cycle
    "BillingCycle", "BillingCycleCreate", "CycleFacts", "CycleStatus", "DisplayStatus",
    "Installment", "InstallmentCreate",
    # Customer
    "CustomerRef", "CustomerStatus",
    # Summary
    "BillingSummary",
]
