"""Billing cycle domain models.

All amounts are integers in the currency's minor unit (PKR 2,500 = 2500 when
the unit is whole rupees). Integer sums keep amount_paid equal to the exact
sum of installments no matter how many small payments arrive.

Stored rows use camelCase keys (customerId, cycleStartDate, ...) so data
files written by the desktop app load unchanged. Python code uses the
snake_case attribute names.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ROW_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="allow",
    frozen=True,
)


class CycleStatus(str, Enum):
    """Persisted settlement state of one cycle."""

    PENDING = "pending"
    CLEAR = "clear"


class DisplayStatus(str, Enum):
    """Badge shown to staff. Recomputed on every read, never stored."""

    SUSPENDED = "suspended"  # Operator suspended the account
    PENDING = "pending"      # Mid-cycle with a balance, or no cycle yet
    EXPIRED = "expired"      # Cycle ended, balance still owed
    RENEWAL = "renewal"      # Cycle ended, fully paid
    CLEAR = "clear"          # Mid-cycle, fully paid


class InstallmentCreate(BaseModel):
    """Data required to record a payment against a cycle."""

    amount_paid: int = Field(..., gt=0, strict=True)
    date_paid: date
    note: str = Field("", max_length=500)


class Installment(BaseModel):
    """One payment event as stored inside its cycle."""

    model_config = ROW_CONFIG

    id: str
    amount_paid: int
    date_paid: date
    note: str = ""
    created_at: datetime


class BillingCycleCreate(BaseModel):
    """Data required to open a cycle."""

    customer_id: int | str
    start_date: date
    total_amount: int = Field(..., ge=0, strict=True)


class BillingCycle(BaseModel):
    """
    Full billing cycle as stored.

    amount_paid, amount_pending and status are owned by the ledger and only
    change through BillingLedger.add_installment. previous_balance,
    shifted_amount, breakdown and any unknown keys are pass-through metadata.
    """

    model_config = ROW_CONFIG

    id: int
    customer_id: int | str
    cycle_start_date: date
    cycle_end_date: date
    total_amount: int
    amount_paid: int = 0
    amount_pending: int
    status: CycleStatus = CycleStatus.PENDING
    installments: list[Installment] = Field(default_factory=list)
    is_renewal: bool = False
    previous_balance: int | None = None
    shifted_amount: int | None = None
    breakdown: dict[str, Any] | None = None
    created_at: datetime

    def to_row(self) -> dict[str, Any]:
        """JSON-ready row in the persisted (camelCase) shape, without id."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"}, exclude_none=True)

    @property
    def installment_count(self) -> int:
        return len(self.installments)

    @property
    def last_payment_date(self) -> date | None:
        """Latest date_paid among installments (entries may be backdated)."""
        if not self.installments:
            return None
        return max(i.date_paid for i in self.installments)

    @property
    def base_amount(self) -> int:
        """Total without debt carried in from the previous cycle."""
        return self.total_amount - (self.previous_balance or 0)

    @property
    def outstanding(self) -> int:
        """
        Balance still owed on this cycle itself.

        Debt carried into a renewal stays in amount_pending here but is
        counted on the newer cycle, so it is subtracted.
        """
        return max(0, self.amount_pending - (self.shifted_amount or 0))

    @property
    def is_clear(self) -> bool:
        return self.status == CycleStatus.CLEAR


class CycleFacts(BaseModel):
    """
    Billing truth for one cycle, independent of manual suspension.

    Filters and dashboard counts use these so that a suspended customer
    still shows up as expired or owing.
    """

    model_config = ConfigDict(frozen=True)

    expired: bool
    unpaid: bool
    days_left: int | None
