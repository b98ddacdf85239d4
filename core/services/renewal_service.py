"""
Renewal workflow with carried-forward balance.

When a customer renews while still owing on their latest cycle, the unpaid
amount moves onto the new cycle:

    old cycle:  shifted_amount = carried     (shown as "moved to next cycle")
    new cycle:  total_amount   = price + carried
                previous_balance = carried

The ledger itself never looks at prior cycles; this service composes the
public ledger operations to get the behaviour the payment form expects.
"""

import logging
from datetime import date

from core.services.ledger_service import BillingLedger
from core.exceptions import LedgerValidationError
from core.models import BillingCycle
from utils.dates import parse_date

logger = logging.getLogger(__name__)


class RenewalService:
    """Service for renewing customers' billing cycles."""

    def __init__(self, ledger: BillingLedger):
        self.ledger = ledger

    def renew(
        self,
        customer_id: int | str,
        start_date: date | str,
        package_price: int,
    ) -> BillingCycle:
        """
        Open a renewal cycle, carrying any unpaid balance forward.

        Submitting the same renewal twice (same customer, same start date)
        returns the existing renewal instead of opening another.

        Args:
            customer_id: Customer to renew
            start_date: Day 1 of the new cycle
            package_price: Locked-in package price, minor units

        Returns:
            The new (or already existing) renewal cycle

        Raises:
            LedgerValidationError: If date or price is invalid
        """
        try:
            start = parse_date(start_date)
        except (ValueError, TypeError) as e:
            raise LedgerValidationError(f"Invalid renewal date: {e}") from e
        if isinstance(package_price, bool) or not isinstance(package_price, int) or package_price < 0:
            raise LedgerValidationError("Package price must be a non-negative integer")

        active = self.ledger.get_active_cycle(customer_id)

        if active is not None and active.is_renewal and active.cycle_start_date == start:
            logger.info("Renewal for customer %s on %s already exists", customer_id, start)
            return active

        carried = active.amount_pending if active is not None else 0

        cycle = self.ledger.renew_cycle(
            customer_id,
            start,
            package_price + carried,
            metadata={"previous_balance": carried},
        )

        if carried > 0:
            self.ledger.patch_metadata(active.id, shifted_amount=carried)
            logger.info(
                "Carried %s from cycle %s to cycle %s", carried, active.id, cycle.id
            )

        return cycle

    def renew_and_pay(
        self,
        customer_id: int | str,
        start_date: date | str,
        package_price: int,
        amount: int = 0,
        note: str = "",
    ) -> BillingCycle:
        """
        Renew and optionally record a payment dated on the start date.

        An amount of 0 renews with the full balance left pending.
        """
        cycle = self.renew(customer_id, start_date, package_price)
        if amount > 0:
            cycle = self.ledger.add_installment(cycle.id, amount, cycle.cycle_start_date, note)
        return cycle

    def is_early_renewal(self, customer_id: int | str, today: date | None = None) -> bool:
        """True when the latest cycle is still running (payment form warns)."""
        active = self.ledger.get_active_cycle(customer_id)
        if active is None:
            return False
        return not self.ledger.get_cycle_facts(active, today).expired
