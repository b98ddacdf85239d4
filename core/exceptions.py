"""Typed exceptions for ledger failures."""


class LedgerError(Exception):
    """Base class for billing ledger errors."""


class CycleNotFoundError(LedgerError):
    """Referenced billing cycle does not exist."""

    def __init__(self, cycle_id: int):
        self.cycle_id = cycle_id
        super().__init__(f"Billing cycle {cycle_id} not found")


class LedgerValidationError(LedgerError):
    """
    Input would break a money invariant.

    Raised for non-positive installments, negative totals, future-dated
    payments and patches that touch ledger-owned fields.
    """


class StoreError(LedgerError):
    """
    Persistence backend failed (I/O, serialization, database).

    The underlying exception is chained as __cause__. The ledger never retries.
    """
