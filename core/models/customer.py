"""Customer reference models.

The customer registry owns customer records. The ledger only ever sees an
opaque id plus the manually set account status.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class CustomerStatus(str, Enum):
    """Manually set account status. Billing state is derived separately."""

    ACTIVE = "active"
    SUSPENDED = "suspended"


class CustomerRef(BaseModel):
    """What billing reports need to know about a customer."""

    model_config = ConfigDict(frozen=True)

    id: int | str
    status: CustomerStatus = CustomerStatus.ACTIVE
    is_archived: bool = False
