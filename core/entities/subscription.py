from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

PLAN_MONTHLY = "monthly"
PLAN_YEARLY = "yearly"
PLAN_TYPES = (PLAN_MONTHLY, PLAN_YEARLY)

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_EXPIRED = "expired"
STATUS_PENDING = "pending"
STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_EXPIRED, STATUS_PENDING)


@dataclass
class Subscription:
    id: Optional[int]
    user_id: str
    plan_type: str          # "monthly" | "yearly"
    status: str             # "active" | "inactive" | "expired" | "pending"
    payment_date: Optional[datetime]
    expiry_date: datetime
    amount: Decimal
    created_at: datetime
    updated_at: datetime

    def is_usable(self, now: datetime) -> bool:
        return self.status == STATUS_ACTIVE and self.expiry_date > now


CHECK_ACTIVE = "active"
CHECK_INACTIVE = "inactive"
CHECK_UNKNOWN = "unknown"


@dataclass
class SubscriptionCheck:
    """Outcome of a status lookup.

    ``unknown`` means the store could not be read, so callers decide
    themselves whether that grants or denies access.
    """
    state: str              # "active" | "inactive" | "unknown"
    subscription: Optional[Subscription] = None
    error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.state == CHECK_ACTIVE

    @property
    def is_unknown(self) -> bool:
        return self.state == CHECK_UNKNOWN
