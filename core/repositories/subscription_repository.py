from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from core.entities.subscription import Subscription


class StoreError(Exception):
    """Raised by subscription store adapters when the backing store fails."""


class SubscriptionRepository(ABC):
    @abstractmethod
    def get_by_user_id(self, user_id: str) -> Optional[Subscription]:...

    @abstractmethod
    def create(self, user_id: str, plan_type: str, status: str, payment_date: Optional[datetime],
               expiry_date: datetime, amount: Decimal, now: datetime) -> Subscription:...

    @abstractmethod
    def update_status(self, user_id: str, status: str, now: datetime) -> int:...

    @abstractmethod
    def renew(self, user_id: str, plan_type: str, payment_date: datetime,
              expiry_date: datetime, amount: Decimal, now: datetime) -> int:...

    @abstractmethod
    def list_all(self) -> List[Subscription]:...

    @abstractmethod
    def expire_overdue(self, now: datetime) -> int:...
