import calendar
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, List

from core.entities.subscription import (
    Subscription, SubscriptionCheck, PLAN_MONTHLY, PLAN_YEARLY, PLAN_TYPES, STATUSES,
    STATUS_ACTIVE, CHECK_ACTIVE, CHECK_INACTIVE, CHECK_UNKNOWN,
)
from core.repositories.subscription_repository import SubscriptionRepository, StoreError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def add_months(start: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def compute_expiry(plan_type: str, start: datetime) -> datetime:
    if plan_type == PLAN_MONTHLY:
        return add_months(start, 1)
    if plan_type == PLAN_YEARLY:
        return add_months(start, 12)
    raise ValueError(f"Invalid plan: {plan_type}")


def _validate_plan_and_amount(plan_type: str, amount) -> Decimal:
    if plan_type not in PLAN_TYPES:
        raise ValueError(f"Invalid plan: {plan_type}")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValueError("Amount must be a number")
    if not value.is_finite() or value < 0:
        raise ValueError("Amount must be a non-negative number")
    return value


def get_subscription_status(repo: SubscriptionRepository, user_id: str,
                            now: Optional[datetime] = None) -> SubscriptionCheck:
    now = now or utcnow()
    try:
        sub = repo.get_by_user_id(user_id)
    except StoreError as e:
        logger.error("Subscription lookup failed for user %s: %s", user_id, e)
        return SubscriptionCheck(state=CHECK_UNKNOWN, error=str(e))
    if sub is None:
        return SubscriptionCheck(state=CHECK_INACTIVE)
    state = CHECK_ACTIVE if sub.is_usable(now) else CHECK_INACTIVE
    return SubscriptionCheck(state=state, subscription=sub)


def check_subscription_status(repo: SubscriptionRepository, user_id: str,
                              now: Optional[datetime] = None) -> bool:
    # store failures count as inactive
    return get_subscription_status(repo, user_id, now).is_active


def get_user_subscription(repo: SubscriptionRepository, user_id: str) -> Optional[Subscription]:
    try:
        return repo.get_by_user_id(user_id)
    except StoreError as e:
        logger.error("Failed to load subscription for user %s: %s", user_id, e)
        return None


def create_subscription(repo: SubscriptionRepository, user_id: str, plan_type: str, amount,
                        now: Optional[datetime] = None) -> Optional[Subscription]:
    value = _validate_plan_and_amount(plan_type, amount)
    now = now or utcnow()
    try:
        sub = repo.create(
            user_id=user_id,
            plan_type=plan_type,
            status=STATUS_ACTIVE,
            payment_date=now,
            expiry_date=compute_expiry(plan_type, now),
            amount=value,
            now=now,
        )
    except StoreError as e:
        logger.error("Failed to create subscription for user %s: %s", user_id, e)
        return None
    logger.info("Created %s subscription for user %s until %s", plan_type, user_id, sub.expiry_date.isoformat())
    return sub


def update_subscription_status(repo: SubscriptionRepository, user_id: str, status: str,
                               now: Optional[datetime] = None) -> bool:
    if status not in STATUSES:
        raise ValueError(f"Invalid status: {status}")
    try:
        updated = repo.update_status(user_id, status, now or utcnow())
    except StoreError as e:
        logger.error("Failed to update subscription status for user %s: %s", user_id, e)
        return False
    if updated == 0:
        logger.warning("No subscription to update for user %s", user_id)
        return False
    logger.info("Subscription status for user %s set to %s", user_id, status)
    return True


def renew_subscription(repo: SubscriptionRepository, user_id: str, plan_type: str, amount,
                       now: Optional[datetime] = None) -> bool:
    """Restart the subscription from ``now``; the status always becomes active."""
    value = _validate_plan_and_amount(plan_type, amount)
    now = now or utcnow()
    try:
        updated = repo.renew(
            user_id=user_id,
            plan_type=plan_type,
            payment_date=now,
            expiry_date=compute_expiry(plan_type, now),
            amount=value,
            now=now,
        )
    except StoreError as e:
        logger.error("Failed to renew subscription for user %s: %s", user_id, e)
        return False
    if updated == 0:
        logger.warning("No subscription to renew for user %s", user_id)
        return False
    logger.info("Renewed %s subscription for user %s", plan_type, user_id)
    return True


def get_all_subscriptions(repo: SubscriptionRepository) -> List[Subscription]:
    try:
        return repo.list_all()
    except StoreError as e:
        logger.error("Failed to list subscriptions: %s", e)
        return []


def check_expired_subscriptions(repo: SubscriptionRepository, now: Optional[datetime] = None) -> int:
    try:
        flipped = repo.expire_overdue(now or utcnow())
    except StoreError as e:
        logger.error("Expiry sweep failed: %s", e)
        return 0
    if flipped:
        logger.info("Expiry sweep marked %d subscription(s) as expired", flipped)
    return flipped
