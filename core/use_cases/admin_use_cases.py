import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from core.entities.subscription import Subscription, STATUS_ACTIVE, STATUS_EXPIRED
from core.entities.user import User
from core.repositories.subscription_repository import SubscriptionRepository
from core.services.identity_provider import IdentityProvider, IdentityError
from core.use_cases.access_use_cases import is_expiring_soon
from core.use_cases.subscription_use_cases import (
    get_all_subscriptions, get_user_subscription, create_subscription,
    update_subscription_status, renew_subscription, check_expired_subscriptions, utcnow,
)

logger = logging.getLogger(__name__)

EMAIL_NOT_FOUND = "Email not found"


class AdminAccessDenied(Exception):
    pass


class AdminOperationError(ValueError):
    pass


class UserNotFoundError(AdminOperationError):
    pass


@dataclass
class AdminSubscriptionRow:
    subscription: Subscription
    user_email: str


@dataclass
class AdminStats:
    total: int
    active_count: int
    expired_count: int
    expiring_soon: int
    revenue: Decimal


def require_admin(user: Optional[User]) -> User:
    if user is None or not user.is_admin:
        raise AdminAccessDenied("Administrator access required")
    return user


async def _resolve_email(identity: IdentityProvider, user_id: str) -> str:
    try:
        owner = await identity.admin_get_user_by_id(user_id)
    except IdentityError as e:
        logger.warning("Email lookup failed for user %s: %s", user_id, e)
        return EMAIL_NOT_FOUND
    return owner.email if owner is not None else EMAIL_NOT_FOUND


async def list_subscriptions_with_emails(identity: IdentityProvider,
                                         repo: SubscriptionRepository) -> List[AdminSubscriptionRow]:
    subs = get_all_subscriptions(repo)
    emails = await asyncio.gather(*(_resolve_email(identity, sub.user_id) for sub in subs))
    return [AdminSubscriptionRow(subscription=sub, user_email=email) for sub, email in zip(subs, emails)]


def compute_stats(rows: List[AdminSubscriptionRow], now: Optional[datetime] = None,
                  warning_days: int = 7) -> AdminStats:
    now = now or utcnow()
    subs = [row.subscription for row in rows]
    active = [s for s in subs if s.status == STATUS_ACTIVE]
    return AdminStats(
        total=len(subs),
        active_count=len(active),
        expired_count=sum(1 for s in subs if s.status == STATUS_EXPIRED),
        expiring_soon=sum(1 for s in active if is_expiring_soon(s.expiry_date, now, warning_days)),
        revenue=sum((s.amount for s in active), Decimal("0")),
    )


async def change_subscription_status(identity: IdentityProvider, repo: SubscriptionRepository,
                                     user_id: str, status: str) -> List[AdminSubscriptionRow]:
    if not update_subscription_status(repo, user_id, status):
        raise AdminOperationError("Failed to update subscription status")
    return await list_subscriptions_with_emails(identity, repo)


async def renew(identity: IdentityProvider, repo: SubscriptionRepository,
                user_id: str, plan_type: str, amount) -> List[AdminSubscriptionRow]:
    if not renew_subscription(repo, user_id, plan_type, amount):
        raise AdminOperationError("Failed to renew subscription")
    return await list_subscriptions_with_emails(identity, repo)


async def create_for_user(identity: IdentityProvider, repo: SubscriptionRepository,
                          user_id: str, plan_type: str, amount) -> List[AdminSubscriptionRow]:
    owner = await identity.admin_get_user_by_id(user_id)
    if owner is None:
        raise UserNotFoundError("User not found")
    if get_user_subscription(repo, user_id) is not None:
        raise AdminOperationError("User already has a subscription, renew it instead")
    if create_subscription(repo, user_id, plan_type, amount) is None:
        raise AdminOperationError("Failed to create subscription")
    return await list_subscriptions_with_emails(identity, repo)


def run_expiry_sweep(repo: SubscriptionRepository, now: Optional[datetime] = None) -> int:
    return check_expired_subscriptions(repo, now)
