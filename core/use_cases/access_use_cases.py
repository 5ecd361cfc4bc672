"""Decides what a visitor gets to see: the login page, the paywall or the app."""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.entities.subscription import Subscription
from core.entities.user import User
from core.repositories.subscription_repository import SubscriptionRepository
from core.services.identity_provider import IdentityProvider, IdentityError
from core.use_cases.subscription_use_cases import (
    get_subscription_status, check_expired_subscriptions, utcnow,
)

logger = logging.getLogger(__name__)

STATE_LOADING = "loading"
STATE_BLOCKED = "blocked"
STATE_ACTIVE = "active"
OUTCOME_REDIRECT_LOGIN = "redirect_login"

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class AccessDecision:
    outcome: str                       # "redirect_login" | "blocked" | "active"
    user: Optional[User] = None
    subscription: Optional[Subscription] = None
    is_admin: bool = False
    status_unknown: bool = False
    days_until_expiry: Optional[int] = None
    expiry_warning: bool = False
    support_url: Optional[str] = None


def days_until_expiry(expiry: datetime, now: datetime) -> int:
    return math.ceil((expiry - now).total_seconds() / SECONDS_PER_DAY)


def is_expiring_soon(expiry: datetime, now: datetime, window_days: int = 7) -> bool:
    days = days_until_expiry(expiry, now)
    return 0 < days <= window_days


class AccessGate:
    def __init__(
        self,
        identity: IdentityProvider,
        subscriptions: SubscriptionRepository,
        support_url: Optional[str] = None,
        warning_days: int = 7,
        fail_open: bool = False,
        sweep_on_read: bool = False,
    ):
        self.identity = identity
        self.subscriptions = subscriptions
        self.support_url = support_url
        self.warning_days = warning_days
        self.fail_open = fail_open
        self.sweep_on_read = sweep_on_read
        self.state = STATE_LOADING

    async def resolve_user(self, access_token: Optional[str]) -> Optional[User]:
        if not access_token:
            return None
        try:
            return await self.identity.get_user(access_token)
        except IdentityError as e:
            logger.warning("Could not resolve session: %s", e)
            return None

    async def resolve(self, access_token: Optional[str], now: Optional[datetime] = None) -> AccessDecision:
        user = await self.resolve_user(access_token)
        if user is None:
            return AccessDecision(outcome=OUTCOME_REDIRECT_LOGIN)
        return self.decide(user, now)

    def decide(self, user: User, now: Optional[datetime] = None) -> AccessDecision:
        now = now or utcnow()

        if user.is_admin:
            self.state = STATE_ACTIVE
            return AccessDecision(outcome=STATE_ACTIVE, user=user, is_admin=True)

        if self.sweep_on_read:
            check_expired_subscriptions(self.subscriptions, now)

        check = get_subscription_status(self.subscriptions, user.id, now)
        if check.is_active:
            self.state = STATE_ACTIVE
        elif check.is_unknown and self.fail_open:
            logger.warning("Subscription status unknown for user %s, granting access", user.id)
            self.state = STATE_ACTIVE
        else:
            self.state = STATE_BLOCKED

        decision = AccessDecision(
            outcome=self.state,
            user=user,
            subscription=check.subscription,
            status_unknown=check.is_unknown,
        )
        if self.state == STATE_BLOCKED:
            decision.support_url = self.support_url
        elif check.subscription is not None:
            days = days_until_expiry(check.subscription.expiry_date, now)
            decision.days_until_expiry = days
            decision.expiry_warning = 0 < days <= self.warning_days
        return decision
