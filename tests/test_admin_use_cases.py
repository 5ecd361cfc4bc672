"""
Tests for the admin console operations
"""
import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from core.entities.user import User
from core.use_cases.admin_use_cases import (
    AdminAccessDenied, AdminOperationError, UserNotFoundError, EMAIL_NOT_FOUND,
    require_admin, list_subscriptions_with_emails, compute_stats, change_subscription_status,
    renew, create_for_user, run_expiry_sweep,
)
from core.use_cases.auth_use_cases import signup
from tests.conftest import NOW


def _seed(sub_repo, user_id, status, expiry, amount="99.90", created=NOW):
    return sub_repo.create(
        user_id=user_id, plan_type="monthly", status=status, payment_date=created,
        expiry_date=expiry, amount=Decimal(amount), now=created,
    )


def test_require_admin():
    admin = User(id="a", email="a@x", role="admin")
    assert require_admin(admin) is admin
    with pytest.raises(AdminAccessDenied):
        require_admin(User(id="u", email="u@x"))
    with pytest.raises(AdminAccessDenied):
        require_admin(None)


@pytest.mark.asyncio
async def test_listing_resolves_emails(identity, sub_repo):
    ana = await signup(identity, "ana@example.com", "secret123", "Ana")
    bia = await signup(identity, "bia@example.com", "secret123", "Bia")
    _seed(sub_repo, ana.id, "active", NOW + timedelta(days=5), created=NOW - timedelta(days=1))
    _seed(sub_repo, bia.id, "pending", NOW + timedelta(days=5), created=NOW)
    _seed(sub_repo, "deleted-user", "expired", NOW - timedelta(days=5), created=NOW - timedelta(days=2))

    rows = await list_subscriptions_with_emails(identity, sub_repo)

    assert [r.user_email for r in rows] == ["bia@example.com", "ana@example.com", EMAIL_NOT_FOUND]


@pytest.mark.asyncio
async def test_email_lookups_run_concurrently(sub_repo):
    in_flight = 0
    peak = 0

    class SlowIdentity:
        async def admin_get_user_by_id(self, user_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return User(id=user_id, email=f"{user_id}@example.com")

    for i in range(3):
        _seed(sub_repo, f"u{i}", "active", NOW + timedelta(days=5))

    rows = await list_subscriptions_with_emails(SlowIdentity(), sub_repo)

    assert len(rows) == 3
    assert peak == 3


def test_stats_count_only_active_revenue():
    from core.use_cases.admin_use_cases import AdminSubscriptionRow
    from core.entities.subscription import Subscription

    def row(status, amount, days):
        sub = Subscription(
            id=None, user_id="u", plan_type="monthly", status=status, payment_date=NOW,
            expiry_date=NOW + timedelta(days=days), amount=Decimal(amount), created_at=NOW, updated_at=NOW,
        )
        return AdminSubscriptionRow(subscription=sub, user_email="u@x")

    stats = compute_stats(
        [row("active", "99.90", 3), row("active", "899.00", 200), row("expired", "99.90", -3),
         row("pending", "50.00", 10), row("inactive", "10.00", 10)],
        now=NOW,
    )

    assert stats.total == 5
    assert stats.active_count == 2
    assert stats.expired_count == 1
    assert stats.expiring_soon == 1
    assert stats.revenue == Decimal("998.90")


def test_stats_on_empty_list():
    stats = compute_stats([], now=NOW)
    assert stats.revenue == Decimal("0")
    assert stats.active_count == 0


@pytest.mark.asyncio
async def test_change_status_reloads_list(identity, sub_repo):
    ana = await signup(identity, "ana@example.com", "secret123", "Ana")
    _seed(sub_repo, ana.id, "pending", NOW + timedelta(days=5))

    rows = await change_subscription_status(identity, sub_repo, ana.id, "active")

    assert rows[0].subscription.status == "active"


@pytest.mark.asyncio
async def test_change_status_for_missing_subscription(identity, sub_repo):
    with pytest.raises(AdminOperationError):
        await change_subscription_status(identity, sub_repo, "nobody", "active")


@pytest.mark.asyncio
async def test_renew_reactivates_expired(identity, sub_repo):
    ana = await signup(identity, "ana@example.com", "secret123", "Ana")
    _seed(sub_repo, ana.id, "expired", NOW - timedelta(days=5))

    rows = await renew(identity, sub_repo, ana.id, "yearly", "899.00")

    sub = rows[0].subscription
    assert sub.status == "active"
    assert sub.plan_type == "yearly"
    assert sub.amount == Decimal("899.00")


@pytest.mark.asyncio
async def test_renew_missing_subscription_fails(identity, sub_repo):
    with pytest.raises(AdminOperationError):
        await renew(identity, sub_repo, "nobody", "monthly", "10")


@pytest.mark.asyncio
async def test_create_for_user(identity, sub_repo):
    ana = await signup(identity, "ana@example.com", "secret123", "Ana")

    rows = await create_for_user(identity, sub_repo, ana.id, "monthly", "99.90")

    assert len(rows) == 1
    assert rows[0].user_email == "ana@example.com"
    assert rows[0].subscription.status == "active"

    with pytest.raises(AdminOperationError):
        await create_for_user(identity, sub_repo, ana.id, "monthly", "99.90")


@pytest.mark.asyncio
async def test_create_for_unknown_user(identity, sub_repo):
    with pytest.raises(UserNotFoundError):
        await create_for_user(identity, sub_repo, "ghost", "monthly", "99.90")


def test_run_expiry_sweep(sub_repo):
    _seed(sub_repo, "u1", "active", NOW - timedelta(days=1))
    assert run_expiry_sweep(sub_repo, now=NOW) == 1
