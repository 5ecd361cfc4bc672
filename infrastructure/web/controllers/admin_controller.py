from decimal import Decimal
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from config.settings import settings
from core.entities.session import Session
from core.repositories.subscription_repository import SubscriptionRepository
from core.services.identity_provider import IdentityProvider, IdentityError
from core.use_cases.admin_use_cases import (
    AdminSubscriptionRow, AdminOperationError, UserNotFoundError,
    list_subscriptions_with_emails, compute_stats, change_subscription_status, renew,
    create_for_user, run_expiry_sweep,
)
from core.use_cases.access_use_cases import is_expiring_soon
from core.use_cases.subscription_use_cases import utcnow
from infrastructure.web.controllers.access_controller import SubscriptionResponse, to_subscription_response
from infrastructure.web.dependencies import (
    get_admin_session, get_identity_provider, get_subscription_repo, identity_http_error,
)


router = APIRouter(prefix="/admin", tags=["admin"])

PlanType = Literal["monthly", "yearly"]
StatusType = Literal["active", "inactive", "expired", "pending"]


class AdminSubscriptionItem(SubscriptionResponse):
    user_email: str
    expiring_soon: bool = False

class StatsResponse(BaseModel):
    total: int
    active_count: int
    expired_count: int
    expiring_soon: int
    revenue: Decimal

class StatusUpdateRequest(BaseModel):
    status: StatusType

class RenewRequest(BaseModel):
    plan_type: PlanType
    amount: Decimal = Field(..., ge=0)

class CreateSubscriptionRequest(RenewRequest):
    user_id: str

class SweepResponse(BaseModel):
    expired: int


def to_items(rows: List[AdminSubscriptionRow]) -> List[AdminSubscriptionItem]:
    now = utcnow()
    return [
        AdminSubscriptionItem(
            **to_subscription_response(row.subscription).model_dump(),
            user_email=row.user_email,
            expiring_soon=is_expiring_soon(row.subscription.expiry_date, now, settings.EXPIRY_WARNING_DAYS),
        )
        for row in rows
    ]

@router.get("/subscriptions", response_model=List[AdminSubscriptionItem])
async def list_subscriptions(
    _: Session = Depends(get_admin_session),
    identity: IdentityProvider = Depends(get_identity_provider),
    repo: SubscriptionRepository = Depends(get_subscription_repo),
):
    return to_items(await list_subscriptions_with_emails(identity, repo))

@router.get("/stats", response_model=StatsResponse)
async def subscription_stats(
    _: Session = Depends(get_admin_session),
    identity: IdentityProvider = Depends(get_identity_provider),
    repo: SubscriptionRepository = Depends(get_subscription_repo),
):
    rows = await list_subscriptions_with_emails(identity, repo)
    stats = compute_stats(rows, warning_days=settings.EXPIRY_WARNING_DAYS)
    return StatsResponse(
        total=stats.total,
        active_count=stats.active_count,
        expired_count=stats.expired_count,
        expiring_soon=stats.expiring_soon,
        revenue=stats.revenue,
    )

@router.post("/subscriptions", response_model=List[AdminSubscriptionItem], status_code=201)
async def create_subscription_for_user(
    payload: CreateSubscriptionRequest,
    _: Session = Depends(get_admin_session),
    identity: IdentityProvider = Depends(get_identity_provider),
    repo: SubscriptionRepository = Depends(get_subscription_repo),
):
    try:
        rows = await create_for_user(identity, repo, payload.user_id, payload.plan_type, payload.amount)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except IdentityError as e:
        raise identity_http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_items(rows)

@router.post("/subscriptions/expire", response_model=SweepResponse)
def expire_subscriptions(
    _: Session = Depends(get_admin_session),
    repo: SubscriptionRepository = Depends(get_subscription_repo),
):
    return SweepResponse(expired=run_expiry_sweep(repo))

@router.post("/subscriptions/{user_id}/status", response_model=List[AdminSubscriptionItem])
async def update_status(
    user_id: str,
    payload: StatusUpdateRequest,
    _: Session = Depends(get_admin_session),
    identity: IdentityProvider = Depends(get_identity_provider),
    repo: SubscriptionRepository = Depends(get_subscription_repo),
):
    try:
        rows = await change_subscription_status(identity, repo, user_id, payload.status)
    except AdminOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_items(rows)

@router.post("/subscriptions/{user_id}/renew", response_model=List[AdminSubscriptionItem])
async def renew_subscription_for_user(
    user_id: str,
    payload: RenewRequest,
    _: Session = Depends(get_admin_session),
    identity: IdentityProvider = Depends(get_identity_provider),
    repo: SubscriptionRepository = Depends(get_subscription_repo),
):
    try:
        rows = await renew(identity, repo, user_id, payload.plan_type, payload.amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_items(rows)
