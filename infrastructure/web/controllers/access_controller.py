from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.entities.session import Session
from core.entities.subscription import Subscription
from core.repositories.subscription_repository import SubscriptionRepository
from core.use_cases.access_use_cases import AccessGate, OUTCOME_REDIRECT_LOGIN
from core.use_cases.subscription_use_cases import get_user_subscription
from infrastructure.web.dependencies import (
    get_access_gate, get_optional_bearer_token, get_session, get_subscription_repo,
)


router = APIRouter(prefix="", tags=["access"])


class SubscriptionResponse(BaseModel):
    id: int
    user_id: str
    plan_type: str
    status: str
    payment_date: Optional[datetime] = None
    expiry_date: datetime
    amount: Decimal
    created_at: datetime
    updated_at: datetime

class AccessResponse(BaseModel):
    outcome: str            # redirect_login | blocked | active
    user_id: Optional[str] = None
    email: Optional[str] = None
    is_admin: bool = False
    status_unknown: bool = False
    subscription: Optional[SubscriptionResponse] = None
    days_until_expiry: Optional[int] = None
    expiry_warning: bool = False
    support_url: Optional[str] = None


def to_subscription_response(sub: Subscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=sub.id,
        user_id=sub.user_id,
        plan_type=sub.plan_type,
        status=sub.status,
        payment_date=sub.payment_date,
        expiry_date=sub.expiry_date,
        amount=sub.amount,
        created_at=sub.created_at,
        updated_at=sub.updated_at,
    )

@router.get("/access", response_model=AccessResponse)
async def check_access(
    token: Optional[str] = Depends(get_optional_bearer_token),
    gate: AccessGate = Depends(get_access_gate),
):
    decision = await gate.resolve(token)
    if decision.outcome == OUTCOME_REDIRECT_LOGIN:
        body = AccessResponse(outcome=decision.outcome)
        return JSONResponse(status_code=401, content=jsonable_encoder(body))
    return AccessResponse(
        outcome=decision.outcome,
        user_id=decision.user.id,
        email=decision.user.email,
        is_admin=decision.is_admin,
        status_unknown=decision.status_unknown,
        subscription=to_subscription_response(decision.subscription) if decision.subscription else None,
        days_until_expiry=decision.days_until_expiry,
        expiry_warning=decision.expiry_warning,
        support_url=decision.support_url,
    )

@router.get("/subscription", response_model=SubscriptionResponse)
def get_own_subscription(
    session: Session = Depends(get_session),
    repo: SubscriptionRepository = Depends(get_subscription_repo),
):
    sub = get_user_subscription(repo, session.user.id)
    if sub is None:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return to_subscription_response(sub)
