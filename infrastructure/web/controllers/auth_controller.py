from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, EmailStr, Field

from core.entities.session import Session
from core.entities.user import User
from core.services.identity_provider import IdentityProvider, IdentityError, InvalidCredentialsError
from core.use_cases.auth_use_cases import Notifier, login, signup, logout, update_user_profile
from infrastructure.web.dependencies import (
    get_identity_provider, get_notifier, get_session, identity_http_error,
)


router = APIRouter(prefix="/auth", tags=["auth"])

basic_security = HTTPBasic()


class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str = Field(..., min_length=1)
    phone: Optional[str] = None

class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None

class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    is_admin: bool
    full_name: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[datetime] = None


def to_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        role=user.role,
        is_admin=user.is_admin,
        full_name=user.full_name,
        phone=user.phone,
        created_at=user.created_at,
    )

@router.post("/signup", response_model=UserResponse, status_code=201)
async def register(
    payload: SignupRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        user = await signup(
            identity,
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
            phone=payload.phone,
            notifier=notifier,
        )
    except IdentityError as e:
        raise identity_http_error(e)
    return to_user_response(user)

@router.post("/login", response_model=TokenResponse)
async def sign_in(
    credentials: HTTPBasicCredentials = Depends(basic_security),
    identity: IdentityProvider = Depends(get_identity_provider),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        session = await login(identity, credentials.username, credentials.password, notifier=notifier)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e) or "Incorrect email or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    except IdentityError as e:
        raise identity_http_error(e)
    return TokenResponse(
        access_token=session.access_token,
        token_type=session.token_type,
        expires_at=session.expires_at,
    )

@router.post("/logout", status_code=204)
async def sign_out(
    session: Session = Depends(get_session),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        await logout(identity, session)
    except IdentityError as e:
        raise identity_http_error(e)
    return Response(status_code=204)

@router.get("/me", response_model=UserResponse)
def get_profile(session: Session = Depends(get_session)):
    return to_user_response(session.user)

@router.patch("/me", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    session: Session = Depends(get_session),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        user = await update_user_profile(identity, session, full_name=payload.full_name, phone=payload.phone)
    except IdentityError as e:
        raise identity_http_error(e)
    return to_user_response(user)
