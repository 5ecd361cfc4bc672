import logging
import sqlite3
from typing import Optional

from fastapi import Depends, HTTPException, Header, status

from config.settings import settings
from core.entities.session import Session
from core.entities.user import User
from core.services.identity_provider import (
    IdentityProvider, IdentityError, InvalidCredentialsError, UserAlreadyExistsError,
    IdentityValidationError, InvalidSessionError, IdentityTransportError,
)
from core.services.notification_provider import NotificationProvider
from core.use_cases.access_use_cases import AccessGate
from core.use_cases.admin_use_cases import require_admin, AdminAccessDenied
from core.use_cases.auth_use_cases import Notifier
from core.use_cases.notification_use_cases import send_notification, NotificationValidationError
from infrastructure.db.sqlite import connect, SQLiteUserRepository, SQLiteSubscriptionRepository
from infrastructure.identity.local_provider import LocalIdentityProvider
from infrastructure.identity.supabase_provider import SupabaseIdentityProvider
from infrastructure.notifications.twilio_provider import TwilioNotificationProvider

logger = logging.getLogger(__name__)


def get_db():
    conn = connect(settings.DB_PATH)
    try:
        yield conn
    finally:
        conn.close()


def get_user_repo(conn: sqlite3.Connection = Depends(get_db)) -> SQLiteUserRepository:
    return SQLiteUserRepository(conn)


def get_subscription_repo(conn: sqlite3.Connection = Depends(get_db)) -> SQLiteSubscriptionRepository:
    return SQLiteSubscriptionRepository(conn)


def get_identity_provider(repo: SQLiteUserRepository = Depends(get_user_repo)) -> IdentityProvider:
    if settings.IDENTITY_BACKEND == "supabase":
        return SupabaseIdentityProvider(
            url=settings.SUPABASE_URL,
            anon_key=settings.SUPABASE_ANON_KEY,
            service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    return LocalIdentityProvider(
        repo,
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        admin_emails=settings.ADMIN_EMAILS.split(","),
    )


def get_notification_provider() -> NotificationProvider:
    return TwilioNotificationProvider(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        sms_from=settings.TWILIO_PHONE_NUMBER,
        whatsapp_from=settings.TWILIO_WHATSAPP_NUMBER,
        api_base=settings.TWILIO_API_BASE,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


def get_notifier(provider: NotificationProvider = Depends(get_notification_provider)) -> Notifier:
    async def notify(user: User, notification_type: str, phone: Optional[str]) -> None:
        if not provider.is_configured:
            logger.debug("Messaging provider not configured, skipping %s notification", notification_type)
            return
        try:
            await send_notification(
                provider,
                user_id=user.id,
                email=user.email,
                type=notification_type,
                phone=phone,
                fallback_phone=settings.DEFAULT_NOTIFICATION_PHONE or None,
                app_name=settings.APP_NAME,
            )
        except NotificationValidationError as e:
            logger.warning("Skipping %s notification for user %s: %s", notification_type, user.id, e)
    return notify


def identity_http_error(e: IdentityError) -> HTTPException:
    if isinstance(e, (InvalidCredentialsError, InvalidSessionError)):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    if isinstance(e, UserAlreadyExistsError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, IdentityTransportError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    if isinstance(e, IdentityValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e) or "Authentication error")


def get_optional_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1]


def get_bearer_token(token: Optional[str] = Depends(get_optional_bearer_token)) -> str:
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


async def get_session(
    token: str = Depends(get_bearer_token),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Session:
    try:
        user = await identity.get_user(token)
    except IdentityError as e:
        raise identity_http_error(e)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Session(access_token=token, user=user)


async def get_admin_session(session: Session = Depends(get_session)) -> Session:
    try:
        require_admin(session.user)
    except AdminAccessDenied as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return session


def get_access_gate(
    identity: IdentityProvider = Depends(get_identity_provider),
    repo: SQLiteSubscriptionRepository = Depends(get_subscription_repo),
) -> AccessGate:
    return AccessGate(
        identity,
        repo,
        support_url=settings.SUPPORT_CONTACT_URL,
        warning_days=settings.EXPIRY_WARNING_DAYS,
        fail_open=settings.ACCESS_FAIL_OPEN,
        sweep_on_read=settings.EXPIRY_SWEEP_ON_READ,
    )
