import asyncio
import logging
from typing import Optional, Callable, Awaitable, Any, Set

from core.entities.session import Session
from core.entities.user import User
from core.services.identity_provider import IdentityProvider, IdentityValidationError
from core.use_cases.notification_use_cases import TYPE_LOGIN, TYPE_SIGNUP

logger = logging.getLogger(__name__)

# notifier(user, notification_type, phone)
Notifier = Callable[[User, str, Optional[str]], Awaitable[Any]]

_background_tasks: Set[asyncio.Task] = set()


async def _run_logged(coro: Awaitable[Any], description: str) -> None:
    try:
        await coro
    except Exception:
        logger.exception("Background %s failed", description)


def fire_and_forget(coro: Awaitable[Any], description: str) -> asyncio.Task:
    task = asyncio.create_task(_run_logged(coro, description))
    # the loop only keeps weak references to tasks
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks() -> None:
    """Wait for pending fire-and-forget work (shutdown and tests)."""
    loop = asyncio.get_running_loop()
    pending = [t for t in _background_tasks if t.get_loop() is loop]
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not email:
        raise IdentityValidationError("Email is required")
    return email


async def login(identity: IdentityProvider, email: str, password: str,
                notifier: Optional[Notifier] = None) -> Session:
    session = await identity.sign_in(_normalize_email(email), password)
    logger.info("User %s signed in", session.user.id)
    if notifier is not None:
        fire_and_forget(notifier(session.user, TYPE_LOGIN, session.user.phone), "login notification")
    return session


async def signup(identity: IdentityProvider, email: str, password: str, full_name: str,
                 phone: Optional[str] = None, notifier: Optional[Notifier] = None) -> User:
    if not password:
        raise IdentityValidationError("Password is required")
    metadata = {"full_name": (full_name or "").strip(), "phone": phone}
    user = await identity.sign_up(_normalize_email(email), password, metadata)
    logger.info("Registered user %s", user.id)
    if notifier is not None:
        fire_and_forget(notifier(user, TYPE_SIGNUP, phone), "welcome notification")
    return user


async def logout(identity: IdentityProvider, session: Session) -> None:
    await identity.sign_out(session.access_token)
    logger.info("User %s signed out", session.user.id)


async def get_current_user(identity: IdentityProvider, access_token: Optional[str]) -> Optional[User]:
    if not access_token:
        return None
    return await identity.get_user(access_token)


async def update_user_profile(identity: IdentityProvider, session: Session,
                              full_name: Optional[str] = None, phone: Optional[str] = None) -> User:
    updates = {}
    if full_name is not None:
        updates["full_name"] = full_name.strip()
    if phone is not None:
        updates["phone"] = phone.strip() or None
    if not updates:
        return session.user
    return await identity.update_user(session.access_token, updates)
