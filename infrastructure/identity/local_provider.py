from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Iterable
from uuid import uuid4

from jose import jwt, JWTError
from passlib.context import CryptContext

from core.entities.session import Session
from core.entities.user import User, ROLE_ADMIN, ROLE_USER
from core.repositories.user_repository import UserRepository
from core.services.identity_provider import (
    IdentityProvider, InvalidCredentialsError, UserAlreadyExistsError,
    IdentityValidationError, InvalidSessionError,
)


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


class LocalIdentityProvider(IdentityProvider):
    """Identity provider backed by the local users table and signed JWT access tokens."""

    def __init__(self, repo: UserRepository, secret_key: str, algorithm: str = "HS256",
                 expire_minutes: int = 60, admin_emails: Iterable[str] = ()):
        self.repo = repo
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.admin_emails = {e.strip().lower() for e in admin_emails if e.strip()}

    def create_access_token(self, user: User) -> Session:
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.expire_minutes)
        to_encode = {"sub": user.id, "jti": uuid4().hex, "exp": expire}
        token = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        return Session(access_token=token, user=user, expires_at=expire)

    def _decode(self, access_token: str) -> Optional[Dict[str, Any]]:
        try:
            payload = jwt.decode(access_token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if not payload.get("sub") or not payload.get("jti"):
            return None
        return payload

    async def sign_in(self, email: str, password: str) -> Session:
        user = self.repo.get_by_email(email)
        password_hash = self.repo.get_password_hash(user.id) if user else None
        if not password_hash or not verify_password(password, password_hash):
            raise InvalidCredentialsError("Invalid login credentials")
        return self.create_access_token(user)

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> User:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise IdentityValidationError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
        if self.repo.get_by_email(email) is not None:
            raise UserAlreadyExistsError("User already registered")
        role = ROLE_ADMIN if email in self.admin_emails else ROLE_USER
        try:
            return self.repo.create_user(
                email=email, password_hash=get_password_hash(password), role=role, metadata=metadata,
            )
        except ValueError as e:
            raise UserAlreadyExistsError(str(e))

    async def sign_out(self, access_token: str) -> None:
        payload = self._decode(access_token)
        if payload is None:
            raise InvalidSessionError("Invalid session")
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        self.repo.revoke_token(payload["jti"], expires_at)

    async def get_user(self, access_token: str) -> Optional[User]:
        payload = self._decode(access_token)
        if payload is None or self.repo.is_token_revoked(payload["jti"]):
            return None
        return self.repo.get_by_id(str(payload["sub"]))

    async def update_user(self, access_token: str, metadata: Dict[str, Any]) -> User:
        user = await self.get_user(access_token)
        if user is None:
            raise InvalidSessionError("User not authenticated")
        return self.repo.update_metadata(user.id, metadata)

    async def admin_get_user_by_id(self, user_id: str) -> Optional[User]:
        return self.repo.get_by_id(user_id)
