from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from core.entities.session import Session
from core.entities.user import User


class IdentityError(Exception):
    """Base error raised by identity providers; the message is shown to the user."""


class InvalidCredentialsError(IdentityError):
    pass


class UserAlreadyExistsError(IdentityError):
    pass


class IdentityValidationError(IdentityError):
    pass


class InvalidSessionError(IdentityError):
    pass


class IdentityTransportError(IdentityError):
    pass


class IdentityProvider(ABC):
    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Session:...

    @abstractmethod
    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> User:...

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:...

    @abstractmethod
    async def get_user(self, access_token: str) -> Optional[User]:...

    @abstractmethod
    async def update_user(self, access_token: str, metadata: Dict[str, Any]) -> User:...

    @abstractmethod
    async def admin_get_user_by_id(self, user_id: str) -> Optional[User]:...
