from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Dict, Any
from core.entities.user import User


class UserRepository(ABC):
    @abstractmethod
    def create_user(self, email: str, password_hash: str, role: str = "user",
                    metadata: Optional[Dict[str, Any]] = None) -> User:...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:...

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[User]:...

    @abstractmethod
    def get_password_hash(self, user_id: str) -> Optional[str]:...

    @abstractmethod
    def update_metadata(self, user_id: str, metadata: Dict[str, Any]) -> User:...

    @abstractmethod
    def revoke_token(self, jti: str, expires_at: datetime) -> None:...

    @abstractmethod
    def is_token_revoked(self, jti: str) -> bool:...
