from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.entities.user import User


@dataclass
class Session:
    """Authenticated session resolved once per request and handed to use cases."""
    access_token: str
    user: User
    expires_at: Optional[datetime] = None
    token_type: str = "bearer"
