from dataclasses import dataclass, field
from typing import Optional, Dict, Any

ROLE_USER = "user"
ROLE_ADMIN = "admin"


@dataclass
class User:
    id: str
    email: str
    role: str = ROLE_USER   # "user" | "admin"
    metadata: Dict[str, Any] = field(default_factory=dict)  # full_name, phone
    created_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def phone(self) -> Optional[str]:
        return self.metadata.get("phone") or None

    @property
    def full_name(self) -> Optional[str]:
        return self.metadata.get("full_name") or None
