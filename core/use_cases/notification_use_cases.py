import logging
from dataclasses import dataclass, field
from typing import Optional, List

from core.services.notification_provider import NotificationProvider, MessageReceipt

logger = logging.getLogger(__name__)

TYPE_LOGIN = "login"
TYPE_SIGNUP = "signup"


class NotificationConfigError(Exception):
    pass


class NotificationValidationError(ValueError):
    pass


@dataclass
class NotificationResult:
    success: bool
    message: str
    sent: List[MessageReceipt] = field(default_factory=list)


def build_message(type: str, email: str, app_name: str) -> str:
    if type == TYPE_LOGIN:
        return (
            f"🔐 New login detected on your {app_name} account ({email}). "
            "If this wasn't you, change your password immediately."
        )
    return f"✅ Welcome to {app_name}! Your account was created successfully."


async def send_notification(
    provider: NotificationProvider,
    user_id: str,
    email: str,
    type: str,
    phone: Optional[str] = None,
    fallback_phone: Optional[str] = None,
    app_name: str = "EvoFit AI",
) -> NotificationResult:
    if not provider.is_configured:
        raise NotificationConfigError("Messaging provider credentials are not configured")

    to = phone or fallback_phone
    if not to:
        raise NotificationValidationError("Phone number not found")

    body = build_message(type, email, app_name)
    receipts = []
    # every configured channel gets the message; a failure aborts the rest
    for channel in provider.channels():
        receipts.append(await provider.send(channel, to, body))

    logger.info("Sent %s notification for user %s over %d channel(s)", type, user_id, len(receipts))
    return NotificationResult(success=True, message="Notification sent successfully", sent=receipts)
