import logging
from typing import Optional, List

import httpx

from core.services.notification_provider import (
    NotificationProvider, MessageReceipt, NotificationDispatchError, CHANNEL_SMS, CHANNEL_WHATSAPP,
)

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def whatsapp_address(number: str) -> str:
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


class TwilioNotificationProvider(NotificationProvider):
    """Sends SMS and WhatsApp messages through the Twilio Messages REST API."""

    def __init__(self, account_sid: str, auth_token: str, sms_from: str = "", whatsapp_from: str = "",
                 api_base: str = "https://api.twilio.com", timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.sms_from = sms_from
        self.whatsapp_from = whatsapp_from
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token)

    @property
    def messages_url(self) -> str:
        return f"{self.api_base}/2010-04-01/Accounts/{self.account_sid}/Messages.json"

    def channels(self) -> List[str]:
        enabled = []
        if self.sms_from:
            enabled.append(CHANNEL_SMS)
        if self.whatsapp_from:
            enabled.append(CHANNEL_WHATSAPP)
        return enabled

    async def send(self, channel: str, to: str, body: str) -> MessageReceipt:
        if channel == CHANNEL_SMS:
            sender = self.sms_from
        elif channel == CHANNEL_WHATSAPP:
            to, sender = whatsapp_address(to), whatsapp_address(self.whatsapp_from)
        else:
            raise ValueError(f"Unsupported channel: {channel}")

        label = "WhatsApp" if channel == CHANNEL_WHATSAPP else "SMS"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.messages_url,
                    data={"To": to, "From": sender, "Body": body},
                    auth=(self.account_sid, self.auth_token),
                )
        except httpx.HTTPError as e:
            raise NotificationDispatchError(f"Error sending {label}: {e}") from e

        if not response.is_success:
            raise NotificationDispatchError(f"Error sending {label}: {response.text}")

        payload = response.json()
        logger.info("Twilio accepted %s message %s", label, payload.get("sid"))
        return MessageReceipt(channel=channel, to=to, message_id=payload.get("sid"), status=payload.get("status"))
