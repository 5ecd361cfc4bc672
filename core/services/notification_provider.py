from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, List

CHANNEL_SMS = "sms"
CHANNEL_WHATSAPP = "whatsapp"


class NotificationDispatchError(Exception):
    """The messaging provider rejected a message or could not be reached."""


@dataclass
class MessageReceipt:
    channel: str
    to: str
    message_id: Optional[str] = None
    status: Optional[str] = None


class NotificationProvider(ABC):
    @property
    @abstractmethod
    def is_configured(self) -> bool:...

    @abstractmethod
    def channels(self) -> List[str]:...

    @abstractmethod
    async def send(self, channel: str, to: str, body: str) -> MessageReceipt:...
