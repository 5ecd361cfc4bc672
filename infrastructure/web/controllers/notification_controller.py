import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from config.settings import settings
from core.services.notification_provider import NotificationProvider, NotificationDispatchError
from core.use_cases.notification_use_cases import (
    send_notification, NotificationConfigError, NotificationValidationError,
)
from infrastructure.web.dependencies import get_notification_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"])


class NotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    email: str
    type: str
    phone: Optional[str] = None

@router.post("/send-notification")
async def send_notification_endpoint(
    payload: NotificationRequest,
    provider: NotificationProvider = Depends(get_notification_provider),
):
    try:
        result = await send_notification(
            provider,
            user_id=payload.user_id,
            email=payload.email,
            type=payload.type,
            phone=payload.phone,
            fallback_phone=settings.DEFAULT_NOTIFICATION_PHONE or None,
            app_name=settings.APP_NAME,
        )
    except NotificationConfigError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    except NotificationValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except NotificationDispatchError as e:
        logger.error("Notification dispatch failed: %s", e)
        return JSONResponse(status_code=500, content={"error": "Error sending notification"})
    except Exception:
        logger.exception("Unexpected failure sending %s notification to user %s", payload.type, payload.user_id)
        return JSONResponse(status_code=500, content={"error": "Error sending notification"})
    return {"success": result.success, "message": result.message}
