"""Identity provider talking to a Supabase (GoTrue) auth server over REST."""
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

import httpx

from core.entities.session import Session
from core.entities.user import User, ROLE_ADMIN, ROLE_USER
from core.services.identity_provider import (
    IdentityProvider, IdentityError, InvalidCredentialsError, UserAlreadyExistsError,
    IdentityValidationError, InvalidSessionError, IdentityTransportError,
)

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("msg") or body.get("error_description") or body.get("message") \
            or body.get("error") or response.text
    return response.text


def _error_code(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("error_code") or body.get("error") or "")
    return ""


def user_from_payload(payload: Dict[str, Any]) -> User:
    metadata = dict(payload.get("user_metadata") or {})
    # user_metadata is writable by the user, app_metadata only by the service role
    metadata.pop("role", None)
    app_metadata = payload.get("app_metadata") or {}
    role = ROLE_ADMIN if app_metadata.get("role") == ROLE_ADMIN else ROLE_USER
    return User(
        id=str(payload["id"]),
        email=payload.get("email") or "",
        role=role,
        metadata=metadata,
        created_at=payload.get("created_at"),
    )


class SupabaseIdentityProvider(IdentityProvider):
    def __init__(self, url: str, anon_key: str, service_role_key: str = "",
                 timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self, bearer: Optional[str] = None, key: Optional[str] = None) -> Dict[str, str]:
        key = key or self.anon_key
        return {"apikey": key, "Authorization": f"Bearer {bearer or key}"}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(base_url=self.url, timeout=self.timeout, transport=self.transport) as client:
                return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Identity provider request %s %s failed: %s", method, path, e)
            raise IdentityTransportError("Identity provider unavailable") from e

    async def sign_in(self, email: str, password: str) -> Session:
        response = await self._request(
            "POST", "/auth/v1/token", params={"grant_type": "password"},
            json={"email": email, "password": password}, headers=self._headers(),
        )
        if response.status_code in (400, 401):
            raise InvalidCredentialsError(_error_message(response))
        if response.status_code >= 300:
            raise IdentityError(_error_message(response))
        body = response.json()
        expires_at = None
        if body.get("expires_at"):
            expires_at = datetime.fromtimestamp(int(body["expires_at"]), tz=timezone.utc)
        return Session(
            access_token=body["access_token"],
            user=user_from_payload(body["user"]),
            expires_at=expires_at,
            token_type=body.get("token_type", "bearer"),
        )

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> User:
        response = await self._request(
            "POST", "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata}, headers=self._headers(),
        )
        if response.status_code >= 300:
            message = _error_message(response)
            if _error_code(response) in ("user_already_exists", "email_exists") or "already registered" in message:
                raise UserAlreadyExistsError(message)
            raise IdentityValidationError(message)
        body = response.json()
        # autoconfirm projects answer with a session wrapping the user
        return user_from_payload(body.get("user") or body)

    async def sign_out(self, access_token: str) -> None:
        response = await self._request("POST", "/auth/v1/logout", headers=self._headers(bearer=access_token))
        if response.status_code in (401, 403):
            raise InvalidSessionError(_error_message(response))
        if response.status_code >= 300:
            raise IdentityError(_error_message(response))

    async def get_user(self, access_token: str) -> Optional[User]:
        response = await self._request("GET", "/auth/v1/user", headers=self._headers(bearer=access_token))
        if response.status_code in (401, 403, 404):
            return None
        if response.status_code >= 300:
            raise IdentityTransportError(_error_message(response))
        return user_from_payload(response.json())

    async def update_user(self, access_token: str, metadata: Dict[str, Any]) -> User:
        response = await self._request(
            "PUT", "/auth/v1/user", json={"data": metadata}, headers=self._headers(bearer=access_token),
        )
        if response.status_code in (401, 403):
            raise InvalidSessionError(_error_message(response))
        if response.status_code >= 300:
            raise IdentityValidationError(_error_message(response))
        return user_from_payload(response.json())

    async def admin_get_user_by_id(self, user_id: str) -> Optional[User]:
        if not self.service_role_key:
            raise IdentityError("Service role key is not configured")
        response = await self._request(
            "GET", f"/auth/v1/admin/users/{user_id}", headers=self._headers(key=self.service_role_key),
        )
        if response.status_code == 404:
            return None
        if response.status_code >= 300:
            raise IdentityError(_error_message(response))
        return user_from_payload(response.json())
