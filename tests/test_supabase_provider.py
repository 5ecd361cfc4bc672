"""
Tests for the Supabase (GoTrue) identity adapter against a mocked auth server
"""
import json

import httpx
import pytest

from core.services.identity_provider import (
    InvalidCredentialsError, UserAlreadyExistsError, IdentityTransportError, IdentityError,
)
from core.use_cases.admin_use_cases import AdminAccessDenied, require_admin
from infrastructure.identity.supabase_provider import SupabaseIdentityProvider, user_from_payload

USER = {
    "id": "0b5f6c1e-0000-4000-8000-000000000001",
    "email": "ana@example.com",
    "user_metadata": {"full_name": "Ana", "phone": "+1555"},
    "app_metadata": {"provider": "email", "role": "admin"},
    "created_at": "2026-01-01T00:00:00Z",
}


def _provider(handler, service_role_key="service-key"):
    return SupabaseIdentityProvider(
        url="https://project.supabase.co/",
        anon_key="anon-key",
        service_role_key=service_role_key,
        transport=httpx.MockTransport(handler),
    )


def test_role_comes_from_app_metadata():
    user = user_from_payload(USER)
    assert user.is_admin
    assert "role" not in user.metadata
    assert user.phone == "+1555"
    assert user_from_payload({"id": "x", "email": "x@y"}).role == "user"


@pytest.mark.asyncio
async def test_sign_in_password_grant():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "access_token": "jwt-token", "token_type": "bearer", "expires_at": 1893456000, "user": USER,
        })

    session = await _provider(handler).sign_in("ana@example.com", "secret123")

    request = seen[0]
    assert request.url.path == "/auth/v1/token"
    assert request.url.params["grant_type"] == "password"
    assert request.headers["apikey"] == "anon-key"
    assert json.loads(request.content) == {"email": "ana@example.com", "password": "secret123"}
    assert session.access_token == "jwt-token"
    assert session.user.id == USER["id"]
    assert session.expires_at.year == 2030


@pytest.mark.asyncio
async def test_sign_in_invalid_credentials():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"})

    with pytest.raises(InvalidCredentialsError, match="Invalid login credentials"):
        await _provider(handler).sign_in("ana@example.com", "nope")


@pytest.mark.asyncio
async def test_sign_up_sends_metadata_and_maps_duplicates():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        if len(bodies) == 1:
            return httpx.Response(200, json=USER)
        return httpx.Response(422, json={"code": 422, "error_code": "user_already_exists", "msg": "User already registered"})

    provider = _provider(handler)
    user = await provider.sign_up("ana@example.com", "secret123", {"full_name": "Ana", "phone": None})
    assert user.email == "ana@example.com"
    assert bodies[0]["data"] == {"full_name": "Ana", "phone": None}

    with pytest.raises(UserAlreadyExistsError):
        await provider.sign_up("ana@example.com", "secret123", {"full_name": "Ana"})


@pytest.mark.asyncio
async def test_get_user_without_session_returns_none():
    def handler(request):
        assert request.headers["Authorization"] == "Bearer stale-token"
        return httpx.Response(401, json={"msg": "invalid JWT"})

    assert await _provider(handler).get_user("stale-token") is None


@pytest.mark.asyncio
async def test_get_user_transport_failure_raises():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(IdentityTransportError):
        await _provider(handler).get_user("token")


@pytest.mark.asyncio
async def test_admin_lookup_uses_service_role_key():
    def handler(request):
        assert request.url.path == f"/auth/v1/admin/users/{USER['id']}"
        assert request.headers["Authorization"] == "Bearer service-key"
        return httpx.Response(200, json=USER)

    user = await _provider(handler).admin_get_user_by_id(USER["id"])
    assert user.email == "ana@example.com"


@pytest.mark.asyncio
async def test_admin_lookup_missing_user_and_missing_key():
    provider = _provider(lambda request: httpx.Response(404, json={"msg": "User not found"}))
    assert await provider.admin_get_user_by_id("ghost") is None

    with pytest.raises(IdentityError):
        await _provider(lambda request: httpx.Response(200, json=USER), service_role_key="").admin_get_user_by_id("x")


@pytest.mark.asyncio
async def test_update_user_and_sign_out():
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        if request.url.path == "/auth/v1/logout":
            return httpx.Response(204)
        return httpx.Response(200, json={**USER, "user_metadata": json.loads(request.content)["data"]})

    provider = _provider(handler)
    user = await provider.update_user("token", {"full_name": "Ana Maria"})
    await provider.sign_out("token")

    assert user.full_name == "Ana Maria"
    assert calls == [("PUT", "/auth/v1/user"), ("POST", "/auth/v1/logout")]


def test_role_in_user_metadata_is_ignored():
    user = user_from_payload({
        "id": "x", "email": "x@example.com",
        "user_metadata": {"full_name": "Bia", "role": "admin"},
        "app_metadata": {"provider": "email"},
    })
    assert user.role == "user"
    assert user.metadata == {"full_name": "Bia"}


@pytest.mark.asyncio
async def test_self_update_cannot_grant_admin():
    def handler(request):
        data = json.loads(request.content)["data"]
        return httpx.Response(200, json={
            "id": "u1", "email": "bia@example.com",
            "user_metadata": {"full_name": "Bia", **data},
            "app_metadata": {"provider": "email"},
        })

    user = await _provider(handler).update_user("user-token", {"role": "admin"})

    assert not user.is_admin
    with pytest.raises(AdminAccessDenied):
        require_admin(user)
