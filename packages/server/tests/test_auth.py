"""
Tests for Authentication and Authorization.

Covers:
- Password hashing
- JWT creation, decoding, revocation
- CSRF middleware
- Security headers middleware
- Role-based authorization (require_member, require_inviter, require_admin)
- Auth endpoints (register, login, refresh, logout, current user)
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import jwt as pyjwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import AsyncClient

from taskflow.core.auth import (
    AuthenticatedUser,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    hash_password,
    require_admin,
    require_inviter,
    require_member,
    verify_password,
)
from taskflow.core.errors import AuthorizationError
from taskflow.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware, SECURITY_HEADERS


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "MySecureP@ssw0rd!"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct-password")
        assert not verify_password("wrong-password", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        h1 = hash_password("same")
        h2 = hash_password("same")
        assert h1 != h2
        assert verify_password("same", h1)
        assert verify_password("same", h2)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        uid = uuid.uuid4()
        token, jti = create_jwt(uid)
        payload = decode_jwt(token)
        assert payload["sub"] == str(uid)
        assert payload["jti"] == jti

    def test_expired_jwt_raises(self):
        token, _ = create_jwt(uuid.uuid4(), expires_delta=timedelta(seconds=-1))
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_jwt(token)

    def test_tampered_jwt_raises(self):
        token, _ = create_jwt(uuid.uuid4())
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with pytest.raises(pyjwt.InvalidSignatureError):
            decode_jwt(tampered)


class TestCSRFToken:
    def test_generates_unique_tokens(self):
        t1 = generate_csrf_token()
        t2 = generate_csrf_token()
        assert t1 != t2
        assert len(t1) > 20


# ---------------------------------------------------------------------------
# Integration Tests: Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


class TestCSRFMiddleware:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(CSRFMiddleware)

        @app.get("/test")
        async def get_test():
            return {"ok": True}

        @app.post("/test")
        async def post_test():
            return {"ok": True}

        return app

    def test_get_passes_without_csrf(self):
        client = TestClient(self._make_app())
        resp = client.get("/test")
        assert resp.status_code == 200

    def test_post_with_bearer_skips_csrf(self):
        client = TestClient(self._make_app(), cookies={"tf_session": "some-jwt"})
        resp = client.post("/test", headers={"Authorization": "Bearer some-jwt"})
        assert resp.status_code == 200

    def test_post_without_session_cookie_passes(self):
        """No session cookie = not a browser request, skip CSRF."""
        client = TestClient(self._make_app())
        resp = client.post("/test")
        assert resp.status_code == 200

    def test_post_with_session_but_no_csrf_fails(self):
        client = TestClient(self._make_app(), cookies={"tf_session": "some-jwt"})
        resp = client.post("/test")
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "CSRF_VALIDATION_FAILED"

    def test_post_with_matching_csrf_passes(self):
        csrf_token = "test-csrf-token"
        client = TestClient(
            self._make_app(),
            cookies={"tf_session": "some-jwt", "tf_csrf": csrf_token},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": csrf_token})
        assert resp.status_code == 200

    def test_post_with_mismatched_csrf_fails(self):
        client = TestClient(
            self._make_app(),
            cookies={"tf_session": "some-jwt", "tf_csrf": "token-a"},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": "token-b"})
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Unit Tests: Role-based auth matrix
# ---------------------------------------------------------------------------

class TestAuthorizationMatrix:
    """
    Verify that role dependencies enforce correct access levels.

    Uses mock AuthenticatedUser objects to test the dependency functions directly.
    """

    def _mock_auth(self, role: str) -> AuthenticatedUser:
        user = MagicMock()
        user.id = uuid.uuid4()
        org = MagicMock()
        org.id = uuid.uuid4()
        membership = MagicMock()
        membership.role = role
        return AuthenticatedUser(user=user, org=org, membership=membership)

    @pytest.mark.asyncio
    async def test_member_allows_all_roles(self):
        for role in ("admin", "team_lead", "member"):
            auth = self._mock_auth(role)
            assert await require_member(auth) == auth

    @pytest.mark.asyncio
    async def test_inviter_allows_team_lead_and_admin(self):
        for role in ("admin", "team_lead"):
            auth = self._mock_auth(role)
            assert await require_inviter(auth) == auth

    @pytest.mark.asyncio
    async def test_inviter_rejects_member(self):
        with pytest.raises(AuthorizationError) as exc_info:
            await require_inviter(self._mock_auth("member"))
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Forbidden"

    @pytest.mark.asyncio
    async def test_admin_allows_admin(self):
        auth = self._mock_auth("admin")
        assert await require_admin(auth) == auth

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["team_lead", "member"])
    async def test_admin_rejects_others(self, role):
        with pytest.raises(AuthorizationError) as exc_info:
            await require_admin(self._mock_auth(role))
        assert exc_info.value.status_code == 403


# ---------------------------------------------------------------------------
# Unit Tests: JWT Revocation (mocked Redis)
# ---------------------------------------------------------------------------

class TestJWTRevocation:
    @pytest.mark.asyncio
    async def test_revoke_and_check(self):
        mock_redis = AsyncMock()
        mock_redis.setex = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=1)

        with patch("taskflow.core.auth.get_redis", return_value=mock_redis):
            from taskflow.core.auth import is_jwt_revoked, revoke_jwt

            await revoke_jwt("test-jti-123")
            mock_redis.setex.assert_called_once_with("jwt:revoked:test-jti-123", 86400, "1")

            assert await is_jwt_revoked("test-jti-123") is True

    @pytest.mark.asyncio
    async def test_non_revoked_jwt(self):
        mock_redis = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=0)

        with patch("taskflow.core.auth.get_redis", return_value=mock_redis):
            from taskflow.core.auth import is_jwt_revoked

            assert await is_jwt_revoked("non-existent-jti") is False


# ---------------------------------------------------------------------------
# Integration Tests: Auth Endpoints
# ---------------------------------------------------------------------------

REGISTRATION = {
    "email": "Alice@Example.com",
    "password": "correct-horse-battery",
    "first_name": "Alice",
    "last_name": "Anders",
}


class TestAuthEndpoints:
    @pytest.mark.asyncio
    async def test_register_starts_onboarding(self, client: AsyncClient):
        resp = await client.post("/auth/register", json=REGISTRATION)
        assert resp.status_code == 201
        data = resp.json()
        assert data["user"]["email"] == "alice@example.com"
        assert data["user"]["onboarding_step"] == "plan"
        assert data["user"]["plan"] == "free"
        assert data["accepted_invitations"] == 0
        assert data["access_token"]
        assert "tf_session" in resp.headers.get("set-cookie", "")

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient):
        await client.post("/auth/register", json=REGISTRATION)
        resp = await client.post(
            "/auth/register", json={**REGISTRATION, "email": "alice@example.com"}
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_register_short_password(self, client: AsyncClient):
        resp = await client.post("/auth/register", json={**REGISTRATION, "password": "short"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_login(self, client: AsyncClient):
        await client.post("/auth/register", json=REGISTRATION)
        resp = await client.post(
            "/auth/login",
            json={"email": "alice@example.com", "password": REGISTRATION["password"]},
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Login successful"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient):
        await client.post("/auth/register", json=REGISTRATION)
        resp = await client.post(
            "/auth/login", json={"email": "alice@example.com", "password": "nope-nope-nope"}
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_current_user_requires_token(self, client: AsyncClient):
        resp = await client.get("/auth/user")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "AUTHENTICATION_REQUIRED"

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, client: AsyncClient):
        token = (await client.post("/auth/register", json=REGISTRATION)).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert (await client.get("/auth/user", headers=headers)).status_code == 200

        resp = await client.post("/auth/logout", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out"

        assert (await client.get("/auth/user", headers=headers)).status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_rotates_token(self, client: AsyncClient):
        token = (await client.post("/auth/register", json=REGISTRATION)).json()["access_token"]
        old = {"Authorization": f"Bearer {token}"}

        resp = await client.post("/auth/refresh", headers=old)
        assert resp.status_code == 200
        new = {"Authorization": f"Bearer {resp.json()['access_token']}"}

        assert (await client.get("/auth/user", headers=new)).status_code == 200
        assert (await client.get("/auth/user", headers=old)).status_code == 401
