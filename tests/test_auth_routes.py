"""
HTTP tests for /api/auth, run against the in-memory auth service.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from referral_api.models import TokenKind


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.anyio
async def test_root_endpoint(api_app):
    async with _client(api_app) as client:
        resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Referral API is running"


@pytest.mark.anyio
async def test_register_sets_session_cookie(api_app, registration):
    async with _client(api_app) as client:
        resp = await client.post("/api/auth/register", json=registration)
        assert resp.status_code == 200
        body = resp.json()
        assert body["user"]["username"] == "alice"
        assert "hashed_password" not in body["user"]

        set_cookie = resp.headers["set-cookie"]
        assert set_cookie.startswith("sid=")
        assert "HttpOnly" in set_cookie
        assert "Max-Age=604800" in set_cookie

        me = await client.get("/api/auth/user")
    assert me.status_code == 200
    assert me.json()["email"] == "alice@x.com"


@pytest.mark.anyio
async def test_register_validation_errors(api_app, registration):
    async with _client(api_app) as client:
        resp = await client.post(
            "/api/auth/register",
            json={**registration, "username": "al", "password": "123"},
        )
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "validation_error"
    fields = {e["field"] for e in body["errors"]}
    assert fields == {"username", "password"}


@pytest.mark.anyio
async def test_register_duplicate_username(api_app, registration):
    async with _client(api_app) as client:
        await client.post("/api/auth/register", json=registration)
        resp = await client.post("/api/auth/register", json={**registration, "email": "new@x.com"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "duplicate_username"
    assert resp.json()["message"] == "Username already taken"


@pytest.mark.anyio
async def test_login_lockout_scenario(api_app, registration):
    async with _client(api_app) as client:
        await client.post("/api/auth/register", json=registration)
        await client.post("/api/auth/logout")

        ok = await client.post("/api/auth/login", json={"username": "alice", "password": "secret1"})
        assert ok.status_code == 200
        assert ok.json()["message"] == "Login successful"

        statuses = []
        for _ in range(6):
            resp = await client.post("/api/auth/login", json={"username": "alice", "password": "bad-pass"})
            statuses.append(resp.status_code)

        assert statuses == [401, 401, 401, 401, 423, 423]
        assert resp.json()["error"] == "account_locked"
        assert resp.json()["remaining_minutes"] >= 1

        still_locked = await client.post("/api/auth/login", json={"username": "alice", "password": "secret1"})
    assert still_locked.status_code == 423


@pytest.mark.anyio
async def test_login_unknown_user(api_app):
    async with _client(api_app) as client:
        resp = await client.post("/api/auth/login", json={"username": "ghost", "password": "whatever"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "invalid_credentials", "message": "Invalid credentials"}


@pytest.mark.anyio
async def test_login_requires_fields(api_app):
    async with _client(api_app) as client:
        resp = await client.post("/api/auth/login", json={"username": "alice"})
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_logout_clears_cookie_and_session(api_app, registration):
    async with _client(api_app) as client:
        await client.post("/api/auth/register", json=registration)

        resp = await client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out successfully"

        me = await client.get("/api/auth/user")
    assert me.status_code == 401


@pytest.mark.anyio
async def test_logout_without_session(api_app):
    async with _client(api_app) as client:
        resp = await client.post("/api/auth/logout")
    assert resp.status_code == 200


@pytest.mark.anyio
async def test_status_endpoint(api_app, registration):
    async with _client(api_app) as client:
        anonymous = await client.get("/api/auth/status")
        await client.post("/api/auth/register", json=registration)
        logged_in = await client.get("/api/auth/status")

    assert anonymous.json() == {"authenticated": False, "user": None}
    assert logged_in.json()["authenticated"] is True
    assert logged_in.json()["user"]["username"] == "alice"


@pytest.mark.anyio
async def test_forgot_password_same_response_for_unknown_email(api_app, token_store, registration):
    async with _client(api_app) as client:
        await client.post("/api/auth/register", json=registration)
        known = await client.post("/api/auth/forgot-password", json={"email": "alice@x.com"})
        unknown = await client.post("/api/auth/forgot-password", json={"email": "ghost@x.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(token_store.tokens) == 1


@pytest.mark.anyio
async def test_forgot_password_malformed_email(api_app):
    async with _client(api_app) as client:
        resp = await client.post("/api/auth/forgot-password", json={"email": "not-an-email"})
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_reset_password_flow(api_app, token_store, registration):
    async with _client(api_app) as client:
        registered = await client.post("/api/auth/register", json=registration)
        account_id = registered.json()["user"]["id"]
        await client.post("/api/auth/forgot-password", json={"email": "alice@x.com"})
        token = token_store.for_account(account_id, TokenKind.PASSWORD_RESET.value)[0].token

        reset = await client.post("/api/auth/reset-password", json={"token": token, "password": "newsecret"})
        again = await client.post("/api/auth/reset-password", json={"token": token, "password": "newsecret"})
        login = await client.post("/api/auth/login", json={"username": "alice", "password": "newsecret"})

    assert reset.status_code == 200
    assert reset.json()["message"] == "Password updated successfully!"
    assert again.status_code == 400
    assert again.json()["message"] == "Invalid or expired token"
    assert login.status_code == 200


@pytest.mark.anyio
async def test_reset_password_short_password(api_app):
    async with _client(api_app) as client:
        resp = await client.post("/api/auth/reset-password", json={"token": "abc", "password": "123"})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "password"


@pytest.mark.anyio
async def test_register_password_longer_than_bcrypt_input(api_app, registration):
    async with _client(api_app) as client:
        resp = await client.post("/api/auth/register", json={**registration, "password": "p" * 80})
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"
    assert [e["field"] for e in resp.json()["errors"]] == ["password"]


@pytest.mark.anyio
async def test_reset_password_longer_than_bcrypt_input(api_app, token_store, registration):
    async with _client(api_app) as client:
        registered = await client.post("/api/auth/register", json=registration)
        await client.post("/api/auth/forgot-password", json={"email": "alice@x.com"})
        token = token_store.for_account(registered.json()["user"]["id"], TokenKind.PASSWORD_RESET.value)[0].token

        resp = await client.post("/api/auth/reset-password", json={"token": token, "password": "p" * 80})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "password"


@pytest.mark.anyio
async def test_forgot_password_token_failure_looks_like_unknown_email(api_app, token_store, registration):
    async with _client(api_app) as client:
        await client.post("/api/auth/register", json=registration)
        token_store.fail_with = ConnectionError("connection reset")
        known = await client.post("/api/auth/forgot-password", json={"email": "alice@x.com"})
        unknown = await client.post("/api/auth/forgot-password", json={"email": "ghost@x.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()

class TestVerificationRequired:

    @pytest.fixture
    def auth_service(self, make_auth_service):
        return make_auth_service(require_email_verification=True)

    @pytest.mark.anyio
    async def test_verify_email_updates_session(self, api_app, token_store, registration):
        async with _client(api_app) as client:
            registered = await client.post("/api/auth/register", json=registration)
            assert registered.json()["user"]["email_verified"] is False
            token = next(iter(token_store.tokens))

            resp = await client.post("/api/auth/verify-email", json={"token": token})
            me = await client.get("/api/auth/user")
            again = await client.post("/api/auth/verify-email", json={"token": token})

        assert resp.status_code == 200
        assert me.json()["email_verified"] is True
        assert again.status_code == 400

    @pytest.mark.anyio
    async def test_request_verification(self, api_app, token_store, registration):
        async with _client(api_app) as client:
            await client.post("/api/auth/register", json=registration)
            resp = await client.post("/api/auth/request-verification")
        assert resp.status_code == 200
        assert len(token_store.tokens) == 2

    @pytest.mark.anyio
    async def test_request_verification_requires_session(self, api_app):
        async with _client(api_app) as client:
            resp = await client.post("/api/auth/request-verification")
        assert resp.status_code == 401
        assert resp.json()["error"] == "not_authenticated"


@pytest.mark.anyio
async def test_request_verification_already_verified(api_app, registration):
    async with _client(api_app) as client:
        await client.post("/api/auth/register", json=registration)
        resp = await client.post("/api/auth/request-verification")
    assert resp.status_code == 400
    assert resp.json()["error"] == "already_verified"


@pytest.mark.anyio
async def test_unexpected_error_is_sanitized(api_app, account_store, registration):
    account_store.fail_with = ConnectionError("password=hunter2 host=db")
    async with _client(api_app) as client:
        resp = await client.post("/api/auth/register", json=registration)
    assert resp.status_code == 500
    assert resp.json()["error"] == "internal_error"
    assert "hunter2" not in resp.text


class TestRequireEmailVerified:
    """The guard collaborator routes (bill submissions, payouts) depend on."""

    @pytest.fixture
    def guarded_app(self, make_auth_service):
        from fastapi import Depends, FastAPI

        from referral_api.api.deps import get_auth_service, require_email_verified
        from referral_api.api.routes import auth
        from referral_api.core.error_handler import register_error_handlers

        service = make_auth_service(require_email_verification=True)
        app = FastAPI()
        register_error_handlers(app)
        app.include_router(auth.router, prefix="/api/auth")

        @app.post("/api/submissions")
        async def submit(user=Depends(require_email_verified)):
            return {"user": user.id}

        app.dependency_overrides[get_auth_service] = lambda: service
        return app

    @pytest.mark.anyio
    async def test_anonymous_is_rejected(self, guarded_app):
        async with _client(guarded_app) as client:
            resp = await client.post("/api/submissions")
        assert resp.status_code == 401

    @pytest.mark.anyio
    async def test_unverified_then_verified(self, guarded_app, token_store, registration):
        async with _client(guarded_app) as client:
            registered = await client.post("/api/auth/register", json=registration)
            blocked = await client.post("/api/submissions")

            token = next(iter(token_store.tokens))
            await client.post("/api/auth/verify-email", json={"token": token})
            allowed = await client.post("/api/submissions")

        assert blocked.status_code == 403
        assert blocked.json()["error"] == "email_not_verified"
        assert allowed.status_code == 200
        assert allowed.json() == {"user": registered.json()["user"]["id"]}


class TestHealth:

    @pytest.mark.anyio
    async def test_healthy_when_database_answers(self, api_app, monkeypatch, mock_db):
        from contextlib import asynccontextmanager

        from referral_api import main

        @asynccontextmanager
        async def session():
            yield mock_db

        monkeypatch.setattr(main, "AsyncSessionLocal", session)
        async with _client(api_app) as client:
            resp = await client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["database"] == "connected"
        assert "token_cleanup" in resp.json()

    @pytest.mark.anyio
    async def test_unhealthy_when_database_is_down(self, api_app, monkeypatch):
        from referral_api import main

        def session():
            raise ConnectionError("refused")

        monkeypatch.setattr(main, "AsyncSessionLocal", session)
        async with _client(api_app) as client:
            resp = await client.get("/health")

        assert resp.status_code == 503
        assert resp.json()["status"] == "unhealthy"
        assert resp.json()["database"] == "error: ConnectionError"
