"""Tests for authentication endpoints."""

import asyncio
from unittest.mock import AsyncMock, patch

from fastapi import FastAPI
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from myfitlog.core.security import verify_password
from myfitlog.models.user import User
from tests.fakes import FakeBackend


class TestSignup:
    """Tests for account creation."""

    async def test_signup_success(self, client: AsyncClient, db_session: AsyncSession):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "new@example.com",
                "password": "secret123",
                "display_name": "New User",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["user"]["email"] == "new@example.com"

        result = await db_session.execute(select(User).where(User.email == "new@example.com"))
        user = result.scalar_one()
        assert user.display_name == "New User"
        assert verify_password("secret123", user.password_hash)

    async def test_signup_duplicate_email(self, client: AsyncClient, test_user: User):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "test@example.com",
                "password": "secret123",
                "display_name": "Someone Else",
            },
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Email already registered"

    async def test_signup_race_on_commit(self, client: AsyncClient, db_session: AsyncSession):
        """A unique-constraint failure at commit is reported as a duplicate."""
        duplicate = IntegrityError(
            "INSERT INTO users",
            {},
            Exception("UNIQUE constraint failed: users.email"),
        )
        with patch.object(db_session, "commit", AsyncMock(side_effect=duplicate)):
            response = await client.post(
                "/api/v1/auth/signup",
                json={
                    "email": "race@example.com",
                    "password": "secret123",
                    "display_name": "Racer",
                },
            )

        assert response.status_code == 409
        assert response.json()["detail"] == "Email already registered"

    async def test_signup_short_password(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/signup",
            json={"email": "new@example.com", "password": "123", "display_name": "New"},
        )

        assert response.status_code == 422


class TestLocalAuth:
    """Tests for local authentication endpoints."""

    async def test_login_success(self, client: AsyncClient, test_user: User):
        """Test successful login with valid credentials."""
        with patch(
            "myfitlog.api.v1.endpoints.auth.create_session",
            new=AsyncMock(return_value="test_session_id"),
        ) as mock_create:
            response = await client.post(
                "/api/v1/auth/login",
                json={"email": "test@example.com", "password": "testpassword123"},
            )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Login successful"
        assert data["user"]["email"] == "test@example.com"
        assert "session_id=test_session_id" in response.headers["set-cookie"]
        mock_create.assert_awaited_once()
        assert mock_create.await_args.kwargs["user_id"] == test_user.id

    async def test_login_records_last_login(
        self,
        client: AsyncClient,
        test_user: User,
        db_session: AsyncSession,
    ):
        assert test_user.last_login_at is None

        with patch(
            "myfitlog.api.v1.endpoints.auth.create_session",
            new=AsyncMock(return_value="test_session_id"),
        ):
            await client.post(
                "/api/v1/auth/login",
                json={"email": "test@example.com", "password": "testpassword123"},
            )

        await db_session.refresh(test_user)
        assert test_user.last_login_at is not None

    async def test_login_invalid_email(self, client: AsyncClient, test_user: User):
        """Test login with non-existent email."""
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "wrong@example.com", "password": "testpassword123"},
        )

        assert response.status_code == 401
        assert "Incorrect email or password" in response.json()["detail"]

    async def test_login_invalid_password(self, client: AsyncClient, test_user: User):
        """Test login with wrong password."""
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "wrongpassword"},
        )

        assert response.status_code == 401
        assert "Incorrect email or password" in response.json()["detail"]

    async def test_get_me_authenticated(self, auth_client: AsyncClient, test_user: User):
        """Test getting current user when authenticated."""
        response = await auth_client.get("/api/v1/auth/me")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == test_user.id
        assert data["email"] == "test@example.com"
        assert data["display_name"] == "Test User"

    async def test_get_me_unauthenticated(self, client: AsyncClient):
        """Test getting current user when not authenticated."""
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert "Not authenticated" in response.json()["detail"]

    async def test_logout(self, auth_client: AsyncClient, test_user: User):
        """Test logout endpoint."""
        with patch(
            "myfitlog.api.v1.endpoints.auth.delete_session",
            new=AsyncMock(return_value=True),
        ) as mock_delete:
            response = await auth_client.post("/api/v1/auth/logout")

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"
        mock_delete.assert_awaited_once_with(f"test_session_{test_user.id}")

    async def test_logout_without_session(self, client: AsyncClient):
        with patch(
            "myfitlog.api.v1.endpoints.auth.delete_session",
            new=AsyncMock(),
        ) as mock_delete:
            response = await client.post("/api/v1/auth/logout")

        assert response.status_code == 200
        mock_delete.assert_not_awaited()


class TestSessionStoreFailures:
    """Login and logout when Redis cannot be reached."""

    async def test_login_store_down(self, client: AsyncClient, test_user: User):
        with patch(
            "myfitlog.api.v1.endpoints.auth.create_session",
            new=AsyncMock(side_effect=RedisConnectionError("redis down")),
        ):
            response = await client.post(
                "/api/v1/auth/login",
                json={"email": "test@example.com", "password": "testpassword123"},
            )

        assert response.status_code == 503
        assert response.json()["detail"] == "Failed to sign in"
        assert "set-cookie" not in response.headers

    async def test_logout_store_down_clears_cookie(self, auth_client: AsyncClient):
        with patch(
            "myfitlog.api.v1.endpoints.auth.delete_session",
            new=AsyncMock(side_effect=RedisConnectionError("redis down")),
        ):
            response = await auth_client.post("/api/v1/auth/logout")

        assert response.status_code == 503
        assert response.json()["detail"] == "Failed to sign out"
        assert "session_id=" in response.headers["set-cookie"]
        assert "Max-Age=0" in response.headers["set-cookie"]


class TestLogoutStopwatch:
    async def test_logout_stops_running_stopwatch(
        self,
        app: FastAPI,
        fake_client: AsyncClient,
        fake_backend: FakeBackend,
    ):
        await fake_client.post("/api/v1/stopwatch/start")
        stopwatch = app.state.stopwatches.get(fake_backend.context.user_id)
        assert stopwatch.ticking

        with patch(
            "myfitlog.api.v1.endpoints.auth.delete_session",
            new=AsyncMock(return_value=True),
        ):
            response = await fake_client.post("/api/v1/auth/logout")

        assert response.status_code == 200
        assert not stopwatch.ticking
        assert len(app.state.stopwatches) == 0

        stopped_at = stopwatch.timer.elapsed_ms
        await asyncio.sleep(0.05)
        assert stopwatch.timer.elapsed_ms == stopped_at

    async def test_logout_with_stale_session(
        self,
        fake_client: AsyncClient,
        fake_backend: FakeBackend,
    ):
        fake_client.cookies.clear()
        fake_client.cookies.set("session_id", "expired")

        with patch(
            "myfitlog.api.v1.endpoints.auth.delete_session",
            new=AsyncMock(return_value=False),
        ) as mock_delete:
            response = await fake_client.post("/api/v1/auth/logout")

        assert response.status_code == 200
        mock_delete.assert_awaited_once_with("expired")
