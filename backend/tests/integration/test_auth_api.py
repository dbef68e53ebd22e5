"""
Integration Tests for authentication endpoints
"""
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient

from carworld.core.config import settings
from carworld.models.user import UserRole

TEST_PASSWORD = "testpassword123"


class TestHealth:

    @pytest.mark.asyncio
    async def test_root_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient):
        response = await client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_security_headers(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers


class TestLogin:
    """Admin logs in with a password; every other role also needs an OTP"""

    @pytest.mark.asyncio
    async def test_admin_gets_tokens(self, client: AsyncClient, admin_user):
        response = await client.post("/api/v1/auth/login", json={
            "email": admin_user.email,
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["require_otp"] is False
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["role"] == "Admin"
        assert "approve" in data["permissions"]["invoices"]

    @pytest.mark.asyncio
    async def test_wrong_password(self, client: AsyncClient, admin_user):
        response = await client.post("/api/v1/auth/login", json={
            "email": admin_user.email,
            "password": "not-the-password",
        })

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_role_mismatch(self, client: AsyncClient, sales_user):
        response = await client.post("/api/v1/auth/login", json={
            "email": sales_user.email,
            "password": TEST_PASSWORD,
            "selected_role": "Manager",
        })

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_staff_login_requires_otp(self, client: AsyncClient, sales_user):
        response = await client.post("/api/v1/auth/login", json={
            "email": sales_user.email,
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 200
        challenge = response.json()
        assert challenge["require_otp"] is True
        assert challenge["access_token"] is None
        assert challenge["whatsapp_error"] == "WhatsApp credentials not configured"

        response = await client.post("/api/v1/auth/verify-otp", json={
            "otp_token": challenge["otp_token"],
            "otp": challenge["otp"],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["user"]["role"] == "Sales Executive"

    @pytest.mark.asyncio
    async def test_staff_wrong_otp(self, client: AsyncClient, sales_user):
        challenge = (await client.post("/api/v1/auth/login", json={
            "email": sales_user.email,
            "password": TEST_PASSWORD,
        })).json()

        response = await client.post("/api/v1/auth/verify-otp", json={
            "otp_token": challenge["otp_token"],
            "otp": "000000",
        })

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid OTP"

    @pytest.mark.asyncio
    async def test_refresh(self, client: AsyncClient, admin_user):
        tokens = (await client.post("/api/v1/auth/login", json={
            "email": admin_user.email,
            "password": TEST_PASSWORD,
        })).json()

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        assert response.json()["access_token"]

    @pytest.mark.asyncio
    async def test_access_token_cannot_refresh(self, client: AsyncClient, admin_user, admin_auth_headers):
        token = admin_auth_headers["Authorization"].split(" ", 1)[1]

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": token})

        assert response.status_code == 401


class TestCurrentUser:

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, admin_user, admin_auth_headers):
        response = await client.get("/api/v1/auth/me", headers=admin_auth_headers)

        assert response.status_code == 200
        assert response.json()["user"]["email"] == admin_user.email

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_FAILED"

    @pytest.mark.asyncio
    async def test_inactive_user(self, client: AsyncClient, db_session, user_factory, token_headers):
        user = await user_factory(UserRole.MANAGER)
        user.is_active = False
        await db_session.commit()

        response = await client.get("/api/v1/auth/me", headers=token_headers(user))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_idle_session_expires(self, client: AsyncClient, db_session, user_factory, token_headers):
        user = await user_factory(UserRole.MANAGER)
        user.last_activity_at = datetime.utcnow() - timedelta(minutes=settings.INACTIVITY_TIMEOUT_MINUTES + 5)
        await db_session.commit()

        response = await client.get("/api/v1/auth/me", headers=token_headers(user))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INACTIVITY_TIMEOUT"

    @pytest.mark.asyncio
    async def test_admin_never_idles_out(self, client: AsyncClient, db_session, admin_user, admin_auth_headers):
        admin_user.last_activity_at = datetime.utcnow() - timedelta(days=2)
        await db_session.commit()

        response = await client.get("/api/v1/auth/me", headers=admin_auth_headers)

        assert response.status_code == 200


class TestPasswordReset:
    """Forgot password -> OTP -> reset token -> new password"""

    @pytest.mark.asyncio
    async def test_full_reset(self, client: AsyncClient, admin_user):
        sent = await client.post("/api/v1/auth/forgot-password", json={"mobile_number": admin_user.mobile_number})
        assert sent.status_code == 200
        otp = sent.json()["otp"]

        verified = await client.post("/api/v1/auth/verify-reset-otp", json={
            "mobile_number": admin_user.mobile_number,
            "otp": otp,
        })
        assert verified.status_code == 200
        reset_token = verified.json()["reset_token"]

        response = await client.post("/api/v1/auth/reset-password", json={
            "reset_token": reset_token,
            "new_password": "brand-new-pass",
        })
        assert response.status_code == 200

        old = await client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": TEST_PASSWORD})
        new = await client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": "brand-new-pass"})
        assert old.status_code == 401
        assert new.status_code == 200
        assert new.json()["access_token"]

    @pytest.mark.asyncio
    async def test_unknown_mobile(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/forgot-password", json={"mobile_number": "9000000001"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_otp_gives_no_token(self, client: AsyncClient, admin_user):
        await client.post("/api/v1/auth/forgot-password", json={"mobile_number": admin_user.mobile_number})

        response = await client.post("/api/v1/auth/verify-reset-otp", json={
            "mobile_number": admin_user.mobile_number,
            "otp": "000000",
        })

        assert response.status_code == 400
        assert "reset_token" not in response.json()

    @pytest.mark.asyncio
    async def test_access_token_cannot_reset(self, client: AsyncClient, admin_auth_headers):
        token = admin_auth_headers["Authorization"].split(" ", 1)[1]

        response = await client.post("/api/v1/auth/reset-password", json={
            "reset_token": token,
            "new_password": "brand-new-pass",
        })

        assert response.status_code == 401
