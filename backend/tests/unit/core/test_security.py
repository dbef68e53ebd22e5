"""
Unit Tests for Security Module
Tests for: password hashing, JWT token types, inactivity timeout
"""
import pytest
from datetime import datetime, timedelta
from jose import jwt

from carworld.core.config import settings
from carworld.core.exceptions import AuthenticationError
from carworld.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    create_otp_pending_token,
    create_password_reset_token,
    decode_token,
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    OTP_PENDING_TOKEN,
    PASSWORD_RESET_TOKEN,
)
from carworld.models.user import User, UserRole
from carworld.modules.auth.dependencies import is_inactive


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_hash_password_returns_different_value(self):
        hashed = get_password_hash("testpassword123")

        assert hashed != "testpassword123"
        assert hashed.startswith("$2")

    def test_hash_password_different_each_time(self):
        """Bcrypt generates a new salt per hash"""
        assert get_password_hash("same") != get_password_hash("same")

    def test_verify_password_correct(self):
        hashed = get_password_hash("testpassword123")
        assert verify_password("testpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = get_password_hash("testpassword123")
        assert verify_password("wrongpassword", hashed) is False

    def test_verify_password_malformed_hash(self):
        """A corrupt stored hash fails closed instead of raising"""
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_long_password_truncated_to_72_bytes(self):
        password = "x" * 100
        hashed = get_password_hash(password)
        assert verify_password("x" * 72, hashed) is True


class TestTokens:
    """Test JWT creation and decoding"""

    def test_access_token_round_trip(self):
        token = create_access_token({"sub": "user-1", "role": "Admin"})
        payload = decode_token(token, expected_type=ACCESS_TOKEN)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "Admin"
        assert payload["type"] == ACCESS_TOKEN

    def test_each_token_carries_its_type(self):
        assert decode_token(create_refresh_token({"sub": "u"}))["type"] == REFRESH_TOKEN
        assert decode_token(create_otp_pending_token("u"))["type"] == OTP_PENDING_TOKEN
        assert decode_token(create_password_reset_token("u"))["type"] == PASSWORD_RESET_TOKEN

    def test_wrong_token_type_rejected(self):
        """A refresh token cannot be used as an access token"""
        token = create_refresh_token({"sub": "user-1"})

        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(token, expected_type=ACCESS_TOKEN)

        assert exc_info.value.message == "Invalid token type"
        assert exc_info.value.status_code == 401

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_token_signed_with_other_key_rejected(self):
        token = jwt.encode(
            {"sub": "user-1", "type": ACCESS_TOKEN, "exp": datetime.utcnow() + timedelta(minutes=5)},
            "some-other-secret",
            algorithm=settings.JWT_ALGORITHM,
        )

        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_garbage_token_rejected(self):
        with pytest.raises(AuthenticationError):
            decode_token("not.a.jwt")


class TestInactivityTimeout:
    """Non-admin sessions expire after INACTIVITY_TIMEOUT_MINUTES"""

    def _user(self, role, minutes_idle):
        return User(
            role=role,
            last_activity_at=datetime.utcnow() - timedelta(minutes=minutes_idle),
        )

    def test_active_staff_not_timed_out(self):
        assert is_inactive(self._user(UserRole.SALES_EXECUTIVE, 5)) is False

    def test_idle_staff_timed_out(self):
        idle = settings.INACTIVITY_TIMEOUT_MINUTES + 1
        assert is_inactive(self._user(UserRole.SALES_EXECUTIVE, idle)) is True

    def test_admin_never_times_out(self):
        assert is_inactive(self._user(UserRole.ADMIN, 24 * 60)) is False

    def test_first_request_without_activity(self):
        assert is_inactive(User(role=UserRole.MANAGER, last_activity_at=None)) is False
