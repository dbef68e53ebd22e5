from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import bcrypt
import secrets

from carworld.core.config import settings
from carworld.core.exceptions import AuthenticationError

# Token types carried in the "type" claim
ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
OTP_PENDING_TOKEN = "otp_pending"
PASSWORD_RESET_TOKEN = "password_reset"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = plain_password.encode('utf-8')[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def _encode(data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": datetime.utcnow() + expires_delta, "type": token_type})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    return _encode(
        data,
        ACCESS_TOKEN,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(data: Dict[str, Any]) -> str:
    """Create JWT refresh token"""
    return _encode(data, REFRESH_TOKEN, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def create_otp_pending_token(user_id: str) -> str:
    """Short-lived token binding a login attempt to the user awaiting OTP"""
    return _encode(
        {"sub": str(user_id)},
        OTP_PENDING_TOKEN,
        timedelta(minutes=settings.OTP_PENDING_TOKEN_MINUTES),
    )


def create_password_reset_token(user_id: str) -> str:
    """Token handed out after a password_reset OTP is verified"""
    return _encode(
        {"sub": str(user_id)},
        PASSWORD_RESET_TOKEN,
        timedelta(minutes=settings.PASSWORD_RESET_TOKEN_MINUTES),
    )


def decode_token(token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
    """Decode JWT token, optionally checking its type claim"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Could not validate credentials")

    if expected_type and payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")

    return payload


def generate_access_token_secret() -> str:
    """Random URL-safe token for public invoice PDF links"""
    return secrets.token_urlsafe(32)
