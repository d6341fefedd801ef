# src/auth/utils.py
import hashlib
from datetime import timedelta

import bcrypt
import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

from src.auth.config import auth_settings
from src.auth.exceptions import InvalidToken, TokenExpired
from src.utils import utcnow

PASSWORD_RESET_PURPOSE = "password-reset"


def hash_password(password: str, rounds: int | None = None) -> str:
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=rounds or auth_settings.BCRYPT_ROUNDS)
    hashed_bytes = bcrypt.hashpw(pwd_bytes, salt)
    return hashed_bytes.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    password_bytes = plain_password.encode("utf-8")
    hashed_password_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(password_bytes, hashed_password_bytes)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _encode(data: dict, secret: str, minutes: int) -> str:
    to_encode = data.copy()
    now = utcnow()
    # Fractional iat so it compares exactly with User.password_changed_at
    to_encode.update({"iat": now.timestamp(), "exp": now + timedelta(minutes=minutes)})
    return jwt.encode(to_encode, secret, algorithm=auth_settings.JWT_ALGORITHM)


def create_access_token(data: dict) -> str:
    return _encode(
        data, auth_settings.JWT_SECRET, auth_settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )


def create_refresh_token(data: dict) -> str:
    return _encode(
        data,
        auth_settings.JWT_REFRESH_SECRET,
        auth_settings.REFRESH_TOKEN_EXPIRE_MINUTES,
    )


def create_reset_token(user_id: int, otp_id: int) -> str:
    return _encode(
        {"sub": str(user_id), "otp_id": otp_id, "purpose": PASSWORD_RESET_PURPOSE},
        auth_settings.JWT_SECRET,
        auth_settings.RESET_TOKEN_EXPIRE_MINUTES,
    )


def _decode(token: str, secret: str) -> dict:
    """
    Decodes a JWT token, raising TokenExpired or InvalidToken on failure.
    """
    try:
        return jwt.decode(token, secret, algorithms=[auth_settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired() from None
    except InvalidTokenError as e:
        raise InvalidToken(f"Could not validate token: {e}") from None


def decode_access_token(token: str) -> dict:
    return _decode(token, auth_settings.JWT_SECRET)


def decode_refresh_token(token: str) -> dict:
    return _decode(token, auth_settings.JWT_REFRESH_SECRET)
