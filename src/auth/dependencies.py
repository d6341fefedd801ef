# src/auth/dependencies.py
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.exceptions import AccountInactive, InvalidToken, MissingToken, UserNotFound
from src.auth.models import User, UserStatus
from src.auth.oauth import GoogleTokenVerifier
from src.auth.service import AuthService
from src.auth.sessions import SessionContext
from src.auth.utils import decode_access_token, decode_refresh_token
from src.database import get_async_session
from src.email.service import AzureEmailSender
from src.logging import get_logger
from src.otp.service import OtpService

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    user: User
    profile_id: int
    jti: str
    token: str

    @property
    def session(self) -> SessionContext:
        return SessionContext(user_id=self.user.id, profile_id=self.profile_id, jti=self.jti)


async def _authenticate(
    credentials: HTTPAuthorizationCredentials | None,
    db: AsyncSession,
    decode: Callable[[str], dict],
) -> AuthenticatedUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise MissingToken()

    payload = decode(credentials.credentials)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidToken("Invalid token: Missing subject") from None

    # Only session tokens carry jti and profile_id; purpose-bound tokens never authenticate
    if "purpose" in payload or not payload.get("jti") or payload.get("profile_id") is None:
        logger.warning("non_session_token_rejected", user_id=user_id)
        raise InvalidToken("Token is not a session token")

    user = await db.get(User, user_id)
    if user is None:
        logger.warning("token_user_missing", user_id=user_id)
        raise UserNotFound("User associated with this token no longer exists")
    if user.status != UserStatus.ACTIVE:
        logger.warning("inactive_user_access", user_id=user_id)
        raise AccountInactive(
            "Your account needs to be activated before you can access this resource"
        )

    return AuthenticatedUser(
        user=user,
        profile_id=payload["profile_id"],
        jti=payload["jti"],
        token=credentials.credentials,
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_async_session),
) -> AuthenticatedUser:
    return await _authenticate(credentials, db, decode_access_token)


async def get_refresh_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_async_session),
) -> AuthenticatedUser:
    return await _authenticate(credentials, db, decode_refresh_token)


@lru_cache
def get_auth_service() -> AuthService:
    return AuthService(OtpService(), AzureEmailSender(), GoogleTokenVerifier())
