# src/auth/tokens.py
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.config import AuthSettings, auth_settings
from src.auth.models import RefreshToken
from src.auth.utils import create_access_token, create_refresh_token, hash_token
from src.logging import get_logger
from src.utils import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    jti: str


class TokenIssuer:
    """Mints access/refresh pairs and records the refresh token's hash."""

    def __init__(self, settings: AuthSettings = auth_settings):
        self.settings = settings

    def mint(self, user_id: int, profile_id: int, jti: str | None = None) -> TokenPair:
        session_id = jti or str(uuid.uuid4())
        claims = {"sub": str(user_id), "profile_id": profile_id, "jti": session_id}
        access = create_access_token(claims)
        # The nonce keeps two refresh tokens minted in the same second distinct
        refresh = create_refresh_token({**claims, "nonce": secrets.token_hex(8)})
        return TokenPair(access_token=access, refresh_token=refresh, jti=session_id)

    async def issue(
        self,
        db: AsyncSession,
        user_id: int,
        profile_id: int,
        jti: str | None = None,
    ) -> TokenPair:
        """Mint a pair and stage its refresh row; the caller owns the commit."""
        pair = self.mint(user_id, profile_id, jti)
        db.add(
            RefreshToken(
                user_id=user_id,
                jti=pair.jti,
                token_hash=hash_token(pair.refresh_token),
                expires_at=utcnow()
                + timedelta(minutes=self.settings.REFRESH_TOKEN_EXPIRE_MINUTES),
                revoked=False,
            )
        )
        await db.flush()
        logger.info(
            "token_pair_issued", user_id=user_id, jti=pair.jti, continued=jti is not None
        )
        return pair
