# src/auth/sessions.py
from dataclasses import dataclass
from datetime import UTC, datetime

from prometheus_client import Counter
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.auth.exceptions import (
    InvalidOrRevokedToken,
    SessionMismatch,
    TokenInvalidatedByPasswordChange,
    UserNotFound,
)
from src.auth.models import RefreshToken, User
from src.auth.tokens import TokenIssuer, TokenPair
from src.auth.utils import decode_refresh_token, hash_token
from src.exception import AppException
from src.logging import get_logger
from src.tasks import BackgroundTaskRunner
from src.utils import as_utc, utcnow

logger = get_logger(__name__)

ROTATIONS = Counter(
    "refresh_token_rotations_total",
    "Refresh token rotation attempts by outcome",
    ["outcome"],
)


@dataclass(frozen=True)
class SessionContext:
    """Identity the caller authenticated with: user, profile and session id."""

    user_id: int
    profile_id: int
    jti: str


async def find_live_refresh_token(
    db: AsyncSession, raw_token: str, user_id: int
) -> RefreshToken | None:
    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == hash_token(raw_token),
            RefreshToken.user_id == user_id,
            RefreshToken.revoked.is_(False),
            RefreshToken.expires_at > utcnow(),
        )
    )
    return result.scalars().first()


async def revoke_refresh_token(db: AsyncSession, token_id: int) -> bool:
    """Flip one row to revoked; False means another transaction got there first."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.id == token_id, RefreshToken.revoked.is_(False))
        .values(revoked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def prune_refresh_tokens(
    db: AsyncSession, user_id: int, max_active: int
) -> tuple[int, int]:
    """Drop expired rows, then evict the oldest live rows beyond ``max_active``.

    Returns ``(expired_removed, excess_removed)``.
    """
    now = utcnow()
    expired = await db.execute(
        delete(RefreshToken).where(
            RefreshToken.user_id == user_id, RefreshToken.expires_at < now
        )
    )

    result = await db.execute(
        select(RefreshToken.id)
        .where(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked.is_(False),
            RefreshToken.expires_at > now,
        )
        .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
    )
    live_ids = result.scalars().all()

    excess_ids = live_ids[max_active:]
    if excess_ids:
        await db.execute(delete(RefreshToken).where(RefreshToken.id.in_(excess_ids)))
    await db.commit()

    if expired.rowcount:
        logger.info("expired_tokens_removed", user_id=user_id, count=expired.rowcount)
    if excess_ids:
        logger.info(
            "excess_tokens_removed",
            user_id=user_id,
            count=len(excess_ids),
            max_active=max_active,
        )
    return expired.rowcount or 0, len(excess_ids)


async def cleanup_user_tokens(
    session_factory: async_sessionmaker[AsyncSession], user_id: int, max_active: int
) -> None:
    """Background entry point for retention cleanup; never raises."""
    try:
        async with session_factory() as db:
            await prune_refresh_tokens(db, user_id, max_active)
    except Exception as e:
        logger.error("token_cleanup_failed", user_id=user_id, error=str(e))


async def revoke_sessions(db: AsyncSession, user_id: int, jti: str | None = None) -> int:
    stmt = delete(RefreshToken).where(RefreshToken.user_id == user_id)
    if jti:
        stmt = stmt.where(RefreshToken.jti == jti)
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount


class SessionRotator:
    """Exchanges a live refresh token for a new pair within the same session."""

    def __init__(
        self,
        issuer: TokenIssuer,
        tasks: BackgroundTaskRunner,
        session_factory: async_sessionmaker[AsyncSession],
        max_active_tokens: int,
    ):
        self.issuer = issuer
        self.tasks = tasks
        self.session_factory = session_factory
        self.max_active_tokens = max_active_tokens

    async def rotate(
        self, context: SessionContext, raw_token: str, db: AsyncSession
    ) -> TokenPair:
        try:
            pair = await self._rotate(context, raw_token, db)
        except AppException as e:
            ROTATIONS.labels(outcome=e.code).inc()
            raise
        ROTATIONS.labels(outcome="rotated").inc()

        self.tasks.submit(
            cleanup_user_tokens,
            self.session_factory,
            context.user_id,
            self.max_active_tokens,
            name=f"token-cleanup-{context.user_id}",
        )
        return pair

    async def _rotate(
        self, context: SessionContext, raw_token: str, db: AsyncSession
    ) -> TokenPair:
        user = await db.get(User, context.user_id)
        if user is None:
            logger.warning("refresh_user_missing", user_id=context.user_id)
            raise UserNotFound("User for this token not found.")

        payload = decode_refresh_token(raw_token)

        changed_at = as_utc(user.password_changed_at)
        if changed_at is not None:
            issued_at = datetime.fromtimestamp(payload.get("iat", 0), UTC)
            if issued_at < changed_at:
                logger.warning("refresh_after_password_change", user_id=user.id)
                raise TokenInvalidatedByPasswordChange()

        stored = await find_live_refresh_token(db, raw_token, user.id)
        if stored is None:
            logger.warning("refresh_token_not_live", user_id=user.id)
            raise InvalidOrRevokedToken()

        if stored.jti != context.jti:
            logger.warning(
                "refresh_session_mismatch",
                user_id=user.id,
                stored_jti=stored.jti,
                context_jti=context.jti,
            )
            raise SessionMismatch()

        try:
            if not await revoke_refresh_token(db, stored.id):
                # A concurrent rotation already consumed this token
                raise InvalidOrRevokedToken()
            pair = await self.issuer.issue(
                db, context.user_id, context.profile_id, jti=context.jti
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("refresh_token_rotated", user_id=user.id, jti=context.jti)
        return pair
