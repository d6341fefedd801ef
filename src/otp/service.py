# src/otp/service.py
from datetime import timedelta
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.auth.exceptions import InvalidOtp
from src.auth.utils import hash_password, verify_password
from src.config import email_settings
from src.logging import get_logger
from src.otp.models import OtpCode, OtpStatus, OtpType
from src.otp.utils import generate_otp
from src.utils import as_utc, utcnow

logger = get_logger(__name__)


class OtpValidator(Protocol):
    async def generate_and_save(
        self,
        db: AsyncSession,
        email: str,
        otp_type: OtpType,
        user_id: int | None = None,
        affiliate_id: int | None = None,
    ) -> str: ...

    async def verify(
        self, db: AsyncSession, email: str, code: str, otp_type: OtpType
    ) -> OtpCode: ...


class OtpService:
    """Database-backed one-time codes scoped to (email, type)."""

    def __init__(
        self,
        expire_minutes: int = email_settings.OTP_EXPIRE_MINUTES,
        max_attempts: int = email_settings.OTP_MAX_ATTEMPTS,
    ):
        self.expire_minutes = expire_minutes
        self.max_attempts = max_attempts

    async def generate_and_save(
        self,
        db: AsyncSession,
        email: str,
        otp_type: OtpType,
        user_id: int | None = None,
        affiliate_id: int | None = None,
    ) -> str:
        """Stage a fresh code and revoke the previous active ones.

        Nothing is committed here so the code lands in the caller's transaction.
        """
        otp = generate_otp()

        await db.execute(
            update(OtpCode)
            .where(
                OtpCode.email == email,
                OtpCode.type == otp_type,
                OtpCode.status == OtpStatus.ACTIVE,
            )
            .values(status=OtpStatus.REVOKED)
            .execution_options(synchronize_session=False)
        )

        db.add(
            OtpCode(
                email=email,
                user_id=user_id,
                affiliate_id=affiliate_id,
                hashed_code=hash_password(otp),
                type=otp_type,
                status=OtpStatus.ACTIVE,
                attempts=0,
                max_attempts=self.max_attempts,
                expires_at=utcnow() + timedelta(minutes=self.expire_minutes),
            )
        )
        await db.flush()
        return otp

    async def verify(
        self, db: AsyncSession, email: str, code: str, otp_type: OtpType
    ) -> OtpCode:
        """Consume a code.

        Failed attempts and expiry are committed here so they survive the
        caller's rollback. A successful match only stages USED; the caller
        commits it together with whatever the code unlocks.
        """
        result = await db.execute(
            select(OtpCode)
            .options(selectinload(OtpCode.user))
            .where(
                OtpCode.email == email,
                OtpCode.type == otp_type,
                OtpCode.status == OtpStatus.ACTIVE,
            )
            .order_by(OtpCode.created_at.desc(), OtpCode.id.desc())
        )
        record = result.scalars().first()

        if record is None:
            raise InvalidOtp("OTP not found or already used")

        if utcnow() > as_utc(record.expires_at):
            record.status = OtpStatus.EXPIRED
            await db.commit()
            raise InvalidOtp("The OTP has expired", code="OTP_EXPIRED")

        if record.attempts >= record.max_attempts:
            raise InvalidOtp("Too many failed attempts", code="MAX_ATTEMPTS_EXCEEDED")

        if not verify_password(code, record.hashed_code):
            record.attempts += 1
            record.last_attempt_at = utcnow()
            await db.commit()
            logger.warning(
                "otp_mismatch", email=email, type=otp_type.value, attempts=record.attempts
            )
            raise InvalidOtp("Your OTP is wrong")

        record.status = OtpStatus.USED
        await db.flush()
        return record
