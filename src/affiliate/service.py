# src/affiliate/service.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.affiliate.models import Affiliate, AffiliateStatus
from src.auth.models import User, UserStatus, UserType
from src.exception import ValidationError
from src.logging import get_logger
from src.profile.models import Club, Player

logger = get_logger(__name__)

JOIN_PURPOSE = "To join"


async def find_club_by_ref_code(db: AsyncSession, ref_code: str) -> Club | None:
    result = await db.execute(select(Club).where(Club.ref_code == ref_code))
    return result.scalars().first()


async def find_invited_club(db: AsyncSession, ref_code: str, email: str) -> Club | None:
    """Club profile whose pending CLUB owner was invited under ``email``."""
    result = await db.execute(
        select(Club)
        .join(User, User.id == Club.user_id)
        .where(
            Club.ref_code == ref_code,
            User.email == email,
            User.user_type == UserType.CLUB,
            User.status == UserStatus.PENDING,
        )
    )
    return result.scalars().first()


async def validate_ref_code(
    db: AsyncSession, ref_code: str, user_type: UserType, email: str
) -> Club | None:
    """Resolve a signup ref code.

    Returns the club to affiliate with, or None for CLUB signups which claim
    their own pre-created profile instead.
    """
    if user_type == UserType.CLUB:
        if await find_invited_club(db, ref_code, email) is None:
            raise ValidationError(
                "Reference code does not match your club invitation",
                code="INVALID_CLUB_REF_CODE",
            )
        return None

    club = await find_club_by_ref_code(db, ref_code)
    if club is None:
        raise ValidationError("Invalid reference code", code="INVALID_REF_CODE")

    # Only players need an invitation; companies and supporters self-affiliate
    if user_type == UserType.PLAYER:
        result = await db.execute(
            select(Affiliate.id).where(
                Affiliate.email == email,
                Affiliate.club_id == club.id,
                Affiliate.status == AffiliateStatus.PENDING,
            )
        )
        if result.scalars().first() is None:
            raise ValidationError(
                "You have not been invited by this club", code="NO_INVITATION_FOUND"
            )
    return club


async def upsert_affiliate(
    db: AsyncSession,
    email: str,
    club_id: int,
    user_id: int,
    user_type: UserType,
    ref_code: str,
) -> Affiliate:
    result = await db.execute(
        select(Affiliate).where(Affiliate.email == email, Affiliate.club_id == club_id)
    )
    affiliate = result.scalars().first()

    if affiliate is not None:
        affiliate.status = AffiliateStatus.ACTIVE
        affiliate.user_id = user_id
    else:
        affiliate = Affiliate(
            email=email,
            club_id=club_id,
            user_id=user_id,
            type=user_type,
            ref_code=ref_code,
            purpose=JOIN_PURPOSE,
            status=AffiliateStatus.ACTIVE,
            is_approved=False,
        )
        db.add(affiliate)
    await db.flush()
    return affiliate


async def find_active_affiliate(
    db: AsyncSession, user_id: int, user_type: UserType
) -> Affiliate | None:
    result = await db.execute(
        select(Affiliate).where(
            Affiliate.user_id == user_id,
            Affiliate.type == user_type,
            Affiliate.status == AffiliateStatus.ACTIVE,
        )
    )
    return result.scalars().first()


async def propagate_club_membership(db: AsyncSession, user: User) -> int | None:
    """Copy the active affiliate's club onto a PLAYER profile.

    Supporters keep their affiliate but never get a club on the profile.
    """
    if user.user_type != UserType.PLAYER:
        return None

    affiliate = await find_active_affiliate(db, user.id, user.user_type)
    if affiliate is None or affiliate.club_id is None:
        return None

    result = await db.execute(select(Player).where(Player.user_id == user.id))
    player = result.scalars().first()
    if player is None:
        return None
    player.club_id = affiliate.club_id
    await db.flush()
    logger.info("club_membership_propagated", user_id=user.id, club_id=affiliate.club_id)
    return affiliate.club_id
