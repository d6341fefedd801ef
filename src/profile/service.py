# src/profile/service.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.affiliate.models import Affiliate
from src.auth.models import User, UserType
from src.exception import IntegrityFault
from src.profile.models import PROFILE_MODELS, Club, Player
from src.profile.schemas import ClubSummary, ProfileView


async def get_profile(db: AsyncSession, user: User):
    model = PROFILE_MODELS[user.user_type]
    result = await db.execute(select(model).where(model.user_id == user.id))
    profile = result.scalars().first()
    if profile is None:
        raise IntegrityFault(
            f"Profile not found for user {user.id}", code="PROFILE_NOT_FOUND"
        )
    return profile


async def _affiliate_approval(db: AsyncSession, user_id: int) -> bool | None:
    result = await db.execute(
        select(Affiliate.is_approved)
        .where(Affiliate.user_id == user_id)
        .order_by(Affiliate.created_at.desc(), Affiliate.id.desc())
    )
    return result.scalars().first()


async def build_profile_view(
    db: AsyncSession, user: User, profile=None
) -> ProfileView:
    """Flatten a user and its typed profile into the payload returned on auth."""
    if profile is None:
        profile = await get_profile(db, user)

    view = ProfileView(
        id=profile.id,
        user_id=user.id,
        name=profile.name or user.name,
        email=user.email,
        user_type=user.user_type.value.lower(),
        status=user.status.value.lower(),
        avatar=profile.avatar,
        onboarding_steps=profile.onboarding_steps or [],
    )

    if user.user_type == UserType.CLUB:
        view.ref_code = profile.ref_code
        view.is_approved = True
        return view

    if user.user_type == UserType.ADMIN:
        return view

    view.is_approved = await _affiliate_approval(db, user.id)
    if isinstance(profile, Player) and profile.club_id is not None:
        club = await db.get(Club, profile.club_id)
        if club is not None:
            view.club = ClubSummary.model_validate(club)
    return view
