# src/profile/provisioning.py
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.models import User, UserType
from src.exception import ValidationError
from src.profile.models import Company, Player

ProfileFactory = Callable[[User, str | None], Company | Player]


def _company(user: User, avatar: str | None) -> Company:
    return Company(user_id=user.id, name=user.name, avatar=avatar, onboarding_steps=[1])


def _player(user: User, avatar: str | None) -> Player:
    return Player(
        user_id=user.id, name=user.name, avatar=avatar, onboarding_steps=[1, 2, 3]
    )


# Types that get a profile at signup; CLUB profiles are pre-created by invitation
PROFILE_FACTORIES: dict[UserType, ProfileFactory] = {
    UserType.COMPANY: _company,
    UserType.PLAYER: _player,
    UserType.SUPPORTER: _player,
}


async def create_profile(
    db: AsyncSession, user: User, avatar: str | None = None
) -> Company | Player:
    """Stage the profile matching ``user.user_type`` inside the caller's transaction."""
    factory = PROFILE_FACTORIES.get(user.user_type)
    if factory is None:
        raise ValidationError(
            f"Unsupported user type: {user.user_type.value}", code="INVALID_USER_TYPE"
        )
    profile = factory(user, avatar)
    db.add(profile)
    await db.flush()
    return profile
