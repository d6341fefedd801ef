# src/profile/schemas.py

from pydantic import BaseModel, ConfigDict


class ClubSummary(BaseModel):
    id: int
    name: str | None = None
    avatar: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ProfileView(BaseModel):
    id: int
    user_id: int
    name: str | None = None
    email: str
    user_type: str
    status: str
    avatar: str | None = None
    onboarding_steps: list[int] = []
    ref_code: str | None = None
    club: ClubSummary | None = None
    is_approved: bool | None = None
