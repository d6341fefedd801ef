# src/profile/models.py
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, func

from src.auth.models import UserType
from src.database import Base


class Club(Base):
    __tablename__ = "clubs"
    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    name = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    ref_code = Column(String, unique=True, nullable=False)
    onboarding_steps = Column(JSON, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class Player(Base):
    """Profile shared by PLAYER and SUPPORTER accounts."""

    __tablename__ = "players"
    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    name = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=True)
    onboarding_steps = Column(JSON, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class Company(Base):
    __tablename__ = "companies"
    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    name = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    onboarding_steps = Column(JSON, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class Admin(Base):
    __tablename__ = "admins"
    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    name = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    onboarding_steps = Column(JSON, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


PROFILE_MODELS = {
    UserType.PLAYER: Player,
    UserType.SUPPORTER: Player,
    UserType.COMPANY: Company,
    UserType.CLUB: Club,
    UserType.ADMIN: Admin,
}
