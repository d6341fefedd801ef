# src/auth/models.py
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    false,
    func,
)
from sqlalchemy import (
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import relationship

from src.database import Base
from src.utils import utcnow


class UserType(str, enum.Enum):
    PLAYER = "PLAYER"
    SUPPORTER = "SUPPORTER"
    COMPANY = "COMPANY"
    CLUB = "CLUB"
    ADMIN = "ADMIN"


class UserStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    # Null for accounts that only ever signed in through Google
    password_hash = Column(String, nullable=True)
    user_type = Column(SQLAlchemyEnum(UserType, name="user_type"), nullable=False)
    status = Column(
        SQLAlchemyEnum(UserStatus, name="user_status"),
        nullable=False,
        default=UserStatus.PENDING,
    )
    uses_federated_auth = Column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_federated_only(self) -> bool:
        return bool(self.uses_federated_auth) and not self.password_hash


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Session identifier, shared by every rotation of one login
    jti = Column(String(36), nullable=False, index=True)
    # SHA-256 of the raw token; the raw value is never stored
    token_hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_user_live", "user_id", "revoked", "expires_at"),
    )
