# src/affiliate/models.py
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy import (
    Enum as SQLAlchemyEnum,
)

from src.auth.models import UserType
from src.database import Base


class AffiliateStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class Affiliate(Base):
    """Links a non-club account (or a pending invitation) to a club."""

    __tablename__ = "affiliates"
    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    club_id = Column(
        Integer, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    type = Column(SQLAlchemyEnum(UserType, name="affiliate_type"), nullable=False)
    status = Column(
        SQLAlchemyEnum(AffiliateStatus, name="affiliate_status"),
        nullable=False,
        default=AffiliateStatus.PENDING,
    )
    ref_code = Column(String, nullable=False)
    purpose = Column(String, nullable=True)
    is_approved = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (UniqueConstraint("email", "club_id"),)
