# src/notifications/models.py
import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy import (
    Enum as SQLAlchemyEnum,
)

from src.database import Base


class NotificationType(str, enum.Enum):
    SYSTEM = "SYSTEM"


class NotificationStatus(str, enum.Enum):
    UNREAD = "UNREAD"
    READ = "READ"


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    type = Column(
        SQLAlchemyEnum(NotificationType, name="notification_type"),
        nullable=False,
        default=NotificationType.SYSTEM,
    )
    status = Column(
        SQLAlchemyEnum(NotificationStatus, name="notification_status"),
        nullable=False,
        default=NotificationStatus.UNREAD,
    )
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
