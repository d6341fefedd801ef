# src/notifications/service.py
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.logging import get_logger
from src.notifications.models import Notification, NotificationStatus, NotificationType

logger = get_logger(__name__)


async def create_notification(
    db: AsyncSession,
    user_id: int,
    title: str,
    message: str,
    type: NotificationType = NotificationType.SYSTEM,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        status=NotificationStatus.UNREAD,
    )
    db.add(notification)
    await db.commit()
    return notification


async def create_login_notification(
    session_factory: async_sessionmaker[AsyncSession], user_id: int
) -> None:
    """Record a "New login" notification in its own session."""
    async with session_factory() as db:
        await create_notification(
            db, user_id, "New login", "You just successfully logged in"
        )
    logger.info("login_notification_created", user_id=user_id)
