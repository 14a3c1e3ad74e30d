from typing import List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import ForbiddenError, NotFoundError
from ..core.security import TokenClaims
from ..models.database import Notification
from ..models.schemas import NotificationCreate, NotificationListQuery, NotificationUpdate
from ..repositories import NotificationRepository, UserRepository
from .base import collect_changes

logger = structlog.get_logger()


class NotificationService:
    """User-addressed notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationRepository(db)

    async def notify(self, user_id: int, title: str, message: str, notification_type: str) -> Notification:
        """Queue a notification in the caller's unit of work (no commit)."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            notification_type=notification_type,
            is_read=False,
        )
        await self.notifications.add(notification)
        logger.info("Notification queued", user_id=user_id, notification_type=notification_type)
        return notification

    async def get(self, notification_id: int) -> Notification:
        notification = await self.notifications.get(notification_id)
        if notification is None:
            raise NotFoundError("Notifikasi tidak ditemukan")
        return notification

    async def create(self, payload: NotificationCreate) -> Notification:
        if await UserRepository(self.db).get(payload.user_id) is None:
            raise NotFoundError("User tidak ditemukan")
        notification = await self.notify(
            payload.user_id, payload.title, payload.message, payload.notification_type
        )
        await self.db.commit()
        return await self.get(notification.id)

    async def update(self, notification_id: int, payload: NotificationUpdate) -> Notification:
        notification = await self.get(notification_id)
        await self.notifications.update(notification, collect_changes(payload))
        await self.db.commit()
        return await self.get(notification_id)

    async def delete(self, notification_id: int) -> None:
        notification = await self.get(notification_id)
        await self.notifications.delete(notification)
        await self.db.commit()

    async def list_all(self, query: NotificationListQuery) -> Tuple[List[Notification], int]:
        return await self.notifications.list(query)

    async def list_for_user(self, user_id: int, query: NotificationListQuery) -> Tuple[List[Notification], int]:
        return await self.notifications.list(query, Notification.user_id == user_id)

    async def read(self, notification_id: int, claims: TokenClaims) -> Notification:
        """Open one of the caller's notifications, marking it read."""
        notification = await self.get(notification_id)
        if notification.user_id != claims.id:
            raise ForbiddenError("Anda tidak memiliki akses ke notifikasi ini")
        if not notification.is_read:
            notification.is_read = True
            await self.db.commit()
            return await self.get(notification_id)
        return notification

    async def unread_count(self, user_id: int) -> int:
        return await self.notifications.count_unread(user_id)

    async def mark_all_read(self, user_id: int) -> int:
        updated = await self.notifications.mark_all_read(user_id)
        await self.db.commit()
        return updated
