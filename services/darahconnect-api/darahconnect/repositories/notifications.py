from sqlalchemy import Select, update

from .base import BaseRepository
from ..models.database import Notification
from ..models.schemas import NotificationListQuery


class NotificationRepository(BaseRepository[Notification]):
    model = Notification
    search_columns = (Notification.title, Notification.message)
    sortable_columns = ("created_at", "updated_at", "id", "is_read", "notification_type")

    def apply_filters(self, stmt: Select, query: NotificationListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.is_read is not None:
            stmt = stmt.where(Notification.is_read == query.is_read)
        if query.notification_type:
            stmt = stmt.where(Notification.notification_type == query.notification_type)
        return stmt

    async def count_unread(self, user_id: int) -> int:
        return await self.count(Notification.user_id == user_id, Notification.is_read.is_(False))

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
