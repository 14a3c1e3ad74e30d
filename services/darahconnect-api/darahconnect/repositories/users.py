from typing import Optional

from sqlalchemy import Select, func, select

from .base import BaseRepository
from ..models.database import User
from ..models.schemas import UserListQuery


class UserRepository(BaseRepository[User]):
    model = User
    search_columns = (User.name, User.email)
    sortable_columns = ("created_at", "updated_at", "id", "name", "email")

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_verify_token(self, token: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.verify_email_token == token))
        return result.scalar_one_or_none()

    async def get_by_reset_token(self, token: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.reset_password_token == token))
        return result.scalar_one_or_none()

    async def get_by_google_id(self, google_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.google_id == google_id))
        return result.scalar_one_or_none()

    def apply_filters(self, stmt: Select, query: UserListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.role:
            stmt = stmt.where(User.role == query.role)
        return stmt
