from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.database import Base
from ..models.schemas import ListQuery

ModelT = TypeVar("ModelT", bound=Base)


def day_start(value: date) -> datetime:
    return datetime.combine(value, time.min)


def day_end(value: date) -> datetime:
    """Exclusive upper bound covering the whole of ``value``."""
    return datetime.combine(value + timedelta(days=1), time.min)


class BaseRepository(Generic[ModelT]):
    """
    CRUD plus filtered, paginated listing for one ORM model.

    Subclasses set ``model``, the columns that ``search`` matches
    (``search_columns``) and the columns a client may sort by
    (``sortable_columns``), and extend ``apply_filters`` with their own
    predicates.
    """

    model: Type[ModelT]
    search_columns: Sequence[Any] = ()
    sortable_columns: Sequence[str] = ("created_at", "updated_at", "id")

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, entity_id: int) -> Optional[ModelT]:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == entity_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, entity: ModelT) -> ModelT:
        self.db.add(entity)
        await self.db.flush()
        return entity

    async def update(self, entity: ModelT, changes: Dict[str, Any]) -> ModelT:
        for field, value in changes.items():
            setattr(entity, field, value)
        await self.db.flush()
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self.db.delete(entity)
        await self.db.flush()

    async def count(self, *conditions) -> int:
        result = await self.db.execute(
            select(func.count(self.model.id)).where(*conditions)
        )
        return result.scalar() or 0

    def base_query(self) -> Select:
        return select(self.model)

    def apply_search(self, stmt: Select, search: Optional[str]) -> Select:
        if not search or not self.search_columns:
            return stmt
        pattern = f"%{search.lower()}%"
        return stmt.where(or_(*[func.lower(col).like(pattern) for col in self.search_columns]))

    def apply_filters(self, stmt: Select, query: ListQuery) -> Select:
        return self.apply_search(stmt, query.search)

    def apply_sort(self, stmt: Select, query: ListQuery) -> Select:
        sort = query.sort if query.sort in self.sortable_columns else "created_at"
        column = getattr(self.model, sort)
        if query.order == "asc":
            return stmt.order_by(column.asc(), self.model.id.asc())
        return stmt.order_by(column.desc(), self.model.id.desc())

    async def paginate(self, stmt: Select, query: ListQuery) -> Tuple[List[ModelT], int]:
        """Count the filtered rows, then fetch one sorted page."""
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = self.apply_sort(stmt, query).offset(query.offset).limit(query.limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all()), total

    async def list(self, query: ListQuery, *conditions) -> Tuple[List[ModelT], int]:
        stmt = self.base_query()
        if conditions:
            stmt = stmt.where(*conditions)
        stmt = self.apply_filters(stmt, query)
        return await self.paginate(stmt, query)
