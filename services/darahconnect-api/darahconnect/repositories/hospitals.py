from sqlalchemy import Select, func

from .base import BaseRepository
from ..models.database import Hospital
from ..models.schemas import HospitalListQuery


class HospitalRepository(BaseRepository[Hospital]):
    model = Hospital
    search_columns = (Hospital.name, Hospital.city, Hospital.province, Hospital.address)
    sortable_columns = ("created_at", "updated_at", "id", "name", "city", "province")

    def apply_filters(self, stmt: Select, query: HospitalListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.city:
            stmt = stmt.where(func.lower(Hospital.city) == query.city.lower())
        if query.province:
            stmt = stmt.where(func.lower(Hospital.province) == query.province.lower())
        return stmt
