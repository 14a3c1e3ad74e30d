"""
Response envelopes shared by every router.

Success:   {"meta": {"code", "message"}, "data": ...}
Paginated: the same plus "pagination": {page, per_page, total_items, total_pages}
Error:     {"meta": {"code", "message"}, "data": null}
"""

from typing import Any, Optional, Sequence, Type
import math

from pydantic import BaseModel

from ..models.schemas import ListQuery, Meta, Pagination


def success_response(message: str, data: Any = None, code: int = 200) -> dict:
    return {
        "meta": Meta(code=code, message=message).model_dump(),
        "data": data,
    }


def paginated_response(
    message: str,
    items: Sequence[Any],
    total: int,
    query: ListQuery,
    schema: Optional[Type[BaseModel]] = None,
) -> dict:
    """Wrap a page of ORM rows, converting each through ``schema`` when given."""
    data = [schema.model_validate(item) for item in items] if schema else list(items)
    pagination = Pagination(
        page=query.page,
        per_page=query.limit,
        total_items=total,
        total_pages=math.ceil(total / query.limit) if total else 0,
    )
    body = success_response(message, data)
    body["pagination"] = pagination.model_dump()
    return body


def error_response(message: str, code: int) -> dict:
    return {
        "meta": Meta(code=code, message=message).model_dump(),
        "data": None,
    }
