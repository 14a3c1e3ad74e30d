from typing import Any, Dict, Iterable

from pydantic import BaseModel


def collect_changes(payload: BaseModel, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Fields the client actually sent, minus nulls and empty strings."""
    changes = payload.model_dump(exclude_unset=True, exclude=set(exclude))
    return {field: value for field, value in changes.items() if value is not None and value != ""}
