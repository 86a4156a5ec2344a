"""Helpers shared by the service modules."""

from enum import Enum
from typing import Any, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from restopos.errors import InvalidInput, NotFound


class _Unset:
    """Marker for PATCH fields that were not supplied."""

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET: Any = _Unset()

ModelT = TypeVar("ModelT")
EnumT = TypeVar("EnumT", bound=Enum)


def get_or_404(session: Session, model: Type[ModelT], object_id: Any, resource: str) -> ModelT:
    obj = session.get(model, object_id)
    if obj is None:
        raise NotFound(resource, object_id)
    return obj


def coerce_enum(enum_cls: Type[EnumT], value: Any, field: str) -> EnumT:
    """Accept an enum member, its value or its name (case-insensitive)."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if value == member.value or value.upper() == member.name:
                return member
    raise InvalidInput(f"Invalid {field}: {value!r}", code=f"invalid_{field}")


def name_taken(session: Session, column, name: str, exclude_id: Optional[int] = None) -> bool:
    """Case-insensitive uniqueness probe on a name column."""
    stmt = select(column.class_.id).where(func.lower(column) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(column.class_.id != exclude_id)
    return session.execute(stmt.limit(1)).first() is not None


def clean_text(value: Optional[str], field: str, max_length: int, required: bool = True) -> Optional[str]:
    text = (value or "").strip()
    if not text:
        if required:
            raise InvalidInput(f"{field} is required", code=f"invalid_{field}")
        return None
    if len(text) > max_length:
        raise InvalidInput(f"{field} must be at most {max_length} characters", code=f"invalid_{field}")
    return text
