"""
Whole-database JSON snapshots.

A snapshot maps every table of ``Base.metadata`` to its rows. Restoring
wipes all tables and reloads them inside the caller's transaction, so a
bad snapshot leaves the database as it was.
"""

import enum
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import Date, DateTime, Enum, Numeric, delete, insert, select
from sqlalchemy.orm import Session

from restopos.db.models import Base
from restopos.errors import InvalidInput
from restopos.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.name
    return value


def _deserialize_value(column, value: Any) -> Any:
    if value is None:
        return None
    column_type = column.type
    if isinstance(column_type, DateTime):
        return datetime.fromisoformat(value)
    if isinstance(column_type, Date):
        return date.fromisoformat(value)
    if isinstance(column_type, Enum) and column_type.enum_class is not None:
        return column_type.enum_class[value]
    if isinstance(column_type, Numeric):
        return Decimal(str(value))
    return value


def export_snapshot(session: Session) -> Dict[str, Any]:
    tables: Dict[str, List[Dict[str, Any]]] = {}
    for table in Base.metadata.sorted_tables:
        rows = session.execute(select(table).order_by(*table.primary_key.columns)).mappings()
        tables[table.name] = [
            {key: _serialize_value(value) for key, value in row.items()}
            for row in rows
        ]
    logger.info("Exported snapshot with %d rows", sum(len(rows) for rows in tables.values()))
    return {"version": SNAPSHOT_VERSION, "created_at": utcnow().isoformat(), "tables": tables}


def restore_snapshot(session: Session, snapshot: Dict[str, Any]) -> Dict[str, int]:
    """Replace all data with the snapshot's rows. Returns row counts per table."""
    if not isinstance(snapshot, dict) or snapshot.get("version") != SNAPSHOT_VERSION:
        raise InvalidInput("Unsupported snapshot format", code="invalid_snapshot")
    data = snapshot.get("tables")
    if not isinstance(data, dict):
        raise InvalidInput("Snapshot has no tables", code="invalid_snapshot")

    known = {table.name for table in Base.metadata.sorted_tables}
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidInput(f"Unknown tables in snapshot: {', '.join(unknown)}", code="invalid_snapshot")

    session.flush()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(delete(table))

    counts = {}
    for table in Base.metadata.sorted_tables:
        rows = data.get(table.name) or []
        if rows:
            try:
                values = [
                    {key: _deserialize_value(table.c[key], value) for key, value in row.items()}
                    for row in rows
                ]
            except (KeyError, ValueError) as exc:
                raise InvalidInput(f"Malformed rows for {table.name}: {exc}", code="invalid_snapshot")
            session.execute(insert(table), values)
        counts[table.name] = len(rows)

    session.expire_all()
    logger.info("Restored snapshot: %s", counts)
    return counts
