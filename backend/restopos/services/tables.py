"""
Dining tables and their occupancy flag.

``DiningTable.is_occupied`` is a cache of "some active order references this
table". It is always recomputed from that query after a write, never
toggled incrementally.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from restopos.db.models import DiningTable, Order, OrderStatus, OrderType
from restopos.errors import Conflict, InvalidInput, ReferentialBlock, TableOccupied
from restopos.services.common import UNSET, clean_text, get_or_404, name_taken

logger = logging.getLogger(__name__)

ACTIVE_ORDER_STATUSES = (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.OUT)


def _active_orders_stmt(table_id: int, exclude_order_id: Optional[int] = None):
    stmt = select(Order).where(
        Order.table_id == table_id,
        Order.status.in_(ACTIVE_ORDER_STATUSES),
    )
    if exclude_order_id is not None:
        stmt = stmt.where(Order.id != exclude_order_id)
    return stmt


def table_has_active_order(session: Session, table_id: int, exclude_order_id: Optional[int] = None) -> bool:
    stmt = _active_orders_stmt(table_id, exclude_order_id).with_only_columns(Order.id).limit(1)
    return session.execute(stmt).first() is not None


def active_orders_for_table(session: Session, table_id: int) -> List[Order]:
    return list(session.execute(_active_orders_stmt(table_id).order_by(Order.created_at)).scalars())


def lock_table(session: Session, table_id: int) -> None:
    """
    Take the write lock on a table row before checking its active orders.

    A no-op UPDATE starts the write transaction on SQLite and row-locks on
    other backends, so two writers seating orders on the same table run
    their check-then-insert one after the other.
    """
    session.execute(
        update(DiningTable)
        .where(DiningTable.id == table_id)
        .values(is_occupied=DiningTable.is_occupied)
        .execution_options(synchronize_session=False)
    )


def ensure_table_available(session: Session, table_id: int, exclude_order_id: Optional[int] = None) -> DiningTable:
    """Return the table, or raise NotFound / TableOccupied."""
    table = get_or_404(session, DiningTable, table_id, "table")
    lock_table(session, table.id)
    if table_has_active_order(session, table.id, exclude_order_id):
        raise TableOccupied(f"Table {table.name} already has an active order")
    return table


def refresh_table_occupancy(session: Session, *table_ids: Optional[int]) -> None:
    """Recompute ``is_occupied`` for each given table from its active orders."""
    session.flush()
    for table_id in sorted({table_id for table_id in table_ids if table_id is not None}):
        table = session.get(DiningTable, table_id)
        if table is None:
            continue
        table.is_occupied = table_has_active_order(session, table_id)
    session.flush()


def table_to_dict(table: DiningTable, active_order: Optional[Order] = None) -> Dict[str, Any]:
    return {
        "id": table.id,
        "name": table.name,
        "number": table.number,
        "is_occupied": table.is_occupied,
        "status": "occupied" if table.is_occupied else "empty",
        "order": (
            {"id": active_order.id, "code": active_order.code, "status": active_order.status.value}
            if active_order is not None
            else None
        ),
    }


def list_tables(session: Session) -> List[Dict[str, Any]]:
    tables = session.execute(select(DiningTable).order_by(DiningTable.number)).scalars().all()
    result = []
    for table in tables:
        active = active_orders_for_table(session, table.id)
        result.append(table_to_dict(table, active[0] if active else None))
    return result


def _check_number(number: Any) -> int:
    try:
        number = int(number)
    except (TypeError, ValueError):
        raise InvalidInput("Table number must be an integer", code="invalid_number")
    if number < 1:
        raise InvalidInput("Table number must be positive", code="invalid_number")
    return number


def _ensure_unique(session: Session, name: Optional[str], number: Optional[int], exclude_id: Optional[int] = None) -> None:
    if name is not None and name_taken(session, DiningTable.name, name, exclude_id=exclude_id):
        raise Conflict(f"Table {name} already exists", code="table_exists")
    if number is not None:
        stmt = select(DiningTable.id).where(DiningTable.number == number)
        if exclude_id is not None:
            stmt = stmt.where(DiningTable.id != exclude_id)
        if session.execute(stmt.limit(1)).first() is not None:
            raise Conflict(f"Table number {number} already exists", code="table_exists")


def create_table(session: Session, *, name: str, number: Any) -> DiningTable:
    name = clean_text(name, "name", 60)
    number = _check_number(number)
    _ensure_unique(session, name, number)
    table = DiningTable(name=name, number=number, is_occupied=False)
    session.add(table)
    session.flush()
    return table


def update_table(
    session: Session,
    table_id: int,
    *,
    name: Any = UNSET,
    number: Any = UNSET,
    order_id: Any = UNSET,
    status: Any = UNSET,
) -> DiningTable:
    """
    Rename or renumber a table, or change what sits on it.

    ``order_id`` set to an active order moves that order onto this table
    (the order becomes DINE_IN). ``order_id=None`` or ``status="empty"``
    releases every active order from the table.
    """
    table = get_or_404(session, DiningTable, table_id, "table")

    new_name = clean_text(name, "name", 60) if name is not UNSET else None
    new_number = _check_number(number) if number is not UNSET else None
    _ensure_unique(session, new_name, new_number, exclude_id=table.id)
    if new_name is not None:
        table.name = new_name
    if new_number is not None:
        table.number = new_number

    touched = {table.id}
    release = (order_id is not UNSET and order_id is None) or (
        status is not UNSET and str(status).lower() == "empty"
    )

    if release:
        for order in active_orders_for_table(session, table.id):
            order.table = None
    elif order_id is not UNSET:
        order = get_or_404(session, Order, order_id, "order")
        if order.status not in ACTIVE_ORDER_STATUSES:
            raise InvalidInput("Only active orders can be seated", code="order_not_active")
        lock_table(session, table.id)
        if table_has_active_order(session, table.id, exclude_order_id=order.id):
            raise TableOccupied(f"Table {table.name} already has an active order")
        touched.add(order.table_id)
        order.type = OrderType.DINE_IN
        order.zone = None
        order.table = table
    elif status is not UNSET and str(status).lower() != "occupied":
        raise InvalidInput(f"Invalid table status: {status}", code="invalid_status")

    refresh_table_occupancy(session, *touched)
    return table


def delete_table(session: Session, table_id: int) -> None:
    table = get_or_404(session, DiningTable, table_id, "table")
    if table_has_active_order(session, table.id):
        raise ReferentialBlock("Table has an active order", code="table_has_active_order")
    session.execute(
        update(Order)
        .where(Order.table_id == table.id)
        .values(table_id=None)
        .execution_options(synchronize_session=False)
    )
    session.delete(table)
    session.flush()
    logger.info("Deleted table %s (%s)", table_id, table.name)
