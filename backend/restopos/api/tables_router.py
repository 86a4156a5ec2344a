"""Dining table endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.permissions import AuthUser
from restopos.services import tables as table_service


router = APIRouter(prefix="/api/tables", tags=["tables"])

can_view = require_permissions(any_of=("orders:view", "orders:manage", "pos:use"))
can_manage = require_permissions(any_of=("orders:manage",))


class CreateTableRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)
    number: int = Field(..., ge=1)


class UpdateTableRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=60)
    number: Optional[int] = Field(default=None, ge=1)
    order_id: Optional[int] = None
    status: Optional[str] = Field(default=None, pattern="^(empty|occupied)$")


@router.get("", summary="List tables with their active order")
def list_tables(database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok(table_service.list_tables(session))


@router.post("", summary="Create a table")
def create_table(payload: CreateTableRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        table = table_service.create_table(session, name=payload.name, number=payload.number)
        return ok(table_service.table_to_dict(table), status_code=201)


@router.patch("/{table_id}", summary="Rename, seat an order or release a table")
def update_table(
    table_id: int,
    payload: UpdateTableRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = payload.model_dump(exclude_unset=True)
    for field in ("name", "number", "status"):
        if changes.get(field, "") is None:
            del changes[field]
    with database.unit_of_work() as session:
        table = table_service.update_table(session, table_id, **changes)
        active = table_service.active_orders_for_table(session, table.id)
        return ok(table_service.table_to_dict(table, active[0] if active else None))


@router.delete("/{table_id}", summary="Delete a table")
def delete_table(table_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        table_service.delete_table(session, table_id)
        return ok({"deleted": table_id})
