"""Expense endpoints."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.permissions import AuthUser
from restopos.services import finance as finance_service
from restopos.services.finance import MAX_EXPENSE


router = APIRouter(prefix="/api/finance", tags=["finance"])

can_view = require_permissions(any_of=("finance:view", "finance:manage"))
can_manage = require_permissions(any_of=("finance:manage",))


class ExpenseRequest(BaseModel):
    date: str = Field(..., min_length=8, max_length=32)
    title: str = Field(..., min_length=1, max_length=200)
    vendor: Optional[str] = Field(default=None, max_length=180)
    amount: Decimal = Field(..., ge=0, le=MAX_EXPENSE)
    notes: Optional[str] = Field(default=None, max_length=500)


class ExpenseUpdateRequest(BaseModel):
    date: Optional[str] = Field(default=None, min_length=8, max_length=32)
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    vendor: Optional[str] = Field(default=None, max_length=180)
    amount: Optional[Decimal] = Field(default=None, ge=0, le=MAX_EXPENSE)
    notes: Optional[str] = Field(default=None, max_length=500)


@router.get("/expenses", summary="List expenses, newest first")
def list_expenses(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    with database.unit_of_work() as session:
        expenses = finance_service.list_expenses(session, date_from=date_from, date_to=date_to)
        return ok({
            "expenses": [finance_service.expense_to_dict(expense) for expense in expenses],
            "total": sum((expense.amount for expense in expenses), Decimal("0")),
        })


@router.post("/expenses", summary="Record an expense")
def create_expense(payload: ExpenseRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        expense = finance_service.create_expense(session, **payload.model_dump(), created_by_id=user.id)
        return ok(finance_service.expense_to_dict(expense), status_code=201)


@router.patch("/expenses/{expense_id}", summary="Update an expense")
def update_expense(
    expense_id: int,
    payload: ExpenseUpdateRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = payload.model_dump(exclude_unset=True)
    for field in ("date", "title", "amount"):
        if changes.get(field, "") is None:
            del changes[field]
    with database.unit_of_work() as session:
        expense = finance_service.update_expense(session, expense_id, **changes)
        return ok(finance_service.expense_to_dict(expense))


@router.delete("/expenses/{expense_id}", summary="Delete an expense")
def delete_expense(expense_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        finance_service.delete_expense(session, expense_id)
        return ok({"deleted": expense_id})
