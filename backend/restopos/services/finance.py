"""Operating expenses entered by hand."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from restopos.db.models import Expense
from restopos.errors import InvalidInput
from restopos.services.common import UNSET, clean_text, get_or_404
from restopos.services.metrics import date_range
from restopos.utils.numbers import ZERO, money
from restopos.utils.time_utils import iso_utc, parse_ui_date, utcnow

logger = logging.getLogger(__name__)

MAX_EXPENSE = Decimal("1000000")


def expense_to_dict(expense: Expense) -> Dict[str, Any]:
    return {
        "id": expense.id,
        "date": expense.date.date().isoformat(),
        "title": expense.title,
        "vendor": expense.vendor,
        "amount": expense.amount,
        "notes": expense.notes,
        "created_at": iso_utc(expense.created_at),
        "updated_at": iso_utc(expense.updated_at),
    }


def _check_amount(value: Any) -> Decimal:
    amount = money(value)
    if amount < ZERO or amount > MAX_EXPENSE:
        raise InvalidInput("Amount must be between 0 and 1,000,000", code="invalid_amount")
    return amount


def _check_date(value: Any) -> datetime:
    parsed = parse_ui_date(value)
    if parsed is None:
        raise InvalidInput("Invalid expense date", code="invalid_date")
    return parsed


def create_expense(
    session: Session,
    *,
    title: str,
    amount: Any,
    date: Any = None,
    vendor: Optional[str] = None,
    notes: Optional[str] = None,
    created_by_id: Optional[int] = None,
) -> Expense:
    expense = Expense(
        date=_check_date(date) if date is not None else utcnow(),
        title=clean_text(title, "title", 200),
        vendor=clean_text(vendor, "vendor", 180, required=False),
        amount=_check_amount(amount),
        notes=clean_text(notes, "notes", 500, required=False),
        created_by_id=created_by_id,
    )
    session.add(expense)
    session.flush()
    logger.info("Recorded expense %s: %s (%s)", expense.id, expense.title, expense.amount)
    return expense


def update_expense(
    session: Session,
    expense_id: int,
    *,
    title: Any = UNSET,
    amount: Any = UNSET,
    date: Any = UNSET,
    vendor: Any = UNSET,
    notes: Any = UNSET,
) -> Expense:
    expense = get_or_404(session, Expense, expense_id, "expense")
    if date is not UNSET and date is not None:
        expense.date = _check_date(date)
    if title is not UNSET:
        expense.title = clean_text(title, "title", 200)
    if vendor is not UNSET:
        expense.vendor = clean_text(vendor, "vendor", 180, required=False)
    if amount is not UNSET:
        expense.amount = _check_amount(amount)
    if notes is not UNSET:
        expense.notes = clean_text(notes, "notes", 500, required=False)
    session.flush()
    return expense


def delete_expense(session: Session, expense_id: int) -> None:
    expense = get_or_404(session, Expense, expense_id, "expense")
    session.delete(expense)
    session.flush()
    logger.info("Deleted expense %s (%s)", expense_id, expense.title)


def list_expenses(session: Session, date_from: Any = None, date_to: Any = None) -> List[Expense]:
    stmt = select(Expense).order_by(Expense.date.desc(), Expense.id.desc())
    start, end = date_range(date_from, date_to)
    if start is not None:
        stmt = stmt.where(Expense.date >= start)
    if end is not None:
        stmt = stmt.where(Expense.date < end)
    return list(session.execute(stmt).scalars())


def expenses_total(session: Session) -> Decimal:
    return money(session.execute(select(func.coalesce(func.sum(Expense.amount), 0))).scalar_one())
