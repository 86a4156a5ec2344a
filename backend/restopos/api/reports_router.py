"""Reporting endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.permissions import AuthUser
from restopos.services import metrics


router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/summary", summary="Revenue, COGS and profit of delivered orders")
def report_summary(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(require_permissions(all_of=("reports:view",))),
):
    with database.unit_of_work() as session:
        return ok(metrics.report_summary(session, date_from=date_from, date_to=date_to))
