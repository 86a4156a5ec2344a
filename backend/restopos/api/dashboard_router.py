"""Dashboard endpoint."""

from fastapi import APIRouter, Depends

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.permissions import AuthUser
from restopos.services.dashboard import dashboard_overview


router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/overview", summary="Sales, profit after expenses, alerts and live orders")
def overview(
    database: Database = Depends(get_database),
    user: AuthUser = Depends(require_permissions(all_of=("dashboard:view",))),
):
    with database.unit_of_work() as session:
        return ok(dashboard_overview(session))
