"""Snapshot export and restore."""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.permissions import AuthUser
from restopos.services import backup


router = APIRouter(prefix="/api/backup", tags=["backup"])

can_manage = require_permissions(all_of=("backup:manage",))


@router.get("/export", summary="Export the whole database as JSON")
def export_backup(database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        return ok(backup.export_snapshot(session))


@router.post("/restore", summary="Replace all data with a snapshot")
def restore_backup(
    snapshot: Dict[str, Any] = Body(...),
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    with database.unit_of_work() as session:
        return ok({"restored": backup.restore_snapshot(session, snapshot)})
