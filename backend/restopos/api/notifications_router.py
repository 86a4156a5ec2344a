"""Notification feed and its server-sent events stream."""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse

from restopos import config
from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_current_user, get_database
from restopos.permissions import AuthUser
from restopos.services.notifications import build_notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _load(database: Database, user: AuthUser):
    with database.unit_of_work() as session:
        return build_notifications(session, user)


def format_event(event: str, data) -> str:
    return f"event: {event}\ndata: {json.dumps(jsonable_encoder(data), ensure_ascii=False)}\n\n"


@router.get("", summary="Notifications for the current user")
def list_notifications(database: Database = Depends(get_database), user: AuthUser = Depends(get_current_user)):
    return ok(_load(database, user))


@router.get("/stream", summary="Server-sent notification updates")
async def stream_notifications(
    request: Request,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(get_current_user),
):
    """Push an ``update`` event immediately and then every poll interval."""

    async def events():
        while not await request.is_disconnected():
            items = await run_in_threadpool(_load, database, user)
            yield format_event("update", {"items": items})
            await asyncio.sleep(config.NOTIFICATION_POLL_SECONDS)
        logger.debug("Notification stream closed for user %s", user.id)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
