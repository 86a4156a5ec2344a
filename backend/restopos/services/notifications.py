"""Read-only notification feed, filtered by what the user may see."""

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from restopos.db.models import Material, Order, Sale, SaleStatus, Waste
from restopos.permissions import AuthUser
from restopos.services.tables import ACTIVE_ORDER_STATUSES
from restopos.utils.time_utils import iso_utc, utcnow

LOW_STOCK_LIMIT = 5


def _item(item_id: str, kind: str, title: str, message: str, created_at: datetime) -> Dict[str, Any]:
    return {"id": item_id, "type": kind, "title": title, "message": message, "created_at": created_at}


def build_notifications(session: Session, user: AuthUser) -> List[Dict[str, Any]]:
    notifications = []

    if user.has_any(["inventory:view"]):
        low_stock = session.execute(
            select(Material)
            .where(Material.stock <= Material.min_stock)
            .order_by(Material.updated_at.desc())
            .limit(LOW_STOCK_LIMIT)
        ).scalars()
        for material in low_stock:
            notifications.append(_item(
                f"low-stock-{material.id}", "low_stock", "Low stock",
                f"{material.name} is at or below its minimum ({material.stock} {material.unit}).",
                material.updated_at,
            ))

        latest_waste = session.execute(
            select(Waste).options(selectinload(Waste.material)).order_by(Waste.date.desc(), Waste.id.desc()).limit(1)
        ).scalar_one_or_none()
        if latest_waste is not None:
            notifications.append(_item(
                f"waste-{latest_waste.id}", "warning", "Waste recorded",
                f"{latest_waste.quantity} {latest_waste.material.unit} of {latest_waste.material.name} "
                f"written off (cost {latest_waste.cost}).",
                latest_waste.date,
            ))

    if user.has_any(["orders:view", "orders:manage"]):
        count, latest = session.execute(
            select(func.count(Order.id), func.max(Order.updated_at)).where(Order.status.in_(ACTIVE_ORDER_STATUSES))
        ).one()
        if count:
            notifications.append(_item(
                "orders-pending", "info", "Orders in progress",
                f"{count} order(s) are still in progress.",
                latest or utcnow(),
            ))

    if user.has_any(["sales:view", "sales:manage"]):
        count, latest = session.execute(
            select(func.count(Sale.id), func.max(Sale.updated_at)).where(Sale.status == SaleStatus.DRAFT)
        ).one()
        if count:
            notifications.append(_item(
                "sales-drafts", "info", "Draft invoices",
                f"{count} draft invoice(s) are waiting for approval.",
                latest or utcnow(),
            ))

    notifications.sort(key=lambda item: item["created_at"], reverse=True)
    for item in notifications:
        item["created_at"] = iso_utc(item["created_at"])
    return notifications
