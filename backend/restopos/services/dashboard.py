"""
Front-page overview: today's and this month's takings, profit after
expenses, stock alerts, live orders and best sellers.

Revenue here is what was actually invoiced (PAID sales). COGS still comes
from delivered orders through the same cost map the reports use.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from restopos.db.models import Material, Order, OrderStatus, OrderType, Product, RecipeItem, Sale, SaleStatus, Waste
from restopos.services.finance import expenses_total
from restopos.services.inventory import material_status
from restopos.services.metrics import build_product_cost_map, calc_order_financials, sum_order_financials
from restopos.services.tables import ACTIVE_ORDER_STATUSES
from restopos.utils.numbers import ZERO, money
from restopos.utils.time_utils import iso_utc, now_local

MAX_ALERTS = 6
MAX_TOP_PRODUCTS = 6


def _as_stored_utc(moment: datetime) -> datetime:
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def period_starts(now: Optional[datetime] = None):
    """Start of the local day and month, as naive UTC for comparing with stored timestamps."""
    now = now or now_local()
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return _as_stored_utc(day), _as_stored_utc(day.replace(day=1))


def _latest_waste(session: Session) -> Optional[Waste]:
    return session.execute(
        select(Waste).options(selectinload(Waste.material)).order_by(Waste.date.desc(), Waste.id.desc()).limit(1)
    ).scalar_one_or_none()


def _alerts(session: Session, latest_waste: Optional[Waste]) -> List[Dict[str, Any]]:
    materials = session.execute(select(Material).order_by(Material.name)).scalars()
    alerts = [
        {
            "id": f"material-{material.id}",
            "type": "low_stock",
            "title": "Low stock",
            "message": f"{material.name} is at or below its minimum stock",
        }
        for material in materials
        if material_status(material) == "low"
    ][:MAX_ALERTS]

    if latest_waste is not None:
        alerts.append({
            "id": f"waste-{latest_waste.id}",
            "type": "warning",
            "title": "Waste recorded",
            "message": f"Waste of {latest_waste.material.name} worth {money(latest_waste.cost)}",
        })
    return alerts


def dashboard_overview(session: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    day_start, month_start = period_starts(now)

    products = session.execute(
        select(Product).options(selectinload(Product.recipe_items).selectinload(RecipeItem.material))
    ).scalars().all()
    cost_map = build_product_cost_map(products)
    names = {product.id: product.name for product in products}

    orders = session.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.zone))
        .order_by(Order.created_at.desc())
    ).scalars().all()
    delivered = [order for order in orders if order.status is OrderStatus.DELIVERED]
    cogs = sum_order_financials(delivered, cost_map)["cogs"]

    paid_sales = session.execute(
        select(Sale.date, Sale.total).where(Sale.status == SaleStatus.PAID)
    ).all()
    revenue = money(sum((total or ZERO for _, total in paid_sales), ZERO))
    today_sales = money(sum((total or ZERO for date, total in paid_sales if date >= day_start), ZERO))
    month_sales = money(sum((total or ZERO for date, total in paid_sales if date >= month_start), ZERO))

    expenses = expenses_total(session)
    profit = money(revenue - cogs - expenses)

    live_orders = [
        {
            "id": order.id,
            "code": order.code,
            "type": order.type.value,
            "status": order.status.value,
            "customer": order.customer_name,
            "total": calc_order_financials(order, cost_map).total,
            "created_at": iso_utc(order.created_at),
        }
        for order in orders
        if order.status in ACTIVE_ORDER_STATUSES
    ]

    sold: Counter = Counter()
    for order in delivered:
        for item in order.items:
            if item.product_id is not None and item.product_id in names:
                sold[item.product_id] += item.quantity
    top_products = [
        {"id": product_id, "name": names[product_id], "qty": qty}
        for product_id, qty in sorted(sold.items(), key=lambda entry: (-entry[1], names[entry[0]]))[:MAX_TOP_PRODUCTS]
    ]

    latest_waste = _latest_waste(session)
    latest_waste_cost = (latest_waste.cost or ZERO) if latest_waste is not None else ZERO

    return {
        "kpis": {
            "today_sales": today_sales,
            "month_sales": month_sales,
            "revenue": revenue,
            "expenses": expenses,
            "cogs": money(cogs),
            "profit": profit,
        },
        "alerts": _alerts(session, latest_waste),
        "live_orders": live_orders,
        "shift_summary": {
            "orders_count": sum(1 for order in orders if order.created_at >= day_start),
            "average_ticket": money(revenue / max(len(paid_sales), 1)),
            "delivery_orders": sum(1 for order in orders if order.type is OrderType.DELIVERY),
            "waste_rate": money(latest_waste_cost / revenue * 100) if revenue > ZERO else ZERO,
        },
        "top_products": top_products,
    }


__all__ = ["dashboard_overview", "period_starts"]
