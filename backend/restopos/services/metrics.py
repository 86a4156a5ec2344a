"""
Reporting figures computed from orders at report time.

COGS uses each product's *current* recipe and material costs, so editing
a recipe or a material cost changes historical profit figures.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from restopos.db.models import (
    Material,
    Order,
    OrderStatus,
    OrderType,
    Product,
    Purchase,
    PurchaseStatus,
    RecipeItem,
    Waste,
)
from restopos.utils.numbers import ZERO, money
from restopos.utils.time_utils import parse_ui_date


@dataclass
class OrderFinancials:
    subtotal: Decimal
    cogs: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal
    profit: Decimal


def build_product_cost_map(products: Iterable[Product]) -> Dict[int, Decimal]:
    cost_map = {}
    for product in products:
        cost_map[product.id] = sum(
            ((line.quantity or ZERO) * (line.material.cost or ZERO) for line in product.recipe_items),
            ZERO,
        )
    return cost_map


def calc_order_financials(order: Order, cost_map: Dict[int, Decimal]) -> OrderFinancials:
    subtotal = ZERO
    cogs = ZERO
    for item in order.items:
        if item.total_price is not None:
            subtotal += item.total_price
        else:
            subtotal += (item.unit_price or ZERO) * item.quantity
        if item.product_id is not None:
            cogs += cost_map.get(item.product_id, ZERO) * item.quantity

    discount = order.discount or ZERO
    delivery_fee = (order.zone.fee or ZERO) if order.type is OrderType.DELIVERY and order.zone is not None else ZERO
    return OrderFinancials(
        subtotal=money(subtotal),
        cogs=money(cogs),
        delivery_fee=money(delivery_fee),
        discount=money(discount),
        total=money(max(ZERO, subtotal + delivery_fee - discount)),
        profit=money(subtotal - cogs - discount),
    )


def sum_order_financials(orders: Iterable[Order], cost_map: Dict[int, Decimal]) -> Dict[str, Decimal]:
    totals = OrderedDict((key, ZERO) for key in ("revenue", "cogs", "delivery", "discount", "total", "profit"))
    for order in orders:
        figures = calc_order_financials(order, cost_map)
        totals["revenue"] += figures.subtotal
        totals["cogs"] += figures.cogs
        totals["delivery"] += figures.delivery_fee
        totals["discount"] += figures.discount
        totals["total"] += figures.total
        totals["profit"] += figures.profit
    return dict(totals)


def date_range(date_from: Any, date_to: Any):
    start = parse_ui_date(date_from)
    end = parse_ui_date(date_to)
    if end is not None and isinstance(date_to, str) and len(date_to.strip()) == 10:
        # Date-only upper bound includes the whole day
        end = end + timedelta(days=1)
    return start, end


def report_summary(session: Session, date_from: Any = None, date_to: Any = None) -> Dict[str, Any]:
    """Revenue, COGS and profit of delivered orders, with daily and category breakdowns."""
    start, end = date_range(date_from, date_to)

    products = session.execute(
        select(Product).options(
            selectinload(Product.recipe_items).selectinload(RecipeItem.material),
            selectinload(Product.category),
        )
    ).scalars().all()
    cost_map = build_product_cost_map(products)
    categories = {product.id: product.category for product in products}

    stmt = (
        select(Order)
        .where(Order.status == OrderStatus.DELIVERED)
        .options(selectinload(Order.items), selectinload(Order.zone))
        .order_by(Order.created_at)
    )
    if start is not None:
        stmt = stmt.where(Order.created_at >= start)
    if end is not None:
        stmt = stmt.where(Order.created_at < end)
    orders = session.execute(stmt).scalars().all()

    daily: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    by_category: Dict[Optional[int], Dict[str, Any]] = {}
    for order in orders:
        figures = calc_order_financials(order, cost_map)
        day = order.created_at.date().isoformat()
        bucket = daily.setdefault(day, {"date": day, "count": 0, "total": ZERO, "profit": ZERO})
        bucket["count"] += 1
        bucket["total"] += figures.total
        bucket["profit"] += figures.profit

        for item in order.items:
            category = categories.get(item.product_id) if item.product_id is not None else None
            if category is None:
                continue
            row = by_category.setdefault(
                category.id, {"id": category.id, "name": category.name, "revenue": ZERO, "cogs": ZERO, "profit": ZERO}
            )
            item_cogs = money(cost_map.get(item.product_id, ZERO) * item.quantity)
            row["revenue"] += item.total_price
            row["cogs"] += item_cogs
            row["profit"] += item.total_price - item_cogs

    waste_stmt = select(func.coalesce(func.sum(Waste.cost), 0))
    purchase_stmt = select(func.coalesce(func.sum(Purchase.total), 0)).where(Purchase.status == PurchaseStatus.POSTED)
    if start is not None:
        waste_stmt = waste_stmt.where(Waste.date >= start)
        purchase_stmt = purchase_stmt.where(Purchase.date >= start)
    if end is not None:
        waste_stmt = waste_stmt.where(Waste.date < end)
        purchase_stmt = purchase_stmt.where(Purchase.date < end)

    inventory_value = sum(
        ((stock or ZERO) * (cost or ZERO) for stock, cost in session.execute(select(Material.stock, Material.cost))),
        ZERO,
    )

    return {
        "from": start.isoformat() if isinstance(start, datetime) else None,
        "to": end.isoformat() if isinstance(end, datetime) else None,
        "orders": len(orders),
        "totals": sum_order_financials(orders, cost_map),
        "daily": list(daily.values()),
        "categories": sorted(by_category.values(), key=lambda row: row["revenue"], reverse=True),
        "waste_cost": money(session.execute(waste_stmt).scalar_one()),
        "purchases_total": money(session.execute(purchase_stmt).scalar_one()),
        "inventory_value": money(inventory_value),
    }
