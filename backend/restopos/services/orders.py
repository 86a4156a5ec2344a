"""
Order aggregate: creation, status transitions, adjustments and deletion.

Creating an order consumes recipe materials through the guarded stock
decrement and seats it on its table in the same transaction. Reaching
DELIVERED materializes the order's sale; DELIVERED and CANCELLED are
terminal.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from restopos import config
from restopos.db.models import (
    Driver,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentMethod,
    Product,
    RecipeItem,
    Zone,
)
from restopos.errors import (
    InvalidInput,
    InvalidProducts,
    InvalidTypeCombination,
    OrderCancelled,
    OrderFinalized,
)
from restopos.services import inventory
from restopos.services.codes import unique_code
from restopos.services.common import UNSET, clean_text, coerce_enum, get_or_404
from restopos.services.tables import ACTIVE_ORDER_STATUSES, ensure_table_available, refresh_table_occupancy
from restopos.utils.numbers import ZERO, money, quantity
from restopos.utils.time_utils import iso_utc, utcnow

logger = logging.getLogger(__name__)

TERMINAL_ORDER_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)
MAX_ORDER_LINES = 200
MAX_LINE_QUANTITY = 999
MAX_DISCOUNT = Decimal("1000000")


@dataclass
class OrderTotals:
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal

    def as_dict(self) -> Dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "discount": self.discount,
            "tax_rate": self.tax_rate,
            "tax_amount": self.tax_amount,
            "total": self.total,
        }


def order_subtotal(order: Order) -> Decimal:
    return money(sum((item.total_price or ZERO for item in order.items), ZERO))


def order_totals(order: Order) -> OrderTotals:
    """
    Compute the order's money figures.

    The delivery fee only applies to DELIVERY orders with a zone. Tax is the
    stored amount when positive, otherwise ``(subtotal - discount) * rate``.
    """
    subtotal = order_subtotal(order)
    delivery_fee = money(order.zone.fee) if order.type is OrderType.DELIVERY and order.zone is not None else ZERO
    discount = money(order.discount or ZERO)
    tax_rate = order.tax_rate or ZERO
    taxable = max(ZERO, subtotal - discount)
    stored_tax = money(order.tax_amount or ZERO)
    tax_amount = stored_tax if stored_tax > ZERO else money(taxable * tax_rate / 100)
    return OrderTotals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        discount=discount,
        tax_rate=money(tax_rate),
        tax_amount=tax_amount,
        total=money(taxable + delivery_fee + tax_amount),
    )


def order_to_dict(order: Order) -> Dict[str, Any]:
    totals = order_totals(order)
    return {
        "id": order.id,
        "code": order.code,
        "type": order.type.value,
        "status": order.status.value,
        "customer_name": order.customer_name,
        "zone_id": order.zone_id,
        "zone": order.zone.name if order.zone else None,
        "table_id": order.table_id,
        "table": order.table.name if order.table else None,
        "driver_id": order.driver_id,
        "driver": order.driver.name if order.driver else None,
        "payment": order.payment.value,
        "notes": order.notes,
        "items": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
            for item in order.items
        ],
        "sale_id": order.sale.id if order.sale else None,
        "created_at": iso_utc(order.created_at),
        "updated_at": iso_utc(order.updated_at),
        **totals.as_dict(),
    }


def _normalize_lines(items: Iterable[Dict[str, Any]]) -> List[Dict[str, int]]:
    lines = list(items or [])
    if not lines:
        raise InvalidInput("An order needs at least one item", code="empty_order")
    if len(lines) > MAX_ORDER_LINES:
        raise InvalidInput(f"An order can have at most {MAX_ORDER_LINES} items", code="too_many_items")

    normalized = []
    for line in lines:
        qty = line.get("quantity")
        if isinstance(qty, bool) or not isinstance(qty, int) or not 1 <= qty <= MAX_LINE_QUANTITY:
            raise InvalidInput(
                f"Item quantity must be an integer between 1 and {MAX_LINE_QUANTITY}",
                code="invalid_quantity",
            )
        normalized.append({"product_id": int(line["product_id"]), "quantity": qty})
    return normalized


def _check_discount(value: Any) -> Decimal:
    discount = money(value or 0)
    if discount < ZERO or discount > MAX_DISCOUNT:
        raise InvalidInput("Discount is out of range", code="invalid_discount")
    return discount


def _check_tax_rate(value: Any) -> Decimal:
    rate = money(value or 0)
    if rate < ZERO or rate > 100:
        raise InvalidInput("Tax rate must be between 0 and 100", code="invalid_tax_rate")
    return rate


def material_usage(lines: Iterable[tuple]) -> "OrderedDict[int, Decimal]":
    """Sum recipe consumption per material for ``(product, quantity)`` pairs."""
    usage: "OrderedDict[int, Decimal]" = OrderedDict()
    for product, qty in lines:
        for recipe_line in product.recipe_items:
            usage[recipe_line.material_id] = usage.get(recipe_line.material_id, ZERO) + quantity(recipe_line.quantity * qty)
    return usage


def create_order(
    session: Session,
    *,
    order_type: Any,
    customer_name: str,
    items: Iterable[Dict[str, Any]],
    zone_id: Optional[int] = None,
    table_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    discount: Any = 0,
    tax_rate: Any = None,
    payment: Any = PaymentMethod.CASH,
    notes: Optional[str] = None,
    created_by_id: Optional[int] = None,
) -> Order:
    """
    Create an order, consume its materials and seat it on its table.

    Checks run in a fixed order: type/zone/table combination, active
    products, stock (one guarded decrement per material), table
    availability, zone and driver existence. Any failure aborts the
    surrounding transaction, so no partial decrement survives.
    """
    order_type = coerce_enum(OrderType, order_type, "type")
    payment = coerce_enum(PaymentMethod, payment or PaymentMethod.CASH, "payment")
    customer_name = clean_text(customer_name, "customer_name", 120)
    notes = clean_text(notes, "notes", 500, required=False)
    lines = _normalize_lines(items)
    discount = _check_discount(discount)
    tax_rate = _check_tax_rate(tax_rate)

    if order_type is OrderType.DELIVERY and not zone_id:
        raise InvalidTypeCombination("Delivery orders need a zone", code="zone_required")
    if order_type is not OrderType.DELIVERY and zone_id:
        raise InvalidTypeCombination("Only delivery orders can have a zone", code="invalid_zone")
    if order_type is not OrderType.DINE_IN and table_id:
        raise InvalidTypeCombination("Only dine-in orders can have a table", code="invalid_table")

    product_ids = sorted({line["product_id"] for line in lines})
    products = {
        product.id: product
        for product in session.execute(
            select(Product)
            .where(Product.id.in_(product_ids), Product.is_active.is_(True))
            .options(selectinload(Product.recipe_items))
        ).scalars()
    }
    if len(products) != len(product_ids):
        raise InvalidProducts(details={"product_ids": sorted(set(product_ids) - set(products))})

    usage = material_usage((products[line["product_id"]], line["quantity"]) for line in lines)
    for material_id in sorted(usage):
        inventory.decrement_stock(session, material_id, usage[material_id])

    table = ensure_table_available(session, table_id) if table_id else None
    zone = get_or_404(session, Zone, zone_id, "zone") if zone_id else None
    driver = get_or_404(session, Driver, driver_id, "driver") if driver_id else None

    order = Order(
        code=unique_code(session, Order.code, config.ORDER_CODE_PREFIX),
        type=order_type,
        status=OrderStatus.PREPARING,
        customer_name=customer_name,
        zone=zone,
        table=table,
        driver=driver,
        discount=discount,
        tax_rate=tax_rate,
        tax_amount=ZERO,
        payment=payment,
        notes=notes,
        created_by_id=created_by_id,
    )
    for line in lines:
        product = products[line["product_id"]]
        unit_price = money(product.price)
        order.items.append(
            OrderItem(
                product_id=product.id,
                name=product.name,
                quantity=line["quantity"],
                unit_price=unit_price,
                total_price=money(unit_price * line["quantity"]),
            )
        )

    session.add(order)
    session.flush()
    if table is not None:
        refresh_table_occupancy(session, table.id)

    logger.info("Created order %s (%s, %d lines)", order.code, order_type.value, len(lines))
    return order


def _assert_adjustable(order: Order) -> None:
    if order.status is OrderStatus.DELIVERED:
        raise OrderFinalized("Delivered orders cannot be adjusted")
    if order.status is OrderStatus.CANCELLED:
        raise OrderCancelled("Cancelled orders cannot be adjusted")


def _apply_item_deductions(session: Session, order: Order, deductions: Iterable[Dict[str, Any]]) -> None:
    """Reduce or drop order lines and return their materials to stock."""
    lines_by_id = {item.id: item for item in order.items}
    restored: "OrderedDict[int, Decimal]" = OrderedDict()

    for deduction in deductions:
        item = lines_by_id.get(int(deduction["item_id"]))
        if item is None:
            raise InvalidInput("Deduction refers to an item outside this order", code="invalid_deduction_items")
        amount = deduction.get("quantity")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
            raise InvalidInput("Deduction quantity must be a positive integer", code="invalid_quantity")
        amount = min(amount, item.quantity)

        if item.product_id is not None:
            recipe = session.execute(
                select(RecipeItem).where(RecipeItem.product_id == item.product_id)
            ).scalars()
            for recipe_line in recipe:
                restored[recipe_line.material_id] = restored.get(recipe_line.material_id, ZERO) + quantity(
                    recipe_line.quantity * amount
                )

        remaining = item.quantity - amount
        if remaining <= 0:
            order.items.remove(item)
            del lines_by_id[item.id]
        else:
            item.quantity = remaining
            item.total_price = money(item.unit_price * remaining)

    if not order.items:
        raise InvalidInput("An order needs at least one item", code="empty_order")

    session.flush()
    for material_id in sorted(restored):
        inventory.increment_stock(session, material_id, restored[material_id])


def update_order(
    session: Session,
    order_id: int,
    *,
    status: Any = UNSET,
    table_id: Any = UNSET,
    driver_id: Any = UNSET,
    notes: Any = UNSET,
    discount: Any = UNSET,
    item_deductions: Optional[Iterable[Dict[str, Any]]] = None,
    actor_id: Optional[int] = None,
) -> Order:
    """
    Apply a partial update to an order.

    DELIVERED and CANCELLED orders never move to another status. Moving to a
    table checks it for other active orders. Occupancy of the previous and
    new table is recomputed afterwards. An explicit DELIVERED status (first
    time or replay), or a discount edit on a delivered order, upserts the
    order's sale.
    """
    order = get_or_404(session, Order, order_id, "order")
    if discount is None:
        discount = UNSET
    current = order.status
    requested = coerce_enum(OrderStatus, status, "status") if status is not UNSET and status is not None else None
    next_status = requested or current

    if current is OrderStatus.DELIVERED and next_status is not OrderStatus.DELIVERED:
        raise OrderFinalized()
    if current is OrderStatus.CANCELLED and next_status is not OrderStatus.CANCELLED:
        raise OrderCancelled()

    previous_table_id = order.table_id

    if table_id is not UNSET:
        if table_id:
            if order.type is not OrderType.DINE_IN:
                raise InvalidTypeCombination("Only dine-in orders can have a table", code="invalid_table")
            order.table = ensure_table_available(session, table_id, exclude_order_id=order.id)
        else:
            order.table = None

    if driver_id is not UNSET:
        order.driver = get_or_404(session, Driver, driver_id, "driver") if driver_id else None

    if notes is not UNSET:
        order.notes = clean_text(notes, "notes", 500, required=False)

    deductions = list(item_deductions or [])
    if deductions:
        _assert_adjustable(order)
        _apply_item_deductions(session, order, deductions)

    if discount is not UNSET or deductions:
        subtotal = order_subtotal(order)
        if discount is not UNSET:
            order.discount = min(subtotal, max(ZERO, money(discount or 0)))
        else:
            order.discount = min(subtotal, money(order.discount or ZERO))
        taxable = max(ZERO, subtotal - order.discount)
        order.tax_amount = money(taxable * (order.tax_rate or ZERO) / 100)

    order.status = next_status
    order.updated_at = utcnow()
    session.flush()

    refresh_table_occupancy(session, previous_table_id, order.table_id)

    if next_status is not current:
        logger.info("Order %s moved %s -> %s", order.code, current.value, next_status.value)

    # A delivered order keeps its sale in step with its billed totals
    if requested is OrderStatus.DELIVERED or (next_status is OrderStatus.DELIVERED and discount is not UNSET):
        from restopos.services.sales import materialize_sale

        materialize_sale(session, order.id, actor_id=actor_id)

    return order


def delete_order(session: Session, order_id: int) -> None:
    """Delete an order in any status; a linked sale stays as a standalone invoice."""
    order = get_or_404(session, Order, order_id, "order")
    table_id = order.table_id
    if order.sale is not None:
        order.sale.order_id = None
        order.sale = None
    session.delete(order)
    session.flush()
    refresh_table_occupancy(session, table_id)
    logger.info("Deleted order %s", order.code)


def get_order(session: Session, order_id: int) -> Order:
    return get_or_404(session, Order, order_id, "order")


def list_orders(
    session: Session,
    status: Optional[Any] = None,
    search: Optional[str] = None,
    limit: int = 200,
) -> List[Order]:
    stmt = (
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.zone), selectinload(Order.table), selectinload(Order.driver))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
    )
    if status:
        if status == "active":
            stmt = stmt.where(Order.status.in_(ACTIVE_ORDER_STATUSES))
        else:
            stmt = stmt.where(Order.status == coerce_enum(OrderStatus, status, "status"))
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(or_(func.lower(Order.code).like(pattern), func.lower(Order.customer_name).like(pattern)))
    return list(session.execute(stmt).scalars())


def count_active_orders(session: Session, **filters: Any) -> int:
    stmt = select(func.count(Order.id)).where(Order.status.in_(ACTIVE_ORDER_STATUSES))
    for column, value in filters.items():
        stmt = stmt.where(getattr(Order, column) == value)
    return session.execute(stmt).scalar_one()


__all__ = [
    "ACTIVE_ORDER_STATUSES",
    "TERMINAL_ORDER_STATUSES",
    "OrderTotals",
    "count_active_orders",
    "create_order",
    "delete_order",
    "get_order",
    "list_orders",
    "material_usage",
    "order_to_dict",
    "order_totals",
    "update_order",
]
