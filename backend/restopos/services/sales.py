"""
Sales (invoices).

Order-linked sales are owned by the order lifecycle: ``materialize_sale``
creates or refreshes them when the order reaches DELIVERED, and direct
edits are refused. Manual sales go DRAFT -> PAID through approval.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from restopos.db.models import Sale, SaleItem, SaleStatus
from restopos.errors import InvalidInput
from restopos.services.codes import unique_code
from restopos.services.common import UNSET, clean_text, coerce_enum, get_or_404
from restopos.services.orders import get_order, order_totals
from restopos.utils.numbers import ZERO, money
from restopos.utils.time_utils import iso_utc, parse_ui_date, utcnow

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV"


def sale_to_dict(sale: Sale) -> Dict[str, Any]:
    return {
        "id": sale.id,
        "invoice_no": sale.invoice_no,
        "order_id": sale.order_id,
        "date": iso_utc(sale.date),
        "customer_name": sale.customer_name,
        "total": sale.total,
        "status": sale.status.value,
        "notes": sale.notes,
        "items": [
            {
                "product_id": item.product_id,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
            for item in sale.items
        ],
        "created_at": iso_utc(sale.created_at),
    }


def materialize_sale(session: Session, order_id: int, actor_id: Optional[int] = None) -> Sale:
    """
    Create or refresh the PAID sale of a delivered order.

    Keyed by the unique ``sales.order_id``: a replay finds the existing sale,
    replaces its lines and recomputes its total, so an order never has more
    than one sale. The invoice number is assigned once.
    """
    order = get_order(session, order_id)
    totals = order_totals(order)

    sale = session.execute(select(Sale).where(Sale.order_id == order.id)).scalar_one_or_none()
    created = sale is None
    if created:
        sale = Sale(
            invoice_no=unique_code(session, Sale.invoice_no, INVOICE_PREFIX),
            order=order,
            created_by_id=actor_id or order.created_by_id,
        )
        session.add(sale)
    else:
        sale.items.clear()
        session.flush()

    sale.date = utcnow()
    sale.customer_name = order.customer_name
    sale.total = totals.total
    sale.status = SaleStatus.PAID
    sale.items.extend(
        SaleItem(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
        )
        for item in order.items
    )
    session.flush()

    logger.info(
        "%s sale %s for order %s (total %s)",
        "Created" if created else "Refreshed", sale.invoice_no, order.code, sale.total,
    )
    return sale


def _line_items(items: Iterable[Union[str, Dict[str, Any]]]) -> List[SaleItem]:
    """Manual sale lines: plain names, or dicts with name/quantity/unit_price."""
    lines = []
    for entry in items or []:
        if isinstance(entry, str):
            entry = {"name": entry}
        name = clean_text(entry.get("name"), "item_name", 120)
        qty = int(entry.get("quantity") or 1)
        if qty < 1:
            raise InvalidInput("Item quantity must be positive", code="invalid_quantity")
        unit_price = money(entry.get("unit_price") or 0)
        lines.append(SaleItem(name=name, quantity=qty, unit_price=unit_price, total_price=money(unit_price * qty)))
    return lines


def _check_total(total: Any) -> Any:
    total = money(total)
    if total < ZERO:
        raise InvalidInput("Total must not be negative", code="invalid_total")
    return total


def create_sale(
    session: Session,
    *,
    customer_name: str,
    total: Any,
    date: Any = None,
    status: Any = SaleStatus.DRAFT,
    items: Iterable[Union[str, Dict[str, Any]]] = (),
    notes: Optional[str] = None,
    created_by_id: Optional[int] = None,
) -> Sale:
    sale = Sale(
        invoice_no=unique_code(session, Sale.invoice_no, INVOICE_PREFIX),
        date=parse_ui_date(date) or utcnow(),
        customer_name=clean_text(customer_name, "customer_name", 120),
        total=_check_total(total),
        status=coerce_enum(SaleStatus, status or SaleStatus.DRAFT, "status"),
        notes=clean_text(notes, "notes", 500, required=False),
        created_by_id=created_by_id,
        items=_line_items(items),
    )
    session.add(sale)
    session.flush()
    logger.info("Created manual sale %s (%s)", sale.invoice_no, sale.status.value)
    return sale


def _assert_editable(sale: Sale) -> None:
    if sale.status is not SaleStatus.DRAFT:
        raise InvalidInput("Only draft sales can be changed", code="sale_not_draft")
    if sale.order_id is not None:
        raise InvalidInput("Order-linked sales are managed by their order", code="linked_sale_protected")


def update_sale(
    session: Session,
    sale_id: int,
    *,
    customer_name: Any = UNSET,
    total: Any = UNSET,
    date: Any = UNSET,
    items: Any = UNSET,
    notes: Any = UNSET,
    status: Any = UNSET,
) -> Sale:
    sale = get_or_404(session, Sale, sale_id, "sale")
    _assert_editable(sale)

    if customer_name is not UNSET:
        sale.customer_name = clean_text(customer_name, "customer_name", 120)
    if total is not UNSET:
        sale.total = _check_total(total)
    if date is not UNSET and date is not None:
        sale.date = parse_ui_date(date)
    if notes is not UNSET:
        sale.notes = clean_text(notes, "notes", 500, required=False)
    if items is not UNSET and items is not None:
        sale.items.clear()
        session.flush()
        sale.items.extend(_line_items(items))
    if status is not UNSET and status is not None:
        sale.status = coerce_enum(SaleStatus, status, "status")

    session.flush()
    return sale


def approve_sale(session: Session, sale_id: int) -> Sale:
    """DRAFT -> PAID for manual sales."""
    sale = get_or_404(session, Sale, sale_id, "sale")
    if sale.order_id is not None:
        raise InvalidInput("Order-linked sales are approved by delivering the order", code="linked_sale_auto_managed")
    if sale.status is not SaleStatus.DRAFT:
        raise InvalidInput("Only draft sales can be approved", code="sale_not_draft")
    sale.status = SaleStatus.PAID
    session.flush()
    logger.info("Approved sale %s", sale.invoice_no)
    return sale


def delete_sale(session: Session, sale_id: int) -> None:
    sale = get_or_404(session, Sale, sale_id, "sale")
    _assert_editable(sale)
    session.delete(sale)
    session.flush()


def get_sale(session: Session, sale_id: int) -> Sale:
    return get_or_404(session, Sale, sale_id, "sale")


def list_sales(session: Session, status: Optional[Any] = None, search: Optional[str] = None) -> List[Sale]:
    stmt = select(Sale).options(selectinload(Sale.items)).order_by(Sale.date.desc(), Sale.id.desc())
    if status:
        stmt = stmt.where(Sale.status == coerce_enum(SaleStatus, status, "status"))
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(or_(func.lower(Sale.invoice_no).like(pattern), func.lower(Sale.customer_name).like(pattern)))
    return list(session.execute(stmt).scalars())
