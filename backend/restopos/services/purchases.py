"""
Suppliers and purchases.

A purchase carries one line (material, quantity, unit cost). Only POSTED
purchases count toward stock; every edit applies the difference between
the old and new posted quantities per material.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from restopos.db.models import Material, Purchase, PurchaseItem, PurchaseStatus, Supplier
from restopos.errors import Conflict, InsufficientStockForRevert, InvalidInput, NotFound
from restopos.services import inventory
from restopos.services.codes import unique_code
from restopos.services.common import UNSET, clean_text, coerce_enum, get_or_404, name_taken
from restopos.utils.numbers import ZERO, money, quantity as to_quantity
from restopos.utils.time_utils import iso_utc, parse_ui_date, utcnow

logger = logging.getLogger(__name__)

PURCHASE_PREFIX = "PUR"
DIRECT_SUPPLIER_NAME = "Direct purchase"
MIN_QUANTITY = Decimal("0.001")


# ---------- Suppliers ----------

def supplier_to_dict(supplier: Supplier) -> Dict[str, Any]:
    return {
        "id": supplier.id,
        "name": supplier.name,
        "phone": supplier.phone,
        "email": supplier.email,
        "is_active": supplier.is_active,
    }


def create_supplier(session: Session, *, name: str, phone: Optional[str] = None, email: Optional[str] = None) -> Supplier:
    name = clean_text(name, "name", 120)
    if name_taken(session, Supplier.name, name):
        raise Conflict(f"Supplier {name} already exists", code="supplier_exists")
    supplier = Supplier(
        name=name,
        phone=clean_text(phone, "phone", 40, required=False),
        email=clean_text(email, "email", 120, required=False),
        is_active=True,
    )
    session.add(supplier)
    session.flush()
    return supplier


def update_supplier(session: Session, supplier_id: int, *, name: Any = UNSET, phone: Any = UNSET, email: Any = UNSET, is_active: Any = UNSET) -> Supplier:
    supplier = get_or_404(session, Supplier, supplier_id, "supplier")
    if name is not UNSET:
        name = clean_text(name, "name", 120)
        if name_taken(session, Supplier.name, name, exclude_id=supplier.id):
            raise Conflict(f"Supplier {name} already exists", code="supplier_exists")
        supplier.name = name
    if phone is not UNSET:
        supplier.phone = clean_text(phone, "phone", 40, required=False)
    if email is not UNSET:
        supplier.email = clean_text(email, "email", 120, required=False)
    if is_active is not UNSET and is_active is not None:
        supplier.is_active = bool(is_active)
    session.flush()
    return supplier


def list_suppliers(session: Session, active_only: bool = False) -> List[Supplier]:
    stmt = select(Supplier).order_by(Supplier.name)
    if active_only:
        stmt = stmt.where(Supplier.is_active.is_(True))
    return list(session.execute(stmt).scalars())


def resolve_supplier(session: Session, supplier_id: Optional[int]) -> Supplier:
    """Return an active supplier; without one, use (or create) the direct-purchase supplier."""
    if supplier_id:
        supplier = get_or_404(session, Supplier, supplier_id, "supplier")
        if not supplier.is_active:
            raise InvalidInput(f"Supplier {supplier.name} is inactive", code="supplier_inactive")
        return supplier

    supplier = session.execute(
        select(Supplier).where(func.lower(Supplier.name) == DIRECT_SUPPLIER_NAME.lower())
    ).scalar_one_or_none()
    if supplier is None:
        supplier = Supplier(name=DIRECT_SUPPLIER_NAME, is_active=True)
        session.add(supplier)
        session.flush()
    elif not supplier.is_active:
        supplier.is_active = True
    return supplier


# ---------- Purchases ----------

def purchase_line(purchase: Purchase) -> Optional[PurchaseItem]:
    return purchase.items[0] if purchase.items else None


def purchase_to_dict(purchase: Purchase) -> Dict[str, Any]:
    line = purchase_line(purchase)
    return {
        "id": purchase.id,
        "code": purchase.code,
        "date": iso_utc(purchase.date),
        "supplier_id": purchase.supplier_id,
        "supplier": purchase.supplier.name if purchase.supplier else None,
        "material_id": line.material_id if line else None,
        "material": line.material.name if line else None,
        "quantity": line.quantity if line else None,
        "unit_cost": line.unit_cost if line else None,
        "total": purchase.total,
        "status": purchase.status.value,
        "notes": purchase.notes,
    }


def stock_deltas(
    old_status: Optional[PurchaseStatus],
    old_material_id: Optional[int],
    old_quantity: Decimal,
    new_status: Optional[PurchaseStatus],
    new_material_id: Optional[int],
    new_quantity: Decimal,
) -> Dict[int, Decimal]:
    """
    Per-material stock change between two purchase states.

    ``(posted(new) ? new_qty : 0) - (posted(old) ? old_qty : 0)`` for each
    material involved; zero entries are dropped.
    """
    deltas: Dict[int, Decimal] = {}
    if old_status is PurchaseStatus.POSTED and old_material_id is not None:
        deltas[old_material_id] = deltas.get(old_material_id, ZERO) - old_quantity
    if new_status is PurchaseStatus.POSTED and new_material_id is not None:
        deltas[new_material_id] = deltas.get(new_material_id, ZERO) + new_quantity
    return {material_id: delta for material_id, delta in deltas.items() if delta != ZERO}


def _apply_deltas(session: Session, deltas: Dict[int, Decimal]) -> None:
    for material_id in sorted(deltas):
        inventory.adjust_stock(session, material_id, deltas[material_id], error=InsufficientStockForRevert)


def _check_quantity(value: Any) -> Decimal:
    amount = to_quantity(value)
    if amount < MIN_QUANTITY:
        raise InvalidInput("Quantity must be at least 0.001", code="invalid_quantity")
    return amount


def _check_cost(value: Any) -> Decimal:
    cost = money(value)
    if cost < ZERO:
        raise InvalidInput("Unit cost must not be negative", code="invalid_unit_cost")
    return cost


def create_purchase(
    session: Session,
    *,
    material_id: int,
    quantity: Any,
    unit_cost: Any,
    date: Any = None,
    total: Any = None,
    status: Any = PurchaseStatus.DRAFT,
    supplier_id: Optional[int] = None,
    notes: Optional[str] = None,
    created_by_id: Optional[int] = None,
) -> Purchase:
    amount = _check_quantity(quantity)
    unit_cost = _check_cost(unit_cost)
    status = coerce_enum(PurchaseStatus, status or PurchaseStatus.DRAFT, "status")
    material = get_or_404(session, Material, material_id, "material")
    supplier = resolve_supplier(session, supplier_id)

    purchase = Purchase(
        code=unique_code(session, Purchase.code, PURCHASE_PREFIX),
        supplier=supplier,
        date=parse_ui_date(date) or utcnow(),
        total=money(total) if total is not None else money(amount * unit_cost),
        status=status,
        notes=clean_text(notes, "notes", 500, required=False),
        created_by_id=created_by_id,
        items=[PurchaseItem(material=material, quantity=amount, unit_cost=unit_cost, total_cost=money(amount * unit_cost))],
    )
    session.add(purchase)
    session.flush()

    if status is PurchaseStatus.POSTED:
        inventory.increment_stock(session, material.id, amount)
        logger.info("Posted purchase %s: +%s %s", purchase.code, amount, material.name)
    return purchase


def update_purchase(
    session: Session,
    purchase_id: int,
    *,
    material_id: Any = UNSET,
    quantity: Any = UNSET,
    unit_cost: Any = UNSET,
    date: Any = UNSET,
    total: Any = UNSET,
    status: Any = UNSET,
    supplier_id: Any = UNSET,
    notes: Any = UNSET,
) -> Purchase:
    """
    Edit a purchase and reconcile stock.

    Stock moves before the record changes; a negative delta that would drive
    stock below zero raises ``InsufficientStockForRevert`` and the caller's
    transaction rolls back, leaving the purchase untouched.
    """
    purchase = get_or_404(session, Purchase, purchase_id, "purchase")
    line = purchase_line(purchase)
    if line is None:
        raise NotFound("purchase line", purchase.id)

    new_status = coerce_enum(PurchaseStatus, status, "status") if status is not UNSET and status is not None else purchase.status
    new_material = get_or_404(session, Material, material_id, "material") if material_id is not UNSET and material_id else line.material
    new_quantity = _check_quantity(quantity) if quantity is not UNSET and quantity is not None else line.quantity
    new_unit_cost = _check_cost(unit_cost) if unit_cost is not UNSET and unit_cost is not None else line.unit_cost
    supplier = resolve_supplier(session, purchase.supplier_id if supplier_id is UNSET else supplier_id)

    deltas = stock_deltas(
        purchase.status, line.material_id, line.quantity,
        new_status, new_material.id, new_quantity,
    )
    _apply_deltas(session, deltas)

    line.material = new_material
    line.quantity = new_quantity
    line.unit_cost = new_unit_cost
    line.total_cost = money(new_quantity * new_unit_cost)
    if total is not UNSET and total is not None:
        purchase.total = money(total)
    elif quantity is not UNSET or unit_cost is not UNSET:
        purchase.total = line.total_cost
    if date is not UNSET and date is not None:
        purchase.date = parse_ui_date(date)
    if notes is not UNSET:
        purchase.notes = clean_text(notes, "notes", 500, required=False)

    if new_status is not purchase.status:
        logger.info("Purchase %s moved %s -> %s", purchase.code, purchase.status.value, new_status.value)
    purchase.supplier = supplier
    purchase.status = new_status
    purchase.updated_at = utcnow()
    session.flush()
    return purchase


def delete_purchase(session: Session, purchase_id: int) -> None:
    purchase = get_or_404(session, Purchase, purchase_id, "purchase")
    if purchase.status is not PurchaseStatus.DRAFT:
        raise InvalidInput("Only draft purchases can be deleted", code="purchase_not_draft")
    session.delete(purchase)
    session.flush()


def get_purchase(session: Session, purchase_id: int) -> Purchase:
    return get_or_404(session, Purchase, purchase_id, "purchase")


def list_purchases(session: Session, status: Optional[Any] = None) -> List[Purchase]:
    stmt = (
        select(Purchase)
        .options(selectinload(Purchase.items).selectinload(PurchaseItem.material), selectinload(Purchase.supplier))
        .order_by(Purchase.date.desc(), Purchase.id.desc())
    )
    if status:
        stmt = stmt.where(Purchase.status == coerce_enum(PurchaseStatus, status, "status"))
    return list(session.execute(stmt).scalars())
