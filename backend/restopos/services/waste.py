"""Waste records: every record holds its quantity out of stock."""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from restopos.db.models import Material, Waste
from restopos.errors import InvalidInput
from restopos.services import inventory
from restopos.services.common import UNSET, clean_text, get_or_404
from restopos.utils.numbers import ZERO, money, quantity as to_quantity
from restopos.utils.time_utils import iso_utc, parse_ui_date, utcnow

logger = logging.getLogger(__name__)

MIN_QUANTITY = Decimal("0.001")


def waste_to_dict(waste: Waste) -> Dict[str, Any]:
    return {
        "id": waste.id,
        "date": iso_utc(waste.date),
        "material_id": waste.material_id,
        "material": waste.material.name if waste.material else None,
        "unit": waste.material.unit if waste.material else None,
        "quantity": waste.quantity,
        "reason": waste.reason,
        "cost": waste.cost,
    }


def _check_quantity(value: Any) -> Decimal:
    amount = to_quantity(value)
    if amount < MIN_QUANTITY:
        raise InvalidInput("Quantity must be at least 0.001", code="invalid_quantity")
    return amount


def _cost(material: Material, amount: Decimal, cost: Any) -> Decimal:
    if cost is None:
        return money((material.cost or ZERO) * amount)
    cost = money(cost)
    if cost < ZERO:
        raise InvalidInput("Cost must not be negative", code="invalid_cost")
    return cost


def create_waste(
    session: Session,
    *,
    material_id: int,
    quantity: Any,
    reason: str,
    date: Any = None,
    cost: Any = None,
    created_by_id: Optional[int] = None,
) -> Waste:
    amount = _check_quantity(quantity)
    reason = clean_text(reason, "reason", 200)
    material = get_or_404(session, Material, material_id, "material")

    inventory.decrement_stock(session, material.id, amount)

    waste = Waste(
        date=parse_ui_date(date) or utcnow(),
        material=material,
        quantity=amount,
        reason=reason,
        cost=_cost(material, amount, cost),
        created_by_id=created_by_id,
    )
    session.add(waste)
    session.flush()
    logger.info("Recorded waste %s: -%s %s", waste.id, amount, material.name)
    return waste


def update_waste(
    session: Session,
    waste_id: int,
    *,
    material_id: Any = UNSET,
    quantity: Any = UNSET,
    reason: Any = UNSET,
    date: Any = UNSET,
    cost: Any = UNSET,
) -> Waste:
    """
    Edit a waste record.

    Same material: only the net difference moves (guarded when it grows).
    Different material: the old quantity returns to the old material and
    the new quantity is taken from the new one.
    """
    waste = get_or_404(session, Waste, waste_id, "waste")
    old_material_id = waste.material_id
    old_quantity = waste.quantity

    new_material = (
        get_or_404(session, Material, material_id, "material")
        if material_id is not UNSET and material_id
        else waste.material
    )
    new_quantity = _check_quantity(quantity) if quantity is not UNSET and quantity is not None else old_quantity

    if new_material.id == old_material_id:
        # Waste grows -> stock shrinks
        inventory.adjust_stock(session, old_material_id, old_quantity - new_quantity)
    else:
        inventory.increment_stock(session, old_material_id, old_quantity)
        inventory.decrement_stock(session, new_material.id, new_quantity)

    waste.material = new_material
    waste.quantity = new_quantity
    if reason is not UNSET:
        waste.reason = clean_text(reason, "reason", 200)
    if date is not UNSET and date is not None:
        waste.date = parse_ui_date(date)
    if cost is not UNSET:
        waste.cost = _cost(new_material, new_quantity, cost)
    elif quantity is not UNSET or material_id is not UNSET:
        waste.cost = _cost(new_material, new_quantity, None)

    session.flush()
    return waste


def delete_waste(session: Session, waste_id: int) -> None:
    waste = get_or_404(session, Waste, waste_id, "waste")
    inventory.increment_stock(session, waste.material_id, waste.quantity)
    session.delete(waste)
    session.flush()
    logger.info("Deleted waste %s, restored %s to material %s", waste_id, waste.quantity, waste.material_id)


def get_waste(session: Session, waste_id: int) -> Waste:
    return get_or_404(session, Waste, waste_id, "waste")


def list_waste(session: Session, material_id: Optional[int] = None) -> List[Waste]:
    stmt = select(Waste).options(selectinload(Waste.material)).order_by(Waste.date.desc(), Waste.id.desc())
    if material_id is not None:
        stmt = stmt.where(Waste.material_id == material_id)
    return list(session.execute(stmt).scalars())
