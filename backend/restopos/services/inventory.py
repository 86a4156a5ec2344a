"""
Inventory ledger: material stock and its guarded adjustments.

Stock only changes through ``adjust_stock``. A decrement is a single
conditional UPDATE (``stock >= amount`` in the WHERE clause), so two
concurrent writers can never take the same units: the second one matches
zero rows and fails with ``InsufficientStock``.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from restopos.db.models import Material, PurchaseItem, RecipeItem, Waste
from restopos.errors import Conflict, InsufficientStock, InvalidInput, ReferentialBlock
from restopos.services.common import UNSET, clean_text, get_or_404, name_taken
from restopos.utils.numbers import ZERO, money, quantity
from restopos.utils.time_utils import iso_utc, utcnow

logger = logging.getLogger(__name__)


def _expire_cached_material(session: Session, material_id: int) -> None:
    key = session.identity_key(Material, material_id)
    cached = session.identity_map.get(key)
    if cached is not None:
        session.expire(cached, ["stock", "updated_at"])


def adjust_stock(
    session: Session,
    material_id: int,
    delta: Any,
    *,
    error: Type[InsufficientStock] = InsufficientStock,
) -> None:
    """
    Apply ``delta`` to a material's stock.

    Negative deltas are guarded: the update only matches while enough stock
    remains, otherwise ``error`` is raised. Positive deltas always apply.
    Unknown materials raise ``NotFound``.
    """
    delta = quantity(delta)
    if delta == ZERO:
        return

    stmt = update(Material).where(Material.id == material_id)
    if delta < ZERO:
        amount = -delta
        stmt = stmt.where(Material.stock >= amount).values(stock=Material.stock - amount, updated_at=utcnow())
    else:
        stmt = stmt.values(stock=Material.stock + delta, updated_at=utcnow())

    result = session.execute(stmt.execution_options(synchronize_session=False))
    _expire_cached_material(session, material_id)

    if result.rowcount == 0:
        material = get_or_404(session, Material, material_id, "material")
        logger.warning(
            "Rejected stock decrement of %s on material %s (%s), available %s",
            -delta, material.id, material.name, material.stock,
        )
        raise error(
            f"Not enough stock of {material.name}",
            details={"material_id": material.id, "requested": str(-delta), "available": str(material.stock)},
        )


def decrement_stock(session: Session, material_id: int, amount: Any, *, error: Type[InsufficientStock] = InsufficientStock) -> None:
    adjust_stock(session, material_id, -quantity(amount), error=error)


def increment_stock(session: Session, material_id: int, amount: Any) -> None:
    adjust_stock(session, material_id, quantity(amount))


def material_status(material: Material) -> str:
    return "low" if (material.stock or ZERO) <= (material.min_stock or ZERO) else "ok"


def material_to_dict(material: Material) -> Dict[str, Any]:
    return {
        "id": material.id,
        "name": material.name,
        "unit": material.unit,
        "cost": material.cost,
        "stock": material.stock,
        "min_stock": material.min_stock,
        "status": material_status(material),
        "updated_at": iso_utc(material.updated_at),
    }


def _non_negative(value: Any, field: str, convert=quantity) -> Decimal:
    converted = convert(value)
    if converted < ZERO:
        raise InvalidInput(f"{field} must not be negative", code=f"invalid_{field}")
    return converted


def create_material(
    session: Session,
    *,
    name: str,
    unit: str,
    cost: Any = 0,
    stock: Any = 0,
    min_stock: Any = 0,
) -> Material:
    name = clean_text(name, "name", 120)
    if name_taken(session, Material.name, name):
        raise Conflict(f"Material {name} already exists", code="material_exists")

    material = Material(
        name=name,
        unit=clean_text(unit, "unit", 40),
        cost=_non_negative(cost, "cost", money),
        stock=_non_negative(stock, "stock"),
        min_stock=_non_negative(min_stock, "min_stock"),
    )
    session.add(material)
    session.flush()
    logger.info("Created material %s (%s)", material.id, material.name)
    return material


def update_material(
    session: Session,
    material_id: int,
    *,
    name: Any = UNSET,
    unit: Any = UNSET,
    cost: Any = UNSET,
    stock: Any = UNSET,
    min_stock: Any = UNSET,
) -> Material:
    material = get_or_404(session, Material, material_id, "material")

    if name is not UNSET:
        name = clean_text(name, "name", 120)
        if name_taken(session, Material.name, name, exclude_id=material.id):
            raise Conflict(f"Material {name} already exists", code="material_exists")
        material.name = name
    if unit is not UNSET:
        material.unit = clean_text(unit, "unit", 40)
    if cost is not UNSET:
        material.cost = _non_negative(cost, "cost", money)
    if stock is not UNSET:
        # Stock count correction; never below zero
        material.stock = _non_negative(stock, "stock")
    if min_stock is not UNSET:
        material.min_stock = _non_negative(min_stock, "min_stock")

    material.updated_at = utcnow()
    session.flush()
    return material


def delete_material(session: Session, material_id: int) -> None:
    material = get_or_404(session, Material, material_id, "material")

    for model in (RecipeItem, PurchaseItem, Waste):
        in_use = session.execute(
            select(model.id).where(model.material_id == material.id).limit(1)
        ).first()
        if in_use is not None:
            raise ReferentialBlock(
                f"Material {material.name} is referenced by {model.__tablename__}",
                code="material_in_use",
            )

    session.delete(material)
    session.flush()
    logger.info("Deleted material %s (%s)", material_id, material.name)


def get_material(session: Session, material_id: int) -> Material:
    return get_or_404(session, Material, material_id, "material")


def list_materials(session: Session, search: Optional[str] = None, low_only: bool = False) -> List[Material]:
    stmt = select(Material).order_by(Material.name)
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(or_(func.lower(Material.name).like(pattern), func.lower(Material.unit).like(pattern)))
    if low_only:
        stmt = stmt.where(Material.stock <= Material.min_stock)
    return list(session.execute(stmt).scalars())
