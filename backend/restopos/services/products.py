"""Categories, products and recipe costing."""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from restopos.db.models import Category, Material, OrderItem, Product, RecipeItem, SaleItem
from restopos.errors import Conflict, InvalidInput, InvalidMaterials, NotFound, ReferentialBlock
from restopos.services.common import UNSET, clean_text, get_or_404, name_taken
from restopos.utils.numbers import ZERO, money, quantity
from restopos.utils.time_utils import iso_utc, utcnow

logger = logging.getLogger(__name__)


# ---------- Categories ----------

def category_to_dict(category: Category, product_count: int = 0) -> Dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "product_count": product_count,
    }


def list_categories(session: Session) -> List[Tuple[Category, int]]:
    stmt = (
        select(Category, func.count(Product.id))
        .outerjoin(Product, Product.category_id == Category.id)
        .group_by(Category.id)
        .order_by(Category.name)
    )
    return [(category, count) for category, count in session.execute(stmt).all()]


def create_category(session: Session, *, name: str, description: Optional[str] = None) -> Category:
    name = clean_text(name, "name", 120)
    if name_taken(session, Category.name, name):
        raise Conflict(f"Category {name} already exists", code="category_exists")
    category = Category(name=name, description=clean_text(description, "description", 500, required=False))
    session.add(category)
    session.flush()
    return category


def update_category(session: Session, category_id: int, *, name: Any = UNSET, description: Any = UNSET) -> Category:
    category = get_or_404(session, Category, category_id, "category")
    if name is not UNSET:
        name = clean_text(name, "name", 120)
        if name_taken(session, Category.name, name, exclude_id=category.id):
            raise Conflict(f"Category {name} already exists", code="category_exists")
        category.name = name
    if description is not UNSET:
        category.description = clean_text(description, "description", 500, required=False)
    session.flush()
    return category


def delete_category(session: Session, category_id: int) -> None:
    category = get_or_404(session, Category, category_id, "category")
    has_products = session.execute(
        select(Product.id).where(Product.category_id == category.id).limit(1)
    ).first()
    if has_products is not None:
        raise ReferentialBlock("Category still has products", code="category_in_use")
    session.delete(category)
    session.flush()


# ---------- Recipe costing ----------

def product_unit_cost(product: Product) -> Decimal:
    """Cost of one unit: sum of recipe quantity times current material cost."""
    total = ZERO
    for line in product.recipe_items:
        total += (line.quantity or ZERO) * (line.material.cost or ZERO)
    return money(total)


def product_margin(product: Product, cost: Optional[Decimal] = None) -> Decimal:
    price = product.price or ZERO
    if price <= ZERO:
        return ZERO
    cost = product_unit_cost(product) if cost is None else cost
    return money((price - cost) / price * 100)


def product_to_dict(product: Product) -> Dict[str, Any]:
    cost = product_unit_cost(product)
    return {
        "id": product.id,
        "name": product.name,
        "category_id": product.category_id,
        "category": product.category.name if product.category else None,
        "price": product.price,
        "is_active": product.is_active,
        "cost": cost,
        "margin": product_margin(product, cost),
        "recipe": [
            {
                "material_id": line.material_id,
                "material": line.material.name,
                "unit": line.material.unit,
                "quantity": line.quantity,
            }
            for line in product.recipe_items
        ],
        "updated_at": iso_utc(product.updated_at),
    }


def _normalize_recipe(session: Session, recipe: Iterable[Dict[str, Any]]) -> List[Tuple[int, Decimal]]:
    """Validate recipe lines and merge duplicates by material."""
    merged: Dict[int, Decimal] = {}
    for line in recipe:
        material_id = int(line["material_id"])
        amount = quantity(line["quantity"])
        if amount <= ZERO:
            raise InvalidInput("Recipe quantities must be greater than zero", code="invalid_quantity")
        merged[material_id] = merged.get(material_id, ZERO) + amount

    if merged:
        found = set(session.execute(select(Material.id).where(Material.id.in_(merged.keys()))).scalars())
        missing = sorted(set(merged) - found)
        if missing:
            raise InvalidMaterials(details={"material_ids": missing})
    return list(merged.items())


def _check_category(session: Session, category_id: Optional[int]) -> Optional[int]:
    if category_id is None:
        return None
    if session.get(Category, category_id) is None:
        raise NotFound("category", category_id)
    return category_id


def _check_price(price: Any) -> Decimal:
    price = money(price)
    if price < ZERO:
        raise InvalidInput("price must not be negative", code="invalid_price")
    return price


# ---------- Products ----------

def create_product(
    session: Session,
    *,
    name: str,
    price: Any,
    category_id: Optional[int] = None,
    is_active: bool = True,
    recipe: Iterable[Dict[str, Any]] = (),
) -> Product:
    name = clean_text(name, "name", 120)
    if name_taken(session, Product.name, name):
        raise Conflict(f"Product {name} already exists", code="product_exists")

    lines = _normalize_recipe(session, recipe)
    product = Product(
        name=name,
        price=_check_price(price),
        category_id=_check_category(session, category_id),
        is_active=is_active,
        recipe_items=[RecipeItem(material_id=material_id, quantity=amount) for material_id, amount in lines],
    )
    session.add(product)
    session.flush()
    logger.info("Created product %s (%s) with %d recipe lines", product.id, product.name, len(lines))
    return product


def update_product(
    session: Session,
    product_id: int,
    *,
    name: Any = UNSET,
    price: Any = UNSET,
    category_id: Any = UNSET,
    is_active: Any = UNSET,
    recipe: Any = UNSET,
) -> Product:
    """Update product fields. A supplied ``recipe`` replaces the whole recipe."""
    product = get_or_404(session, Product, product_id, "product")

    if name is not UNSET:
        name = clean_text(name, "name", 120)
        if name_taken(session, Product.name, name, exclude_id=product.id):
            raise Conflict(f"Product {name} already exists", code="product_exists")
        product.name = name
    if price is not UNSET:
        product.price = _check_price(price)
    if category_id is not UNSET:
        product.category_id = _check_category(session, category_id)
    if is_active is not UNSET and is_active is not None:
        product.is_active = bool(is_active)

    if recipe is not UNSET and recipe is not None:
        lines = _normalize_recipe(session, recipe)
        product.recipe_items.clear()
        # Old lines must be gone before re-inserting the same materials
        session.flush()
        product.recipe_items.extend(
            RecipeItem(material_id=material_id, quantity=amount) for material_id, amount in lines
        )

    product.updated_at = utcnow()
    session.flush()
    session.refresh(product, ["category"])
    return product


def delete_product(session: Session, product_id: int) -> None:
    """Delete a product; historical order and sale lines keep their snapshots."""
    product = get_or_404(session, Product, product_id, "product")
    for model in (OrderItem, SaleItem):
        session.execute(
            update(model)
            .where(model.product_id == product.id)
            .values(product_id=None)
            .execution_options(synchronize_session=False)
        )
    session.delete(product)
    session.flush()
    logger.info("Deleted product %s (%s)", product_id, product.name)


def get_product(session: Session, product_id: int) -> Product:
    return get_or_404(session, Product, product_id, "product")


def list_products(
    session: Session,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    active_only: bool = False,
) -> List[Product]:
    stmt = (
        select(Product)
        .options(selectinload(Product.recipe_items).selectinload(RecipeItem.material), selectinload(Product.category))
        .order_by(Product.name)
    )
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.outerjoin(Category, Product.category_id == Category.id).where(
            or_(func.lower(Product.name).like(pattern), func.lower(Category.name).like(pattern))
        )
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    if active_only:
        stmt = stmt.where(Product.is_active.is_(True))
    return list(session.execute(stmt).scalars())
