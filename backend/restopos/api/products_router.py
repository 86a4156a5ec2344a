"""Product and category endpoints."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.permissions import AuthUser
from restopos.services import products as product_service
from restopos.utils.numbers import MAX_MONEY, MAX_QUANTITY


router = APIRouter(prefix="/api/products", tags=["products"])

can_view = require_permissions(any_of=("products:view", "products:manage", "pos:use"))
can_manage = require_permissions(any_of=("products:manage",))


class RecipeLineRequest(BaseModel):
    material_id: int
    quantity: Decimal = Field(..., gt=0, le=MAX_QUANTITY)


class ProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    price: Decimal = Field(..., ge=0, le=MAX_MONEY)
    category_id: Optional[int] = None
    is_active: bool = True
    recipe: list[RecipeLineRequest] = []


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    price: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)
    category_id: Optional[int] = None
    is_active: Optional[bool] = None
    recipe: Optional[list[RecipeLineRequest]] = None


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=500)


class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=500)


# ---------- Categories ----------

@router.get("/categories", summary="List categories with product counts")
def list_categories(database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok([
            product_service.category_to_dict(category, count)
            for category, count in product_service.list_categories(session)
        ])


@router.post("/categories", summary="Create a category")
def create_category(payload: CategoryRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        category = product_service.create_category(session, **payload.model_dump())
        return ok(product_service.category_to_dict(category), status_code=201)


@router.patch("/categories/{category_id}", summary="Update a category")
def update_category(
    category_id: int,
    payload: CategoryUpdateRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name", "") is None:
        del changes["name"]
    with database.unit_of_work() as session:
        category = product_service.update_category(session, category_id, **changes)
        return ok(product_service.category_to_dict(category))


@router.delete("/categories/{category_id}", summary="Delete an empty category")
def delete_category(category_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        product_service.delete_category(session, category_id)
        return ok({"deleted": category_id})


# ---------- Products ----------

@router.get("", summary="List products with cost and margin")
def list_products(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    active_only: bool = False,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    with database.unit_of_work() as session:
        products = product_service.list_products(session, search=search, category_id=category_id, active_only=active_only)
        return ok([product_service.product_to_dict(product) for product in products])


@router.post("", summary="Create a product with its recipe")
def create_product(payload: ProductRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        product = product_service.create_product(session, **payload.model_dump())
        return ok(product_service.product_to_dict(product), status_code=201)


@router.get("/{product_id}", summary="Get one product")
def get_product(product_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok(product_service.product_to_dict(product_service.get_product(session, product_id)))


@router.patch("/{product_id}", summary="Update a product; a recipe replaces the old one")
def update_product(
    product_id: int,
    payload: ProductUpdateRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = payload.model_dump(exclude_unset=True)
    for field in ("name", "price"):
        if changes.get(field, "") is None:
            del changes[field]
    with database.unit_of_work() as session:
        product = product_service.update_product(session, product_id, **changes)
        return ok(product_service.product_to_dict(product))


@router.delete("/{product_id}", summary="Delete a product")
def delete_product(product_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        product_service.delete_product(session, product_id)
        return ok({"deleted": product_id})
