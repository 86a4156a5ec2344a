"""Inventory endpoints: materials, purchases, waste and suppliers."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.db.models import PurchaseStatus
from restopos.permissions import AuthUser
from restopos.services import inventory as inventory_service
from restopos.services import purchases as purchase_service
from restopos.services import waste as waste_service
from restopos.utils.numbers import MAX_MONEY, MAX_QUANTITY


router = APIRouter(prefix="/api/inventory", tags=["inventory"])

can_view = require_permissions(any_of=("inventory:view", "inventory:manage"))
can_manage = require_permissions(any_of=("inventory:manage",))

MIN_QUANTITY = Decimal("0.001")


class MaterialRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    unit: str = Field(..., min_length=1, max_length=40)
    cost: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_MONEY)
    stock: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_QUANTITY)
    min_stock: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_QUANTITY)


class MaterialUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=40)
    cost: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)
    stock: Optional[Decimal] = Field(default=None, ge=0, le=MAX_QUANTITY)
    min_stock: Optional[Decimal] = Field(default=None, ge=0, le=MAX_QUANTITY)


class PurchaseRequest(BaseModel):
    material_id: int
    quantity: Decimal = Field(..., ge=MIN_QUANTITY, le=MAX_QUANTITY)
    unit_cost: Decimal = Field(..., ge=0, le=MAX_MONEY)
    date: Optional[str] = None
    total: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)
    status: PurchaseStatus = PurchaseStatus.DRAFT
    supplier_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class PurchaseUpdateRequest(BaseModel):
    material_id: Optional[int] = None
    quantity: Optional[Decimal] = Field(default=None, ge=MIN_QUANTITY, le=MAX_QUANTITY)
    unit_cost: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)
    date: Optional[str] = None
    total: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)
    status: Optional[PurchaseStatus] = None
    supplier_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class WasteRequest(BaseModel):
    material_id: int
    quantity: Decimal = Field(..., ge=MIN_QUANTITY, le=MAX_QUANTITY)
    reason: str = Field(..., min_length=1, max_length=200)
    date: Optional[str] = None
    cost: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)


class WasteUpdateRequest(BaseModel):
    material_id: Optional[int] = None
    quantity: Optional[Decimal] = Field(default=None, ge=MIN_QUANTITY, le=MAX_QUANTITY)
    reason: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[str] = None
    cost: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)


class SupplierRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=40)
    email: Optional[str] = Field(default=None, max_length=120)


class SupplierUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=40)
    email: Optional[str] = Field(default=None, max_length=120)
    is_active: Optional[bool] = None


def _without_nulls(changes: dict, *fields: str) -> dict:
    return {key: value for key, value in changes.items() if not (key in fields and value is None)}


# ---------- Materials ----------

@router.get("/materials", summary="List materials")
def list_materials(
    search: Optional[str] = None,
    low_only: bool = False,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    with database.unit_of_work() as session:
        materials = inventory_service.list_materials(session, search=search, low_only=low_only)
        return ok([inventory_service.material_to_dict(material) for material in materials])


@router.post("/materials", summary="Create a material")
def create_material(payload: MaterialRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        material = inventory_service.create_material(session, **payload.model_dump())
        return ok(inventory_service.material_to_dict(material), status_code=201)


@router.get("/materials/{material_id}", summary="Get one material")
def get_material(material_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok(inventory_service.material_to_dict(inventory_service.get_material(session, material_id)))


@router.patch("/materials/{material_id}", summary="Update a material")
def update_material(
    material_id: int,
    payload: MaterialUpdateRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = _without_nulls(payload.model_dump(exclude_unset=True), "name", "unit", "cost", "stock", "min_stock")
    with database.unit_of_work() as session:
        material = inventory_service.update_material(session, material_id, **changes)
        return ok(inventory_service.material_to_dict(material))


@router.delete("/materials/{material_id}", summary="Delete a material")
def delete_material(material_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        inventory_service.delete_material(session, material_id)
        return ok({"deleted": material_id})


# ---------- Purchases ----------

@router.get("/purchases", summary="List purchases")
def list_purchases(
    status: Optional[str] = None,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    with database.unit_of_work() as session:
        purchases = purchase_service.list_purchases(session, status=status)
        return ok([purchase_service.purchase_to_dict(purchase) for purchase in purchases])


@router.post("/purchases", summary="Record a purchase")
def create_purchase(payload: PurchaseRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        purchase = purchase_service.create_purchase(session, created_by_id=user.id, **payload.model_dump())
        return ok(purchase_service.purchase_to_dict(purchase), status_code=201)


@router.get("/purchases/{purchase_id}", summary="Get one purchase")
def get_purchase(purchase_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok(purchase_service.purchase_to_dict(purchase_service.get_purchase(session, purchase_id)))


@router.patch("/purchases/{purchase_id}", summary="Edit a purchase and reconcile stock")
def update_purchase(
    purchase_id: int,
    payload: PurchaseUpdateRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = payload.model_dump(exclude_unset=True)
    with database.unit_of_work() as session:
        purchase = purchase_service.update_purchase(session, purchase_id, **changes)
        return ok(purchase_service.purchase_to_dict(purchase))


@router.delete("/purchases/{purchase_id}", summary="Delete a draft purchase")
def delete_purchase(purchase_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        purchase_service.delete_purchase(session, purchase_id)
        return ok({"deleted": purchase_id})


# ---------- Waste ----------

@router.get("/waste", summary="List waste records")
def list_waste(
    material_id: Optional[int] = None,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    with database.unit_of_work() as session:
        records = waste_service.list_waste(session, material_id=material_id)
        return ok([waste_service.waste_to_dict(record) for record in records])


@router.post("/waste", summary="Record waste")
def create_waste(payload: WasteRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        record = waste_service.create_waste(session, created_by_id=user.id, **payload.model_dump())
        return ok(waste_service.waste_to_dict(record), status_code=201)


@router.patch("/waste/{waste_id}", summary="Edit a waste record")
def update_waste(
    waste_id: int,
    payload: WasteUpdateRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = _without_nulls(payload.model_dump(exclude_unset=True), "reason")
    with database.unit_of_work() as session:
        record = waste_service.update_waste(session, waste_id, **changes)
        return ok(waste_service.waste_to_dict(record))


@router.delete("/waste/{waste_id}", summary="Delete a waste record and restore stock")
def delete_waste(waste_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        waste_service.delete_waste(session, waste_id)
        return ok({"deleted": waste_id})


# ---------- Suppliers ----------

@router.get("/suppliers", summary="List suppliers")
def list_suppliers(
    active_only: bool = False,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    with database.unit_of_work() as session:
        suppliers = purchase_service.list_suppliers(session, active_only=active_only)
        return ok([purchase_service.supplier_to_dict(supplier) for supplier in suppliers])


@router.post("/suppliers", summary="Create a supplier")
def create_supplier(payload: SupplierRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        supplier = purchase_service.create_supplier(session, **payload.model_dump())
        return ok(purchase_service.supplier_to_dict(supplier), status_code=201)


@router.patch("/suppliers/{supplier_id}", summary="Update a supplier")
def update_supplier(
    supplier_id: int,
    payload: SupplierUpdateRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = _without_nulls(payload.model_dump(exclude_unset=True), "name")
    with database.unit_of_work() as session:
        supplier = purchase_service.update_supplier(session, supplier_id, **changes)
        return ok(purchase_service.supplier_to_dict(supplier))
