"""Order endpoints."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.db.models import OrderStatus, OrderType, PaymentMethod
from restopos.permissions import AuthUser
from restopos.services import orders as order_service


router = APIRouter(prefix="/api/orders", tags=["orders"])

can_view = require_permissions(any_of=("orders:view", "orders:manage", "pos:use"))
can_create = require_permissions(any_of=("orders:manage", "pos:use"))
can_manage = require_permissions(any_of=("orders:manage",))
can_delete = require_permissions(any_of=("orders:delete", "orders:manage"))


class OrderItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1, le=order_service.MAX_LINE_QUANTITY)


class CreateOrderRequest(BaseModel):
    type: OrderType
    customer_name: str = Field(..., min_length=1, max_length=120)
    items: list[OrderItemRequest] = Field(..., min_length=1, max_length=order_service.MAX_ORDER_LINES)
    zone_id: Optional[int] = None
    table_id: Optional[int] = None
    driver_id: Optional[int] = None
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=1_000_000)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    payment: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = Field(default=None, max_length=500)


class ItemDeductionRequest(BaseModel):
    item_id: int
    quantity: int = Field(..., ge=1, le=order_service.MAX_LINE_QUANTITY)


class UpdateOrderRequest(BaseModel):
    status: Optional[OrderStatus] = None
    table_id: Optional[int] = None
    driver_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    discount: Optional[Decimal] = Field(default=None, ge=0, le=1_000_000)
    item_deductions: Optional[list[ItemDeductionRequest]] = Field(default=None, max_length=order_service.MAX_ORDER_LINES)


@router.get("", summary="List orders")
def list_orders(
    status: Optional[str] = None,
    search: Optional[str] = None,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    """``status`` filters by one status, or ``active`` for PREPARING/READY/OUT."""
    with database.unit_of_work() as session:
        orders = order_service.list_orders(session, status=status, search=search)
        return ok([order_service.order_to_dict(order) for order in orders])


@router.post("", summary="Create an order")
def create_order(
    payload: CreateOrderRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_create),
):
    with database.unit_of_work() as session:
        order = order_service.create_order(
            session,
            order_type=payload.type,
            customer_name=payload.customer_name,
            items=[item.model_dump() for item in payload.items],
            zone_id=payload.zone_id,
            table_id=payload.table_id,
            driver_id=payload.driver_id,
            discount=payload.discount,
            tax_rate=payload.tax_rate,
            payment=payload.payment,
            notes=payload.notes,
            created_by_id=user.id,
        )
        return ok(order_service.order_to_dict(order), status_code=201)


@router.get("/{order_id}", summary="Get one order")
def get_order(order_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok(order_service.order_to_dict(order_service.get_order(session, order_id)))


@router.patch("/{order_id}", summary="Update status, table, driver, notes, discount or items")
def update_order(
    order_id: int,
    payload: UpdateOrderRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_manage),
):
    changes = payload.model_dump(exclude_unset=True)
    with database.unit_of_work() as session:
        order = order_service.update_order(session, order_id, actor_id=user.id, **changes)
        return ok(order_service.order_to_dict(order))


@router.delete("/{order_id}", summary="Delete an order")
def delete_order(order_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_delete)):
    with database.unit_of_work() as session:
        order_service.delete_order(session, order_id)
        return ok({"deleted": order_id})
