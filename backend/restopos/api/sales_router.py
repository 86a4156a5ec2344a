"""Sales (invoice) endpoints. Order-linked sales are read-only here."""

from decimal import Decimal
from typing import Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.db.models import SaleStatus
from restopos.errors import Forbidden
from restopos.permissions import AuthUser
from restopos.services import sales as sale_service
from restopos.utils.numbers import MAX_MONEY


router = APIRouter(prefix="/api/sales", tags=["sales"])

can_view = require_permissions(any_of=("sales:view", "sales:manage"))
can_manage = require_permissions(any_of=("sales:manage",))
can_approve = require_permissions(any_of=("sales:approve",))


class SaleLineRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_MONEY)


class SaleRequest(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=120)
    total: Decimal = Field(..., ge=0, le=MAX_MONEY)
    date: Optional[str] = None
    status: SaleStatus = SaleStatus.DRAFT
    items: list[Union[str, SaleLineRequest]] = []
    notes: Optional[str] = Field(default=None, max_length=500)


class SaleUpdateRequest(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    total: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)
    date: Optional[str] = None
    status: Optional[SaleStatus] = None
    items: Optional[list[Union[str, SaleLineRequest]]] = None
    notes: Optional[str] = Field(default=None, max_length=500)


def _lines(items):
    return [item if isinstance(item, str) else item.model_dump() for item in items]


@router.get("", summary="List sales")
def list_sales(
    status: Optional[str] = None,
    search: Optional[str] = None,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    with database.unit_of_work() as session:
        return ok([sale_service.sale_to_dict(sale) for sale in sale_service.list_sales(session, status=status, search=search)])


@router.post("", summary="Create a manual sale")
def create_sale(payload: SaleRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    if payload.status is SaleStatus.PAID and not user.has_any(["sales:approve"]):
        raise Forbidden("Creating a paid sale requires sales:approve")
    with database.unit_of_work() as session:
        sale = sale_service.create_sale(
            session,
            customer_name=payload.customer_name,
            total=payload.total,
            date=payload.date,
            status=payload.status,
            items=_lines(payload.items),
            notes=payload.notes,
            created_by_id=user.id,
        )
        return ok(sale_service.sale_to_dict(sale), status_code=201)


@router.get("/{sale_id}", summary="Get one sale")
def get_sale(sale_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok(sale_service.sale_to_dict(sale_service.get_sale(session, sale_id)))


@router.patch("/{sale_id}", summary="Edit a draft sale, or approve it with status=PAID alone")
def update_sale(
    sale_id: int,
    payload: SaleUpdateRequest,
    database: Database = Depends(get_database),
    user: AuthUser = Depends(can_view),
):
    changes = payload.model_dump(exclude_unset=True)
    approval_only = set(changes) == {"status"} and payload.status is SaleStatus.PAID

    with database.unit_of_work() as session:
        if approval_only:
            if not user.has_any(["sales:approve"]):
                raise Forbidden("Approving a sale requires sales:approve")
            sale = sale_service.approve_sale(session, sale_id)
        else:
            if not user.has_any(["sales:manage"]):
                raise Forbidden("Editing a sale requires sales:manage")
            if payload.status is SaleStatus.PAID and not user.has_any(["sales:approve"]):
                raise Forbidden("Approving a sale requires sales:approve")
            if "items" in changes and payload.items is not None:
                changes["items"] = _lines(payload.items)
            sale = sale_service.update_sale(session, sale_id, **changes)
        return ok(sale_service.sale_to_dict(sale))


@router.delete("/{sale_id}", summary="Delete a draft manual sale")
def delete_sale(sale_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        sale_service.delete_sale(session, sale_id)
        return ok({"deleted": sale_id})
