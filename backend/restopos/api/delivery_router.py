"""Delivery zone and driver endpoints."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, require_permissions
from restopos.db.models import ZoneStatus
from restopos.permissions import AuthUser
from restopos.services import delivery as delivery_service
from restopos.utils.numbers import MAX_MONEY


router = APIRouter(prefix="/api/delivery", tags=["delivery"])

can_view = require_permissions(any_of=("delivery:view", "delivery:manage", "pos:use"))
can_manage = require_permissions(any_of=("delivery:manage",))

MAX_DISTANCE_KM = Decimal("999999.99")


class ZoneRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    limit_km: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_DISTANCE_KM)
    fee: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_MONEY)
    min_order: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_MONEY)
    status: ZoneStatus = ZoneStatus.ACTIVE


class ZoneUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    limit_km: Optional[Decimal] = Field(default=None, ge=0, le=MAX_DISTANCE_KM)
    fee: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)
    min_order: Optional[Decimal] = Field(default=None, ge=0, le=MAX_MONEY)
    status: Optional[ZoneStatus] = None


class DriverRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(..., min_length=1, max_length=40)
    status: Optional[str] = Field(default=None, max_length=40)


class DriverUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    phone: Optional[str] = Field(default=None, min_length=1, max_length=40)
    status: Optional[str] = Field(default=None, max_length=40)


def _set_fields(payload: BaseModel) -> dict:
    return {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}


@router.get("/zones", summary="List zones")
def list_zones(database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok([delivery_service.zone_to_dict(zone) for zone in delivery_service.list_zones(session)])


@router.post("/zones", summary="Create a zone")
def create_zone(payload: ZoneRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        zone = delivery_service.create_zone(session, **payload.model_dump())
        return ok(delivery_service.zone_to_dict(zone), status_code=201)


@router.patch("/zones/{zone_id}", summary="Update a zone")
def update_zone(zone_id: int, payload: ZoneUpdateRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        zone = delivery_service.update_zone(session, zone_id, **_set_fields(payload))
        return ok(delivery_service.zone_to_dict(zone))


@router.delete("/zones/{zone_id}", summary="Delete a zone without active deliveries")
def delete_zone(zone_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        delivery_service.delete_zone(session, zone_id)
        return ok({"deleted": zone_id})


@router.get("/drivers", summary="List drivers with active order counts")
def list_drivers(database: Database = Depends(get_database), user: AuthUser = Depends(can_view)):
    with database.unit_of_work() as session:
        return ok(delivery_service.list_drivers(session))


@router.post("/drivers", summary="Create a driver")
def create_driver(payload: DriverRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        driver = delivery_service.create_driver(session, **payload.model_dump())
        return ok(delivery_service.driver_to_dict(driver), status_code=201)


@router.patch("/drivers/{driver_id}", summary="Update a driver")
def update_driver(driver_id: int, payload: DriverUpdateRequest, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        driver = delivery_service.update_driver(session, driver_id, **_set_fields(payload))
        return ok(delivery_service.driver_to_dict(driver))


@router.delete("/drivers/{driver_id}", summary="Delete a driver without active deliveries")
def delete_driver(driver_id: int, database: Database = Depends(get_database), user: AuthUser = Depends(can_manage)):
    with database.unit_of_work() as session:
        delivery_service.delete_driver(session, driver_id)
        return ok({"deleted": driver_id})
