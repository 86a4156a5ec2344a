"""Delivery zones and drivers."""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from restopos.db.models import Driver, Order, OrderType, Zone, ZoneStatus
from restopos.errors import Conflict, InvalidInput, ReferentialBlock
from restopos.services.common import UNSET, clean_text, coerce_enum, get_or_404, name_taken
from restopos.services.orders import count_active_orders
from restopos.utils.numbers import ZERO, money

logger = logging.getLogger(__name__)


def _non_negative(value: Any, field: str) -> Decimal:
    amount = money(value or 0)
    if amount < ZERO:
        raise InvalidInput(f"{field} must not be negative", code=f"invalid_{field}")
    return amount


# ---------- Zones ----------

def zone_to_dict(zone: Zone) -> Dict[str, Any]:
    return {
        "id": zone.id,
        "name": zone.name,
        "limit_km": zone.limit_km,
        "fee": zone.fee,
        "min_order": zone.min_order,
        "status": zone.status.value,
    }


def create_zone(
    session: Session,
    *,
    name: str,
    limit_km: Any = 0,
    fee: Any = 0,
    min_order: Any = 0,
    status: Any = ZoneStatus.ACTIVE,
) -> Zone:
    name = clean_text(name, "name", 120)
    if name_taken(session, Zone.name, name):
        raise Conflict(f"Zone {name} already exists", code="zone_exists")
    zone = Zone(
        name=name,
        limit_km=_non_negative(limit_km, "limit_km"),
        fee=_non_negative(fee, "fee"),
        min_order=_non_negative(min_order, "min_order"),
        status=coerce_enum(ZoneStatus, status or ZoneStatus.ACTIVE, "status"),
    )
    session.add(zone)
    session.flush()
    return zone


def update_zone(
    session: Session,
    zone_id: int,
    *,
    name: Any = UNSET,
    limit_km: Any = UNSET,
    fee: Any = UNSET,
    min_order: Any = UNSET,
    status: Any = UNSET,
) -> Zone:
    zone = get_or_404(session, Zone, zone_id, "zone")
    if name is not UNSET:
        name = clean_text(name, "name", 120)
        if name_taken(session, Zone.name, name, exclude_id=zone.id):
            raise Conflict(f"Zone {name} already exists", code="zone_exists")
        zone.name = name
    if limit_km is not UNSET:
        zone.limit_km = _non_negative(limit_km, "limit_km")
    if fee is not UNSET:
        zone.fee = _non_negative(fee, "fee")
    if min_order is not UNSET:
        zone.min_order = _non_negative(min_order, "min_order")
    if status is not UNSET and status is not None:
        zone.status = coerce_enum(ZoneStatus, status, "status")
    session.flush()
    return zone


def delete_zone(session: Session, zone_id: int) -> None:
    zone = get_or_404(session, Zone, zone_id, "zone")
    if count_active_orders(session, zone_id=zone.id, type=OrderType.DELIVERY):
        raise ReferentialBlock("Zone has active delivery orders", code="zone_has_active_orders")
    session.execute(
        Order.__table__.update().where(Order.__table__.c.zone_id == zone.id).values(zone_id=None)
    )
    session.delete(zone)
    session.flush()
    logger.info("Deleted zone %s (%s)", zone_id, zone.name)


def list_zones(session: Session) -> List[Zone]:
    return list(session.execute(select(Zone).order_by(Zone.name)).scalars())


# ---------- Drivers ----------

def driver_to_dict(driver: Driver, active_orders: int = 0) -> Dict[str, Any]:
    return {
        "id": driver.id,
        "name": driver.name,
        "phone": driver.phone,
        "status": driver.status,
        "active_orders": active_orders,
    }


def create_driver(session: Session, *, name: str, phone: str, status: Optional[str] = None) -> Driver:
    name = clean_text(name, "name", 120)
    if name_taken(session, Driver.name, name):
        raise Conflict(f"Driver {name} already exists", code="driver_exists")
    driver = Driver(
        name=name,
        phone=clean_text(phone, "phone", 40),
        status=clean_text(status, "status", 40, required=False) or "available",
    )
    session.add(driver)
    session.flush()
    return driver


def update_driver(session: Session, driver_id: int, *, name: Any = UNSET, phone: Any = UNSET, status: Any = UNSET) -> Driver:
    driver = get_or_404(session, Driver, driver_id, "driver")
    if name is not UNSET:
        name = clean_text(name, "name", 120)
        if name_taken(session, Driver.name, name, exclude_id=driver.id):
            raise Conflict(f"Driver {name} already exists", code="driver_exists")
        driver.name = name
    if phone is not UNSET:
        driver.phone = clean_text(phone, "phone", 40)
    if status is not UNSET:
        driver.status = clean_text(status, "status", 40, required=False) or "available"
    session.flush()
    return driver


def delete_driver(session: Session, driver_id: int) -> None:
    driver = get_or_404(session, Driver, driver_id, "driver")
    if count_active_orders(session, driver_id=driver.id, type=OrderType.DELIVERY):
        raise ReferentialBlock("Driver has active delivery orders", code="driver_has_active_orders")
    session.execute(
        Order.__table__.update().where(Order.__table__.c.driver_id == driver.id).values(driver_id=None)
    )
    session.delete(driver)
    session.flush()
    logger.info("Deleted driver %s (%s)", driver_id, driver.name)


def list_drivers(session: Session) -> List[Dict[str, Any]]:
    drivers = session.execute(select(Driver).order_by(Driver.name)).scalars().all()
    return [driver_to_dict(driver, count_active_orders(session, driver_id=driver.id)) for driver in drivers]
