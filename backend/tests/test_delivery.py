"""Delivery zones and drivers."""

import pytest

from restopos.db.models import Order
from restopos.errors import Conflict, InvalidInput, ReferentialBlock
from restopos.services import delivery, orders


def _delivery_order(session, catalog):
    return orders.create_order(
        session,
        order_type="DELIVERY",
        customer_name="Fay",
        items=[{"product_id": catalog.water_id, "quantity": 1}],
        zone_id=catalog.zone_id,
        driver_id=catalog.driver_id,
    )


def test_zone_with_active_delivery_cannot_be_deleted(database, catalog):
    with database.unit_of_work() as session:
        order_id = _delivery_order(session, catalog).id

    with pytest.raises(ReferentialBlock) as exc_info:
        with database.unit_of_work() as session:
            delivery.delete_zone(session, catalog.zone_id)
    assert exc_info.value.code == "zone_has_active_orders"

    with database.unit_of_work() as session:
        orders.update_order(session, order_id, status="DELIVERED")
    with database.unit_of_work() as session:
        delivery.delete_zone(session, catalog.zone_id)
    with database.unit_of_work() as session:
        assert session.get(Order, order_id).zone_id is None


def test_driver_with_active_delivery_cannot_be_deleted(database, catalog):
    with database.unit_of_work() as session:
        order_id = _delivery_order(session, catalog).id

    with pytest.raises(ReferentialBlock) as exc_info:
        with database.unit_of_work() as session:
            delivery.delete_driver(session, catalog.driver_id)
    assert exc_info.value.code == "driver_has_active_orders"

    with database.unit_of_work() as session:
        orders.update_order(session, order_id, status="CANCELLED")
        delivery.delete_driver(session, catalog.driver_id)


def test_list_drivers_counts_active_orders(database, catalog):
    with database.unit_of_work() as session:
        _delivery_order(session, catalog)
        listed = delivery.list_drivers(session)
    assert listed == [
        {"id": catalog.driver_id, "name": "Sam", "phone": "555-0100", "status": "available", "active_orders": 1}
    ]


def test_zone_validation(database, catalog):
    with pytest.raises(Conflict):
        with database.unit_of_work() as session:
            delivery.create_zone(session, name="downtown")

    with pytest.raises(InvalidInput) as exc_info:
        with database.unit_of_work() as session:
            delivery.update_zone(session, catalog.zone_id, fee=-1)
    assert exc_info.value.code == "invalid_fee"


def test_update_zone_status(database, catalog):
    with database.unit_of_work() as session:
        zone = delivery.update_zone(session, catalog.zone_id, status="inactive", min_order=15)
        data = delivery.zone_to_dict(zone)
    assert data["status"] == "INACTIVE"
    assert data["min_order"] == 15
