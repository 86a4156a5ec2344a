"""Order creation: stock consumption, table seating and rollback on failure."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from restopos.db.models import DiningTable, Material, Order, OrderStatus, OrderType
from restopos.errors import (
    InsufficientStock,
    InvalidInput,
    InvalidProducts,
    InvalidTypeCombination,
    NotFound,
    TableOccupied,
)
from restopos.services import orders, products


def _snapshot(database, catalog):
    with database.unit_of_work() as session:
        stock = session.get(Material, catalog.sugar_id).stock
        count = session.execute(select(func.count(Order.id))).scalar_one()
        occupied = session.get(DiningTable, catalog.table_id).is_occupied
    return stock, count, occupied


def _dine_in(session, catalog, quantity=1, **kwargs):
    return orders.create_order(
        session,
        order_type=OrderType.DINE_IN,
        customer_name="Walk-in",
        items=[{"product_id": catalog.tea_id, "quantity": quantity}],
        table_id=catalog.table_id,
        **kwargs,
    )


def test_dine_in_order_consumes_stock_and_occupies_table(database, catalog):
    with database.unit_of_work() as session:
        order = _dine_in(session, catalog, quantity=3)
        data = orders.order_to_dict(order)

    assert data["status"] == "PREPARING"
    assert data["code"].startswith("ORD-")
    assert data["items"][0]["name"] == "Tea"
    assert data["subtotal"] == Decimal("15.00")
    assert data["total"] == Decimal("15.00")

    stock, count, occupied = _snapshot(database, catalog)
    assert stock == Decimal("4")
    assert count == 1
    assert occupied is True


def test_insufficient_stock_rolls_back_everything(database, catalog):
    before = _snapshot(database, catalog)

    with pytest.raises(InsufficientStock):
        with database.unit_of_work() as session:
            _dine_in(session, catalog, quantity=6)

    assert _snapshot(database, catalog) == before


def test_occupied_table_rolls_back_stock(database, catalog):
    with database.unit_of_work() as session:
        _dine_in(session, catalog, quantity=1)
    before = _snapshot(database, catalog)
    assert before[0] == Decimal("8")

    with pytest.raises(TableOccupied):
        with database.unit_of_work() as session:
            _dine_in(session, catalog, quantity=1)

    assert _snapshot(database, catalog) == before


def test_products_without_recipe_need_no_stock(database, catalog):
    with database.unit_of_work() as session:
        order = orders.create_order(
            session,
            order_type="TAKEAWAY",
            customer_name="Ann",
            items=[{"product_id": catalog.water_id, "quantity": 4}],
        )
        assert order.table_id is None

    stock, _, occupied = _snapshot(database, catalog)
    assert stock == Decimal("10")
    assert occupied is False


def test_repeated_product_lines_are_summed_for_stock(database, catalog):
    with pytest.raises(InsufficientStock):
        with database.unit_of_work() as session:
            orders.create_order(
                session,
                order_type="TAKEAWAY",
                customer_name="Ann",
                items=[
                    {"product_id": catalog.tea_id, "quantity": 3},
                    {"product_id": catalog.tea_id, "quantity": 3},
                ],
            )


def test_delivery_order_totals_include_zone_fee(database, catalog):
    with database.unit_of_work() as session:
        order = orders.create_order(
            session,
            order_type=OrderType.DELIVERY,
            customer_name="Bob",
            items=[{"product_id": catalog.tea_id, "quantity": 2}],
            zone_id=catalog.zone_id,
            driver_id=catalog.driver_id,
            discount=1,
            tax_rate=10,
        )
        totals = orders.order_totals(order)

    assert totals.subtotal == Decimal("10.00")
    assert totals.delivery_fee == Decimal("3.00")
    assert totals.tax_amount == Decimal("0.90")
    assert totals.total == Decimal("12.90")


class TestValidation:
    def test_delivery_requires_zone(self, database, catalog):
        with pytest.raises(InvalidTypeCombination) as exc_info:
            with database.unit_of_work() as session:
                orders.create_order(
                    session,
                    order_type="DELIVERY",
                    customer_name="Bob",
                    items=[{"product_id": catalog.water_id, "quantity": 1}],
                )
        assert exc_info.value.code == "zone_required"

    def test_takeaway_cannot_have_table(self, database, catalog):
        with pytest.raises(InvalidTypeCombination) as exc_info:
            with database.unit_of_work() as session:
                orders.create_order(
                    session,
                    order_type="TAKEAWAY",
                    customer_name="Bob",
                    items=[{"product_id": catalog.water_id, "quantity": 1}],
                    table_id=catalog.table_id,
                )
        assert exc_info.value.code == "invalid_table"

    def test_empty_order(self, database, catalog):
        with pytest.raises(InvalidInput) as exc_info:
            with database.unit_of_work() as session:
                orders.create_order(session, order_type="TAKEAWAY", customer_name="Bob", items=[])
        assert exc_info.value.code == "empty_order"

    @pytest.mark.parametrize("quantity", [0, -1, 1000, 1.5, True])
    def test_invalid_line_quantity(self, database, catalog, quantity):
        with pytest.raises(InvalidInput) as exc_info:
            with database.unit_of_work() as session:
                orders.create_order(
                    session,
                    order_type="TAKEAWAY",
                    customer_name="Bob",
                    items=[{"product_id": catalog.water_id, "quantity": quantity}],
                )
        assert exc_info.value.code == "invalid_quantity"

    def test_inactive_product(self, database, catalog):
        with database.unit_of_work() as session:
            products.update_product(session, catalog.water_id, is_active=False)

        with pytest.raises(InvalidProducts) as exc_info:
            with database.unit_of_work() as session:
                orders.create_order(
                    session,
                    order_type="TAKEAWAY",
                    customer_name="Bob",
                    items=[{"product_id": catalog.water_id, "quantity": 1}],
                )
        assert exc_info.value.details == {"product_ids": [catalog.water_id]}

    def test_unknown_driver_rolls_back_stock(self, database, catalog):
        with pytest.raises(NotFound):
            with database.unit_of_work() as session:
                orders.create_order(
                    session,
                    order_type="TAKEAWAY",
                    customer_name="Bob",
                    items=[{"product_id": catalog.tea_id, "quantity": 1}],
                    driver_id=999,
                )
        assert _snapshot(database, catalog)[0] == Decimal("10")

    def test_blank_customer_name(self, database, catalog):
        with pytest.raises(InvalidInput) as exc_info:
            with database.unit_of_work() as session:
                orders.create_order(
                    session,
                    order_type="TAKEAWAY",
                    customer_name="   ",
                    items=[{"product_id": catalog.water_id, "quantity": 1}],
                )
        assert exc_info.value.code == "invalid_customer_name"


def test_list_orders_active_filter_and_search(database, catalog):
    with database.unit_of_work() as session:
        first = _dine_in(session, catalog)
        second = orders.create_order(
            session,
            order_type="TAKEAWAY",
            customer_name="Zoe",
            items=[{"product_id": catalog.water_id, "quantity": 1}],
        )
        orders.update_order(session, second.id, status=OrderStatus.CANCELLED)

        active = orders.list_orders(session, status="active")
        assert [o.id for o in active] == [first.id]
        assert [o.id for o in orders.list_orders(session, search="zoe")] == [second.id]
        assert orders.count_active_orders(session, table_id=catalog.table_id) == 1
