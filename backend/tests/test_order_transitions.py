"""Order status lifecycle, adjustments and sale materialization."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from restopos.db.models import DiningTable, Material, Order, OrderStatus, Sale, SaleStatus
from restopos.errors import InvalidInput, InvalidTypeCombination, OrderCancelled, OrderFinalized, TableOccupied
from restopos.services import orders, products, sales, tables


@pytest.fixture
def tea_order(database, catalog):
    with database.unit_of_work() as session:
        order = orders.create_order(
            session,
            order_type="DINE_IN",
            customer_name="Nina",
            items=[{"product_id": catalog.tea_id, "quantity": 5}],
            table_id=catalog.table_id,
        )
        return order.id


def _sale_count(database):
    with database.unit_of_work() as session:
        return session.execute(select(func.count(Sale.id))).scalar_one()


def test_delivered_materializes_paid_sale(database, catalog, tea_order):
    with database.unit_of_work() as session:
        orders.update_order(session, tea_order, status="READY")
        order = orders.update_order(session, tea_order, status="DELIVERED")
        sale = order.sale
        assert sale is not None
        assert sale.status is SaleStatus.PAID
        assert sale.total == Decimal("25.00")
        assert sale.invoice_no.startswith("INV-")
        assert [(item.name, item.quantity) for item in sale.items] == [("Tea", 5)]

    with database.unit_of_work() as session:
        assert session.get(DiningTable, catalog.table_id).is_occupied is False


def test_sale_materialization_is_idempotent(database, tea_order):
    with database.unit_of_work() as session:
        orders.update_order(session, tea_order, status="DELIVERED")
        invoice = session.execute(select(Sale.invoice_no)).scalar_one()

    with database.unit_of_work() as session:
        orders.update_order(session, tea_order, status="DELIVERED")
        sales.materialize_sale(session, tea_order)

    assert _sale_count(database) == 1
    with database.unit_of_work() as session:
        sale = session.execute(select(Sale)).scalar_one()
        assert sale.invoice_no == invoice
        assert len(sale.items) == 1
        assert sale.total == Decimal("25.00")


def test_discount_on_delivered_order_refreshes_its_sale(database, tea_order):
    with database.unit_of_work() as session:
        orders.update_order(session, tea_order, status="DELIVERED")
        invoice = session.execute(select(Sale.invoice_no)).scalar_one()

    with database.unit_of_work() as session:
        order = orders.update_order(session, tea_order, discount=4)
        assert orders.order_totals(order).total == Decimal("21.00")

    with database.unit_of_work() as session:
        sale = session.execute(select(Sale)).scalar_one()
        assert sale.invoice_no == invoice
        assert sale.total == Decimal("21.00")
    assert _sale_count(database) == 1


def test_item_prices_are_frozen_at_creation(database, catalog, tea_order):
    with database.unit_of_work() as session:
        products.update_product(session, catalog.tea_id, price=9)

    with database.unit_of_work() as session:
        order = orders.get_order(session, tea_order)
        assert [(item.unit_price, item.total_price) for item in order.items] == [(Decimal("5.00"), Decimal("25.00"))]
        order = orders.update_order(session, tea_order, status="DELIVERED")
        assert order.sale.total == Decimal("25.00")
        assert order.sale.items[0].unit_price == Decimal("5.00")


def test_delivered_is_terminal(database, tea_order):
    with database.unit_of_work() as session:
        orders.update_order(session, tea_order, status="DELIVERED")

    with pytest.raises(OrderFinalized):
        with database.unit_of_work() as session:
            orders.update_order(session, tea_order, status="PREPARING")

    with database.unit_of_work() as session:
        assert session.get(Order, tea_order).status is OrderStatus.DELIVERED


def test_cancelled_is_terminal_and_never_creates_sale(database, tea_order):
    with database.unit_of_work() as session:
        orders.update_order(session, tea_order, status="CANCELLED")

    with pytest.raises(OrderCancelled):
        with database.unit_of_work() as session:
            orders.update_order(session, tea_order, status="DELIVERED")

    assert _sale_count(database) == 0


def test_failed_delivery_leaves_no_sale(database, catalog, tea_order):
    with database.unit_of_work() as session:
        other = orders.create_order(
            session,
            order_type="TAKEAWAY",
            customer_name="Omar",
            items=[{"product_id": catalog.water_id, "quantity": 1}],
        )
        other_id = other.id

    with pytest.raises(InvalidTypeCombination):
        with database.unit_of_work() as session:
            orders.update_order(session, other_id, status="DELIVERED", table_id=catalog.table_id)

    assert _sale_count(database) == 0
    with database.unit_of_work() as session:
        assert session.get(Order, other_id).status is OrderStatus.PREPARING


def test_cancelling_frees_the_table(database, catalog, tea_order):
    with database.unit_of_work() as session:
        orders.update_order(session, tea_order, status="CANCELLED")
        assert session.get(DiningTable, catalog.table_id).is_occupied is False
        # Stock is not returned on cancel
        assert session.get(Material, catalog.sugar_id).stock == Decimal("0")


def test_moving_to_occupied_table_fails(database, catalog, tea_order):
    with database.unit_of_work() as session:
        second_table = tables.create_table(session, name="T2", number=2)
        second = orders.create_order(
            session,
            order_type="DINE_IN",
            customer_name="Lia",
            items=[{"product_id": catalog.water_id, "quantity": 1}],
            table_id=second_table.id,
        )
        second_id = second.id

    with pytest.raises(TableOccupied):
        with database.unit_of_work() as session:
            orders.update_order(session, second_id, table_id=catalog.table_id)


def test_moving_between_tables_updates_both(database, catalog, tea_order):
    with database.unit_of_work() as session:
        second_table = tables.create_table(session, name="T2", number=2)
        orders.update_order(session, tea_order, table_id=second_table.id)
        assert session.get(DiningTable, catalog.table_id).is_occupied is False
        assert second_table.is_occupied is True


class TestAdjustments:
    def test_item_deduction_restores_materials_and_recomputes(self, database, catalog, tea_order):
        with database.unit_of_work() as session:
            item_id = session.get(Order, tea_order).items[0].id
            order = orders.update_order(session, tea_order, item_deductions=[{"item_id": item_id, "quantity": 2}])
            assert order.items[0].quantity == 3
            assert orders.order_totals(order).subtotal == Decimal("15.00")
            assert session.get(Material, catalog.sugar_id).stock == Decimal("4")

    def test_deducting_every_item_is_rejected(self, database, tea_order):
        with pytest.raises(InvalidInput) as exc_info:
            with database.unit_of_work() as session:
                item_id = session.get(Order, tea_order).items[0].id
                orders.update_order(session, tea_order, item_deductions=[{"item_id": item_id, "quantity": 5}])
        assert exc_info.value.code == "empty_order"

    def test_deduction_for_foreign_item(self, database, tea_order):
        with pytest.raises(InvalidInput) as exc_info:
            with database.unit_of_work() as session:
                orders.update_order(session, tea_order, item_deductions=[{"item_id": 999, "quantity": 1}])
        assert exc_info.value.code == "invalid_deduction_items"

    def test_discount_is_clamped_to_subtotal(self, database, tea_order):
        with database.unit_of_work() as session:
            order = orders.update_order(session, tea_order, discount=100)
            assert order.discount == Decimal("25.00")
            assert orders.order_totals(order).total == Decimal("0.00")

    def test_delivered_order_cannot_be_adjusted(self, database, tea_order):
        with database.unit_of_work() as session:
            orders.update_order(session, tea_order, status="DELIVERED")
            item_id = session.get(Order, tea_order).items[0].id

        with pytest.raises(OrderFinalized):
            with database.unit_of_work() as session:
                orders.update_order(session, tea_order, item_deductions=[{"item_id": item_id, "quantity": 1}])


def test_delete_order_keeps_sale_as_standalone(database, catalog, tea_order):
    with database.unit_of_work() as session:
        orders.update_order(session, tea_order, status="DELIVERED")

    with database.unit_of_work() as session:
        orders.delete_order(session, tea_order)

    with database.unit_of_work() as session:
        sale = session.execute(select(Sale)).scalar_one()
        assert sale.order_id is None
        assert session.get(Order, tea_order) is None
