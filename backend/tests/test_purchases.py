"""Purchase posting, reverting and supplier resolution."""

from decimal import Decimal

import pytest

from restopos.db.models import Material, PurchaseStatus
from restopos.errors import InsufficientStockForRevert, InvalidInput
from restopos.services import inventory, purchases


def _stock(database, material_id):
    with database.unit_of_work() as session:
        return session.get(Material, material_id).stock


def test_stock_deltas():
    posted, draft = PurchaseStatus.POSTED, PurchaseStatus.DRAFT
    assert purchases.stock_deltas(draft, 1, Decimal("5"), posted, 1, Decimal("5")) == {1: Decimal("5")}
    assert purchases.stock_deltas(posted, 1, Decimal("5"), draft, 1, Decimal("5")) == {1: Decimal("-5")}
    assert purchases.stock_deltas(posted, 1, Decimal("5"), posted, 1, Decimal("8")) == {1: Decimal("3")}
    assert purchases.stock_deltas(posted, 1, Decimal("5"), posted, 2, Decimal("5")) == {
        1: Decimal("-5"),
        2: Decimal("5"),
    }
    assert purchases.stock_deltas(draft, 1, Decimal("5"), draft, 2, Decimal("9")) == {}


def test_draft_posted_draft_round_trip(database, catalog):
    with database.unit_of_work() as session:
        purchase = purchases.create_purchase(session, material_id=catalog.sugar_id, quantity=5, unit_cost="0.4")
        purchase_id = purchase.id
        assert purchase.code.startswith("PUR-")
        assert purchase.total == Decimal("2.00")
    assert _stock(database, catalog.sugar_id) == Decimal("10")

    with database.unit_of_work() as session:
        purchases.update_purchase(session, purchase_id, status="POSTED")
    assert _stock(database, catalog.sugar_id) == Decimal("15")

    with database.unit_of_work() as session:
        purchases.update_purchase(session, purchase_id, status="DRAFT")
    assert _stock(database, catalog.sugar_id) == Decimal("10")


def test_revert_fails_when_stock_was_consumed(database, catalog):
    with database.unit_of_work() as session:
        purchase = purchases.create_purchase(
            session, material_id=catalog.sugar_id, quantity=5, unit_cost=1, status="POSTED"
        )
        purchase_id = purchase.id
        inventory.decrement_stock(session, catalog.sugar_id, 12)
    assert _stock(database, catalog.sugar_id) == Decimal("3")

    with pytest.raises(InsufficientStockForRevert) as exc_info:
        with database.unit_of_work() as session:
            purchases.update_purchase(session, purchase_id, status="DRAFT")

    assert exc_info.value.code == "insufficient_stock_for_revert"
    assert _stock(database, catalog.sugar_id) == Decimal("3")
    with database.unit_of_work() as session:
        assert purchases.get_purchase(session, purchase_id).status is PurchaseStatus.POSTED


def test_editing_posted_quantity_moves_difference(database, catalog):
    with database.unit_of_work() as session:
        purchase = purchases.create_purchase(
            session, material_id=catalog.sugar_id, quantity=5, unit_cost=1, status="POSTED"
        )
        purchases.update_purchase(session, purchase.id, quantity=2)
        assert purchase.total == Decimal("2.00")
    assert _stock(database, catalog.sugar_id) == Decimal("12")


def test_posted_purchase_cannot_be_deleted(database, catalog):
    with database.unit_of_work() as session:
        purchase = purchases.create_purchase(
            session, material_id=catalog.sugar_id, quantity=1, unit_cost=1, status="POSTED"
        )
        purchase_id = purchase.id

    with pytest.raises(InvalidInput) as exc_info:
        with database.unit_of_work() as session:
            purchases.delete_purchase(session, purchase_id)
    assert exc_info.value.code == "purchase_not_draft"


@pytest.mark.parametrize("quantity", [0, "0.0004", -2])
def test_invalid_quantity(database, catalog, quantity):
    with pytest.raises(InvalidInput) as exc_info:
        with database.unit_of_work() as session:
            purchases.create_purchase(session, material_id=catalog.sugar_id, quantity=quantity, unit_cost=1)
    assert exc_info.value.code == "invalid_quantity"


class TestSuppliers:
    def test_missing_supplier_uses_direct_purchase(self, database, catalog):
        with database.unit_of_work() as session:
            first = purchases.create_purchase(session, material_id=catalog.sugar_id, quantity=1, unit_cost=1)
            second = purchases.create_purchase(session, material_id=catalog.sugar_id, quantity=1, unit_cost=1)
            assert first.supplier.name == purchases.DIRECT_SUPPLIER_NAME
            assert first.supplier_id == second.supplier_id

    def test_inactive_supplier_is_rejected(self, database, catalog):
        with database.unit_of_work() as session:
            supplier = purchases.create_supplier(session, name="Acme")
            purchases.update_supplier(session, supplier.id, is_active=False)
            supplier_id = supplier.id

        with pytest.raises(InvalidInput) as exc_info:
            with database.unit_of_work() as session:
                purchases.create_purchase(
                    session, material_id=catalog.sugar_id, quantity=1, unit_cost=1, supplier_id=supplier_id
                )
        assert exc_info.value.code == "supplier_inactive"
