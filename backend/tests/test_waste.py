"""Waste records take stock out and give it back on edit or delete."""

from decimal import Decimal

import pytest

from restopos.db.models import Material
from restopos.errors import InsufficientStock
from restopos.services import inventory, waste


def _stock(database, material_id):
    with database.unit_of_work() as session:
        return session.get(Material, material_id).stock


def test_create_edit_delete_keeps_stock_consistent(database, catalog):
    with database.unit_of_work() as session:
        record = waste.create_waste(session, material_id=catalog.sugar_id, quantity=3, reason="spilled")
        waste_id = record.id
        assert record.cost == Decimal("1.50")
    assert _stock(database, catalog.sugar_id) == Decimal("7")

    with database.unit_of_work() as session:
        record = waste.update_waste(session, waste_id, quantity=5)
        assert record.cost == Decimal("2.50")
    assert _stock(database, catalog.sugar_id) == Decimal("5")

    with database.unit_of_work() as session:
        waste.delete_waste(session, waste_id)
    assert _stock(database, catalog.sugar_id) == Decimal("10")


def test_waste_beyond_stock_is_rejected(database, catalog):
    with pytest.raises(InsufficientStock):
        with database.unit_of_work() as session:
            waste.create_waste(session, material_id=catalog.sugar_id, quantity=11, reason="expired")
    assert _stock(database, catalog.sugar_id) == Decimal("10")


def test_growing_waste_is_guarded(database, catalog):
    with database.unit_of_work() as session:
        waste_id = waste.create_waste(session, material_id=catalog.sugar_id, quantity=4, reason="spilled").id

    with pytest.raises(InsufficientStock):
        with database.unit_of_work() as session:
            waste.update_waste(session, waste_id, quantity=11)
    assert _stock(database, catalog.sugar_id) == Decimal("6")


def test_switching_material_moves_both_stocks(database, catalog):
    with database.unit_of_work() as session:
        milk = inventory.create_material(session, name="Milk", unit="l", cost=2, stock=4)
        milk_id = milk.id
        waste_id = waste.create_waste(session, material_id=catalog.sugar_id, quantity=2, reason="spilled").id

    with database.unit_of_work() as session:
        record = waste.update_waste(session, waste_id, material_id=milk_id, quantity=1)
        assert record.cost == Decimal("2.00")

    assert _stock(database, catalog.sugar_id) == Decimal("10")
    assert _stock(database, milk_id) == Decimal("3")


def test_explicit_cost_is_kept(database, catalog):
    with database.unit_of_work() as session:
        record = waste.create_waste(session, material_id=catalog.sugar_id, quantity=1, reason="burnt", cost=9)
        assert waste.waste_to_dict(record)["cost"] == Decimal("9.00")
