from datetime import datetime, timedelta

from restopos.permissions import AuthUser, permissions_for_roles
from restopos.services import inventory, orders, sales, waste
from restopos.services.notifications import build_notifications


def _user(*roles):
    return AuthUser(id=1, username="someone", roles=list(roles), permissions=permissions_for_roles(roles))


def _seed(database, catalog):
    with database.unit_of_work() as session:
        inventory.update_material(session, catalog.sugar_id, stock=1)
        waste.create_waste(session, material_id=catalog.sugar_id, quantity="0.5", reason="spilled")
        orders.create_order(
            session,
            order_type="TAKEAWAY",
            customer_name="Dee",
            items=[{"product_id": catalog.water_id, "quantity": 1}],
        )
        sales.create_sale(session, customer_name="Catering", total=40)


def test_storekeeper_sees_inventory_items_only(database, catalog):
    _seed(database, catalog)
    with database.unit_of_work() as session:
        items = build_notifications(session, _user("storekeeper"))

    assert {item["id"] for item in items} == {f"low-stock-{catalog.sugar_id}", "waste-1"}


def test_cashier_sees_orders_and_drafts(database, catalog):
    _seed(database, catalog)
    with database.unit_of_work() as session:
        items = build_notifications(session, _user("cashier"))

    assert {item["id"] for item in items} == {"orders-pending", "sales-drafts"}
    pending = next(item for item in items if item["id"] == "orders-pending")
    assert pending["message"].startswith("1 order")


def test_admin_feed_is_newest_first(database, catalog):
    _seed(database, catalog)
    with database.unit_of_work() as session:
        items = build_notifications(session, _user("admin"))

    assert len(items) == 4
    stamps = [datetime.fromisoformat(item["created_at"]) for item in items]
    assert stamps == sorted(stamps, reverse=True)
    assert all(stamp.utcoffset() == timedelta(0) for stamp in stamps)


def test_empty_feed(database):
    with database.unit_of_work() as session:
        assert build_notifications(session, _user("manager")) == []
