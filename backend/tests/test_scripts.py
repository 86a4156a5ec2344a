"""
Tests for the maintenance scripts: demo seeding and snapshot files.
"""

import json
from copy import deepcopy

from sqlalchemy import func, select

from restopos.db.models import DiningTable, Material, Product, User
from scripts.export_db_snapshot import write_snapshot
from scripts.restore_db_snapshot import load_snapshot
from scripts.seed_demo import DEFAULT_DATA, load_data_file, seed_demo


def _count(session, model):
    return session.execute(select(func.count()).select_from(model)).scalar_one()


def test_seed_demo_is_idempotent(database):
    with database.unit_of_work() as session:
        first = seed_demo(session, DEFAULT_DATA, admin_password="changeme")
    with database.unit_of_work() as session:
        second = seed_demo(session, DEFAULT_DATA, admin_password="changeme")

    assert first["materials"] == len(DEFAULT_DATA["materials"])
    assert first["products"] == 3
    assert first["users"] == 1
    assert set(second.values()) == {0}

    with database.unit_of_work() as session:
        assert _count(session, Material) == len(DEFAULT_DATA["materials"])
        assert _count(session, DiningTable) == 8
        assert _count(session, User) == 1
        latte = session.execute(select(Product).where(Product.name == "Latte")).scalar_one()
        assert len(latte.recipe_items) == 3


def test_seed_skips_products_with_unknown_materials(database):
    data = deepcopy(DEFAULT_DATA)
    data["categories"][0]["products"].append({"name": "Mystery", "price": 1, "recipe": [["Unobtainium", 1]]})
    with database.unit_of_work() as session:
        stats = seed_demo(session, data)
    assert stats["products"] == 3
    assert stats["users"] == 0


def test_load_data_file(tmp_path):
    assert load_data_file(None) is DEFAULT_DATA
    path = tmp_path / "demo.json"
    path.write_text(json.dumps({"materials": []}), encoding="utf-8")
    assert load_data_file(str(path)) == {"materials": []}


def test_snapshot_file_round_trip(tmp_path, database, catalog):
    url = database.database_url
    out = tmp_path / "snapshot.json"

    rows = write_snapshot(url, str(out))
    assert rows > 0
    snapshot = json.loads(out.read_text(encoding="utf-8"))
    assert [m["name"] for m in snapshot["tables"]["materials"]] == ["Sugar"]

    with database.unit_of_work() as session:
        session.add(Material(name="Temp", unit="pcs"))

    counts = load_snapshot(url, str(out))
    assert counts["materials"] == 1
    with database.unit_of_work() as session:
        assert _count(session, Material) == 1
