"""
Test suite for database initialization and migrations.

Verifies that init_db works with both the Alembic path and the create_all
fallback, and that the Database wrapper enforces SQLite foreign keys.
"""

import pytest
from sqlalchemy import create_engine, inspect, text

from restopos.db import Base, init_db
from restopos.db.database import Database

EXPECTED_TABLES = {
    "users",
    "materials",
    "categories",
    "products",
    "recipe_items",
    "dining_tables",
    "zones",
    "drivers",
    "orders",
    "order_items",
    "sales",
    "sale_items",
    "suppliers",
    "purchases",
    "purchase_items",
    "waste",
    "expenses",
}


class TestInitDBFallback:
    """init_db with use_alembic=False."""

    def test_creates_full_schema(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'fallback.db'}")
        try:
            init_db(engine, use_alembic=False)
            tables = set(inspect(engine).get_table_names())
            assert EXPECTED_TABLES <= tables

            columns = {col["name"] for col in inspect(engine).get_columns("materials")}
            assert {"id", "name", "unit", "cost", "stock", "min_stock"} <= columns
        finally:
            engine.dispose()

    def test_is_idempotent(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'twice.db'}")
        try:
            init_db(engine, use_alembic=False, base=Base)
            with engine.begin() as conn:
                conn.execute(text("INSERT INTO categories (name, created_at) VALUES ('Drinks', '2026-01-01 00:00:00')"))
            init_db(engine, use_alembic=False, base=Base)
            with engine.connect() as conn:
                assert conn.execute(text("SELECT COUNT(*) FROM categories")).scalar() == 1
        finally:
            engine.dispose()


class TestInitDBAlembic:
    """init_db with use_alembic=True."""

    def test_upgrade_to_head(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'alembic.db'}")
        try:
            init_db(engine, use_alembic=True)
            tables = set(inspect(engine).get_table_names())
            assert EXPECTED_TABLES <= tables
            assert "alembic_version" in tables
            with engine.connect() as conn:
                assert conn.execute(text("SELECT version_num FROM alembic_version")).scalar() == "0001_baseline"
        finally:
            engine.dispose()


class TestDatabase:
    def test_foreign_keys_enforced(self, tmp_path):
        database = Database(f"sqlite:///{tmp_path / 'fk.db'}", use_alembic=False)
        try:
            with database.engine.connect() as conn:
                assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        finally:
            database.close()

    def test_unit_of_work_rolls_back_on_error(self, tmp_path):
        database = Database("sqlite:///:memory:", use_alembic=False)
        try:
            with pytest.raises(RuntimeError):
                with database.unit_of_work() as session:
                    session.execute(text("INSERT INTO categories (name, created_at) VALUES ('Tmp', '2026-01-01')"))
                    raise RuntimeError("boom")
            with database.unit_of_work() as session:
                assert session.execute(text("SELECT COUNT(*) FROM categories")).scalar() == 0
        finally:
            database.close()
