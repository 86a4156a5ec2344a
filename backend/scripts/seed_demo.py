"""
Seed demo data: materials, categories, products with recipes, tables,
delivery zones and an admin account.

Seeding is idempotent: records whose name (or table number) already
exists are skipped, so running it twice changes nothing.

Usage:
    python -m scripts.seed_demo [--data-file path/to/demo.json] [--admin-password secret]

Environment:
    APP_DATABASE_URL: Database connection (default: sqlite:///./restopos.db)
"""

import argparse
import json
import logging
import os
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from restopos import config
from restopos.db.database import Database
from restopos.db.dependencies import hash_password
from restopos.db.models import Category, DiningTable, Material, Product, User, Zone
from restopos.services import delivery, inventory, products, tables

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_DATA: Dict[str, Any] = {
    "materials": [
        {"name": "Coffee beans", "unit": "kg", "cost": 18, "stock": 5, "min_stock": 1},
        {"name": "Milk", "unit": "l", "cost": 1.2, "stock": 20, "min_stock": 5},
        {"name": "Sugar", "unit": "kg", "cost": 0.9, "stock": 10, "min_stock": 2},
        {"name": "Burger bun", "unit": "pcs", "cost": 0.3, "stock": 60, "min_stock": 20},
        {"name": "Beef patty", "unit": "pcs", "cost": 1.8, "stock": 40, "min_stock": 15},
    ],
    "categories": [
        {"name": "Drinks", "products": [
            {"name": "Espresso", "price": 2.5, "recipe": [["Coffee beans", 0.018]]},
            {"name": "Latte", "price": 3.5, "recipe": [["Coffee beans", 0.018], ["Milk", 0.2], ["Sugar", 0.01]]},
        ]},
        {"name": "Grill", "products": [
            {"name": "Classic burger", "price": 9, "recipe": [["Burger bun", 1], ["Beef patty", 1]]},
        ]},
    ],
    "tables": [{"name": f"T{number}", "number": number} for number in range(1, 9)],
    "zones": [
        {"name": "Downtown", "limit_km": 3, "fee": 2, "min_order": 10},
        {"name": "Suburbs", "limit_km": 8, "fee": 4.5, "min_order": 20},
    ],
}


def load_data_file(data_file: Optional[str]) -> Dict[str, Any]:
    """Load seed data from JSON, or fall back to the built-in demo set."""
    if not data_file:
        return DEFAULT_DATA
    if not os.path.exists(data_file):
        raise FileNotFoundError(f"Seed file not found: {data_file}")
    with open(data_file, "r", encoding="utf-8") as f:
        data = json.load(f)
    logger.info(f"Loaded seed data from {data_file}")
    return data


def _exists(session: Session, column, value) -> bool:
    return session.execute(select(column).where(column == value).limit(1)).first() is not None


def seed_demo(session: Session, data: Dict[str, Any], admin_password: Optional[str] = None) -> Dict[str, int]:
    """
    Insert demo records that are not there yet.

    Returns:
        Counts of created records per kind.
    """
    stats = {"materials": 0, "categories": 0, "products": 0, "tables": 0, "zones": 0, "users": 0}

    for entry in data.get("materials", []):
        if _exists(session, Material.name, entry["name"]):
            continue
        inventory.create_material(session, **entry)
        stats["materials"] += 1

    material_ids = {name: id_ for id_, name in session.execute(select(Material.id, Material.name))}

    for category_entry in data.get("categories", []):
        category = session.execute(
            select(Category).where(Category.name == category_entry["name"])
        ).scalar_one_or_none()
        if category is None:
            category = products.create_category(session, name=category_entry["name"])
            stats["categories"] += 1

        for product_entry in category_entry.get("products", []):
            if _exists(session, Product.name, product_entry["name"]):
                continue
            missing = [name for name, _ in product_entry.get("recipe", []) if name not in material_ids]
            if missing:
                logger.warning(f"Skipping product '{product_entry['name']}' - unknown materials {missing}")
                continue
            products.create_product(
                session,
                name=product_entry["name"],
                price=product_entry["price"],
                category_id=category.id,
                recipe=[
                    {"material_id": material_ids[name], "quantity": amount}
                    for name, amount in product_entry.get("recipe", [])
                ],
            )
            stats["products"] += 1

    for entry in data.get("tables", []):
        if _exists(session, DiningTable.number, entry["number"]) or _exists(session, DiningTable.name, entry["name"]):
            continue
        tables.create_table(session, **entry)
        stats["tables"] += 1

    for entry in data.get("zones", []):
        if _exists(session, Zone.name, entry["name"]):
            continue
        delivery.create_zone(session, **entry)
        stats["zones"] += 1

    if admin_password and not _exists(session, User.username, "admin"):
        session.add(User(username="admin", password_hash=hash_password(admin_password), roles=["admin"]))
        session.flush()
        stats["users"] += 1

    return stats


def main():
    parser = argparse.ArgumentParser(description="Seed RestoPOS demo data")
    parser.add_argument("--db", default=config.DATABASE_URL, help="Database URL")
    parser.add_argument("--data-file", default=None, help="JSON file with materials/categories/tables/zones")
    parser.add_argument("--admin-password", default=None, help="Create an 'admin' user with this password")
    args = parser.parse_args()

    data = load_data_file(args.data_file)
    database = Database(args.db)
    try:
        with database.unit_of_work() as session:
            stats = seed_demo(session, data, admin_password=args.admin_password)
    finally:
        database.close()

    logger.info(f"Seeding complete: {stats}")


if __name__ == "__main__":
    main()
