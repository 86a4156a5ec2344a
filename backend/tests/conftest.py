import os
import sys
from types import SimpleNamespace
from typing import Dict, List

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from restopos.db.database import Database
from restopos.db.dependencies import create_access_token, hash_password
from restopos.db.models import User
from restopos.main import app
from restopos.ratelimit import StorageRateLimiter
from restopos.services import delivery, inventory, products, tables


@pytest.fixture
def database(tmp_path):
    """File-backed SQLite database with the full schema."""
    db = Database(f"sqlite:///{tmp_path / 'restopos.db'}", use_alembic=False)
    yield db
    db.close()


@pytest.fixture
def catalog(database):
    """
    Minimal menu: Sugar (stock 10, cost 0.5), Tea (price 5, uses 2 Sugar),
    Water (price 1, no recipe), table #1, zone Downtown (fee 3), one driver.
    """
    with database.unit_of_work() as session:
        sugar = inventory.create_material(session, name="Sugar", unit="kg", cost="0.5", stock=10, min_stock=1)
        tea = products.create_product(
            session, name="Tea", price=5, recipe=[{"material_id": sugar.id, "quantity": 2}]
        )
        water = products.create_product(session, name="Water", price=1)
        table = tables.create_table(session, name="T1", number=1)
        zone = delivery.create_zone(session, name="Downtown", fee=3)
        driver = delivery.create_driver(session, name="Sam", phone="555-0100")
        return SimpleNamespace(
            sugar_id=sugar.id,
            tea_id=tea.id,
            water_id=water.id,
            table_id=table.id,
            zone_id=zone.id,
            driver_id=driver.id,
        )


@pytest.fixture
def make_user(database):
    """Create a user with the given roles and return ``(id, bearer headers)``."""

    def _make(username: str, roles: List[str], password: str = "secret123"):
        with database.unit_of_work() as session:
            user = User(username=username, password_hash=hash_password(password), roles=roles)
            session.add(user)
            session.flush()
            user_id = user.id
        token = create_access_token({"sub": str(user_id), "roles": roles})
        return user_id, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def admin_headers(make_user) -> Dict[str, str]:
    return make_user("admin", ["admin"])[1]


@pytest_asyncio.fixture
async def api_client(database):
    """Async client bound to the app with the test database attached."""
    original_database = getattr(app.state, "database", None)
    original_limiter = app.state.rate_limiter
    app.state.database = database
    app.state.rate_limiter = StorageRateLimiter(limit=5, window_seconds=60)
    try:
        async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.state.database = original_database
        app.state.rate_limiter = original_limiter
