"""Engine, session factory and the unit-of-work transaction boundary."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from restopos import config
from restopos.db import init_db

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the engine and sessionmaker for one database URL.

    Every core operation runs inside ``unit_of_work()``: one session, one
    transaction, committed when the block exits normally and rolled back
    when it raises.
    """

    def __init__(self, database_url: Optional[str] = None, use_alembic: Optional[bool] = None, create_schema: bool = True):
        self.database_url = database_url or config.DATABASE_URL
        is_sqlite = self.database_url.startswith("sqlite")

        engine_kwargs = {"future": True, "pool_pre_ping": True}
        if is_sqlite:
            # Writers wait on the busy timeout instead of failing immediately
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if ":memory:" in self.database_url or self.database_url in ("sqlite://", "sqlite:///"):
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_kwargs)
        if is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if create_schema:
            init_db(self.engine, use_alembic=config.USE_ALEMBIC if use_alembic is None else use_alembic)

    def session(self) -> Session:
        return self.SessionLocal()

    @contextmanager
    def unit_of_work(self) -> Iterator[Session]:
        """Yield a session inside one transaction (commit on success, rollback on error)."""
        session = self.SessionLocal()
        try:
            with session.begin():
                yield session
        finally:
            session.close()

    def close(self) -> None:
        self.engine.dispose()

    def __repr__(self):
        return f"<Database(url={self.database_url})>"
