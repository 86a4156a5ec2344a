"""Database models and schema initialization for RestoPOS."""

import logging
import os
from typing import Optional, Any

from sqlalchemy.engine import Engine

from restopos.db.models import Base

logger = logging.getLogger(__name__)

BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def init_db(engine: Engine, use_alembic: bool = True, base: Optional[Any] = None) -> None:
    """
    Initialize database schema using Alembic or create_all fallback.

    Args:
        engine: SQLAlchemy engine instance
        use_alembic: If True, run Alembic migrations up to head; else use
                     Base.metadata.create_all() (instant schema for dev/tests)
        base: declarative base to create tables from. Defaults to
              restopos.db.models.Base.

    Raises:
        RuntimeError: If the Alembic upgrade or table creation fails
    """
    if base is None:
        base = Base

    if use_alembic:
        from alembic import command
        from alembic.config import Config

        alembic_ini = os.path.join(BACKEND_DIR, "alembic.ini")
        if not os.path.exists(alembic_ini):
            raise RuntimeError(f"alembic.ini not found at {alembic_ini}")

        config = Config(alembic_ini)
        config.set_main_option("script_location", os.path.join(BACKEND_DIR, "alembic"))
        try:
            with engine.begin() as connection:
                config.attributes["connection"] = connection
                command.upgrade(config, "head")
        except Exception as exc:
            raise RuntimeError(f"Alembic migration failed: {exc}") from exc
        logger.info("Alembic upgrade to head completed")
    else:
        logger.info("Creating missing tables from %s schema (existing data preserved)", base.__name__)
        try:
            base.metadata.create_all(engine)
        except Exception as exc:
            raise RuntimeError(f"Failed to create database tables: {exc}") from exc


__all__ = ["Base", "init_db"]
