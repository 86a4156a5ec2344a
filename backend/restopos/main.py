"""RestoPOS FastAPI application: router wiring and the error envelope."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from restopos import __version__, config
from restopos.api import (
    auth_router,
    backup_router,
    dashboard_router,
    delivery_router,
    finance_router,
    inventory_router,
    notifications_router,
    orders_router,
    products_router,
    reports_router,
    sales_router,
    tables_router,
    users_router,
)
from restopos.api.responses import error, ok
from restopos.db.database import Database
from restopos.errors import Internal, InvalidInput, PosError
from restopos.ratelimit import StorageRateLimiter

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if getattr(app.state, "database", None) is None:
        app.state.database = Database(config.DATABASE_URL)
        logger.info("Database ready at %s", config.DATABASE_URL)
    yield
    app.state.database.close()


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid payload"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def create_app() -> FastAPI:
    app = FastAPI(title="RestoPOS Backend", version=__version__, lifespan=lifespan)

    # Allow CORS for local dev (adjust in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if config.is_dev() else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.rate_limiter = StorageRateLimiter(
        limit=config.LOGIN_RATE_LIMIT,
        window_seconds=config.LOGIN_RATE_WINDOW_SECONDS,
        storage_uri=config.RATE_LIMIT_STORAGE_URI,
    )

    @app.exception_handler(PosError)
    async def handle_pos_error(request: Request, exc: PosError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        return error(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error(InvalidInput(_first_validation_message(exc), code="invalid_payload"))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return error(PosError(str(exc.detail), code="http_error").with_status(exc.status_code))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error(Internal())

    for module in (
        auth_router,
        users_router,
        orders_router,
        tables_router,
        inventory_router,
        products_router,
        sales_router,
        delivery_router,
        reports_router,
        dashboard_router,
        finance_router,
        notifications_router,
        backup_router,
    ):
        app.include_router(module.router)

    @app.get("/api/health", summary="Liveness probe")
    async def health():
        return ok({"status": "ok", "version": __version__})

    return app


app = create_app()


def serve() -> None:
    """Run the API with uvicorn (``restopos-server`` console script)."""
    import uvicorn

    uvicorn.run(
        "restopos.main:app",
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("APP_PORT", "8000")),
        reload=config.is_dev() and os.getenv("APP_RELOAD", "false").lower() == "true",
    )


if __name__ == "__main__":
    serve()
