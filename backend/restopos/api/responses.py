"""JSON envelope helpers shared by the routers."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from restopos.errors import PosError


def ok(data: Any = None, status_code: int = 200) -> JSONResponse:
    """``{"ok": true, "data": ...}``; Decimals are rendered as numbers."""
    return JSONResponse(status_code=status_code, content={"ok": True, "data": jsonable_encoder(data)})


def error(exc: PosError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.to_dict()})
