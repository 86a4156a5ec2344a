"""
Error taxonomy shared by the core services and the HTTP boundary.

Every error carries an HTTP status, a stable machine code and a human
message. Services raise these; ``restopos.main`` renders them into the
``{"ok": false, "error": {...}}`` envelope.
"""

from typing import Any, Dict, Optional


class PosError(Exception):
    """Base class for expected business errors."""

    status_code = 400
    code = "error"
    message = "Request failed"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.message
        self.code = code or self.code
        self.details = details or {}
        super().__init__(self.message)

    def with_status(self, status_code: int) -> "PosError":
        self.status_code = status_code
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}

    def __repr__(self):
        return f"<{type(self).__name__}(code={self.code!r}, message={self.message!r})>"


class NotFound(PosError):
    status_code = 404
    code = "not_found"
    message = "Resource not found"

    def __init__(self, resource: str = "resource", resource_id: Any = None, code: Optional[str] = None):
        super().__init__(
            message=f"{resource.capitalize()} not found" + (f": {resource_id}" if resource_id is not None else ""),
            code=code or f"{resource}_not_found",
            details={"id": resource_id},
        )


class InvalidInput(PosError):
    code = "invalid_input"
    message = "Invalid input"


class InvalidProducts(PosError):
    code = "invalid_products"
    message = "One or more products are missing or inactive"


class InvalidMaterials(PosError):
    code = "invalid_materials"
    message = "One or more materials do not exist"


class Conflict(PosError):
    status_code = 409
    code = "conflict"
    message = "Resource already exists"


class InsufficientStock(PosError):
    code = "insufficient_stock"
    message = "Not enough stock for this operation"


class InsufficientStockForRevert(InsufficientStock):
    code = "insufficient_stock_for_revert"
    message = "Stock already consumed, the purchase cannot be reverted"


class TableOccupied(PosError):
    code = "table_occupied"
    message = "Table already has an active order"


class InvalidTypeCombination(PosError):
    code = "invalid_type_combination"
    message = "Order type does not allow this combination"


class OrderFinalized(PosError):
    code = "order_finalized"
    message = "Delivered orders cannot change status"


class OrderCancelled(PosError):
    code = "order_cancelled"
    message = "Cancelled orders cannot change status"


class ReferentialBlock(PosError):
    code = "referential_block"
    message = "Resource is still referenced"


class Unauthorized(PosError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required"


class Forbidden(PosError):
    status_code = 403
    code = "forbidden"
    message = "Permission denied"


class RateLimited(PosError):
    status_code = 429
    code = "rate_limited"
    message = "Too many attempts, try again later"


class Internal(PosError):
    status_code = 500
    code = "internal_error"
    message = "Internal server error"
