"""Business error taxonomy.

Every error the order engine and its collaborators raise on purpose derives
from ``StoreError``. The API layer maps each subclass 1:1 to an HTTP status
(see ``storefront.api.errors``); anything else surfaces as a 500.
"""

from typing import Any, Optional


class StoreError(Exception):
    status_code: int = 400
    error: str = "Bad Request"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidRequest(StoreError):
    status_code = 400
    error = "Invalid Request"


class AuthenticationFailed(StoreError):
    status_code = 401
    error = "Unauthorized"


class Forbidden(StoreError):
    status_code = 403
    error = "Forbidden"


class ResourceNotFound(StoreError):
    status_code = 404
    error = "Not Found"


class InsufficientStock(StoreError):
    status_code = 409
    error = "Insufficient Stock"

    def __init__(self, product_name: str, available: int, requested: int, message: Optional[str] = None):
        super().__init__(
            message
            or f"Insufficient stock for product '{product_name}'. Available: {available}, requested: {requested}",
            {"product": product_name, "available": available, "requested": requested},
        )
        self.product_name = product_name
        self.available = available
        self.requested = requested


class InvalidState(StoreError):
    status_code = 409
    error = "Invalid State"
