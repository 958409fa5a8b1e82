"""Domain errors raised by the catalog, account and order services.

Each error carries the HTTP status the API layer answers with, so routers can
let them propagate and a single exception handler renders them.
"""
from typing import Optional


class QuickShopError(Exception):
    """Base class for user-facing service errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(QuickShopError):
    """Malformed or missing fields, non-positive quantities, empty cart."""

    status_code = 400


class InsufficientStock(QuickShopError):
    """Requested quantity exceeds the product's current stock."""

    status_code = 400

    def __init__(self, product_id: int, product_name: Optional[str] = None):
        label = f"'{product_name}' (id {product_id})" if product_name else f"id {product_id}"
        super().__init__(f"Insufficient stock for product {label}")
        self.product_id = product_id


class Forbidden(QuickShopError):
    """Actor lacks the role or ownership required for the action."""

    status_code = 403


class NotFound(QuickShopError):
    """Unknown product, order or user id."""

    status_code = 404


class Conflict(QuickShopError):
    """Unique value (username, email) already taken."""

    status_code = 409


class InvalidTransition(QuickShopError):
    """Order status change not present in the transition table."""

    status_code = 409


class PreconditionFailed(QuickShopError):
    """Operation not allowed in the order's current state."""

    status_code = 412
