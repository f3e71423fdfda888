"""
Storefront Backend: Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every failure the API reports.
Why:   Services raise typed errors; global handlers in main.py turn each type
       into a fixed HTTP status and a `{"error": message}` body. No handler
       ever inspects the text of an error to pick a status.
How:   Each exception carries a user-safe message and a context dict that is
       logged server-side only.

Exception Hierarchy:
    StorefrontError (base)
    ├── UnauthorizedError   → 401 (no or invalid session)
    ├── NotFoundError       → 404 (missing OR owned by someone else)
    ├── ValidationError     → 400 (client can fix the input)
    ├── ConflictError       → 409 (duplicate name within a parent)
    ├── UpstreamError       → per UpstreamErrorKind (Printify, Stripe)
    ├── CheckoutError       → per CheckoutErrorKind
    └── DatabaseError       → 500 (generic message)
"""

import enum
from typing import Any, Dict, Optional


class StorefrontError(Exception):
    """
    Base exception for all storefront application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class UnauthorizedError(StorefrontError):
    """Raised when a request carries no valid session."""

    status_code = 401

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ValidationError(StorefrontError):
    """
    Raised when client input fails a business rule.

    Schema-level problems (wrong types, missing JSON keys) are caught by
    FastAPI first and reshaped to the same 400 body in main.py.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(StorefrontError):
    """
    Raised when a resource is absent or belongs to another user.

    Both cases produce the same message so callers cannot learn about the
    existence of other tenants' rows.
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource


class ConflictError(StorefrontError):
    """Raised when a write would duplicate a unique name within its parent."""

    status_code = 409

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


# ══════════════════════════════════════════════════════════════════════════
# Third-party failures
# ══════════════════════════════════════════════════════════════════════════

class UpstreamErrorKind(str, enum.Enum):
    RATE_LIMIT = "RATE_LIMIT"
    AUTH_ERROR = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


UPSTREAM_STATUS: Dict[UpstreamErrorKind, int] = {
    UpstreamErrorKind.RATE_LIMIT: 429,
    UpstreamErrorKind.AUTH_ERROR: 400,
    UpstreamErrorKind.NOT_FOUND: 404,
    UpstreamErrorKind.SERVER_ERROR: 502,
    UpstreamErrorKind.NETWORK_ERROR: 502,
    UpstreamErrorKind.UNKNOWN_ERROR: 502,
}


class UpstreamError(StorefrontError):
    """
    Raised when a third-party API (Printify, Stripe) fails.

    The provider client classifies the failure into an UpstreamErrorKind;
    the HTTP status comes from UPSTREAM_STATUS.
    """

    def __init__(
        self,
        provider: str,
        kind: UpstreamErrorKind,
        message: Optional[str] = None,
        upstream_status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["provider"] = provider
        ctx["kind"] = kind.value
        if upstream_status is not None:
            ctx["upstream_status"] = upstream_status
        super().__init__(
            message=message or f"{provider} request failed ({kind.value})",
            context=ctx,
        )
        self.provider = provider
        self.kind = kind
        self.upstream_status = upstream_status

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return UPSTREAM_STATUS[self.kind]


class CheckoutErrorKind(str, enum.Enum):
    INVALID_QUANTITY = "INVALID_QUANTITY"
    STORE_NOT_FOUND = "STORE_NOT_FOUND"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    PRICE_NOT_CONFIGURED = "PRICE_NOT_CONFIGURED"
    PAYOUTS_NOT_CONFIGURED = "PAYOUTS_NOT_CONFIGURED"
    CHARGES_DISABLED = "CHARGES_DISABLED"
    PROVIDER_ERROR = "PROVIDER_ERROR"


CHECKOUT_STATUS: Dict[CheckoutErrorKind, int] = {
    CheckoutErrorKind.INVALID_QUANTITY: 400,
    CheckoutErrorKind.STORE_NOT_FOUND: 404,
    CheckoutErrorKind.PRODUCT_NOT_FOUND: 404,
    CheckoutErrorKind.PRICE_NOT_CONFIGURED: 400,
    CheckoutErrorKind.PAYOUTS_NOT_CONFIGURED: 400,
    CheckoutErrorKind.CHARGES_DISABLED: 400,
    CheckoutErrorKind.PROVIDER_ERROR: 502,
}

CHECKOUT_MESSAGES: Dict[CheckoutErrorKind, str] = {
    CheckoutErrorKind.INVALID_QUANTITY: "Quantity must be at least 1",
    CheckoutErrorKind.STORE_NOT_FOUND: "Store not found",
    CheckoutErrorKind.PRODUCT_NOT_FOUND: "Product not found",
    CheckoutErrorKind.PRICE_NOT_CONFIGURED: (
        "Product price not configured or product is not visible in this store"
    ),
    CheckoutErrorKind.PAYOUTS_NOT_CONFIGURED: "Seller payouts not configured",
    CheckoutErrorKind.CHARGES_DISABLED: "Seller cannot accept payments yet",
    CheckoutErrorKind.PROVIDER_ERROR: "Payment provider is unavailable. Please try again.",
}


class CheckoutError(StorefrontError):
    """Raised by the checkout service; the kind alone decides the status."""

    def __init__(
        self,
        kind: CheckoutErrorKind,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["kind"] = kind.value
        super().__init__(message=CHECKOUT_MESSAGES[kind], context=ctx)
        self.kind = kind

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return CHECKOUT_STATUS[self.kind]


class DatabaseError(StorefrontError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; constraint names
    and SQL stay in the server log.
    """

    status_code = 500

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
