"""
Custom exceptions for the Icona shipping service.

Exception Hierarchy:
    ShippingServiceError (base)
    ├── ValidationError        - malformed request, rejected before any upstream call (400)
    ├── PreconditionError      - orders in the wrong state for the operation (409)
    ├── UpstreamError          - non-2xx or transport failure from the commerce API
    │   └── OrderNotFoundError - upstream 404 / no orders match (404)
    └── FanOutFailure          - every member update of a fan-out failed (502)

Partial fan-out failures are not exceptions: they are reported through
FanOutResult. A label that was bought but applied to no order is reported
through LabelPurchaseResult with outcome "unapplied".
"""

from typing import Optional, Dict, Any, List


class ShippingServiceError(Exception):
    """
    Base exception for all service errors.

    Subclasses set ``status_code`` so the Flask error handler can map them
    to an HTTP response without knowing each type.
    """

    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for the error response."""
        body: Dict[str, Any] = {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# REQUEST ERRORS - rejected before anything is mutated
# =============================================================================

class ValidationError(ShippingServiceError):
    """
    Request is missing required fields or carries malformed values.

    Raised before any upstream call is made.
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        details = {"errors": errors} if errors else {}
        super().__init__(message, details)
        self.errors = errors or []


class PreconditionError(ShippingServiceError):
    """
    One or more orders are not in a state that allows the operation.

    Examples: bundling an order that is not ``processing``, buying a
    bundle label for orders shipping to different addresses, cancelling
    an order that already has a label. Nothing has been mutated when this
    is raised.
    """

    status_code = 409
    error_code = "precondition_failed"

    def __init__(
        self,
        message: str,
        invalid_order_ids: Optional[List[str]] = None,
        reasons: Optional[Dict[str, str]] = None,
    ):
        details: Dict[str, Any] = {}
        if invalid_order_ids:
            details["invalidOrderIds"] = list(invalid_order_ids)
        if reasons:
            details["reasons"] = dict(reasons)
        super().__init__(message, details)
        self.invalid_order_ids = list(invalid_order_ids or [])
        self.reasons = dict(reasons or {})


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================

class UpstreamError(ShippingServiceError):
    """
    The commerce API answered with a non-2xx status or could not be reached.

    The upstream status is preserved as ``status_code`` so the route
    answers with the same code; transport failures use 502.
    """

    error_code = "upstream_error"

    def __init__(
        self,
        message: str,
        status_code: int = 502,
        body: Optional[Any] = None,
        operation: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"upstreamStatus": status_code}
        if body not in (None, ""):
            details["upstreamBody"] = body
        if operation:
            details["operation"] = operation
        super().__init__(message, details)
        self.status_code = status_code
        self.body = body
        self.operation = operation

    @property
    def upstream_message(self) -> str:
        """Best-effort human message extracted from the upstream body."""
        if isinstance(self.body, dict):
            for key in ("message", "error", "msg"):
                if self.body.get(key):
                    return str(self.body[key])
        if isinstance(self.body, str) and self.body:
            return self.body
        return self.message


class OrderNotFoundError(UpstreamError):
    """No order (or no bundle member) matches the given identifier."""

    error_code = "not_found"

    def __init__(self, identifier: str, message: Optional[str] = None):
        super().__init__(
            message or f"Order {identifier} not found",
            status_code=404,
            operation="lookup",
        )
        self.identifier = identifier


class FanOutFailure(ShippingServiceError):
    """
    Every member update of a fan-out operation failed.

    Carries the per-order outcomes so the caller can retry narrowly.
    """

    status_code = 502
    error_code = "fanout_failed"

    def __init__(self, message: str, results: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, {"results": results or []})
        self.results = results or []
