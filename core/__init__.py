"""
Core module for the Icona shipping service.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- api_client: HTTP client for the upstream commerce API
"""

from .exceptions import (
    ShippingServiceError,
    ValidationError,
    PreconditionError,
    UpstreamError,
    OrderNotFoundError,
    FanOutFailure,
)
from .api_client import IconaAPIClient

__all__ = [
    "ShippingServiceError",
    "ValidationError",
    "PreconditionError",
    "UpstreamError",
    "OrderNotFoundError",
    "FanOutFailure",
    "IconaAPIClient",
]
