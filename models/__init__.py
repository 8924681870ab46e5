"""
Data models for the Icona shipping service.

- Order, OrderStatus and the transition checks (can_cancel, can_ship, ...)
- Bundle / ParcelDimensions / DisplayItem: derived views, never stored
- FanOutResult / LabelPurchaseResult: per-order outcomes of multi-order operations
- ShippingMetrics: summary figures for the shipping page
- requests: pydantic request DTOs
"""

from .order import (
    Order,
    OrderStatus,
    Address,
    Party,
    LineItem,
    Giveaway,
    can_cancel,
    can_ship,
    can_bundle,
    can_buy_label,
    can_transition,
)
from .bundle import Bundle, ParcelDimensions, DisplayItem
from .results import (
    OrderOutcome,
    FanOutResult,
    LabelOutcome,
    LabelPurchaseResult,
    BulkLabelResult,
    UnbundleResult,
)
from .metrics import ShippingMetrics

__all__ = [
    # Order models
    "Order",
    "OrderStatus",
    "Address",
    "Party",
    "LineItem",
    "Giveaway",
    "can_cancel",
    "can_ship",
    "can_bundle",
    "can_buy_label",
    "can_transition",
    # Bundle views
    "Bundle",
    "ParcelDimensions",
    "DisplayItem",
    # Results
    "OrderOutcome",
    "FanOutResult",
    "LabelOutcome",
    "LabelPurchaseResult",
    "BulkLabelResult",
    "UnbundleResult",
    "ShippingMetrics",
]
