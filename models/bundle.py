"""
Bundle view models.

A Bundle is never stored. It is rebuilt on every read from the orders
that share a ``bundleId`` (see modules.bundle_aggregator); these classes
only hold the computed view and serialize it for the dashboard.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .order import Order, OrderStatus


def format_number(value: float) -> str:
    """Render 12.0 as "12" and 12.5 as "12.5"."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


@dataclass
class Bundle:
    """
    Derived bundle: the orders sharing one bundle id.

    ``is_single_order`` marks a multi-item standalone order shown as its
    own one-member bundle on the shipping page. That is a display state
    only; such a bundle has no bundle id upstream.
    """

    bundle_id: str
    orders: List[Order]
    status: OrderStatus
    item_count: int
    total_value: float
    total_weight_oz: float
    is_single_order: bool = False

    @property
    def order_ids(self) -> List[str]:
        return [o.order_id for o in self.orders]

    @property
    def customer_id(self) -> str:
        return self.orders[0].customer_id if self.orders else ""

    @property
    def customer_name(self) -> str:
        return self.orders[0].customer.display_name if self.orders else ""

    @property
    def created_at(self) -> Optional[datetime]:
        stamps = [o.created_at for o in self.orders if o.created_at is not None]
        return min(stamps) if stamps else None

    @property
    def tracking_number(self) -> Optional[str]:
        for order in self.orders:
            if order.tracking_number:
                return order.tracking_number
        return None

    @property
    def bundle_name(self) -> str:
        if self.is_single_order and self.orders:
            order = self.orders[0]
            return f"Order #{order.invoice or order.order_id[-8:]}"
        return f"Bundle of {len(self.orders)} orders"

    def to_dict(self, include_orders: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.bundle_id,
            "bundleName": self.bundle_name,
            "status": self.status.value,
            "orderIds": self.order_ids,
            "itemCount": self.item_count,
            "totalValue": round(self.total_value, 2),
            "totalWeight": f"{format_number(self.total_weight_oz)} oz",
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "trackingNumber": self.tracking_number,
            "isBundle": True,
            "isSingleOrder": self.is_single_order,
        }
        if include_orders:
            data["orders"] = [o.to_dict() for o in self.orders]
        return data


@dataclass(frozen=True)
class ParcelDimensions:
    """Aggregated parcel sent to the carrier for one bundle label."""

    length: float
    width: float
    height: float
    weight_oz: float

    @property
    def dimensions_label(self) -> str:
        """Dimensions as LxWxH in inches."""
        return "x".join(format_number(v) for v in (self.length, self.width, self.height))

    @property
    def weight_label(self) -> str:
        return format_number(self.weight_oz)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "length": self.length,
            "width": self.width,
            "height": self.height,
            "weight": self.weight_oz,
            "unit": "oz",
        }


@dataclass
class DisplayItem:
    """One row of the shipping page: a plain order or a display bundle."""

    order: Optional[Order] = None
    bundle: Optional[Bundle] = None

    @property
    def is_bundle(self) -> bool:
        return self.bundle is not None

    @property
    def created_at(self) -> Optional[datetime]:
        if self.bundle is not None:
            return self.bundle.created_at
        return self.order.created_at if self.order else None

    def to_dict(self) -> Dict[str, Any]:
        if self.bundle is not None:
            return self.bundle.to_dict()
        data = self.order.to_dict() if self.order else {}
        data["isBundle"] = False
        return data
