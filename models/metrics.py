"""
Shipping metrics model.

Figures shown at the top of the seller shipping page. Always recomputed
from the order set (modules.metrics); never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class ShippingMetrics:
    """Summary figures for one seller."""

    total_sold: float = 0.0
    total_earned: float = 0.0
    total_shipping_spend: float = 0.0
    items_sold: int = 0
    total_delivered: int = 0
    pending_delivery: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Dashboard format: money as two-decimal strings."""
        return {
            "totalSold": f"{self.total_sold:.2f}",
            "totalEarned": f"{self.total_earned:.2f}",
            "totalShippingSpend": f"{self.total_shipping_spend:.2f}",
            "itemsSold": self.items_sold,
            "totalDelivered": self.total_delivered,
            "pendingDelivery": self.pending_delivery,
        }
