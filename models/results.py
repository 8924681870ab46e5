"""
Result models for multi-order operations.

Bundle operations touch several orders with independent upstream calls;
there is no transaction across them. Each call produces one OrderOutcome,
and the operation reports the whole list instead of raising on the first
failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class OrderOutcome:
    """Outcome of one per-order upstream call inside a fan-out."""

    order_id: str
    """Order the call was issued for."""

    success: bool
    """Whether the upstream call succeeded."""

    error: Optional[str] = None
    """Error message when the call failed or was skipped."""

    data: Optional[Any] = None
    """Upstream answer when the call succeeded."""

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"orderId": self.order_id, "success": self.success}
        if self.error is not None:
            result["error"] = self.error
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class FanOutResult:
    """
    Collected outcomes of one fan-out, one per member order.

    Outcomes keep the order of the ids the fan-out was started with.
    """

    operation: str
    outcomes: List[OrderOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[OrderOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> List[OrderOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def all_succeeded(self) -> bool:
        return bool(self.outcomes) and not self.failed

    @property
    def any_succeeded(self) -> bool:
        return bool(self.succeeded)

    @property
    def succeeded_ids(self) -> List[str]:
        return [o.order_id for o in self.succeeded]

    @property
    def failed_ids(self) -> List[str]:
        return [o.order_id for o in self.failed]

    def to_list(self) -> List[Dict[str, Any]]:
        return [o.to_dict() for o in self.outcomes]


class LabelOutcome(Enum):
    """
    How far a bundle label purchase got.

    SUCCESS   - label bought, every member order updated
    PARTIAL   - label bought, some member updates failed
    UNAPPLIED - label bought (and paid for), no member order updated;
                needs manual reconciliation through /api/shipping/labels/apply
    """

    SUCCESS = "success"
    PARTIAL = "partial"
    UNAPPLIED = "unapplied"

    @property
    def http_status(self) -> int:
        return {
            LabelOutcome.SUCCESS: 200,
            LabelOutcome.PARTIAL: 207,
            LabelOutcome.UNAPPLIED: 500,
        }[self]

    @classmethod
    def from_fanout(cls, result: FanOutResult) -> "LabelOutcome":
        # No known order to write to (label bought against a bare bundle id)
        if not result.outcomes:
            return cls.SUCCESS
        if result.all_succeeded:
            return cls.SUCCESS
        if result.any_succeeded:
            return cls.PARTIAL
        return cls.UNAPPLIED


@dataclass
class LabelPurchaseResult:
    """Label bought for one parcel and its propagation to member orders."""

    tracking_number: str
    label_url: Optional[str]
    cost: float
    carrier: str
    service: str
    label_order_id: str
    """Identifier the label was bought against (order id or bundle id)."""

    updates: FanOutResult
    aggregated_weight: Optional[str] = None
    aggregated_dimensions: Optional[str] = None
    purchased_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def affected_orders(self) -> List[str]:
        return [o.order_id for o in self.updates.outcomes]

    @property
    def outcome(self) -> LabelOutcome:
        return LabelOutcome.from_fanout(self.updates)

    @property
    def message(self) -> str:
        total = len(self.updates.outcomes)
        ok = len(self.updates.succeeded)
        if total == 0:
            return "Label purchased successfully"
        if self.outcome is LabelOutcome.SUCCESS:
            return f"Label created successfully for {total} order(s)"
        if self.outcome is LabelOutcome.PARTIAL:
            return f"Label created with partial success: {ok}/{total} orders updated"
        return "Label created but failed to update any orders"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "trackingNumber": self.tracking_number,
            "labelUrl": self.label_url,
            "cost": round(self.cost, 2),
            "carrier": self.carrier,
            "service": self.service,
            "labelOrderId": self.label_order_id,
            "affectedOrders": self.affected_orders,
            "updateResults": self.updates.to_list(),
            "purchasedAt": self.purchased_at.isoformat(),
        }
        if self.aggregated_weight is not None:
            data["aggregatedWeight"] = self.aggregated_weight
        if self.aggregated_dimensions is not None:
            data["aggregatedDimensions"] = self.aggregated_dimensions
        return {
            "success": self.outcome is LabelOutcome.SUCCESS,
            "outcome": self.outcome.value,
            "message": self.message,
            "data": data,
        }


@dataclass
class BulkLabelResult:
    """Outcome of one batched label purchase for operator-selected orders."""

    requested: int
    rates: List[Dict[str, Any]]
    success_count: int
    failure_count: int
    fetch_errors: List[str] = field(default_factory=list)
    upstream: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.failure_count == 0,
            "message": f"Purchased {self.success_count} of {len(self.rates)} labels",
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "fetchErrors": list(self.fetch_errors),
            "data": self.upstream,
        }
        return data


@dataclass
class UnbundleResult:
    """Outcome of clearing the bundle id on bundle members."""

    bundle_id: str
    updates: Optional[FanOutResult] = None

    @property
    def no_orders_found(self) -> bool:
        return self.updates is None or not self.updates.outcomes

    def to_dict(self) -> Dict[str, Any]:
        if self.no_orders_found:
            return {
                "success": True,
                "message": f"No orders found for bundle {self.bundle_id}",
                "ordersUnbundled": 0,
                "ordersFailed": 0,
                "results": [],
            }
        updates = self.updates
        return {
            "success": updates.all_succeeded,
            "message": (
                f"Unbundled {len(updates.succeeded)} of {len(updates.outcomes)} orders"
            ),
            "ordersUnbundled": len(updates.succeeded),
            "ordersFailed": len(updates.failed),
            "results": updates.to_list(),
        }
