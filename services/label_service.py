"""
Label purchase coordination.

Buys carrier labels through the commerce API and writes the resulting
tracking data back onto the orders the label covers.

Three entry points:
    purchase_label          one label for one order (or its whole bundle)
    purchase_bundle_label   one label for an operator-picked set of orders,
                            validated to ship to one customer and address
    purchase_bulk_labels    one label per selected row, batched into a
                            single upstream call

Inconsistency:
    The label purchase and the order updates are separate upstream calls.
    Once the label is bought it is paid for; if afterwards no order update
    succeeds the label is "unapplied". That outcome is reported (HTTP 500,
    outcome "unapplied", tracking number included) and logged at ERROR so
    an operator can attach it with apply_label(). Nothing is retried
    automatically.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from core.exceptions import (
    PreconditionError,
    UpstreamError,
    ValidationError,
)
from models.bundle import ParcelDimensions
from models.order import Order, OrderStatus, can_buy_label
from models.results import (
    BulkLabelResult,
    FanOutResult,
    LabelOutcome,
    LabelPurchaseResult,
)
from modules.bundle_aggregator import aggregate_parcel, find_bundle_members
from services.fanout import DEFAULT_MAX_WORKERS, fan_out
from services.order_store import OrderStore
from logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_LABEL_FILE_TYPE = "PDF_4x6"
DEFAULT_BUNDLE_SERVICE = "Ground Advantage"
BUNDLE_LABEL_CARRIER = "USPS"

# Rough bundle label cost until the rate itself reports a price
MINIMUM_LABEL_COST = 5.99
COST_PER_OUNCE = 0.15


def estimate_label_cost(weight_oz: float) -> float:
    return max(MINIMUM_LABEL_COST, weight_oz * COST_PER_OUNCE)


def bundle_label_id(order_ids: Sequence[str]) -> str:
    """Identifier a bundle label is bought against: bundle_<id1>_<id2>..."""
    return "bundle_" + "_".join(order_ids)


def _first_result(response: Any) -> Dict[str, Any]:
    results = response.get("results") if isinstance(response, dict) else None
    if not results or not isinstance(results[0], dict):
        raise UpstreamError(
            "No label data returned from API",
            status_code=500,
            body=response,
            operation="buy_labels",
        )
    return results[0]


class LabelService:
    """Label purchases for one caller (one API client / bearer token)."""

    def __init__(
        self,
        store: OrderStore,
        max_workers: int = DEFAULT_MAX_WORKERS,
        default_label_file_type: str = DEFAULT_LABEL_FILE_TYPE,
        default_service: str = DEFAULT_BUNDLE_SERVICE,
    ):
        self.store = store
        self.max_workers = max_workers
        self.default_label_file_type = default_label_file_type
        self.default_service = default_service

    # ------------------------------------------------------------------
    # Applying labels
    # ------------------------------------------------------------------

    def _apply(
        self,
        operation: str,
        order_ids: Sequence[str],
        tracking_number: str,
        label_url: Optional[str],
    ) -> FanOutResult:
        patch = {
            "tracking_number": tracking_number,
            "label_url": label_url,
            "status": OrderStatus.READY_TO_SHIP.value,
        }
        return fan_out(
            operation,
            order_ids,
            lambda order_id: self.store.patch_order(order_id, patch),
            self.max_workers,
        )

    def _report(self, result: LabelPurchaseResult) -> LabelPurchaseResult:
        outcome = result.outcome
        if outcome is LabelOutcome.UNAPPLIED:
            logger.error(
                f"Label {result.tracking_number} for {result.label_order_id} was purchased "
                f"but no order was updated; reconcile orders "
                f"{', '.join(result.affected_orders)} via /api/shipping/labels/apply"
            )
        elif outcome is LabelOutcome.PARTIAL:
            logger.warning(
                f"Label {result.tracking_number} applied to "
                f"{len(result.updates.succeeded)}/{len(result.updates.outcomes)} orders, "
                f"failed: {', '.join(result.updates.failed_ids)}"
            )
        else:
            logger.info(
                f"Label {result.tracking_number} applied to {len(result.updates.outcomes)} order(s)"
            )
        return result

    def apply_label(
        self,
        order_ids: Sequence[str],
        tracking_number: str,
        label_url: Optional[str] = None,
    ) -> FanOutResult:
        """
        Write an already purchased label onto orders.

        Used to reconcile an unapplied or partially applied label; no
        carrier call is made.
        """
        if not order_ids:
            raise ValidationError(
                "At least one order ID is required",
                errors=[{"field": "orderIds", "message": "must not be empty"}],
            )
        if not tracking_number:
            raise ValidationError(
                "Tracking number is required",
                errors=[{"field": "trackingNumber", "message": "is required"}],
            )
        logger.info(f"Applying label {tracking_number} to {len(order_ids)} order(s)")
        return self._apply("apply_label", list(order_ids), tracking_number, label_url)

    # ------------------------------------------------------------------
    # Single order
    # ------------------------------------------------------------------

    def purchase_label(
        self,
        order_ref: str,
        rate_id: str,
        shipping_fee: float,
        servicelevel: str,
        carrier: Optional[str] = None,
        label_file_type: Optional[str] = None,
        estimate_data: Optional[Dict[str, Any]] = None,
    ) -> LabelPurchaseResult:
        """
        Buy one label for an order.

        When the order belongs to a bundle the label is bought against the
        bundle id and applied to every member. When the lookup fails the
        reference is assumed to be a bundle id already and is used as-is.

        Raises:
            UpstreamError: The purchase failed or returned no label or no
                tracking number; no order is updated then
        """
        label_order_id = order_ref
        order: Optional[Order] = None
        try:
            order = self.store.get_order(order_ref)
        except UpstreamError as e:
            logger.info(f"Could not fetch order {order_ref} ({e.upstream_message}), using it as-is")

        if order is not None and order.bundle_id:
            label_order_id = order.bundle_id
            logger.info(f"Order {order_ref} belongs to bundle {order.bundle_id}, using bundle ID")

        rate: Dict[str, Any] = {
            "rate_id": rate_id,
            "label_file_type": label_file_type or self.default_label_file_type,
            "order": label_order_id,
        }
        if estimate_data:
            rate["estimate_data"] = estimate_data

        result = _first_result(self.store.client.buy_labels([rate]))
        tracking_number = result.get("tracking_number")
        if not tracking_number:
            raise UpstreamError(
                "Label created but no tracking number received",
                status_code=500,
                body=result,
                operation="buy_labels",
            )
        label_url = result.get("label") or result.get("label_url") or None

        target_ids = self._label_targets(order_ref, order, label_order_id)
        updates = self._apply("apply_label", target_ids, tracking_number, label_url)

        return self._report(LabelPurchaseResult(
            tracking_number=tracking_number,
            label_url=label_url,
            cost=float(shipping_fee),
            carrier=carrier or "Unknown",
            service=servicelevel or "Standard",
            label_order_id=label_order_id,
            updates=updates,
        ))

    def _label_targets(self, order_ref: str, order: Optional[Order], label_order_id: str) -> List[str]:
        """
        Orders a single-order label must be written to.

        An unknown reference (most likely a bare bundle id) has no members
        we can resolve without the seller, so nothing is written locally.
        """
        if order is None:
            logger.info(f"No order found for {order_ref}, label not written to any order")
            return []
        if not order.bundle_id:
            return [order.order_id]
        seller_id = order.seller.party_id
        if not seller_id:
            return [order.order_id]
        try:
            members = find_bundle_members(self.store.list_all_orders(seller_id), label_order_id)
        except UpstreamError as e:
            logger.warning(f"Could not list bundle {label_order_id} members: {e.upstream_message}")
            return [order.order_id]
        return [o.order_id for o in members] or [order.order_id]

    # ------------------------------------------------------------------
    # Bundle
    # ------------------------------------------------------------------

    def _load_orders(self, order_ids: Sequence[str]) -> List[Order]:
        fetched = fan_out("fetch_orders", order_ids, self.store.get_order, self.max_workers)
        if fetched.failed:
            reasons = {o.order_id: o.error or "Order not found" for o in fetched.failed}
            raise PreconditionError(
                "Some orders could not be loaded",
                invalid_order_ids=list(reasons),
                reasons=reasons,
            )
        return [o.data for o in fetched.outcomes]

    @staticmethod
    def validate_bundle_orders(orders: Sequence[Order]) -> None:
        """
        Check that orders can share one parcel.

        Raises:
            PreconditionError: Different customer, different or missing
                address, or an order status a label cannot be bought for
        """
        first = orders[0]
        address = first.customer.address
        if address is None:
            raise PreconditionError(
                "Cannot bundle orders without shipping address",
                invalid_order_ids=[first.order_id],
                reasons={first.order_id: "no shipping address"},
            )

        for order in orders:
            if order.customer_id != first.customer_id:
                raise PreconditionError(
                    "All orders must belong to the same customer",
                    invalid_order_ids=[order.order_id],
                    reasons={order.order_id: "belongs to a different customer"},
                )
            if not address.matches(order.customer.address):
                raise PreconditionError(
                    "All orders must have the same shipping address",
                    invalid_order_ids=[order.order_id],
                    reasons={order.order_id: "has a different shipping address"},
                )
            if not can_buy_label(order):
                raise PreconditionError(
                    f"Order {order.order_id} has incompatible status: {order.status.value}",
                    invalid_order_ids=[order.order_id],
                    reasons={order.order_id: f"status {order.status.value}"},
                )

    def purchase_bundle_label(
        self,
        order_ids: Sequence[str],
        rate_id: str,
        service: Optional[str] = None,
    ) -> LabelPurchaseResult:
        """
        Buy one label covering several orders and apply it to all of them.

        Orders are validated before any carrier call. Partial application
        is reported in the result (outcome partial / unapplied), not raised.

        Raises:
            ValidationError: Empty order list or missing rate
            PreconditionError: Orders cannot share a parcel
            UpstreamError: The purchase failed or returned no tracking number
        """
        ids = [str(i).strip() for i in order_ids or []]
        if not ids or any(not i for i in ids):
            raise ValidationError(
                "At least one non-empty order ID is required",
                errors=[{"field": "orderIds", "message": "must be non-empty IDs"}],
            )
        ids = list(dict.fromkeys(ids))
        if not rate_id:
            raise ValidationError(
                "Rate ID is required",
                errors=[{"field": "rateId", "message": "is required"}],
            )

        orders = self._load_orders(ids)
        self.validate_bundle_orders(orders)

        parcel: ParcelDimensions = aggregate_parcel(orders)
        label_order_id = bundle_label_id(ids)
        cost = estimate_label_cost(parcel.weight_oz)
        logger.info(
            f"Purchasing bundle label {label_order_id}: {parcel.weight_label} oz, "
            f"{parcel.dimensions_label} in, {len(ids)} order(s)"
        )

        result = _first_result(self.store.client.buy_labels([{
            "rate_id": rate_id,
            "label_file_type": self.default_label_file_type,
            "order": label_order_id,
        }]))
        tracking_number = result.get("tracking_number")
        if not tracking_number:
            raise UpstreamError(
                "Label created but no tracking number received",
                status_code=500,
                body=result,
                operation="buy_labels",
            )
        label_url = result.get("label") or result.get("label_url") or None

        updates = self._apply("apply_bundle_label", ids, tracking_number, label_url)

        return self._report(LabelPurchaseResult(
            tracking_number=tracking_number,
            label_url=label_url,
            cost=cost,
            carrier=BUNDLE_LABEL_CARRIER,
            service=service or self.default_service,
            label_order_id=label_order_id,
            updates=updates,
            aggregated_weight=parcel.weight_label,
            aggregated_dimensions=parcel.dimensions_label,
        ))

    # ------------------------------------------------------------------
    # Bulk by selection
    # ------------------------------------------------------------------

    def purchase_bulk_labels(
        self,
        user_id: str,
        order_ids: Sequence[str],
        label_file_type: str,
    ) -> BulkLabelResult:
        """
        Buy one label per selected order in a single upstream call.

        Selected rows are looked up in the seller's unfiltered orders.
        Rows that are not found or carry no ``rate_id`` are skipped with a
        reason. A bundled order is labelled against its bundle id.

        Raises:
            ValidationError: Missing input, or no selected row has a rate
            UpstreamError: The batch purchase failed
        """
        if not order_ids:
            raise ValidationError(
                "Invalid orderIds: must be a non-empty array",
                errors=[{"field": "orderIds", "message": "must not be empty"}],
            )
        if not label_file_type:
            raise ValidationError(
                "labelFileType is required",
                errors=[{"field": "labelFileType", "message": "is required"}],
            )

        by_id = {o.order_id: o for o in self.store.list_all_orders(user_id)}

        rates: List[Dict[str, Any]] = []
        fetch_errors: List[str] = []
        for selected_id in order_ids:
            order = by_id.get(selected_id)
            if order is None:
                fetch_errors.append(f"Order {selected_id} not found")
                continue
            if not order.rate_id:
                fetch_errors.append(f"Order {selected_id} has no rate_id")
                continue
            rates.append({
                "rate_id": order.rate_id,
                "label_file_type": label_file_type,
                "order": order.bundle_id or order.order_id,
            })

        if not rates:
            raise ValidationError(
                "No valid orders found to purchase labels",
                errors=[{"field": "orderIds", "message": reason} for reason in fetch_errors],
            )

        if fetch_errors:
            logger.warning(f"Bulk labels: skipped {len(fetch_errors)} row(s): {fetch_errors}")

        response = self.store.client.buy_labels(rates)
        success_count, failure_count = _count_bulk_results(response, len(rates))
        logger.info(f"Bulk labels: {success_count} purchased, {failure_count} failed")

        return BulkLabelResult(
            requested=len(order_ids),
            rates=rates,
            success_count=success_count,
            failure_count=failure_count,
            fetch_errors=fetch_errors,
            upstream=response,
        )


def _count_bulk_results(response: Any, submitted: int):
    """
    (successes, failures) from the upstream batch answer.

    Per-result ``success`` flags (or an ``error`` field) are honoured when
    the upstream reports them; otherwise every submitted rate counts as
    purchased.
    """
    results = response.get("results") if isinstance(response, dict) else None
    if not isinstance(results, list) or not results:
        return submitted, 0
    failures = 0
    for entry in results:
        if not isinstance(entry, dict):
            continue
        if entry.get("success") is False or entry.get("error"):
            failures += 1
    return len(results) - failures, failures
