"""
Bundle lifecycle: create, unbundle, ship and cancel.

A bundle is the set of a seller's orders sharing one ``bundleId``. This
service changes membership and status by writing to each member order
through the commerce API; the bundle itself is always re-derived (see
modules.bundle_aggregator).

Consistency:
    create_bundle validates every order first and mutates nothing if one
    fails validation. Assigning the new id is a fan-out of independent PUT
    calls; if any of them fails the orders that did get the id are
    cleared again, so a caller never sees a half-created bundle.

    unbundle, ship and cancel are fan-outs with per-order outcomes.
    Partial success is reported, not raised; zero successes raise
    FanOutFailure.

Usage:
    service = BundleService(OrderStore(client), max_workers=8)
    bundle = service.create_bundle(["o1", "o2"])
    result = service.ship_bundle("seller-1", bundle.bundle_id)
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from core.exceptions import (
    FanOutFailure,
    OrderNotFoundError,
    PreconditionError,
    UpstreamError,
    ValidationError,
)
from models.bundle import Bundle
from models.order import (
    Order,
    OrderStatus,
    can_bundle,
    can_cancel,
    can_ship,
    can_transition,
)
from models.results import FanOutResult, UnbundleResult
from modules.bundle_aggregator import (
    build_bundle,
    find_bundle_members,
    group_bundles,
    resolve_bundle_id,
)
from services.fanout import DEFAULT_MAX_WORKERS, fan_out
from services.order_store import OrderStore
from logging_config import get_logger


logger = get_logger(__name__)

BUNDLE_ID_PREFIX = "bundle_"

# Transitions checked before a plain order update is forwarded
_GUARDED_STATUSES = (OrderStatus.CANCELLED, OrderStatus.SHIPPED)


def new_bundle_id() -> str:
    return f"{BUNDLE_ID_PREFIX}{uuid.uuid4().hex}"


def _clean_ids(order_ids: Optional[Sequence[str]], label: str = "orderIds") -> List[str]:
    """Strip, reject blanks and drop duplicates (first occurrence wins)."""
    if not order_ids:
        raise ValidationError(
            "At least one order ID is required",
            errors=[{"field": label, "message": "must not be empty"}],
        )
    cleaned = [str(i).strip() for i in order_ids]
    if any(not i for i in cleaned):
        raise ValidationError(
            "Order IDs cannot be empty",
            errors=[{"field": label, "message": "contains an empty ID"}],
        )
    return list(dict.fromkeys(cleaned))


class BundleService:
    """Bundle operations for one caller (one API client / bearer token)."""

    def __init__(self, store: OrderStore, max_workers: int = DEFAULT_MAX_WORKERS):
        self.store = store
        self.max_workers = max_workers

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_bundles(self, user_id: str, status: Optional[str] = None) -> List[Bundle]:
        """
        Bundles of a seller, optionally narrowed to one bundle status.

        The status filter applies to the derived bundle status, after the
        bundles have been computed from the unfiltered order list.
        """
        bundles = group_bundles(self.store.list_all_orders(user_id))
        if status and status.lower() != "all":
            wanted = OrderStatus.parse(status)
            bundles = [b for b in bundles if b.status is wanted]
        return bundles

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_bundle(self, order_ids: Sequence[str]) -> Bundle:
        """
        Group processing orders into a new bundle.

        Raises:
            ValidationError: Empty list or blank IDs
            PreconditionError: An order is missing or not processing;
                nothing has been mutated
            UpstreamError: Assigning the bundle id failed for some order;
                the other orders have been rolled back
        """
        ids = _clean_ids(order_ids)

        fetched = fan_out("fetch_orders", ids, self.store.get_order, self.max_workers)

        reasons: Dict[str, str] = {}
        orders: List[Order] = []
        for outcome in fetched.outcomes:
            if not outcome.success:
                reasons[outcome.order_id] = outcome.error or "Order not found"
                continue
            order: Order = outcome.data
            if not can_bundle(order):
                reasons[outcome.order_id] = f"Order status is {order.status.value}"
                continue
            orders.append(order)

        if reasons:
            logger.warning(f"Bundle rejected, invalid orders: {reasons}")
            raise PreconditionError(
                "All orders must exist and be in processing status to bundle",
                invalid_order_ids=list(reasons),
                reasons=reasons,
            )

        bundle_id = new_bundle_id()
        assigned = fan_out(
            "assign_bundle",
            ids,
            lambda order_id: self.store.update_order(order_id, {"bundleId": bundle_id}),
            self.max_workers,
        )

        if not assigned.all_succeeded:
            self._rollback_assignment(bundle_id, assigned)
            raise UpstreamError(
                f"Failed to assign bundle to {len(assigned.failed)} of {len(ids)} order(s)",
                status_code=502,
                body={"results": assigned.to_list()},
                operation="create_bundle",
            )

        logger.info(f"Created bundle {bundle_id} with {len(ids)} order(s)")
        return build_bundle(bundle_id, [replace(o, bundle_id=bundle_id) for o in orders])

    def _rollback_assignment(self, bundle_id: str, assigned: FanOutResult) -> None:
        if not assigned.succeeded_ids:
            return
        rollback = fan_out(
            "rollback_bundle",
            assigned.succeeded_ids,
            lambda order_id: self.store.update_order(order_id, {"bundleId": None}),
            self.max_workers,
        )
        if rollback.failed:
            # Left for the operator: these orders still carry the bundle id
            logger.error(
                f"Rollback of bundle {bundle_id} incomplete, still assigned: "
                f"{', '.join(rollback.failed_ids)}"
            )

    # ------------------------------------------------------------------
    # Unbundle
    # ------------------------------------------------------------------

    def unbundle(
        self,
        user_id: str,
        bundle_id: str,
        order_ids: Optional[Sequence[str]] = None,
    ) -> UnbundleResult:
        """
        Clear the bundle id on all members, or only on ``order_ids``.

        A bundle with no (matching) members is not an error: unbundling
        twice reports "no orders found" the second time.

        Raises:
            FanOutFailure: No member update succeeded
        """
        members = find_bundle_members(self.store.list_all_orders(user_id), bundle_id)
        if order_ids:
            wanted = set(_clean_ids(order_ids))
            members = [o for o in members if o.order_id in wanted]

        if not members:
            logger.info(f"Unbundle {bundle_id}: no orders found")
            return UnbundleResult(bundle_id=bundle_id)

        updates = fan_out(
            "unbundle",
            [o.order_id for o in members],
            lambda order_id: self.store.update_order(order_id, {"bundleId": None}),
            self.max_workers,
        )
        if not updates.any_succeeded:
            raise FanOutFailure(
                f"Failed to unbundle any order of bundle {bundle_id}",
                results=updates.to_list(),
            )
        return UnbundleResult(bundle_id=bundle_id, updates=updates)

    def unbundle_items(self, order_id: str, item_ids: Sequence[str]) -> Dict[str, Any]:
        """Split line items out of a multi-item order (single upstream call)."""
        if not order_id or not str(order_id).strip():
            raise ValidationError(
                "Order ID is required",
                errors=[{"field": "orderId", "message": "is required"}],
            )
        items = _clean_ids(item_ids, label="itemIds")
        logger.info(f"Unbundling {len(items)} item(s) from order {order_id}")
        return self.store.client.unbundle_items(order_id, items)

    # ------------------------------------------------------------------
    # Ship / cancel
    # ------------------------------------------------------------------

    def ship_bundle(self, user_id: str, identifier: str) -> FanOutResult:
        """
        Mark every member of a bundle shipped.

        ``identifier`` may be a member order id or the bundle id. Members
        that cannot ship are reported as failed without an upstream call.

        Raises:
            OrderNotFoundError: The bundle has no members
            FanOutFailure: No member was marked shipped
        """
        all_orders = self.store.list_all_orders(user_id)
        bundle_id = resolve_bundle_id(all_orders, identifier)
        members = {o.order_id: o for o in find_bundle_members(all_orders, bundle_id)}
        if not members:
            raise OrderNotFoundError(identifier, f"No orders found for bundle {identifier}")

        def ship(order_id: str) -> Dict[str, Any]:
            order = members[order_id]
            if not can_ship(order):
                raise PreconditionError(f"Order is {order.status.value}, cannot be shipped")
            return self.store.update_order(
                order_id,
                {"status": OrderStatus.SHIPPED.value, "relist": False, "bundleId": bundle_id},
            )

        result = fan_out("ship_bundle", list(members), ship, self.max_workers)
        if not result.any_succeeded:
            raise FanOutFailure(
                f"Failed to mark any order of bundle {bundle_id} shipped",
                results=result.to_list(),
            )
        return result

    def cancel_order(
        self,
        order_id: str,
        relist: bool = False,
        description: str = "",
        initiator: str = "buyer",
        cancel_type: str = "order",
    ) -> Dict[str, Any]:
        """
        Cancel one order through the upstream cancellation endpoint.

        Raises:
            OrderNotFoundError: Unknown order
            PreconditionError: Shipped, delivered, already cancelled or labelled
        """
        order = self.store.get_order(order_id)
        if not can_cancel(order):
            reason = self._cancel_refusal(order)
            raise PreconditionError(
                f"Order {order_id} cannot be cancelled: {reason}",
                invalid_order_ids=[order_id],
                reasons={order_id: reason},
            )
        logger.info(f"Cancelling order {order_id} (relist={relist}, initiator={initiator})")
        return self.store.client.cancel_order({
            "order": order_id,
            "relist": bool(relist),
            "initiator": initiator,
            "type": cancel_type,
            "description": description,
        })

    def cancel_bundle(self, user_id: str, bundle_id: str, relist: bool = False) -> FanOutResult:
        """
        Cancel every cancelable member of a bundle.

        Members that cannot be cancelled are recorded as failed outcomes
        and no upstream call is made for them.

        Raises:
            OrderNotFoundError: The bundle has no members
            FanOutFailure: No member was cancelled
        """
        members = {
            o.order_id: o
            for o in find_bundle_members(self.store.list_all_orders(user_id), bundle_id)
        }
        if not members:
            raise OrderNotFoundError(bundle_id, f"No orders found for bundle {bundle_id}")

        def cancel(order_id: str) -> Dict[str, Any]:
            order = members[order_id]
            if not can_cancel(order):
                raise PreconditionError(f"Cannot cancel: {self._cancel_refusal(order)}")
            return self.store.client.cancel_order({
                "order": order_id,
                "relist": bool(relist),
                "initiator": "seller",
                "type": "order",
                "description": f"Bundle {bundle_id} cancelled by seller",
            })

        result = fan_out("cancel_bundle", list(members), cancel, self.max_workers)
        if not result.any_succeeded:
            raise FanOutFailure(
                f"Failed to cancel any order of bundle {bundle_id}",
                results=result.to_list(),
            )
        return result

    @staticmethod
    def _cancel_refusal(order: Order) -> str:
        if order.has_label:
            return "a shipping label has already been purchased"
        return f"order is {order.status.value}"

    # ------------------------------------------------------------------
    # Plain order updates
    # ------------------------------------------------------------------

    def update_order_status(self, order_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """
        Forward a PUT update, checking cancel and ship transitions first.

        Other fields and other statuses pass through unchanged.

        Raises:
            PreconditionError: The order cannot move to the requested status
        """
        status = patch.get("status")
        if status:
            target = OrderStatus.parse(status)
            if target in _GUARDED_STATUSES:
                order = self.store.get_order(order_id)
                if not can_transition(order, target):
                    if target is OrderStatus.CANCELLED:
                        reason = self._cancel_refusal(order)
                    else:
                        reason = f"order is {order.status.value}"
                    raise PreconditionError(
                        f"Order {order_id} cannot move to {target.value}: {reason}",
                        invalid_order_ids=[order_id],
                        reasons={order_id: reason},
                    )
        return self.store.update_order(order_id, patch)
