"""
Bundle aggregation.

Pure functions over a list of orders. Bundles are derived here from the
``bundle_id`` field each time they are needed: orders sharing a bundle id
are one bundle, nothing else records membership.

Always pass the seller's UNFILTERED order list when computing bundles.
A status-filtered page can hide members and would skew the bundle status
and totals.

Weights are in ounces, dimensions in inches.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models.bundle import Bundle, DisplayItem, ParcelDimensions
from models.order import Order, OrderStatus


# Parcel defaults when no order carries dimension data (safe non-zero carrier inputs)
DEFAULT_PARCEL_LENGTH = 12.0
DEFAULT_PARCEL_WIDTH = 12.0
DEFAULT_PARCEL_HEIGHT = 4.0
DEFAULT_PARCEL_WEIGHT_OZ = 8.0

# Mixed-status bundles take the first of these present among members
BUNDLE_STATUS_PRIORITY = (
    OrderStatus.CANCELLED,
    OrderStatus.SHIPPED,
    OrderStatus.READY_TO_SHIP,
)

# Member statuses outside the four bundle statuses fold onto one of them
_BUNDLE_STATUS_FOLD = {
    OrderStatus.SHIPPING: OrderStatus.SHIPPED,
    OrderStatus.DELIVERED: OrderStatus.SHIPPED,
    OrderStatus.ENDED: OrderStatus.SHIPPED,
    OrderStatus.PENDING: OrderStatus.PROCESSING,
    OrderStatus.UNFULFILLED: OrderStatus.PROCESSING,
    OrderStatus.UNKNOWN: OrderStatus.PROCESSING,
}

SORT_COLUMNS = ("customer", "orderDate", "items", "total", "status")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# GROUPING
# =============================================================================

def partition_orders(orders: Iterable[Order]) -> Tuple[List[Order], Dict[str, List[Order]]]:
    """
    Split orders into standalone orders and bundle groups.

    Returns:
        (standalone orders, {bundle_id: member orders}); groups keep the
        order in which their first member was seen.
    """
    standalone: List[Order] = []
    groups: Dict[str, List[Order]] = {}
    for order in orders:
        if order.bundle_id is None:
            standalone.append(order)
        else:
            groups.setdefault(order.bundle_id, []).append(order)
    return standalone, groups


def find_bundle_members(orders: Iterable[Order], bundle_id: str) -> List[Order]:
    """All orders carrying ``bundle_id``."""
    return [o for o in orders if o.bundle_id == bundle_id]


def resolve_bundle_id(orders: Iterable[Order], identifier: str) -> str:
    """
    Map an identifier that may be an order id or a bundle id to a bundle id.

    An order id resolves to that order's bundle id; anything else is
    taken to be a bundle id already.
    """
    for order in orders:
        if order.order_id == identifier and order.bundle_id:
            return order.bundle_id
    return identifier


# =============================================================================
# AGGREGATES
# =============================================================================

def bundle_status(orders: Iterable[Order]) -> OrderStatus:
    """
    Status of a bundle from its members' statuses.

    All members equal -> that status. Mixed -> cancelled, then shipped,
    then ready_to_ship, whichever is present first; otherwise processing.
    The result is always one of processing, ready_to_ship, shipped,
    cancelled.
    """
    statuses = [_BUNDLE_STATUS_FOLD.get(o.status, o.status) for o in orders]
    if not statuses:
        return OrderStatus.PROCESSING
    unique = set(statuses)
    if len(unique) == 1:
        return statuses[0]
    for candidate in BUNDLE_STATUS_PRIORITY:
        if candidate in unique:
            return candidate
    return OrderStatus.PROCESSING


def bundle_item_count(orders: Iterable[Order]) -> int:
    """Giveaway orders count 1, other orders count their line items."""
    return sum(o.item_count for o in orders)


def bundle_total_value(orders: Iterable[Order]) -> float:
    """Sum of total + tax + shipping fee over members; missing values are 0."""
    return sum(o.display_total for o in orders)


def bundle_total_weight(orders: Iterable[Order]) -> float:
    """Sum of member weights in ounces (giveaway profile weight, else item weights)."""
    return sum(o.weight_oz() for o in orders)


def build_bundle(bundle_id: str, orders: Sequence[Order], is_single_order: bool = False) -> Bundle:
    members = list(orders)
    return Bundle(
        bundle_id=bundle_id,
        orders=members,
        status=bundle_status(members),
        item_count=bundle_item_count(members),
        total_value=bundle_total_value(members),
        total_weight_oz=bundle_total_weight(members),
        is_single_order=is_single_order,
    )


def group_bundles(orders: Iterable[Order]) -> List[Bundle]:
    """Every bundle present in ``orders`` (pass the unfiltered list)."""
    _, groups = partition_orders(orders)
    return [build_bundle(bundle_id, members) for bundle_id, members in groups.items()]


def aggregate_parcel(orders: Iterable[Order]) -> ParcelDimensions:
    """
    Combine member orders into one parcel.

    Length and width are the maxima across members, height is the sum
    (orders are stacked) and weight is the sum in ounces, item weights
    multiplied by quantity. Zero aggregates fall back to 12x12x4 in and
    8 oz.
    """
    max_length = 0.0
    max_width = 0.0
    total_height = 0.0
    total_weight = 0.0

    for order in orders:
        length, width, height = order.parcel_dimensions()
        max_length = max(max_length, length)
        max_width = max(max_width, width)
        total_height += height
        total_weight += order.weight_oz(per_unit=False)

    return ParcelDimensions(
        length=max_length or DEFAULT_PARCEL_LENGTH,
        width=max_width or DEFAULT_PARCEL_WIDTH,
        height=total_height or DEFAULT_PARCEL_HEIGHT,
        weight_oz=total_weight or DEFAULT_PARCEL_WEIGHT_OZ,
    )


# =============================================================================
# DISPLAY
# =============================================================================

def build_display_items(orders: Iterable[Order]) -> List[DisplayItem]:
    """
    Rows of the shipping page.

    Orders with at most one line item are shown as plain orders. An order
    with several line items is shown as its own one-member bundle; that
    is presentation only and has nothing to do with ``bundle_id``.
    """
    rows: List[DisplayItem] = []
    for order in orders:
        if order.is_multi_item:
            rows.append(DisplayItem(bundle=build_bundle(order.order_id, [order], is_single_order=True)))
        else:
            rows.append(DisplayItem(order=order))
    return rows


def _timestamp(value: Optional[datetime]) -> float:
    return (value or _EPOCH).timestamp()


def _sort_key(item: DisplayItem, column: str):
    if column == "customer":
        if item.bundle is not None:
            name = item.bundle.customer_name
        else:
            name = item.order.customer.display_name
        return name.casefold()
    if column == "orderDate":
        return _timestamp(item.created_at)
    # Display bundles compare as empty on the per-order columns
    if column == "items":
        return 0 if item.is_bundle else item.order.item_count
    if column == "total":
        return 0.0 if item.is_bundle else item.order.display_total
    if column == "status":
        return "" if item.is_bundle else item.order.status.value
    raise ValueError(f"Unknown sort column: {column}")


def sort_display_items(
    items: Sequence[DisplayItem],
    column: Optional[str] = None,
    direction: Optional[str] = None,
) -> List[DisplayItem]:
    """
    Sort shipping page rows.

    With a column and a direction ("asc"/"desc") the rows are sorted
    stably on that column; otherwise newest first.

    Raises:
        ValueError: For an unknown column or direction
    """
    if column and direction:
        if column not in SORT_COLUMNS:
            raise ValueError(f"Unknown sort column: {column}")
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unknown sort direction: {direction}")
        return sorted(
            items,
            key=lambda item: _sort_key(item, column),
            reverse=(direction == "desc"),
        )
    return sorted(items, key=lambda item: _timestamp(item.created_at), reverse=True)
