"""
Shipping metrics.

Recomputes the shipping page summary from a seller's orders on every call.
Missing numbers count as zero; a malformed order never fails the page.
"""

from typing import Iterable

from models.metrics import ShippingMetrics
from models.order import Order, OrderStatus


DELIVERED_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.ENDED})
IN_TRANSIT_STATUSES = frozenset({OrderStatus.SHIPPING, OrderStatus.SHIPPED})


def items_subtotal(order: Order) -> float:
    """Sum of price x quantity over line items (giveaways are free)."""
    return sum((item.price or 0.0) * (item.quantity or 0) for item in order.items)


def items_quantity(order: Order) -> int:
    """Units sold in the order; a giveaway counts as one."""
    if order.giveaway is not None:
        return 1
    return sum(item.quantity or 0 for item in order.items)


def compute_metrics(orders: Iterable[Order]) -> ShippingMetrics:
    """
    Summary figures for one seller's orders.

    - total_sold: items subtotal + tax
    - total_shipping_spend: seller-paid shipping on orders still processing
    - total_earned: total_sold - shipping spend - service fees
    - items_sold: units (giveaway = 1)
    - total_delivered: delivered or ended orders
    - pending_delivery: shipping or shipped orders
    """
    total_sold = 0.0
    shipping_spend = 0.0
    service_fees = 0.0
    items_sold = 0
    delivered = 0
    pending = 0

    for order in orders:
        total_sold += items_subtotal(order) + (order.tax or 0.0)
        service_fees += order.servicefee or 0.0
        items_sold += items_quantity(order)

        if order.status is OrderStatus.PROCESSING:
            shipping_spend += order.seller_shipping_fee_pay or 0.0
        if order.status in DELIVERED_STATUSES:
            delivered += 1
        elif order.status in IN_TRANSIT_STATUSES:
            pending += 1

    return ShippingMetrics(
        total_sold=total_sold,
        total_earned=total_sold - shipping_spend - service_fees,
        total_shipping_spend=shipping_spend,
        items_sold=items_sold,
        total_delivered=delivered,
        pending_delivery=pending,
    )
