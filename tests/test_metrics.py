"""
Unit tests for shipping metrics.
"""

from models.metrics import ShippingMetrics
from models.order import Order
from modules.metrics import compute_metrics


def test_metrics_from_mixed_orders(order_doc):
    orders = [Order.from_dict(d) for d in (
        order_doc(
            "a",
            status="processing",
            items=[
                {"_id": "i1", "price": 10, "quantity": 2},
                {"_id": "i2", "price": 5, "quantity": 1},
            ],
            tax=2,
            servicefee=1.5,
            seller_shipping_fee_pay=4,
        ),
        order_doc("b", status="delivered", items=[{"_id": "i3", "price": 20, "quantity": 1}], tax=0, servicefee=2),
        order_doc("c", status="shipped", giveaway={"_id": "g1"}, tax=0),
        order_doc("d", status="ended", items=[], tax=0),
        order_doc("e", status="shipping", items=[], tax=0, seller_shipping_fee_pay=9),
    )]

    metrics = compute_metrics(orders)

    assert metrics.total_sold == 47          # (25 + 2) + 20 + 0
    assert metrics.total_shipping_spend == 4  # only the processing order counts
    assert metrics.total_earned == 47 - 4 - 3.5
    assert metrics.items_sold == 5           # 3 + 1 + giveaway 1
    assert metrics.total_delivered == 2      # delivered + ended
    assert metrics.pending_delivery == 2     # shipped + shipping


def test_missing_numbers_read_as_zero():
    orders = [Order.from_dict({"_id": "x", "items": [{"_id": "i1"}]})]
    metrics = compute_metrics(orders)

    assert metrics.total_sold == 0
    assert metrics.items_sold == 0
    assert metrics.total_earned == 0


def test_no_orders():
    assert compute_metrics([]) == ShippingMetrics()


def test_money_rendered_with_two_decimals():
    data = ShippingMetrics(total_sold=12.5, total_earned=10, total_shipping_spend=0.333).to_dict()

    assert data["totalSold"] == "12.50"
    assert data["totalEarned"] == "10.00"
    assert data["totalShippingSpend"] == "0.33"
    assert data["itemsSold"] == 0
