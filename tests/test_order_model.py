"""
Unit tests for the Order model and its transition rules.
"""

from datetime import timezone

import pytest

from models.order import (
    Order,
    OrderStatus,
    can_buy_label,
    can_bundle,
    can_cancel,
    can_ship,
    can_transition,
    weight_in_ounces,
)


class TestOrderStatus:
    """Test status parsing."""

    def test_known_status(self):
        assert OrderStatus.parse("ready_to_ship") is OrderStatus.READY_TO_SHIP

    def test_status_is_case_insensitive(self):
        assert OrderStatus.parse(" Shipped ") is OrderStatus.SHIPPED

    def test_missing_status_is_unknown(self):
        assert OrderStatus.parse(None) is OrderStatus.UNKNOWN
        assert OrderStatus.parse("") is OrderStatus.UNKNOWN

    def test_unrecognised_status_is_unknown(self):
        assert OrderStatus.parse("lost_in_space") is OrderStatus.UNKNOWN


class TestWeights:
    """Test weight normalization to ounces."""

    def test_ounces_unchanged(self):
        assert weight_in_ounces(4, "oz") == 4

    def test_no_scale_means_ounces(self):
        assert weight_in_ounces("6.5", None) == 6.5

    @pytest.mark.parametrize("scale", ["lb", "lbs", "LB"])
    def test_pounds_converted(self, scale):
        assert weight_in_ounces(0.75, scale) == 12

    def test_non_numeric_weight_is_zero(self):
        assert weight_in_ounces("heavy", "oz") == 0

    def test_giveaway_profile_weight_wins(self, order_doc):
        doc = order_doc(
            "o1",
            items=[{"_id": "i1", "weight": 100, "quantity": 1}],
            giveaway={"_id": "g1", "shipping_profile": {"weight": 1, "scale": "lb"}},
        )
        assert Order.from_dict(doc).weight_oz() == 16

    def test_giveaway_without_profile_weight_falls_back_to_items(self, order_doc):
        doc = order_doc(
            "o1",
            items=[{"_id": "i1", "weight": 3, "quantity": 1}],
            giveaway={"_id": "g1", "shipping_profile": {}},
        )
        assert Order.from_dict(doc).weight_oz() == 3

    def test_parcel_weight_multiplies_by_quantity(self, order_doc):
        doc = order_doc("o1", items=[{"_id": "i1", "weight": 2, "scale": "oz", "quantity": 3}])
        order = Order.from_dict(doc)
        assert order.weight_oz() == 2
        assert order.weight_oz(per_unit=False) == 6


class TestOrderFromDict:
    """Test parsing of upstream order documents."""

    def test_parses_core_fields(self, order_doc):
        doc = order_doc(
            "o1",
            status="ready_to_ship",
            bundle_id="bundle_abc",
            tracking_number="9400",
            label="https://labels.test/1.pdf",
            rate_id="rate-9",
        )
        order = Order.from_dict(doc)

        assert order.order_id == "o1"
        assert order.status is OrderStatus.READY_TO_SHIP
        assert order.bundle_id == "bundle_abc"
        assert order.is_bundled
        assert order.tracking_number == "9400"
        assert order.label_url == "https://labels.test/1.pdf"
        assert order.rate_id == "rate-9"
        assert order.customer_id == "cust-1"
        assert order.customer.display_name == "Ada Lovelace"
        assert order.created_at.tzinfo == timezone.utc

    def test_reads_misspelled_street_field(self, order_doc):
        order = Order.from_dict(order_doc("o1"))
        assert order.customer.address.street == "12 Harbor Road"

    def test_epoch_millisecond_timestamp(self, order_doc):
        order = Order.from_dict(order_doc("o1", created_at=1767225600000))
        assert order.created_at.year == 2026

    @pytest.mark.parametrize("created_at", [10**20, -10**20, float("inf")])
    def test_out_of_range_timestamp_reads_as_missing(self, order_doc, created_at):
        order = Order.from_dict(order_doc("o1", created_at=created_at))
        assert order.created_at is None
        assert order.order_id == "o1"

    def test_missing_money_fields_read_as_zero(self):
        order = Order.from_dict({"_id": "o1"})
        assert order.display_total == 0
        assert order.item_count == 0
        assert order.status is OrderStatus.UNKNOWN

    def test_order_without_status_cannot_be_bundled(self):
        order = Order.from_dict({"_id": "o1"})
        assert not can_bundle(order)
        assert not can_ship(order)
        assert not can_cancel(order)

    def test_giveaway_counts_as_one_item(self, order_doc):
        order = Order.from_dict(order_doc("o1", giveaway={"_id": "g1"}))
        assert order.item_count == 1

    def test_to_dict_keeps_unknown_status_text(self):
        order = Order.from_dict({"_id": "o1", "status": "on_hold"})
        assert order.to_dict()["status"] == "on_hold"

    def test_to_dict_writes_bundle_id(self, order_doc):
        data = Order.from_dict(order_doc("o1", bundle_id="bundle_x")).to_dict()
        assert data["bundleId"] == "bundle_x"
        assert data["_id"] == "o1"


class TestTransitions:
    """Test the order state machine guards."""

    @pytest.mark.parametrize("status", ["processing", "pending", "unfulfilled", "ready_to_ship"])
    def test_cancelable_without_label(self, order_doc, status):
        assert can_cancel(Order.from_dict(order_doc("o1", status=status)))

    @pytest.mark.parametrize("status", ["cancelled", "shipped", "delivered", "ended"])
    def test_not_cancelable_in_final_states(self, order_doc, status):
        assert not can_cancel(Order.from_dict(order_doc("o1", status=status)))

    def test_label_locks_cancellation(self, order_doc):
        order = Order.from_dict(order_doc("o1", status="ready_to_ship", tracking_number="9400"))
        assert not can_cancel(order)

    def test_tracking_url_also_locks_cancellation(self, order_doc):
        order = Order.from_dict(order_doc("o1", tracking_url="https://track.test/1"))
        assert not can_cancel(order)

    def test_unknown_status_cannot_cancel(self):
        assert not can_cancel(Order.from_dict({"_id": "o1", "status": "on_hold"}))

    def test_ship_from_processing_or_ready(self, order_doc):
        assert can_ship(Order.from_dict(order_doc("o1", status="processing")))
        assert can_ship(Order.from_dict(order_doc("o2", status="ready_to_ship")))
        assert not can_ship(Order.from_dict(order_doc("o3", status="cancelled")))

    def test_only_processing_orders_bundle(self, order_doc):
        assert can_bundle(Order.from_dict(order_doc("o1", status="processing")))
        assert not can_bundle(Order.from_dict(order_doc("o2", status="ready_to_ship")))

    def test_label_compatible_statuses(self, order_doc):
        assert can_buy_label(Order.from_dict(order_doc("o1", status="unfulfilled")))
        assert not can_buy_label(Order.from_dict(order_doc("o2", status="shipped")))

    def test_can_transition_dispatches(self, order_doc):
        order = Order.from_dict(order_doc("o1", status="processing"))
        assert can_transition(order, OrderStatus.CANCELLED)
        assert can_transition(order, OrderStatus.SHIPPED)
        assert can_transition(order, OrderStatus.READY_TO_SHIP)
        assert not can_transition(order, OrderStatus.DELIVERED)
