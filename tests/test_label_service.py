"""
Unit tests for LabelService: single, bundle and bulk label purchases.
"""

from unittest.mock import patch

import pytest

from core.exceptions import PreconditionError, UpstreamError, ValidationError
from models.order import Order
from models.results import LabelOutcome
from services.label_service import (
    LabelService,
    bundle_label_id,
    estimate_label_cost,
)
from services.order_store import OrderStore


# Fixtures

@pytest.fixture
def service(upstream):
    return LabelService(OrderStore(upstream.client), max_workers=4)


class TestBundleLabel:
    """Test one label for several orders."""

    def test_success_applies_to_every_order(self, service, upstream, order_doc):
        upstream.add(order_doc("a"), order_doc("b"), order_doc("c"))

        result = service.purchase_bundle_label(["a", "b", "c"], "rate-1")

        assert result.outcome is LabelOutcome.SUCCESS
        assert result.label_order_id == "bundle_a_b_c"
        assert result.carrier == "USPS"
        assert result.service == "Ground Advantage"
        assert result.aggregated_weight == "12"
        assert result.aggregated_dimensions == "12x12x4"
        assert result.cost == 5.99
        for order_id in ("a", "b", "c"):
            assert upstream.orders[order_id]["tracking_number"] == "9400TRACK001"
            assert upstream.orders[order_id]["status"] == "ready_to_ship"
        upstream.client.buy_labels.assert_called_once_with([{
            "rate_id": "rate-1",
            "label_file_type": "PDF_4x6",
            "order": "bundle_a_b_c",
        }])

    def test_different_customers_rejected_before_purchase(self, service, upstream, order_doc):
        upstream.add(order_doc("a"), order_doc("b", customer_id="cust-2"))

        with pytest.raises(PreconditionError) as exc_info:
            service.purchase_bundle_label(["a", "b"], "rate-1")

        assert "same customer" in exc_info.value.message
        assert exc_info.value.invalid_order_ids == ["b"]
        upstream.client.buy_labels.assert_not_called()

    def test_different_address_rejected(self, service, upstream, order_doc):
        other = {"addrress1": "1 Elm St", "city": "Portland", "state": "ME", "zipcode": "04101"}
        upstream.add(order_doc("a"), order_doc("b", address=other))

        with pytest.raises(PreconditionError) as exc_info:
            service.purchase_bundle_label(["a", "b"], "rate-1")

        assert "same shipping address" in exc_info.value.message
        upstream.client.buy_labels.assert_not_called()

    def test_shipped_order_rejected(self, service, upstream, order_doc):
        upstream.add(order_doc("a"), order_doc("b", status="shipped"))

        with pytest.raises(PreconditionError):
            service.purchase_bundle_label(["a", "b"], "rate-1")

        upstream.client.buy_labels.assert_not_called()

    def test_unknown_order_rejected(self, service, upstream, order_doc):
        upstream.add(order_doc("a"))

        with pytest.raises(PreconditionError) as exc_info:
            service.purchase_bundle_label(["a", "ghost"], "rate-1")

        assert exc_info.value.invalid_order_ids == ["ghost"]

    def test_partial_application(self, service, upstream, order_doc):
        upstream.add(order_doc("a"), order_doc("b"), order_doc("c"))
        upstream.failing.add("b")

        result = service.purchase_bundle_label(["a", "b", "c"], "rate-1")

        assert result.outcome is LabelOutcome.PARTIAL
        assert result.outcome.http_status == 207
        body = result.to_dict()
        assert body["success"] is False
        assert body["data"]["trackingNumber"] == "9400TRACK001"
        assert body["message"] == "Label created with partial success: 2/3 orders updated"

    def test_unapplied_label_logged_for_reconciliation(self, service, upstream, order_doc):
        upstream.add(order_doc("a"), order_doc("b"))
        upstream.failing.update({"a", "b"})

        with patch("services.label_service.logger") as mock_logger:
            result = service.purchase_bundle_label(["a", "b"], "rate-1")

        assert result.outcome is LabelOutcome.UNAPPLIED
        assert result.outcome.http_status == 500
        assert result.to_dict()["data"]["trackingNumber"] == "9400TRACK001"
        mock_logger.error.assert_called_once()
        assert "/api/shipping/labels/apply" in mock_logger.error.call_args[0][0]

    def test_missing_tracking_number(self, service, upstream, order_doc):
        upstream.add(order_doc("a"))
        upstream.client.buy_labels.return_value = {"results": [{"label": "x.pdf"}]}

        with pytest.raises(UpstreamError) as exc_info:
            service.purchase_bundle_label(["a"], "rate-1")

        assert exc_info.value.status_code == 500
        upstream.client.patch_order.assert_not_called()

    def test_missing_results(self, service, upstream, order_doc):
        upstream.add(order_doc("a"))
        upstream.client.buy_labels.return_value = {"results": []}

        with pytest.raises(UpstreamError) as exc_info:
            service.purchase_bundle_label(["a"], "rate-1")

        assert exc_info.value.message == "No label data returned from API"

    def test_repeated_ids_labelled_once(self, service, upstream, order_doc):
        upstream.add(order_doc("a"), order_doc("b"))

        result = service.purchase_bundle_label(["a", "b", "a"], "rate-1")

        assert result.label_order_id == "bundle_a_b"
        assert result.affected_orders == ["a", "b"]
        assert upstream.client.get_order.call_count == 2
        assert upstream.client.patch_order.call_count == 2

    def test_input_validation(self, service):
        with pytest.raises(ValidationError):
            service.purchase_bundle_label([], "rate-1")
        with pytest.raises(ValidationError):
            service.purchase_bundle_label(["a"], "")

    def test_validate_requires_address(self, order_doc):
        doc = order_doc("a")
        doc["customer"].pop("address")

        with pytest.raises(PreconditionError):
            LabelService.validate_bundle_orders([Order.from_dict(doc)])


class TestSingleLabel:
    """Test one label for one order or its bundle."""

    def test_plain_order(self, service, upstream, order_doc):
        upstream.add(order_doc("a"))

        result = service.purchase_label("a", "rate-1", 7.5, "Priority", carrier="USPS")

        assert result.label_order_id == "a"
        assert result.affected_orders == ["a"]
        assert result.cost == 7.5
        assert result.to_dict()["message"] == "Label created successfully for 1 order(s)"
        assert upstream.orders["a"]["label_url"] == "https://labels.test/9400TRACK001.pdf"

    def test_missing_tracking_number_leaves_order_untouched(self, service, upstream, order_doc):
        upstream.add(order_doc("a"))
        upstream.client.buy_labels.return_value = {"results": [{"label": None}]}

        with pytest.raises(UpstreamError) as exc_info:
            service.purchase_label("a", "rate-1", 7.5, "Priority")

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Label created but no tracking number received"
        upstream.client.patch_order.assert_not_called()
        assert upstream.orders["a"]["status"] == "processing"
        assert "tracking_number" not in upstream.orders["a"]

    def test_bundled_order_uses_bundle_id(self, service, upstream, order_doc):
        upstream.add(
            order_doc("a", bundle_id="bundle_1"),
            order_doc("b", bundle_id="bundle_1"),
            order_doc("c"),
        )

        result = service.purchase_label("a", "rate-1", 5, "Ground")

        rate = upstream.client.buy_labels.call_args[0][0][0]
        assert rate["order"] == "bundle_1"
        assert result.label_order_id == "bundle_1"
        assert result.affected_orders == ["a", "b"]
        assert "tracking_number" not in upstream.orders["c"]

    def test_unknown_reference_used_as_is(self, service, upstream):
        result = service.purchase_label("bundle_external", "rate-1", 5, "")

        rate = upstream.client.buy_labels.call_args[0][0][0]
        assert rate["order"] == "bundle_external"
        assert result.outcome is LabelOutcome.SUCCESS
        assert result.service == "Standard"
        assert result.carrier == "Unknown"
        upstream.client.patch_order.assert_not_called()

    def test_estimate_data_forwarded(self, service, upstream, order_doc):
        upstream.add(order_doc("a"))

        service.purchase_label("a", "rate-1", 5, "Ground", label_file_type="PNG", estimate_data={"weight": 4})

        rate = upstream.client.buy_labels.call_args[0][0][0]
        assert rate["label_file_type"] == "PNG"
        assert rate["estimate_data"] == {"weight": 4}


class TestApplyLabel:
    """Test manual reconciliation."""

    def test_apply_without_purchase(self, service, upstream, order_doc):
        upstream.add(order_doc("a"), order_doc("b"))

        result = service.apply_label(["a", "b"], "9400MANUAL", "https://labels.test/m.pdf")

        assert result.all_succeeded
        assert upstream.orders["b"]["tracking_number"] == "9400MANUAL"
        upstream.client.buy_labels.assert_not_called()

    def test_tracking_number_required(self, service):
        with pytest.raises(ValidationError):
            service.apply_label(["a"], "")


class TestBulkLabels:
    """Test one label per selected row."""

    def test_skips_rows_without_rate(self, service, upstream, order_doc):
        upstream.add(
            order_doc("a", rate_id="rate-a"),
            order_doc("b"),
            order_doc("c", rate_id="rate-c", bundle_id="bundle_9"),
        )
        upstream.client.buy_labels.return_value = {
            "results": [{"tracking_number": "1"}, {"tracking_number": "2"}]
        }

        result = service.purchase_bulk_labels("seller-1", ["a", "b", "c", "ghost"], "PDF")

        assert result.rates == [
            {"rate_id": "rate-a", "label_file_type": "PDF", "order": "a"},
            {"rate_id": "rate-c", "label_file_type": "PDF", "order": "bundle_9"},
        ]
        assert result.fetch_errors == ["Order b has no rate_id", "Order ghost not found"]
        assert result.to_dict()["message"] == "Purchased 2 of 2 labels"

    def test_failures_counted_from_results(self, service, upstream, order_doc):
        upstream.add(order_doc("a", rate_id="rate-a"), order_doc("b", rate_id="rate-b"))
        upstream.client.buy_labels.return_value = {
            "results": [{"tracking_number": "1"}, {"success": False, "error": "rate expired"}]
        }

        result = service.purchase_bulk_labels("seller-1", ["a", "b"], "PDF")

        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.to_dict()["success"] is False

    def test_nothing_purchasable(self, service, upstream, order_doc):
        upstream.add(order_doc("a"))

        with pytest.raises(ValidationError) as exc_info:
            service.purchase_bulk_labels("seller-1", ["a"], "PDF")

        assert exc_info.value.message == "No valid orders found to purchase labels"
        upstream.client.buy_labels.assert_not_called()


def test_cost_estimate_has_floor():
    assert estimate_label_cost(8) == 5.99
    assert estimate_label_cost(100) == pytest.approx(15.0)


def test_bundle_label_id():
    assert bundle_label_id(["a", "b"]) == "bundle_a_b"
