"""
Shipping routes.

Handles:
- GET /api/shipping/shipments - Shipping page rows (orders and display bundles)
- GET /api/shipping/metrics - Summary figures for a seller
- POST /api/shipping/profiles/buy/label - Label for one order (or its bundle)
- POST /api/shipping/labels/bundle - One label for several orders
- POST /api/shipping/labels/apply - Attach an already bought label to orders
- POST /api/shipping/bulk-labels - One label per selected row

Label responses answer 200 when every order was updated, 207 on partial
success and 500 when the label was bought but applied to no order.
"""

from flask import Blueprint, jsonify, request

from core.exceptions import FanOutFailure, UpstreamError, ValidationError
from models.metrics import ShippingMetrics
from models.requests import (
    ApplyLabelRequest,
    BulkLabelRequest,
    BundleLabelRequest,
    LabelPurchaseRequest,
    parse_request,
)
from modules.bundle_aggregator import build_display_items, sort_display_items
from modules.metrics import compute_metrics
from services.order_store import OrderFilter
from logging_config import get_logger

from .context import fanout_status, json_body, label_service, order_store


# Module logger
logger = get_logger(__name__)

shipping_bp = Blueprint("shipping", __name__, url_prefix="/api/shipping")

# Query parameters narrowing the metrics order set
_METRICS_FILTERS = (
    ("startDate", "start_date"),
    ("endDate", "end_date"),
    ("tokshow", "tokshow"),
    ("marketplace", "marketplace"),
)


@shipping_bp.route("/shipments", methods=["GET"])
def shipments():
    """
    Rows of the shipping page.

    Accepts the order listing filters plus ``sort`` (customer, orderDate,
    items, total, status) and ``direction`` (asc, desc). Default order is
    newest first.
    """
    order_filter = OrderFilter.from_query(request.args)
    page = order_store().list_orders(order_filter)
    rows = build_display_items(page.orders)
    try:
        rows = sort_display_items(rows, request.args.get("sort"), request.args.get("direction"))
    except ValueError as e:
        raise ValidationError(str(e), errors=[{"field": "sort", "message": str(e)}]) from e
    return jsonify({
        "success": True,
        "items": [row.to_dict() for row in rows],
        "total": page.total,
        "pages": page.pages,
        "currentPage": page.current_page,
    })


@shipping_bp.route("/metrics", methods=["GET"])
def metrics():
    """
    Summary figures for a seller.

    An upstream failure does not fail the page: the figures read as zero.
    """
    user_id = request.args.get("userId")
    if not user_id:
        raise ValidationError(
            "userId parameter is required",
            errors=[{"field": "userId", "message": "is required"}],
        )
    filters = {
        attr: request.args[param]
        for param, attr in _METRICS_FILTERS
        if request.args.get(param)
    }
    try:
        orders = order_store().list_all_orders(user_id, **filters)
    except UpstreamError as e:
        logger.warning(f"Metrics for {user_id} unavailable, returning zeros: {e.upstream_message}")
        return jsonify(ShippingMetrics().to_dict())
    return jsonify(compute_metrics(orders).to_dict())


@shipping_bp.route("/profiles/buy/label", methods=["POST"])
def buy_label():
    req = parse_request(LabelPurchaseRequest, json_body())
    result = label_service().purchase_label(
        req.order,
        rate_id=req.rate_id,
        shipping_fee=req.shipping_fee,
        servicelevel=req.servicelevel,
        carrier=req.carrier,
        label_file_type=req.label_file_type,
        estimate_data=req.estimate_data,
    )
    return jsonify(result.to_dict()), result.outcome.http_status


@shipping_bp.route("/labels/bundle", methods=["POST"])
def buy_bundle_label():
    """
    One label for several orders shipping to the same customer and address.

    Answers 500 with outcome "unapplied" and the tracking number when the
    label was bought but no order could be updated; reconcile through
    /api/shipping/labels/apply.
    """
    req = parse_request(BundleLabelRequest, json_body())
    result = label_service().purchase_bundle_label(req.order_ids, req.rate_id, req.service)
    return jsonify(result.to_dict()), result.outcome.http_status


@shipping_bp.route("/labels/apply", methods=["POST"])
def apply_label():
    req = parse_request(ApplyLabelRequest, json_body())
    result = label_service().apply_label(req.order_ids, req.tracking_number, req.label_url)
    if not result.any_succeeded:
        raise FanOutFailure(
            f"Failed to apply label {req.tracking_number} to any order",
            results=result.to_list(),
        )
    return jsonify({
        "success": result.all_succeeded,
        "message": f"Label applied to {len(result.succeeded)} of {len(result.outcomes)} orders",
        "trackingNumber": req.tracking_number,
        "results": result.to_list(),
    }), fanout_status(result)


@shipping_bp.route("/bulk-labels", methods=["POST"])
def bulk_labels():
    req = parse_request(BulkLabelRequest, json_body())
    result = label_service().purchase_bulk_labels(req.user_id, req.order_ids, req.label_file_type)
    return jsonify(result.to_dict())
