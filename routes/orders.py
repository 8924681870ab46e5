"""
Order routes.

Handles:
- GET /api/orders - Order listing (seller or buyer view)
- GET|PATCH|PUT /api/orders/<id> - Single order read and update
- POST /api/orders/bundle - Group processing orders into a bundle
- POST /api/orders/bundle/<id>/ship - Mark every bundle member shipped
- POST /api/orders/unbundle - Split line items out of an order
- POST /api/orders/cancel/order - Cancel one order
"""

from flask import Blueprint, jsonify, request

from models.requests import (
    CancelOrderRequest,
    CreateBundleRequest,
    UnbundleItemsRequest,
    UpdateOrderRequest,
    UserScopedRequest,
    parse_request,
)
from services.order_store import OrderFilter
from logging_config import get_logger

from .context import bundle_service, fanout_status, json_body, order_store


# Module logger
logger = get_logger(__name__)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.route("", methods=["GET"])
def list_orders():
    """One page of orders; pass ``userId`` (seller) or ``customer`` (buyer)."""
    order_filter = OrderFilter.from_query(request.args)
    page = order_store().list_orders(order_filter)
    return jsonify(page.to_dict())


@orders_bp.route("/<order_id>", methods=["GET"])
def get_order(order_id):
    order = order_store().get_order(order_id)
    return jsonify({"success": True, "data": order.to_dict()})


@orders_bp.route("/<order_id>", methods=["PATCH"])
def patch_order(order_id):
    body = json_body()
    logger.info(f"PATCH order {order_id}: {sorted(body)}")
    return jsonify(order_store().patch_order(order_id, body))


@orders_bp.route("/<order_id>", methods=["PUT"])
def update_order(order_id):
    """
    Forward an order update.

    Moving to ``cancelled`` or ``shipped`` is checked against the order's
    current state first; a refused transition answers 409.
    """
    update = parse_request(UpdateOrderRequest, json_body())
    patch = update.model_dump(exclude_unset=True)
    logger.info(f"PUT order {order_id}: {sorted(patch)}")
    return jsonify(bundle_service().update_order_status(order_id, patch))


@orders_bp.route("/bundle", methods=["POST"])
@orders_bp.route("/bundle/orders", methods=["POST"])
def create_bundle():
    """
    Bundle processing orders.

    Either every order is bundled or none is: an order that is missing or
    not processing rejects the whole request (409 with invalidOrderIds).
    """
    req = parse_request(CreateBundleRequest, json_body())
    bundle = bundle_service().create_bundle(req.order_ids)
    return jsonify({
        "success": True,
        "message": f"Bundled {len(bundle.orders)} orders",
        "bundleId": bundle.bundle_id,
        "data": bundle.to_dict(),
    })


@orders_bp.route("/bundle/<id_param>/ship", methods=["POST"])
def ship_bundle(id_param):
    """``id_param`` may be a member order id or the bundle id."""
    body = json_body()
    req = parse_request(UserScopedRequest, {
        "userId": body.get("userId") or request.args.get("userId"),
    })
    result = bundle_service().ship_bundle(req.user_id, id_param)
    return jsonify({
        "success": result.all_succeeded,
        "message": f"Marked {len(result.succeeded)} of {len(result.outcomes)} orders as shipped",
        "shippedOrders": len(result.succeeded),
        "failedOrders": len(result.failed),
        "results": result.to_list(),
    }), fanout_status(result)


@orders_bp.route("/unbundle", methods=["POST"])
@orders_bp.route("/unbundle/orders", methods=["POST"])
def unbundle_items():
    req = parse_request(UnbundleItemsRequest, json_body())
    data = bundle_service().unbundle_items(req.order_id, req.item_ids)
    return jsonify({
        "success": True,
        "message": f"Unbundled {len(req.item_ids)} item(s) from order {req.order_id}",
        "data": data,
    })


@orders_bp.route("/cancel/order", methods=["POST"])
def cancel_order():
    req = parse_request(CancelOrderRequest, json_body())
    data = bundle_service().cancel_order(
        req.order,
        relist=req.relist,
        description=req.description,
        initiator=req.initiator,
        cancel_type=req.type,
    )
    return jsonify({"success": True, "message": "Order cancelled", "data": data})
