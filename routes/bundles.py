"""
Bundle routes.

Handles:
- GET /api/bundles - Derived bundles of a seller
- DELETE /api/bundles/<id> - Unbundle all members or a subset
- POST /api/bundles/<id>/cancel - Cancel every cancelable member

Bundles are computed from the seller's unfiltered orders on every call.
"""

from flask import Blueprint, jsonify, request

from models.requests import UnbundleRequest, UserScopedRequest, parse_request
from logging_config import get_logger

from .context import bundle_service, fanout_status, json_body


# Module logger
logger = get_logger(__name__)

bundles_bp = Blueprint("bundles", __name__, url_prefix="/api/bundles")


def _user_id(body=None) -> str:
    body = body or {}
    req = parse_request(UserScopedRequest, {
        "userId": request.args.get("userId") or body.get("userId"),
    })
    return req.user_id


@bundles_bp.route("", methods=["GET"])
def list_bundles():
    """``?userId=<seller>&status=<bundle status>``; status "all" lists everything."""
    bundles = bundle_service().list_bundles(_user_id(), request.args.get("status"))
    return jsonify({
        "success": True,
        "bundles": [b.to_dict() for b in bundles],
        "total": len(bundles),
    })


@bundles_bp.route("/<bundle_id>", methods=["DELETE"])
def unbundle(bundle_id):
    """
    Clear the bundle id on members.

    Body ``{"orderIds": [...]}`` narrows the operation to those members.
    Unbundling an already empty bundle succeeds with zero counts.
    """
    body = json_body()
    user_id = _user_id(body)
    req = parse_request(UnbundleRequest, body)
    result = bundle_service().unbundle(user_id, bundle_id, req.order_ids)
    status = 200 if result.no_orders_found else fanout_status(result.updates)
    return jsonify(result.to_dict()), status


@bundles_bp.route("/<bundle_id>/cancel", methods=["POST"])
def cancel_bundle(bundle_id):
    body = json_body()
    req = parse_request(UserScopedRequest, {
        "userId": body.get("userId") or request.args.get("userId"),
        "relist": body.get("relist", False),
    })
    result = bundle_service().cancel_bundle(req.user_id, bundle_id, relist=req.relist)
    return jsonify({
        "success": result.all_succeeded,
        "message": f"Cancelled {len(result.succeeded)} of {len(result.outcomes)} orders",
        "cancelledOrders": len(result.succeeded),
        "failedOrders": len(result.failed),
        "results": result.to_list(),
    }), fanout_status(result)
