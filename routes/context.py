"""
Per-request service wiring.

Services are built for each request because the upstream client carries
the caller's bearer token. The client factory and tuning values come from
app.config (see create_app()), so tests swap the factory for a mock.
"""

from typing import Optional

from flask import current_app, request, session

from services.bundle_service import BundleService
from services.label_service import LabelService
from services.order_store import OrderStore


def get_access_token() -> Optional[str]:
    """
    Caller's bearer token.

    Looked up in the session first, then the Authorization header, then
    the x-access-token header the dashboard sends.
    """
    token = session.get("access_token")
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return request.headers.get("x-access-token") or None


def order_store() -> OrderStore:
    factory = current_app.config["API_CLIENT_FACTORY"]
    return OrderStore(factory(get_access_token()))


def bundle_service() -> BundleService:
    return BundleService(
        order_store(),
        max_workers=current_app.config.get("FANOUT_MAX_WORKERS", 8),
    )


def label_service() -> LabelService:
    return LabelService(
        order_store(),
        max_workers=current_app.config.get("FANOUT_MAX_WORKERS", 8),
        default_label_file_type=current_app.config.get("DEFAULT_LABEL_FILE_TYPE", "PDF_4x6"),
        default_service=current_app.config.get("DEFAULT_BUNDLE_SERVICE", "Ground Advantage"),
    )


def json_body() -> dict:
    """Request JSON body, {} when absent or not JSON."""
    return request.get_json(silent=True) or {}


def fanout_status(result) -> int:
    """200 when every member call succeeded, 207 (multi-status) otherwise."""
    return 200 if result.all_succeeded else 207
