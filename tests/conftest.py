"""
Shared fixtures.

FakeUpstream keeps order documents in memory behind a MagicMock shaped like
IconaAPIClient, so services and routes run against realistic upstream
behaviour without a network.
"""

import threading
from unittest.mock import MagicMock

import pytest

from app import create_app
from core.api_client import IconaAPIClient
from core.exceptions import OrderNotFoundError, UpstreamError


ADDRESS = {
    "addrress1": "12 Harbor Road",
    "city": "Portland",
    "state": "ME",
    "zipcode": "04101",
}


def make_order_doc(
    order_id,
    status="processing",
    bundle_id=None,
    customer_id="cust-1",
    address=None,
    items=None,
    giveaway=None,
    seller_id="seller-1",
    created_at="2026-03-01T12:00:00Z",
    **extra,
):
    """Upstream order document with sensible defaults (one 4 oz item)."""
    if items is None:
        items = [] if giveaway else [{
            "_id": f"{order_id}-item-1",
            "productId": {"_id": "prod-1", "name": "Trading card"},
            "quantity": 1,
            "price": 10,
            "weight": 4,
            "scale": "oz",
        }]
    doc = {
        "_id": order_id,
        "status": status,
        "customer": {
            "_id": customer_id,
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "address": dict(address or ADDRESS),
        },
        "seller": {"_id": seller_id},
        "items": items,
        "total": 10,
        "tax": 1,
        "shipping_fee": 5,
        "createdAt": created_at,
    }
    if giveaway:
        doc["giveaway"] = giveaway
    if bundle_id:
        doc["bundleId"] = bundle_id
    doc.update(extra)
    return doc


class FakeUpstream:
    """
    In-memory commerce API.

    ``failing`` holds order ids whose PUT/PATCH calls fail with a 500.
    Updates are applied to the stored documents so tests can check the
    resulting state.
    """

    def __init__(self):
        self.orders = {}
        self.failing = set()
        self._lock = threading.Lock()

        self.client = MagicMock(spec=IconaAPIClient)
        self.client.get_order.side_effect = self._get
        self.client.list_orders.side_effect = self._list
        self.client.update_order.side_effect = self._update
        self.client.patch_order.side_effect = self._update
        self.client.buy_labels.return_value = {
            "results": [{"tracking_number": "9400TRACK001", "label": "https://labels.test/9400TRACK001.pdf"}]
        }
        self.client.cancel_order.return_value = {"success": True}
        self.client.unbundle_items.return_value = {"success": True, "orders": []}

        self.factory = MagicMock(return_value=self.client)

    def add(self, *docs):
        for doc in docs:
            self.orders[doc["_id"]] = doc
        return docs

    def _get(self, order_id):
        if order_id not in self.orders:
            raise OrderNotFoundError(order_id)
        return dict(self.orders[order_id])

    def _list(self, params):
        docs = list(self.orders.values())
        if params.get("status"):
            docs = [d for d in docs if d.get("status") == params["status"]]
        return {"orders": [dict(d) for d in docs], "total": len(docs)}

    def _update(self, order_id, patch):
        if order_id in self.failing:
            raise UpstreamError(
                "Commerce API returned 500 for update_order",
                status_code=500,
                body={"message": "database unavailable"},
                operation="update_order",
            )
        with self._lock:
            doc = self.orders.setdefault(order_id, {"_id": order_id})
            doc.update(patch)
            return dict(doc)


# Fixtures

@pytest.fixture
def order_doc():
    """Factory for upstream order documents."""
    return make_order_doc


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def app(upstream):
    """Flask app in testing mode wired to the in-memory upstream."""
    app = create_app("config.TestingConfig")
    app.config["API_CLIENT_FACTORY"] = upstream.factory
    return app


@pytest.fixture
def client(app):
    return app.test_client()
