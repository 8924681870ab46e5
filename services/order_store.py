"""
Order store: typed access to orders held by the commerce API.

OrderStore wraps IconaAPIClient and turns upstream documents into Order
models. Every read goes upstream; nothing is cached between requests, so
bundles derived from these orders are always current.

Listing:
    OrderFilter carries the query parameters the dashboard sends. A query
    targets either a seller (``user_id``) or a buyer (``customer``), never
    both. ``status="all"`` means no status filter.

    The upstream answers ``{orders, total, limits, pages}`` where ``pages``
    is actually the current page. OrderPage normalizes that into
    ``pages = ceil(total / limits)`` (at least 1) and ``current_page``.

Usage:
    store = OrderStore(api_client)
    page = store.list_orders(OrderFilter(user_id="u1", status="processing"))
    everything = store.list_all_orders("u1")   # unfiltered, all pages
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from core.api_client import IconaAPIClient
from core.exceptions import OrderNotFoundError, ValidationError
from models.order import Order
from logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = 20

# Page size used when every order of a seller is needed (bundle derivation)
ALL_ORDERS_PAGE_LIMIT = 100

# Query parameter name upstream -> OrderFilter attribute
_FILTER_PARAMS = (
    ("userId", "user_id"),
    ("customer", "customer"),
    ("status", "status"),
    ("customerId", "customer_id"),
    ("page", "page"),
    ("limit", "limit"),
    ("invoice", "invoice"),
    ("tokshow", "tokshow"),
    ("marketplace", "marketplace"),
    ("day", "day"),
    ("platform_order", "platform_order"),
    ("startDate", "start_date"),
    ("endDate", "end_date"),
    ("search", "search"),
    ("searchBy", "search_by"),
)


@dataclass(frozen=True)
class OrderFilter:
    """
    Order listing query.

    Raises:
        ValidationError: If both user_id and customer are set
    """

    user_id: Optional[str] = None
    customer: Optional[str] = None
    status: Optional[str] = None
    customer_id: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None
    invoice: Optional[str] = None
    tokshow: Optional[str] = None
    marketplace: Optional[str] = None
    day: Optional[str] = None
    platform_order: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    search: Optional[str] = None
    search_by: Optional[str] = None

    def __post_init__(self):
        if self.user_id and self.customer:
            raise ValidationError(
                "Specify either userId (seller) or customer (buyer), not both",
                errors=[{"field": "customer", "message": "cannot be combined with userId"}],
            )
        for name in ("page", "limit"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValidationError(
                    f"{name} must be a positive integer",
                    errors=[{"field": name, "message": "must be >= 1"}],
                )

    @classmethod
    def from_query(cls, args: Mapping[str, Any]) -> "OrderFilter":
        """Build a filter from request query arguments (camelCase names)."""
        values: Dict[str, Any] = {}
        for param, attr in _FILTER_PARAMS:
            raw = args.get(param)
            if raw in (None, ""):
                continue
            if attr in ("page", "limit"):
                try:
                    raw = int(raw)
                except (TypeError, ValueError):
                    raise ValidationError(
                        f"{param} must be an integer",
                        errors=[{"field": param, "message": "must be an integer"}],
                    )
            values[attr] = raw
        return cls(**values)

    def to_params(self) -> Dict[str, Any]:
        """Upstream query parameters; unset values and status "all" are omitted."""
        params: Dict[str, Any] = {}
        for param, attr in _FILTER_PARAMS:
            value = getattr(self, attr)
            if value is None or value == "":
                continue
            if attr == "status" and str(value).lower() == "all":
                continue
            params[param] = value
        return params


@dataclass
class OrderPage:
    """One page of orders with normalized paging fields."""

    orders: List[Order] = field(default_factory=list)
    total: int = 0
    pages: int = 1
    current_page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "OrderPage":
        documents = data.get("orders") or []
        orders = [Order.from_dict(doc) for doc in documents if isinstance(doc, dict)]
        total = int(data.get("total") or 0)
        limit = int(data.get("limits") or data.get("limit") or DEFAULT_PAGE_LIMIT)
        pages = math.ceil(total / limit) if total > 0 else 1
        return cls(
            orders=orders,
            total=total,
            pages=pages,
            current_page=int(data.get("pages") or 1),
            limit=limit,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orders": [o.to_dict() for o in self.orders],
            "total": self.total,
            "limits": self.limit,
            "pages": self.pages,
            "currentPage": self.current_page,
        }


def _unwrap_order(data: Any) -> Dict[str, Any]:
    # Single-order answers come bare or wrapped in "order" / "data"
    if isinstance(data, dict):
        for key in ("order", "data"):
            inner = data.get(key)
            if isinstance(inner, dict):
                return inner
        return data
    return {}


class OrderStore:
    """
    Typed order access on top of the commerce API client.

    Attributes:
        client: Underlying IconaAPIClient (used directly for the calls that
            have no order-shaped answer: cancellation, item unbundling,
            label purchase)
    """

    def __init__(self, client: IconaAPIClient):
        self.client = client

    def list_orders(self, order_filter: OrderFilter) -> OrderPage:
        """One page of orders matching ``order_filter``."""
        data = self.client.list_orders(order_filter.to_params())
        page = OrderPage.from_response(data)
        logger.debug(f"Listed {len(page.orders)} of {page.total} order(s)")
        return page

    def list_all_orders(self, user_id: str, **filters: Any) -> List[Order]:
        """
        Every order of a seller, across all pages and statuses.

        ``filters`` are extra OrderFilter fields (date range, show,
        marketplace); status is never narrowed here.

        Bundle membership and bundle status must be derived from this
        unfiltered list, never from a status-filtered page.

        Raises:
            ValidationError: If user_id is empty
        """
        if not user_id:
            raise ValidationError(
                "User ID is required",
                errors=[{"field": "userId", "message": "is required"}],
            )

        orders: List[Order] = []
        page_number = 1
        while True:
            page = self.list_orders(
                OrderFilter(
                    user_id=user_id,
                    page=page_number,
                    limit=ALL_ORDERS_PAGE_LIMIT,
                    **filters,
                )
            )
            orders.extend(page.orders)
            if not page.orders or len(orders) >= page.total or page_number >= page.pages:
                break
            page_number += 1

        logger.debug(f"Loaded {len(orders)} order(s) for user {user_id}")
        return orders

    def get_order(self, order_id: str) -> Order:
        """
        Raises:
            OrderNotFoundError: If the upstream has no such order
        """
        document = _unwrap_order(self.client.get_order(order_id))
        if not document.get("_id") and not document.get("id"):
            raise OrderNotFoundError(order_id)
        return Order.from_dict(document)

    def update_order(self, order_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """PUT a partial update; returns the upstream answer unchanged."""
        return self.client.update_order(order_id, patch)

    def patch_order(self, order_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """PATCH a partial update; returns the upstream answer unchanged."""
        return self.client.patch_order(order_id, patch)
