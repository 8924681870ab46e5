"""
HTTP client for the Icona commerce API.

Every call this service makes upstream goes through IconaAPIClient. The
client is built per incoming request (it carries that caller's bearer
token) by the factory stored in ``app.config["API_CLIENT_FACTORY"]``.

THREAD SAFETY:
    Fan-out operations call the same client from several worker threads.
    requests.Session is not guaranteed thread-safe, so each thread gets
    its own session from a threading.local; the client itself holds no
    other mutable state.

Errors:
    - Non-2xx responses raise UpstreamError carrying the upstream status
      and the decoded body (JSON when possible, text otherwise).
    - 404 on a single-order lookup raises OrderNotFoundError.
    - Transport errors (timeout, connection refused) raise UpstreamError
      with status 502.

Usage:
    client = IconaAPIClient("https://api.icona.example", access_token=token)
    page = client.list_orders({"userId": "u1", "status": "processing"})
    order = client.get_order("65f1...")
    client.patch_order("65f1...", {"tracking_number": "9400..."})
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

import requests

from .exceptions import OrderNotFoundError, UpstreamError


class IconaAPIClient:
    """
    Thin JSON client for the upstream commerce API.

    Attributes:
        base_url: API root without trailing slash
        timeout: Per-call timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 15.0,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            base_url: Root URL of the commerce API
            access_token: Caller's bearer token; reads without one are allowed
            timeout: Per-call timeout in seconds
            logger: Logger instance (creates default if not provided)

        Raises:
            ValueError: If base_url is empty
        """
        if not base_url:
            raise ValueError("base_url is required - set ICONA_API_BASE_URL")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._access_token = access_token
        self._logger = logger or logging.getLogger("icona_shipping.core.api_client")
        self._local = threading.local()

    @property
    def has_credentials(self) -> bool:
        return bool(self._access_token)

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"Content-Type": "application/json"})
            if self._access_token:
                session.headers["Authorization"] = f"Bearer {self._access_token}"
            self._local.session = session
        return session

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """
        Issue one upstream call and decode the JSON answer.

        Args:
            method: HTTP method
            path: Path below base_url, starting with "/"
            operation: Short name used in logs and error details
            params: Query parameters
            json: JSON body

        Returns:
            Decoded JSON body ({} for an empty body)

        Raises:
            UpstreamError: On transport failure or non-2xx status
        """
        url = f"{self.base_url}{path}"
        self._logger.debug(f"{operation}: {method} {url}")

        try:
            response = self._session().request(
                method,
                url,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            self._logger.error(f"{operation}: request to {url} failed: {e}")
            raise UpstreamError(
                f"Error requesting commerce API: {e}",
                status_code=502,
                operation=operation,
            ) from e

        if not response.ok:
            body = _decode_body(response)
            self._logger.warning(
                f"{operation}: upstream returned {response.status_code} for {method} {path}"
            )
            raise UpstreamError(
                f"Commerce API returned {response.status_code} for {operation}",
                status_code=response.status_code,
                body=body,
                operation=operation,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            self._logger.error(f"{operation}: invalid JSON from upstream: {e}")
            raise UpstreamError(
                f"Invalid JSON in commerce API response for {operation}",
                status_code=502,
                body=response.text,
                operation=operation,
            ) from e

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def list_orders(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET /orders with the given query parameters."""
        data = self._request("GET", "/orders", "list_orders", params=params)
        if isinstance(data, list):
            # Some deployments answer with a bare array
            return {"orders": data, "total": len(data)}
        return data

    def get_order(self, order_id: str) -> Dict[str, Any]:
        """
        GET /orders/<id>.

        Raises:
            OrderNotFoundError: If the upstream answers 404 or an empty body
        """
        try:
            data = self._request("GET", f"/orders/{order_id}", "get_order")
        except UpstreamError as e:
            if e.status_code == 404:
                raise OrderNotFoundError(order_id) from e
            raise
        if not data:
            raise OrderNotFoundError(order_id)
        return data

    def update_order(self, order_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """PUT /orders/<id> (status changes, bundle assignment)."""
        return self._request("PUT", f"/orders/{order_id}", "update_order", json=patch)

    def patch_order(self, order_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """PATCH /orders/<id> (tracking data after a label purchase)."""
        return self._request("PATCH", f"/orders/{order_id}", "patch_order", json=patch)

    def unbundle_items(self, order_id: str, item_ids: List[str]) -> Dict[str, Any]:
        """POST /orders/unbundle/orders - split line items into new orders."""
        return self._request(
            "POST",
            "/orders/unbundle/orders",
            "unbundle_items",
            json={"orderId": order_id, "itemIds": list(item_ids)},
        )

    def cancel_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST /orders/cancel/order."""
        return self._request("POST", "/orders/cancel/order", "cancel_order", json=payload)

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def buy_labels(self, rates: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        POST /shipping/profiles/buy/label with a ``rates`` array.

        Each rate is ``{"rate_id", "label_file_type", "order"}`` where
        ``order`` is the order id or the bundle id the label is bought for.
        The answer carries a ``results`` array, one entry per rate.
        """
        self._logger.info(f"Purchasing {len(rates)} label(s)")
        return self._request(
            "POST",
            "/shipping/profiles/buy/label",
            "buy_labels",
            json={"rates": rates},
        )


def _decode_body(response: requests.Response) -> Any:
    """Decode an error body as JSON when possible, text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text or response.reason
