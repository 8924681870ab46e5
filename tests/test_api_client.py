"""
Unit tests for the commerce API client.

requests.Session.request is patched; no network access.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from core.api_client import IconaAPIClient
from core.exceptions import OrderNotFoundError, UpstreamError


# Fixtures

def make_response(status_code=200, payload=None, text=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = "Error" if status_code >= 400 else "OK"
    if payload is not None:
        response.json.return_value = payload
        response.content = b"{...}"
        response.text = "{...}"
    else:
        response.json.side_effect = ValueError("no json")
        response.content = (text or "").encode("utf-8")
        response.text = text or ""
    return response


@pytest.fixture
def client():
    return IconaAPIClient("http://icona.test/", access_token="token-123", timeout=5)


class TestIconaAPIClient:
    """Test request handling and error mapping."""

    def test_requires_base_url(self):
        with pytest.raises(ValueError):
            IconaAPIClient("")

    def test_base_url_trailing_slash_stripped(self, client):
        assert client.base_url == "http://icona.test"

    def test_bearer_header(self, client):
        headers = client._session().headers
        assert headers["Authorization"] == "Bearer token-123"
        assert headers["Content-Type"] == "application/json"

    def test_no_token_no_header(self):
        anonymous = IconaAPIClient("http://icona.test")
        assert "Authorization" not in anonymous._session().headers
        assert not anonymous.has_credentials

    @patch("requests.Session.request")
    def test_list_orders(self, mock_request, client):
        mock_request.return_value = make_response(200, {"orders": [], "total": 0})

        data = client.list_orders({"userId": "s1"})

        assert data == {"orders": [], "total": 0}
        args, kwargs = mock_request.call_args
        assert args == ("GET", "http://icona.test/orders")
        assert kwargs["params"] == {"userId": "s1"}
        assert kwargs["timeout"] == 5

    @patch("requests.Session.request")
    def test_bare_list_normalized(self, mock_request, client):
        mock_request.return_value = make_response(200, [{"_id": "o1"}])

        data = client.list_orders({})

        assert data == {"orders": [{"_id": "o1"}], "total": 1}

    @patch("requests.Session.request")
    def test_non_2xx_raises_with_status_and_body(self, mock_request, client):
        mock_request.return_value = make_response(422, {"message": "bad status"})

        with pytest.raises(UpstreamError) as exc_info:
            client.update_order("o1", {"status": "shipped"})

        assert exc_info.value.status_code == 422
        assert exc_info.value.body == {"message": "bad status"}
        assert exc_info.value.upstream_message == "bad status"

    @patch("requests.Session.request")
    def test_text_error_body_kept(self, mock_request, client):
        mock_request.return_value = make_response(503, text="maintenance")

        with pytest.raises(UpstreamError) as exc_info:
            client.patch_order("o1", {})

        assert exc_info.value.body == "maintenance"

    @patch("requests.Session.request")
    def test_get_order_404_is_not_found(self, mock_request, client):
        mock_request.return_value = make_response(404, {"message": "missing"})

        with pytest.raises(OrderNotFoundError) as exc_info:
            client.get_order("o1")

        assert exc_info.value.status_code == 404

    @patch("requests.Session.request")
    def test_transport_error_is_502(self, mock_request, client):
        mock_request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(UpstreamError) as exc_info:
            client.get_order("o1")

        assert exc_info.value.status_code == 502

    @patch("requests.Session.request")
    def test_empty_body_is_empty_dict(self, mock_request, client):
        mock_request.return_value = make_response(200, text="")

        assert client.update_order("o1", {"bundleId": None}) == {}

    @patch("requests.Session.request")
    def test_invalid_json_is_502(self, mock_request, client):
        mock_request.return_value = make_response(200, text="<html>")

        with pytest.raises(UpstreamError) as exc_info:
            client.cancel_order({"order": "o1"})

        assert exc_info.value.status_code == 502

    @patch("requests.Session.request")
    def test_buy_labels_wraps_rates(self, mock_request, client):
        mock_request.return_value = make_response(200, {"results": [{"tracking_number": "9400"}]})
        rates = [{"rate_id": "r1", "label_file_type": "PDF_4x6", "order": "o1"}]

        client.buy_labels(rates)

        args, kwargs = mock_request.call_args
        assert args == ("POST", "http://icona.test/shipping/profiles/buy/label")
        assert kwargs["json"] == {"rates": rates}

    @patch("requests.Session.request")
    def test_unbundle_items_payload(self, mock_request, client):
        mock_request.return_value = make_response(200, {"success": True})

        client.unbundle_items("o1", ["i1", "i2"])

        _, kwargs = mock_request.call_args
        assert kwargs["json"] == {"orderId": "o1", "itemIds": ["i1", "i2"]}
