from unittest.mock import MagicMock

import pytest
import requests

from storefront.client.checkout import CheckoutClient, CheckoutClientError


def response(status_code=200, payload=None):
    r = MagicMock()
    r.status_code = status_code
    r.json.return_value = payload if payload is not None else {}
    return r


def confirm_response(status):
    return response(200, {"success": True, "status": status, "orderId": "order-1", "orderNumber": "Jane Doe - #771234"})


@pytest.fixture
def sleeps():
    return []


def make_client(sleeps, *responses):
    session = MagicMock()
    session.post.side_effect = list(responses)
    return CheckoutClient("http://api.test/api/v1/", session=session, sleep=sleeps.append), session


def test_submit_posts_to_provider_route(sleeps):
    client, session = make_client(sleeps, response(200, {"success": True, "orderId": "order-1"}))
    data = client.submit({"cartLines": []}, "paypal")
    assert data["orderId"] == "order-1"
    assert session.post.call_args[0][0] == "http://api.test/api/v1/checkout/paypal"


def test_submit_error_surfaces_message(sleeps):
    client, _ = make_client(sleeps, response(400, {"success": False, "error": "Your cart could not be verified."}))
    with pytest.raises(CheckoutClientError) as exc:
        client.submit({}, "stripe")
    assert exc.value.status_code == 400
    assert "could not be verified" in str(exc.value)


def test_await_returns_immediately_when_paid(sleeps):
    client, session = make_client(sleeps, confirm_response("paid"))
    result = client.await_confirmation(order_id="order-1")
    assert result.status == "paid"
    assert result.order_number == "Jane Doe - #771234"
    assert result.attempts == 1
    assert sleeps == []
    assert session.post.call_args[1]["json"] == {"orderId": "order-1"}


def test_await_retries_while_pending(sleeps):
    client, _ = make_client(sleeps, confirm_response("pending"), confirm_response("pending"), confirm_response("paid"))
    result = client.await_confirmation(order_id="order-1")
    assert result.status == "paid"
    assert result.attempts == 3
    assert sleeps == [2.0, 2.0]


def test_await_gives_up_after_five_retries(sleeps):
    client, session = make_client(sleeps, *[confirm_response("pending") for _ in range(10)])
    result = client.await_confirmation(order_id="order-1")
    assert result.status == "pending"
    assert session.post.call_count == 6
    assert len(sleeps) == 5


def test_await_failed_status_stops_polling(sleeps):
    client, _ = make_client(sleeps, confirm_response("failed"))
    assert client.await_confirmation(order_id="order-1").status == "failed"
    assert sleeps == []


def test_await_transport_error_is_failed(sleeps):
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("offline")
    client = CheckoutClient(session=session, sleep=sleeps.append)
    assert client.await_confirmation(order_id="order-1").status == "failed"


def test_await_api_error_is_failed(sleeps):
    client, _ = make_client(sleeps, response(404, {"success": False, "error": "Order not found"}))
    assert client.await_confirmation(order_id="missing").status == "failed"


def test_await_paypal_captures_token(sleeps):
    client, session = make_client(sleeps, confirm_response("pending"), confirm_response("paid"))
    result = client.await_confirmation(paypal_order_id="PP-1")
    assert result.status == "paid"
    assert result.order_id == "order-1"
    url = session.post.call_args[0][0]
    assert url.endswith("/checkout/paypal/capture")
    assert session.post.call_args[1]["json"] == {"paypalOrderId": "PP-1"}


def test_await_requires_an_identifier(sleeps):
    client, _ = make_client(sleeps)
    with pytest.raises(ValueError):
        client.await_confirmation()
