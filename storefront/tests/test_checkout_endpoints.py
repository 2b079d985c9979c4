from unittest.mock import patch
from sqlalchemy.exc import SQLAlchemyError
from helpers import (
    CUSTOMER,
    THREE_COURSES,
    checkout_payload,
    get_events,
    get_items,
    get_order,
    make_order,
    post_checkout,
    tamper,
)
from storefront import schema
from storefront.services.payment_methods import payment_methods
from storefront.services.payments import PaymentProviderError


def test_stripe_checkout_returns_charge_handle(client):
    data = make_order(client, THREE_COURSES, gifts=["GUIDE_4_STYLES"])
    assert data["success"] is True
    assert data["orderId"]
    assert data["orderNumber"].startswith("Jane Doe - #77")
    assert len(data["orderNumber"].split("#77")[1]) == 4
    assert data["clientSecret"] == "pi_test_123_secret_abc"
    assert data["paymentIntentId"] == "pi_test_123"


def test_paypal_checkout_returns_approval_url(client):
    data = make_order(client, THREE_COURSES, provider="paypal")
    assert data["paypalOrderId"] == "PAYPAL-ORDER-1"
    assert data["approvalUrl"].endswith("token=PAYPAL-ORDER-1")


def test_checkout_persists_pending_order_with_server_amounts(client, db_session):
    data = make_order(client, THREE_COURSES, gifts=["GUIDE_4_STYLES"], coupon_code="lilarose10")
    order = get_order(db_session, data["orderId"])
    assert order.status == "pending"
    assert order.subtotal_cents == 184100
    assert order.discount_cents == 36820
    assert order.coupon_discount_cents == 14728
    assert order.total_cents == 132552
    assert order.coupon_code == "LILAROSE10"
    assert order.customer_email == CUSTOMER["email"]
    assert order.billing_city == "Austin"
    assert order.marketing_consent_email is True
    assert order.total_courses_count == 3
    assert order.total_addons_count == 1
    assert order.payment_provider == "stripe"
    assert order.stripe_payment_intent_id == "pi_test_123"
    assert order.currency == "usd"


def test_checkout_persists_order_items(client, db_session):
    data = make_order(client, THREE_COURSES, gifts=["GUIDE_4_STYLES"])
    items = {i.sku: i for i in get_items(db_session, data["orderId"])}
    assert set(items) == set(THREE_COURSES) | {"GUIDE_4_STYLES"}
    gift = items["GUIDE_4_STYLES"]
    assert gift.is_gift and gift.net_cents == 0 and gift.discount_cents == 19600
    marriage = items["COURSE_SECURE_MARRIAGE"]
    assert marriage.price_cents == 84700
    assert marriage.discount_cents == 16940
    assert marriage.net_cents == 67760
    assert marriage.product_id is not None


def test_checkout_records_offer_on_order(client, db_session):
    data = make_order(client, THREE_COURSES + ["breakthrough-call"], otos=["breakthrough-call"])
    order = get_order(db_session, data["orderId"])
    assert order.oto_offer_accepted is True
    assert order.oto_offer_product_sku == "breakthrough-call"
    assert order.total_consultations_count == 1


def test_provider_charged_validated_total(client, stripe_provider):
    seen = {}
    handle = stripe_provider.create_transaction.return_value

    def charge(amount_cents, currency, customer, order, lines):
        seen.update(
            amount_cents=amount_cents,
            currency=currency,
            email=customer["email"],
            order_id=order.order_id,
            skus=[line.sku for line in lines],
        )
        return handle

    stripe_provider.create_transaction.side_effect = charge
    data = make_order(client, THREE_COURSES)
    assert seen == {
        "amount_cents": 147280,
        "currency": "usd",
        "email": CUSTOMER["email"],
        "order_id": data["orderId"],
        "skus": THREE_COURSES,
    }


def test_checkout_writes_audit_events(client, db_session):
    data = make_order(client)
    types = [e.event_type for e in get_events(db_session, data["orderId"])]
    assert sorted(types) == ["charge_created", "created"]


def test_tampered_price_rejected_without_order(client, db_session, stripe_provider):
    payload = tamper(checkout_payload(["COURSE_AVOIDANT_MAN"]), "COURSE_AVOIDANT_MAN", msrp=1, net=1)
    payload["totals"].update({"subtotal": 1, "total": 1})
    r = post_checkout(client, payload)
    assert r.status_code == 400
    body = r.get_json()
    assert body["success"] is False
    # generic message only, the failure kind stays server side
    assert "Tampering" not in body["error"]
    assert db_session.query(schema.Order).count() == 0
    stripe_provider.create_transaction.assert_not_called()


def test_too_many_gifts_rejected(client, db_session):
    r = post_checkout(client, checkout_payload(THREE_COURSES, gifts=["GUIDE_4_STYLES", "CONVERSATION_CARDS"]))
    assert r.status_code == 400
    assert db_session.query(schema.Order).count() == 0


def test_invalid_coupon_rejected(client):
    payload = checkout_payload(THREE_COURSES)
    payload["couponCode"] = "NOT-A-CODE"
    r = post_checkout(client, payload)
    assert r.status_code == 400


def test_missing_customer_fields(client):
    payload = checkout_payload(THREE_COURSES)
    del payload["customer"]["lastName"]
    r = post_checkout(client, payload)
    assert r.status_code == 400
    assert "lastName" in r.get_json()["error"]


def test_invalid_email(client):
    payload = checkout_payload(THREE_COURSES)
    payload["customer"]["email"] = "not-an-email"
    assert post_checkout(client, payload).status_code == 400


def test_empty_cart_rejected(client):
    payload = checkout_payload(THREE_COURSES)
    payload["cartLines"] = []
    assert post_checkout(client, payload).status_code == 400


def test_malformed_line_rejected(client):
    payload = checkout_payload(THREE_COURSES)
    payload["cartLines"][0]["msrp"] = "497"
    assert post_checkout(client, payload).status_code == 400


def test_non_json_body_rejected(client):
    r = client.post("/api/v1/checkout/stripe", data="nope", content_type="text/plain")
    assert r.status_code == 400


def test_disabled_card_method_blocks_stripe_checkout(client, db_session):
    payment_methods.toggle("card", False)
    r = post_checkout(client, checkout_payload(THREE_COURSES))
    assert r.status_code == 400
    assert r.get_json()["error"] == "This payment method is currently unavailable."
    assert db_session.query(schema.Order).count() == 0


def test_disabled_paypal_blocks_paypal_checkout(client):
    payment_methods.toggle("paypal", False)
    assert post_checkout(client, checkout_payload(THREE_COURSES), "paypal").status_code == 400
    # card stays available
    assert post_checkout(client, checkout_payload(THREE_COURSES), "stripe").status_code == 200


def test_provider_failure_leaves_order_pending(client, db_session, stripe_provider):
    stripe_provider.create_transaction.side_effect = PaymentProviderError("card network down")
    r = post_checkout(client, checkout_payload(THREE_COURSES))
    assert r.status_code == 502
    assert r.get_json() == {"success": False, "error": "Payment could not be started. Please try again."}

    orders = db_session.query(schema.Order).all()
    assert len(orders) == 1
    assert orders[0].status == "pending"
    assert orders[0].stripe_payment_intent_id is None
    types = [e.event_type for e in get_events(db_session, orders[0].order_id)]
    assert sorted(types) == ["charge_failed", "created"]


def test_item_insert_failure_deletes_order(client, db_session, stripe_provider):
    with patch(
        "storefront.services.orders.OrderRepository.insert_order_items",
        side_effect=SQLAlchemyError("disk full"),
    ):
        r = post_checkout(client, checkout_payload(THREE_COURSES))
    assert r.status_code == 500
    assert r.get_json()["error"] == "Failed to create order. Please try again."
    db_session.expire_all()
    assert db_session.query(schema.Order).count() == 0
    assert db_session.query(schema.OrderEvent).count() == 0
    stripe_provider.create_transaction.assert_not_called()
