import copy
from storefront import schema
from storefront.pricing.engine import quote_cart

CUSTOMER = {
    "email": "jane.doe@example.com",
    "firstName": "Jane",
    "lastName": "Doe",
    "phone": "+1 555 0100",
    "streetAddress": "1 Main St",
    "city": "Austin",
    "state": "TX",
    "zipCode": "78701",
    "country": "US",
    "newsletter": True,
    "smsConsent": False,
}

THREE_COURSES = ["COURSE_AVOIDANT_MAN", "COURSE_ATTACHMENT_BOOTCAMP", "COURSE_SECURE_MARRIAGE"]


def line(sku, msrp, discount=0.0, net=None, is_gift=False, is_oto=False, type="course", title=None):
    return {
        "sku": sku,
        "title": title or sku,
        "msrp": msrp,
        "discount": discount,
        "net": msrp - discount if net is None else net,
        "type": type,
        "isGift": is_gift,
        "isOTO": is_oto,
    }


def checkout_payload(selected, gifts=(), otos=(), coupon_code=None, customer=None):
    """Builds an honest checkout submission priced by the shared engine."""
    priced = quote_cart(list(selected), list(gifts), list(otos), coupon_code=coupon_code)
    payload = {
        "cartLines": [cart_line.to_dict() for cart_line in priced.lines],
        "totals": priced.totals.to_dict(),
        "customer": dict(customer or CUSTOMER),
    }
    if coupon_code:
        payload["couponCode"] = coupon_code
    return payload


def tamper(payload, sku, **changes):
    """Returns a copy of the payload with fields of one cart line overwritten."""
    tampered = copy.deepcopy(payload)
    for cart_line in tampered["cartLines"]:
        if cart_line["sku"] == sku:
            cart_line.update(changes)
    return tampered


def post_checkout(client, payload, provider="stripe"):
    return client.post(f"/api/v1/checkout/{provider}", json=payload)


def make_order(client, selected=None, provider="stripe", **kwargs):
    r = post_checkout(client, checkout_payload(selected or THREE_COURSES, **kwargs), provider)
    assert r.status_code == 200, r.get_json()
    return r.get_json()


def confirm_order(client, order_id):
    return client.post("/api/v1/checkout/confirm", json={"orderId": order_id})


def capture_paypal(client, paypal_order_id):
    return client.post("/api/v1/checkout/paypal/capture", json={"paypalOrderId": paypal_order_id})


def get_order(db, order_id):
    db.expire_all()
    return db.query(schema.Order).filter_by(order_id=order_id).first()


def get_items(db, order_id):
    return db.query(schema.OrderItem).filter_by(order_id=order_id).all()


def get_events(db, order_id):
    return (
        db.query(schema.OrderEvent)
        .filter_by(order_id=order_id)
        .order_by(schema.OrderEvent.timestamp.asc())
        .all()
    )
