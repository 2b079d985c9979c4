import uuid
import random
import logging
from datetime import datetime, timezone
from typing import Optional

from storefront.pricing.money import to_cents
from storefront.schema import Order, OrderItem, OrderEvent, Product
from storefront.services.payments import PROVIDER_PAYPAL, PROVIDER_STRIPE, STATUS_PENDING
from storefront.utils import write_event

logger = logging.getLogger(__name__)


class OrderNotFoundError(LookupError):
    pass


class OrderPersistenceError(Exception):
    """Order items could not be stored; the order row has already been removed."""


def generate_order_number(customer: dict) -> str:
    name = f"{customer.get('firstName', '')} {customer.get('lastName', '')}".strip()
    return f"{name} - #77{random.randint(1000, 9999)}"


def order_fields(priced, customer: dict, provider: str, currency: str) -> dict:
    """
    Flattens a server-priced cart and the buyer details into order columns.

    Args:
        priced: The PricedCart recomputed by the cart validator.
        customer: Buyer details from the checkout submission.
        provider: Payment provider name.
        currency: ISO currency code for the charge.

    Returns:
        A dictionary of Order column values.
    """
    lines = list(priced.lines)
    totals = priced.totals
    oto_line = next((line for line in lines if line.is_oto), None)

    def count(product_type):
        return sum(1 for line in lines if line.type == product_type)

    return {
        "order_number": generate_order_number(customer),
        "subtotal_cents": to_cents(totals.subtotal),
        "discount_cents": to_cents(totals.discount),
        "coupon_discount_cents": to_cents(totals.coupon_discount),
        "coupon_code": priced.coupon.code if priced.coupon.valid else None,
        "total_cents": to_cents(totals.total),
        "currency": currency,
        "customer_email": customer["email"],
        "customer_first_name": customer["firstName"],
        "customer_last_name": customer["lastName"],
        "customer_phone": customer.get("phone"),
        "billing_street_address": customer.get("streetAddress"),
        "billing_city": customer.get("city"),
        "billing_state": customer.get("state"),
        "billing_zip_code": customer.get("zipCode"),
        "billing_country": customer.get("country"),
        "marketing_consent_email": bool(customer.get("newsletter")),
        "marketing_consent_sms": bool(customer.get("smsConsent")),
        "payment_provider": provider,
        "line_items_summary": ", ".join(line.title for line in lines),
        "total_courses_count": count("course"),
        "total_assessments_count": count("assessment"),
        "total_addons_count": count("addon"),
        "total_group_coaching_count": count("group_coaching"),
        "total_consultations_count": count("consultation"),
        "oto_offer_accepted": oto_line is not None,
        "oto_offer_product_sku": oto_line.sku if oto_line else None,
    }


class OrderRepository:
    """
    SQLAlchemy persistence for orders, their line items and audit events.

    Each write commits on its own so that a failed item insert can be
    compensated by deleting an order row that is already durable.
    """

    def __init__(self, db):
        self.db = db

    def insert_order(self, fields: dict) -> str:
        now = datetime.now(timezone.utc)
        order = Order(
            order_id=str(uuid.uuid4()),
            status=STATUS_PENDING,
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.db.add(order)
        write_event(
            self.db,
            order_id=order.order_id,
            actor="customer",
            event_type="created",
            content=order.order_number,
            metadata={"total_cents": order.total_cents, "provider": order.payment_provider},
        )
        self.db.commit()
        logger.info(f"Order created {order.order_id} ({order.order_number})")
        return order.order_id

    def insert_order_items(self, order_id: str, lines) -> None:
        lines = list(lines)
        product_ids = dict(
            self.db.query(Product.sku, Product.product_id)
            .filter(Product.sku.in_([line.sku for line in lines]))
            .all()
        )
        for line in lines:
            self.db.add(OrderItem(
                item_id=str(uuid.uuid4()),
                order_id=order_id,
                product_id=product_ids.get(line.sku),
                sku=line.sku,
                title=line.title,
                price_cents=to_cents(line.msrp),
                discount_cents=to_cents(line.discount),
                net_cents=to_cents(line.net),
                is_gift=line.is_gift,
                is_oto=line.is_oto,
            ))
        self.db.commit()
        logger.info(f"Order items created for {order_id}: {len(lines)}")

    def update_order_status(self, order_id: str, status: str, fees_cents: Optional[int] = None, actor: str = "system") -> Order:
        order = self.get_order(order_id)
        previous = order.status
        order.status = status
        if fees_cents is not None:
            order.payment_fees_cents = fees_cents
        order.updated_at = datetime.now(timezone.utc)
        if previous != status:
            write_event(
                self.db,
                order_id=order_id,
                actor=actor,
                event_type="status_changed",
                content=status,
                metadata={"from": previous, "to": status, "fees_cents": fees_cents},
            )
        self.db.commit()
        return order

    def delete_order(self, order_id: str) -> None:
        """Compensating action for a checkout that failed after the order row was written."""
        self.db.query(OrderItem).filter_by(order_id=order_id).delete()
        self.db.query(OrderEvent).filter_by(order_id=order_id).delete()
        self.db.query(Order).filter_by(order_id=order_id).delete()
        self.db.commit()
        logger.warning(f"Order {order_id} deleted")

    def attach_provider_reference(self, order_id: str, provider: str, reference: str) -> None:
        order = self.get_order(order_id)
        if provider == PROVIDER_STRIPE:
            order.stripe_payment_intent_id = reference
        elif provider == PROVIDER_PAYPAL:
            order.paypal_order_id = reference
        order.updated_at = datetime.now(timezone.utc)
        write_event(
            self.db,
            order_id=order_id,
            actor=provider,
            event_type="charge_created",
            content=reference,
        )
        self.db.commit()

    def record_event(self, order_id: str, actor: str, event_type: str, content: str = "", metadata=None) -> None:
        write_event(self.db, order_id=order_id, actor=actor, event_type=event_type, content=content, metadata=metadata)
        self.db.commit()

    def get_order(self, order_id: str) -> Order:
        order = self.db.query(Order).filter_by(order_id=order_id).first()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def find_by_provider_reference(self, provider: str, reference: str) -> Order:
        query = self.db.query(Order)
        if provider == PROVIDER_STRIPE:
            query = query.filter_by(stripe_payment_intent_id=reference)
        else:
            query = query.filter_by(paypal_order_id=reference)
        order = query.first()
        if order is None:
            raise OrderNotFoundError(reference)
        return order

    def provider_reference(self, order: Order) -> Optional[str]:
        if order.payment_provider == PROVIDER_STRIPE:
            return order.stripe_payment_intent_id
        return order.paypal_order_id

    def items_for(self, order_id: str) -> list:
        return self.db.query(OrderItem).filter_by(order_id=order_id).all()

    def events_for(self, order_id: str) -> list:
        return (
            self.db.query(OrderEvent)
            .filter_by(order_id=order_id)
            .order_by(OrderEvent.timestamp.asc())
            .all()
        )
