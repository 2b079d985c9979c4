from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey, DateTime
from storefront.base import Base


class Product(Base):
    __tablename__ = 'products'
    product_id = Column(String, primary_key=True)
    sku = Column(String, nullable=False, unique=True)
    title = Column(String, nullable=False)
    type = Column(String, nullable=False)
    price_cents = Column(Integer, nullable=False)
    sort_order = Column(Integer)
    active = Column(Boolean, nullable=False, default=True)


class Order(Base):
    __tablename__ = 'orders'
    order_id = Column(String, primary_key=True)
    order_number = Column(String, nullable=False)
    status = Column(String, nullable=False, default='pending')

    subtotal_cents = Column(Integer, nullable=False)
    discount_cents = Column(Integer, nullable=False)
    coupon_discount_cents = Column(Integer, nullable=False, default=0)
    coupon_code = Column(String)
    total_cents = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default='usd')

    customer_email = Column(String, nullable=False)
    customer_first_name = Column(String, nullable=False)
    customer_last_name = Column(String, nullable=False)
    customer_phone = Column(String)
    billing_street_address = Column(String)
    billing_city = Column(String)
    billing_state = Column(String)
    billing_zip_code = Column(String)
    billing_country = Column(String)
    marketing_consent_email = Column(Boolean, default=False)
    marketing_consent_sms = Column(Boolean, default=False)

    payment_provider = Column(String, nullable=False)
    stripe_payment_intent_id = Column(String, index=True)
    paypal_order_id = Column(String, index=True)
    payment_fees_cents = Column(Integer)

    line_items_summary = Column(Text)
    total_courses_count = Column(Integer, default=0)
    total_assessments_count = Column(Integer, default=0)
    total_addons_count = Column(Integer, default=0)
    total_group_coaching_count = Column(Integer, default=0)
    total_consultations_count = Column(Integer, default=0)
    oto_offer_accepted = Column(Boolean, default=False)
    oto_offer_product_sku = Column(String)

    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class OrderItem(Base):
    __tablename__ = 'order_items'
    item_id = Column(String, primary_key=True)
    order_id = Column(String, ForeignKey('orders.order_id'), nullable=False)
    product_id = Column(String, ForeignKey('products.product_id'))
    sku = Column(String, nullable=False)
    title = Column(String, nullable=False)
    price_cents = Column(Integer, nullable=False)
    discount_cents = Column(Integer, nullable=False)
    net_cents = Column(Integer, nullable=False)
    is_gift = Column(Boolean, nullable=False, default=False)
    is_oto = Column(Boolean, nullable=False, default=False)


class OrderEvent(Base):
    __tablename__ = 'order_events'
    event_id = Column(String, primary_key=True)
    order_id = Column(String, ForeignKey('orders.order_id'), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    actor = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    content = Column(Text)
    metadata_json = Column(Text)

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'order_id': self.order_id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'actor': self.actor,
            'event_type': self.event_type,
            'content': self.content,
            'metadata': self.metadata_json,
        }
