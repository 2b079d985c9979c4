import uuid
import json
from datetime import datetime, timezone
from storefront.base import Base
from storefront.db import engine
from storefront.pricing.catalog import CATALOG
from storefront.pricing.money import to_cents
from storefront.schema import OrderEvent, Product


def write_event(db, order_id, actor, event_type, content="", metadata=None):
    """
    Appends a new record to the order's audit trail.

    Args:
        db: SQLAlchemy database session.
        order_id: Identifier of the order the event belongs to.
        actor: Entity performing the action (e.g., 'customer', 'system', 'stripe').
        event_type: Category of action (e.g., 'created', 'status_changed').
        content: The primary text payload of the event.
        metadata: Optional dictionary of additional contextual attributes.

    Returns:
        The newly created OrderEvent instance.
    """
    event = OrderEvent(
        event_id=str(uuid.uuid4()),
        order_id=order_id,
        timestamp=datetime.now(timezone.utc),
        actor=actor,
        event_type=event_type,
        content=content,
        metadata_json=json.dumps(metadata) if metadata else None,
    )
    db.add(event)
    return event


def seed_products(db, catalog=CATALOG):
    """
    Inserts catalog products that are missing from the products table.

    Existing rows are left alone; the in-code catalog stays the pricing
    authority and the table only backs order_items.product_id.

    Returns:
        The number of rows inserted.
    """
    existing = {sku for (sku,) in db.query(Product.sku).all()}
    inserted = 0
    for product in catalog:
        if product.sku in existing:
            continue
        db.add(Product(
            product_id=str(uuid.uuid4()),
            sku=product.sku,
            title=product.title,
            type=product.type,
            price_cents=to_cents(product.msrp),
            sort_order=product.sort_order,
            active=True,
        ))
        inserted += 1
    return inserted


def clear_database():
    """
    Wipes all data from the storefront database and recreates the schema.

    The products table is reseeded from the catalog afterwards.
    """
    from storefront import schema  # Ensure all models are registered with Base
    from storefront.db import SessionLocal
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_products(db)
        db.commit()
    finally:
        db.close()
