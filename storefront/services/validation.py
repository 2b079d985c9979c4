import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

from storefront.pricing.catalog import CATALOG, Catalog
from storefront.pricing.coupons import validate_coupon
from storefront.pricing.engine import CartLine, PricedCart, Totals, quote_cart
from storefront.pricing.money import within
from storefront.pricing.tiers import TIERS, Tier

logger = logging.getLogger(__name__)

MSRP_TOLERANCE = 0.01
AMOUNT_TOLERANCE = 0.02


class ValidationErrorKind(Enum):
    UNKNOWN_PRODUCT = "UnknownProduct"
    DUPLICATE_PRODUCT = "DuplicateProduct"
    PRICE_TAMPERING = "PriceTampering"
    INVALID_DISCOUNT = "InvalidDiscount"
    INVALID_GIFT = "InvalidGift"
    TOO_MANY_GIFTS = "TooManyGifts"
    INVALID_COUPON = "InvalidCoupon"
    TOTALS_MISMATCH = "TotalsMismatch"


@dataclass(frozen=True)
class CartValidation:
    valid: bool
    error_kind: Optional[ValidationErrorKind] = None
    recomputed: Optional[PricedCart] = None

    @property
    def totals(self) -> Optional[Totals]:
        return self.recomputed.totals if self.recomputed else None


def _reject(kind: ValidationErrorKind, **details) -> CartValidation:
    logger.warning(f"Cart validation failed: {kind.value} - {json.dumps(details, default=str)}")
    return CartValidation(valid=False, error_kind=kind)


def validate_cart(
    client_lines: Sequence[CartLine],
    client_totals: Totals,
    coupon_code: Optional[str] = None,
    catalog: Catalog = CATALOG,
    tiers: Iterable[Tier] = TIERS,
) -> CartValidation:
    """
    Re-derives a submitted cart's pricing from the trusted catalog.

    Only the SKU identities, gift flags and OTO flags are taken from the
    client; every amount is recomputed and compared. The checks run in a fixed
    order and the first violation rejects the cart.

    Args:
        client_lines: Cart lines as submitted by the buyer.
        client_totals: Totals the buyer claims to owe.
        coupon_code: Coupon code submitted with the cart, if any.
        catalog: Server-side product catalog.
        tiers: Server-side discount ladder.

    Returns:
        A CartValidation. On success, `recomputed` holds the server's priced
        cart, whose amounts are the only ones allowed to reach persistence or
        a payment provider.
    """
    lines = list(client_lines)

    # 1. Every SKU must exist, and appear at most once
    seen = set()
    for line in lines:
        if line.sku not in catalog:
            return _reject(ValidationErrorKind.UNKNOWN_PRODUCT, sku=line.sku)
    for line in lines:
        if line.sku in seen:
            return _reject(ValidationErrorKind.DUPLICATE_PRODUCT, sku=line.sku)
        seen.add(line.sku)

    paid_lines = [line for line in lines if not line.is_gift]
    gift_lines = [line for line in lines if line.is_gift]

    # 2. List prices must match the catalog
    for line in paid_lines:
        expected = catalog.require(line.sku).msrp
        if not within(expected, line.msrp, MSRP_TOLERANCE):
            return _reject(ValidationErrorKind.PRICE_TAMPERING, sku=line.sku, expected=expected, provided=line.msrp)

    submitted_coupon = coupon_code if coupon_code else None
    coupon = validate_coupon(submitted_coupon) if submitted_coupon else None

    recomputed = quote_cart(
        selected_skus=[line.sku for line in paid_lines],
        gift_skus=[line.sku for line in gift_lines],
        oto_skus=[line.sku for line in paid_lines if line.is_oto],
        coupon_code=coupon.code if coupon and coupon.valid else None,
        catalog=catalog,
        tiers=tiers,
    )
    logger.info(
        f"Tier determined - qualifying_count={recomputed.qualifying_count} "
        f"tier={recomputed.tier.id if recomputed.tier else None}"
    )

    # 3. Per-line discounts must match the server's tier and OTO rules
    for line in paid_lines:
        expected = recomputed.line_for(line.sku)
        if not (within(expected.discount, line.discount, AMOUNT_TOLERANCE)
                and within(expected.net, line.net, AMOUNT_TOLERANCE)):
            return _reject(
                ValidationErrorKind.INVALID_DISCOUNT,
                sku=line.sku,
                expected_discount=expected.discount,
                provided_discount=line.discount,
                expected_net=expected.net,
                provided_net=line.net,
                is_oto=line.is_oto,
            )

    # 4. Gifts must be gift-eligible and fully discounted
    for line in gift_lines:
        product = catalog.require(line.sku)
        if not product.gift_eligible:
            return _reject(ValidationErrorKind.INVALID_GIFT, sku=line.sku, reason="not gift eligible")
        if not within(product.msrp, line.discount, MSRP_TOLERANCE) or line.net != 0:
            return _reject(
                ValidationErrorKind.INVALID_GIFT,
                sku=line.sku,
                expected_discount=product.msrp,
                provided_discount=line.discount,
                provided_net=line.net,
            )

    # 5. Gift count ceiling for the server-resolved tier
    if len(gift_lines) > recomputed.allowed_gifts:
        return _reject(ValidationErrorKind.TOO_MANY_GIFTS, allowed=recomputed.allowed_gifts, provided=len(gift_lines))

    # 6. A submitted coupon must be real
    if submitted_coupon and not coupon.valid:
        return _reject(ValidationErrorKind.INVALID_COUPON, code=submitted_coupon)

    # 7. Totals must match the server's recomputation
    expected_totals = recomputed.totals
    for field_name in ("subtotal", "discount", "coupon_discount", "total"):
        expected = getattr(expected_totals, field_name)
        provided = getattr(client_totals, field_name)
        if not within(expected, provided, AMOUNT_TOLERANCE):
            return _reject(
                ValidationErrorKind.TOTALS_MISMATCH,
                field=field_name,
                calculated=expected_totals.to_dict(),
                provided=client_totals.to_dict(),
            )

    logger.info(f"Cart validation successful - {json.dumps(expected_totals.to_dict())}")
    return CartValidation(valid=True, recomputed=recomputed)
