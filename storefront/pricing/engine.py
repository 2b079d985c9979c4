from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from storefront.pricing.catalog import CATALOG, Catalog, is_course_like
from storefront.pricing.coupons import NO_COUPON, CouponResult, validate_coupon
from storefront.pricing.money import round2
from storefront.pricing.rules import oto_discount
from storefront.pricing.tiers import SCOPE_COURSES_ONLY, SCOPE_ENTIRE_CART, TIERS, Tier, allowed_gift_count, resolve_tier


GIFT_SUFFIX = " (Gift)"


def _number(payload: dict, key: str, default: Optional[float] = None) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


@dataclass(frozen=True)
class CartLine:
    """A priced cart row. Always derived, never a source of truth."""

    sku: str
    title: str
    msrp: float
    type: str
    discount: float
    net: float
    is_gift: bool = False
    is_oto: bool = False

    @classmethod
    def from_payload(cls, payload: dict) -> "CartLine":
        """
        Parses one submitted cart line (camelCase wire keys).

        Raises:
            ValueError: If the line is not an object or a field has the wrong type.
        """
        if not isinstance(payload, dict):
            raise ValueError("cart line must be an object")
        sku = payload.get("sku")
        if not isinstance(sku, str) or not sku:
            raise ValueError("sku is required")
        return cls(
            sku=sku,
            title=str(payload.get("title") or ""),
            msrp=_number(payload, "msrp"),
            type=str(payload.get("type") or ""),
            discount=_number(payload, "discount", 0),
            net=_number(payload, "net", 0),
            is_gift=payload.get("isGift") is True,
            is_oto=payload.get("isOTO") is True,
        )

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "title": self.title,
            "msrp": self.msrp,
            "discount": self.discount,
            "net": self.net,
            "type": self.type,
            "isGift": self.is_gift,
            "isOTO": self.is_oto,
        }


@dataclass(frozen=True)
class Totals:
    subtotal: float
    discount: float
    coupon_discount: float
    total: float

    @classmethod
    def from_payload(cls, payload: dict) -> "Totals":
        if not isinstance(payload, dict):
            raise ValueError("totals must be an object")
        coupon_discount = payload.get("couponDiscount")
        return cls(
            subtotal=_number(payload, "subtotal"),
            discount=_number(payload, "discount", 0),
            coupon_discount=0.0 if coupon_discount is None else _number(payload, "couponDiscount"),
            total=_number(payload, "total"),
        )

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "couponDiscount": self.coupon_discount,
            "total": self.total,
        }


@dataclass(frozen=True)
class PricedCart:
    lines: tuple
    totals: Totals
    tier: Optional[Tier] = None
    coupon: CouponResult = NO_COUPON
    qualifying_count: int = 0
    allowed_gifts: int = 0

    @property
    def paid_lines(self) -> list:
        return [line for line in self.lines if not line.is_gift]

    @property
    def gift_lines(self) -> list:
        return [line for line in self.lines if line.is_gift]

    def line_for(self, sku: str, is_gift: bool = False) -> Optional[CartLine]:
        for line in self.lines:
            if line.sku == sku and line.is_gift == is_gift:
                return line
        return None

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self.lines],
            "totals": self.totals.to_dict(),
            "tier": self.tier.to_dict() if self.tier else None,
            "qualifyingCount": self.qualifying_count,
            "allowedGiftCount": self.allowed_gifts,
            "coupon": self.coupon.to_dict(),
        }


def qualifying_count(selected_skus: Iterable[str], oto_skus: Iterable[str] = (), catalog: Catalog = CATALOG) -> int:
    """
    Counts the paid items that move the cart up the tier ladder.

    Upsell (OTO) items never count, so accepting an offer mid-checkout cannot
    retroactively unlock a better bundle tier.
    """
    otos = set(oto_skus)
    count = 0
    for sku in selected_skus:
        if sku in otos:
            continue
        product = catalog.require(sku)
        if product.qualifies_for_tier:
            count += 1
    return count


def line_discount(product, tier: Optional[Tier], is_oto: bool) -> float:
    scope = tier.scope if tier else SCOPE_COURSES_ONLY
    percent_off = tier.percent_off if tier else 0

    eligible = scope == SCOPE_ENTIRE_CART or is_course_like(product.type)
    bundle = round2((percent_off / 100) * product.msrp) if eligible else 0.0
    offer = oto_discount(product.sku, product.msrp) if is_oto else 0.0

    # The more generous source wins; bundle and upsell discounts never stack
    return max(bundle, offer)


def compute_totals(paid_lines: Sequence[CartLine], coupon: CouponResult = NO_COUPON) -> Totals:
    """
    Aggregates paid lines into order totals.

    The coupon is taken off the post-bundle-discount amount, never the raw
    subtotal, and every intermediate value is rounded to cents.
    """
    subtotal = round2(sum(line.msrp for line in paid_lines))
    discount = round2(sum(line.discount for line in paid_lines))

    coupon_discount = 0.0
    if coupon.valid:
        after_bundle = round2(subtotal - discount)
        coupon_discount = round2((coupon.percent_off / 100) * after_bundle)

    total = round2(subtotal - discount - coupon_discount)
    return Totals(subtotal=subtotal, discount=discount, coupon_discount=coupon_discount, total=total)


def price_cart(
    selected_skus: Sequence[str],
    gift_skus: Sequence[str],
    oto_skus: Iterable[str],
    catalog: Catalog,
    tier: Optional[Tier],
    coupon: CouponResult = NO_COUPON,
) -> PricedCart:
    """
    Prices a cart from raw SKU identities.

    Args:
        selected_skus: Paid SKUs, in cart order.
        gift_skus: SKUs claimed as free gifts.
        oto_skus: Paid SKUs that were added through a one-time offer.
        catalog: The product catalog to take prices from.
        tier: Active bundle tier, or None.
        coupon: Result of coupon validation.

    Returns:
        A PricedCart with paid lines first, then gift lines, and aggregate totals.

    Raises:
        UnknownSkuError: If any SKU is missing from the catalog.
    """
    otos = set(oto_skus)
    lines = []

    for sku in selected_skus:
        product = catalog.require(sku)
        is_oto = sku in otos
        discount = line_discount(product, tier, is_oto)
        lines.append(CartLine(
            sku=product.sku,
            title=product.title,
            msrp=product.msrp,
            type=product.type,
            discount=discount,
            net=round2(product.msrp - discount),
            is_gift=False,
            is_oto=is_oto,
        ))

    paid_lines = list(lines)

    for sku in gift_skus:
        product = catalog.require(sku)
        lines.append(CartLine(
            sku=product.sku,
            title=f"{product.title}{GIFT_SUFFIX}",
            msrp=product.msrp,
            type=product.type,
            discount=product.msrp,
            net=0.0,
            is_gift=True,
        ))

    count = qualifying_count(selected_skus, otos, catalog)
    return PricedCart(
        lines=tuple(lines),
        totals=compute_totals(paid_lines, coupon),
        tier=tier,
        coupon=coupon,
        qualifying_count=count,
        allowed_gifts=allowed_gift_count(count, tier),
    )


def quote_cart(
    selected_skus: Sequence[str],
    gift_skus: Sequence[str] = (),
    oto_skus: Iterable[str] = (),
    coupon_code: Optional[str] = None,
    catalog: Catalog = CATALOG,
    tiers: Iterable[Tier] = TIERS,
) -> PricedCart:
    """
    Runs a full pricing pass: qualifying count, tier, coupon, then line pricing.

    This is the single entry point shared by the bundle builder and the
    server-side cart validator.
    """
    otos = set(oto_skus)
    tier = resolve_tier(qualifying_count(selected_skus, otos, catalog), tiers)
    coupon = validate_coupon(coupon_code) if coupon_code else NO_COUPON
    return price_cart(selected_skus, gift_skus, otos, catalog, tier, coupon)
