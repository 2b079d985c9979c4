import logging
from typing import List, Optional

from storefront.pricing.catalog import CATALOG, Catalog
from storefront.pricing.coupons import NO_COUPON, CouponResult, validate_coupon
from storefront.pricing.engine import PricedCart, qualifying_count, quote_cart
from storefront.pricing.tiers import TIERS, allowed_gift_count, resolve_tier

logger = logging.getLogger(__name__)


class BundleBuilder:
    """
    Buyer-side cart state for the bundle builder.

    Holds SKU identities only. Every price shown to the buyer comes from
    `quote()`, which runs the same pricing pass the server uses to validate
    the checkout submission.
    """

    def __init__(self, catalog: Catalog = CATALOG, tiers=TIERS):
        self.catalog = catalog
        self.tiers = tuple(tiers)
        self.selected: List[str] = []
        self.gifts: List[str] = []
        self.otos: List[str] = []
        self.coupon: CouponResult = NO_COUPON

    @property
    def qualifying_count(self) -> int:
        return qualifying_count(self.selected, self.otos, self.catalog)

    @property
    def tier(self):
        return resolve_tier(self.qualifying_count, self.tiers)

    @property
    def allowed_gifts(self) -> int:
        count = self.qualifying_count
        return allowed_gift_count(count, resolve_tier(count, self.tiers))

    @property
    def remaining_gifts(self) -> int:
        return max(0, self.allowed_gifts - len(self.gifts))

    def _trim_gifts(self) -> None:
        allowed = self.allowed_gifts
        if len(self.gifts) > allowed:
            dropped = self.gifts[allowed:]
            self.gifts = self.gifts[:allowed]
            logger.info(f"Gift allowance dropped to {allowed}, removed {dropped}")

    def toggle_paid(self, sku: str) -> bool:
        """
        Adds or removes a paid SKU. Ignored while the SKU is held as a gift.

        Returns:
            True if the SKU is selected afterwards.

        Raises:
            UnknownSkuError: If the SKU is not in the catalog.
        """
        self.catalog.require(sku)
        if sku in self.gifts:
            return False
        if sku in self.selected:
            self.selected.remove(sku)
            if sku in self.otos:
                self.otos.remove(sku)
            self._trim_gifts()
            return False
        self.selected.append(sku)
        return True

    def toggle_gift(self, sku: str) -> bool:
        """
        Claims or releases a free gift.

        Only gift-eligible add-ons can be claimed, and only while the tier
        allowance has room. Claiming a SKU that is selected as a paid item
        moves it over to the gift list.

        Returns:
            True if the SKU is a gift afterwards.
        """
        product = self.catalog.require(sku)
        if sku in self.gifts:
            self.gifts.remove(sku)
            return False
        if not (product.gift_eligible and product.is_addon):
            return False
        if len(self.gifts) >= self.allowed_gifts:
            return False
        if sku in self.selected:
            self.selected.remove(sku)
        # a released gift returns as a regular paid line
        if sku in self.otos:
            self.otos.remove(sku)
        self.gifts.append(sku)
        return True

    def remove(self, sku: str) -> None:
        for items in (self.selected, self.gifts, self.otos):
            if sku in items:
                items.remove(sku)
        self._trim_gifts()

    def accept_offer(self, sku: str) -> bool:
        """
        Adds a one-time offer SKU as a paid line priced by its offer policy.

        Returns:
            False if the SKU is already in the cart.
        """
        self.catalog.require(sku)
        if sku in self.selected or sku in self.gifts:
            return False
        self.selected.append(sku)
        self.otos.append(sku)
        return True

    def apply_coupon(self, code: Optional[str]) -> CouponResult:
        result = validate_coupon(code)
        if result.valid:
            self.coupon = result
        return result

    def remove_coupon(self) -> None:
        self.coupon = NO_COUPON

    def quote(self) -> PricedCart:
        return quote_cart(
            self.selected,
            self.gifts,
            self.otos,
            coupon_code=self.coupon.code if self.coupon.valid else None,
            catalog=self.catalog,
            tiers=self.tiers,
        )

    def checkout_payload(self, customer: dict) -> dict:
        """
        Builds the checkout submission for the current cart.

        Args:
            customer: Buyer details (email, firstName, lastName, ...).

        Returns:
            A JSON-ready dict with cartLines, totals, customer and, when a
            coupon is applied, couponCode.
        """
        priced = self.quote()
        payload = {
            "cartLines": [line.to_dict() for line in priced.lines],
            "totals": priced.totals.to_dict(),
            "customer": dict(customer),
        }
        if self.coupon.valid:
            payload["couponCode"] = self.coupon.code
        return payload
