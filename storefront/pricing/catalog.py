from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple


CATALOG_VERSION = "2025-09-01"

PRODUCT_TYPES = ("course", "group_coaching", "assessment", "addon", "consultation", "waitlist")

# Types that count as "courses" for tier qualification and courses_only discounts
COURSE_LIKE_TYPES = frozenset({"course", "group_coaching", "assessment", "consultation"})


class UnknownSkuError(KeyError):
    """Raised when a SKU is looked up that the catalog does not carry."""

    def __init__(self, sku: str):
        super().__init__(sku)
        self.sku = sku

    def __str__(self) -> str:
        return f"Unknown SKU: {self.sku!r}"


@dataclass(frozen=True)
class Product:
    """A single purchasable catalog entry. Immutable on both sides of checkout."""

    sku: str
    title: str
    type: str
    msrp: float
    counts_toward_threshold: bool
    gift_eligible: bool
    sort_order: int = 9999

    def __post_init__(self) -> None:
        if self.msrp < 0:
            raise ValueError(f"MSRP cannot be negative: {self.msrp}")
        if self.type not in PRODUCT_TYPES:
            raise ValueError(f"Unknown product type: {self.type!r}")

    @property
    def is_course_like(self) -> bool:
        return is_course_like(self.type)

    @property
    def is_addon(self) -> bool:
        return self.type == "addon"

    @property
    def qualifies_for_tier(self) -> bool:
        return self.is_course_like and self.counts_toward_threshold

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "title": self.title,
            "type": self.type,
            "msrp": self.msrp,
            "countsTowardThreshold": self.counts_toward_threshold,
            "giftEligible": self.gift_eligible,
            "sortOrder": self.sort_order,
        }

    def __repr__(self) -> str:
        return f"Product(sku={self.sku!r}, type={self.type!r}, msrp={self.msrp:.2f})"


def is_course_like(product_type: str) -> bool:
    return product_type in COURSE_LIKE_TYPES


class Catalog:
    """
    Read-only SKU index over a fixed set of products.

    Both the buyer-side bundle builder and the server-side cart validator
    price from an instance of this class; the server never trusts prices
    echoed back by the client.
    """

    def __init__(self, products: Iterable[Product], version: str = CATALOG_VERSION):
        self._products: Tuple[Product, ...] = tuple(products)
        self._by_sku: Dict[str, Product] = {}
        for product in self._products:
            if product.sku in self._by_sku:
                raise ValueError(f"Duplicate SKU in catalog: {product.sku}")
            self._by_sku[product.sku] = product
        self.version = version

    def get(self, sku: str) -> Optional[Product]:
        return self._by_sku.get(sku)

    def require(self, sku: str) -> Product:
        """
        Args:
            sku: Catalog identifier of the product.

        Returns:
            The matching Product.

        Raises:
            UnknownSkuError: If the catalog has no product with this SKU.
        """
        product = self._by_sku.get(sku)
        if product is None:
            raise UnknownSkuError(sku)
        return product

    def sorted(self) -> list:
        return sorted(self._products, key=lambda p: p.sort_order)

    def gift_pool(self) -> list:
        """Add-ons that may be picked as free gifts, in display order."""
        return [p for p in self.sorted() if p.gift_eligible and p.is_addon]

    def __contains__(self, sku: str) -> bool:
        return sku in self._by_sku

    def __iter__(self):
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)


PRODUCTS: Tuple[Product, ...] = (
    # Courses & programs
    Product("ASSESSMENT_PARENTING", "Attachment Assessment - Parenting", "assessment", 1197, True, False, 1),
    Product("WAITLIST_SECURE_PARENTING", "Secure Parenting: From Chaos to Calm", "waitlist", 0, False, False, 2),
    Product("COURSE_AVOIDANT_MAN", "How to Love an Avoidant Man", "course", 497, True, False, 10),
    Product("COURSE_ATTACHMENT_BOOTCAMP", "The Attachment Bootcamp", "course", 497, True, False, 20),
    Product("COURSE_SECURE_MARRIAGE", "How to Build a Secure Marriage", "course", 847, True, False, 30),
    Product("GROUP_COACHING_6_MONTH", "Group Coaching - 6 Month Membership", "group_coaching", 1427, True, False, 40),
    Product("ASSESSMENT_SINGLES", "Attachment Assessment - Singles Only", "assessment", 1995, True, False, 50),
    Product("ASSESSMENT_COUPLES", "Attachment Assessment - Couples", "assessment", 3990, True, False, 60),
    # Downloadables & add-ons (gift-eligible)
    Product("GUIDE_BOND_AVOIDANT", "How To Bond With An Avoidant Man", "addon", 49, False, True, 70),
    Product("MINI_TALK_AVOIDANT", "How To Talk To An Avoidant Man", "addon", 49, False, True, 80),
    Product("GUIDE_4_STYLES", "Four Attachment Style Guides", "addon", 196, False, True, 90),
    Product("CONVERSATION_CARDS", "30 Conversation Cards", "addon", 49, False, True, 100),
    # Upsell-only consultation
    Product("breakthrough-call", "50-min Private Consultation", "consultation", 800, True, False, 110),
)

CATALOG = Catalog(PRODUCTS)
