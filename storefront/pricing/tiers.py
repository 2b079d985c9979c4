from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


SCOPE_COURSES_ONLY = "courses_only"
SCOPE_ENTIRE_CART = "entire_cart"


@dataclass(frozen=True)
class Tier:
    """One rung of the bundle discount ladder."""

    id: int
    min_courses: int
    percent_off: float
    scope: str
    gift_count: int

    def __post_init__(self) -> None:
        if not 0 <= self.percent_off <= 100:
            raise ValueError(f"percent_off must be within 0-100: {self.percent_off}")
        if self.scope not in (SCOPE_COURSES_ONLY, SCOPE_ENTIRE_CART):
            raise ValueError(f"Unknown tier scope: {self.scope!r}")
        if self.gift_count < 0:
            raise ValueError("gift_count cannot be negative")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "minCourses": self.min_courses,
            "percentOff": self.percent_off,
            "scope": self.scope,
            "giftCount": self.gift_count,
        }


TIERS: Tuple[Tier, ...] = (
    Tier(id=1, min_courses=1, percent_off=0, scope=SCOPE_ENTIRE_CART, gift_count=0),
    Tier(id=2, min_courses=2, percent_off=10, scope=SCOPE_ENTIRE_CART, gift_count=0),
    Tier(id=3, min_courses=3, percent_off=20, scope=SCOPE_ENTIRE_CART, gift_count=1),
)


def resolve_tier(qualifying_count: int, tiers: Iterable[Tier] = TIERS) -> Optional[Tier]:
    """
    Finds the highest tier the qualifying count has reached.

    Tiers ratchet rather than stack: reaching tier 3 replaces tiers 1 and 2.

    Args:
        qualifying_count: Number of paid, non-OTO, course-like items in the cart.
        tiers: The discount ladder, in any order.

    Returns:
        The matching Tier, or None when the count is below the lowest threshold.
    """
    current = None
    for candidate in sorted(tiers, key=lambda t: t.min_courses):
        if qualifying_count >= candidate.min_courses:
            current = candidate
    return current


def allowed_gift_count(qualifying_count: int, tier: Optional[Tier]) -> int:
    # An emptied cart never keeps a gift entitlement, whatever tier is passed in
    if qualifying_count == 0 or tier is None:
        return 0
    return tier.gift_count
