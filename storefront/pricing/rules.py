"""
One-time-offer (OTO) discount policies.

Every SKU accepted through an upsell gets a policy. Most take the flat
default; the exceptions live in OTO_POLICIES so a new special case is a data
change, not a new branch in the pricing engine.
"""
from dataclasses import dataclass
from typing import Dict, Union

from storefront.pricing.money import round2


@dataclass(frozen=True)
class Percentage:
    rate: float

    def discount_for(self, msrp: float) -> float:
        return round2(self.rate * msrp)


@dataclass(frozen=True)
class FixedAmount:
    amount: float

    def discount_for(self, msrp: float) -> float:
        return min(round2(self.amount), msrp)


DiscountPolicy = Union[Percentage, FixedAmount]

DEFAULT_OTO_POLICY: DiscountPolicy = Percentage(0.5)

OTO_POLICIES: Dict[str, DiscountPolicy] = {
    # $800 consultation offered at $397
    "breakthrough-call": FixedAmount(403),
}


def oto_policy_for(sku: str, policies: Dict[str, DiscountPolicy] = OTO_POLICIES) -> DiscountPolicy:
    return policies.get(sku, DEFAULT_OTO_POLICY)


def oto_discount(sku: str, msrp: float, policies: Dict[str, DiscountPolicy] = OTO_POLICIES) -> float:
    return oto_policy_for(sku, policies).discount_for(msrp)
