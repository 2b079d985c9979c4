from dataclasses import dataclass
from typing import Dict, Optional


# Coupon codes -> percentage discount (0-100), applied after bundle discounts
COUPONS: Dict[str, int] = {
    "LILAROSE10": 10,
}


@dataclass(frozen=True)
class CouponResult:
    valid: bool
    percent_off: float
    code: Optional[str] = None

    def to_dict(self) -> dict:
        return {"valid": self.valid, "percentOff": self.percent_off, "code": self.code}


NO_COUPON = CouponResult(valid=False, percent_off=0)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def validate_coupon(code: Optional[str], coupons: Dict[str, int] = COUPONS) -> CouponResult:
    """Case-insensitive lookup of a coupon code. Unknown or empty codes are invalid."""
    normalized = normalize_code(code)
    if not normalized or normalized not in coupons:
        return NO_COUPON
    return CouponResult(valid=True, percent_off=coupons[normalized], code=normalized)
