import math


def round2(amount: float) -> float:
    """
    Rounds a dollar amount to cents, halves rounding up.

    Matches the storefront's browser-side rounding (Math.round(n * 100) / 100)
    so both sides of checkout land on the same cent. Python's round() uses
    banker's rounding and must not be used for money here.
    """
    return math.floor(amount * 100 + 0.5) / 100


def to_cents(amount: float) -> int:
    return int(math.floor(amount * 100 + 0.5))


def within(a: float, b: float, tolerance: float) -> bool:
    # Small epsilon so a tolerance of 0.02 accepts an exact 2-cent drift
    return abs(a - b) <= tolerance + 1e-9
