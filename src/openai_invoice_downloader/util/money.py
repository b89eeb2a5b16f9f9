from __future__ import annotations

from decimal import Decimal


def cents_to_amount_str(cents: int) -> str:
    """
    Render integer minor units as a plain decimal string:
    - 2000 -> "20.00"
    - 5 -> "0.05"
    - -1234 -> "-12.34"
    """
    if cents is None:
        raise ValueError("cents_to_amount_str: cents is None")
    dec = (Decimal(int(cents)) / 100).quantize(Decimal("0.01"))
    return f"{dec:.2f}"
