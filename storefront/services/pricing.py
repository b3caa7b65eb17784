# storefront/services/pricing.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(val, field: str = "") -> Decimal:
    """Parse a finite decimal ("12,50" accepted); NaN and Infinity are rejected."""
    try:
        d = Decimal(str(val).strip().replace(",", "."))
    except (InvalidOperation, AttributeError):
        raise InvalidOperation(f"Invalid number for {field or 'value'}")
    if not d.is_finite():
        raise InvalidOperation(f"Invalid number for {field or 'value'}")
    return d


def money(val) -> Decimal:
    return Decimal(val or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def effective_price(price, discount=None, discount_type=None) -> Decimal:
    """Price after a PERCENTAGE or FIXED_AMOUNT discount, never below zero."""
    base = Decimal(price or 0)
    d = Decimal(discount or 0)
    if d <= 0 or not discount_type:
        return money(base)
    if discount_type == "PERCENTAGE":
        result = base * (Decimal(1) - d / Decimal(100))
    elif discount_type == "FIXED_AMOUNT":
        result = base - d
    else:
        result = base
    return money(max(result, Decimal(0)))
