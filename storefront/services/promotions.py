# storefront/services/promotions.py
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa

from storefront.errors import ServiceError
from storefront.models import Promotion
from storefront.services.pricing import money


def find_by_code(code: str):
    code = (code or "").strip()
    if not code:
        return None
    return Promotion.query.filter(sa.func.upper(Promotion.code) == code.upper()).first()


def evaluate_promotion(code: str, order_total, now: datetime | None = None) -> dict:
    """
    Check a promotion code against an order total.

    Returns ``{"promotion", "discount", "freeShipping"}``; raises ServiceError
    with the reason when the code cannot be used.
    """
    promo = find_by_code(code)
    if promo is None:
        raise ServiceError("Invalid promotion code")

    now = now or datetime.utcnow()
    if not promo.is_active:
        raise ServiceError("This promotion is not active")
    if now < promo.start_date:
        raise ServiceError("This promotion has not started yet")
    if now > promo.end_date:
        raise ServiceError("This promotion has expired")
    if promo.max_uses is not None and (promo.current_uses or 0) >= promo.max_uses:
        raise ServiceError("This promotion has reached its usage limit")

    total = money(order_total)
    if promo.min_order_amount is not None and total < promo.min_order_amount:
        raise ServiceError(
            f"Minimum order amount for this promotion is {money(promo.min_order_amount)}",
            minOrderAmount=float(money(promo.min_order_amount)),
        )

    value = Decimal(promo.value or 0)
    if promo.type == "PERCENTAGE":
        discount = money(total * value / Decimal(100))
    elif promo.type == "FIXED_AMOUNT":
        discount = money(value)
    else:
        discount = Decimal("0.00")

    return {
        "promotion": promo,
        "discount": min(discount, total),
        "freeShipping": promo.type == "FREE_SHIPPING",
    }
