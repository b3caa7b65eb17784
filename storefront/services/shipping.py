# storefront/services/shipping.py
from decimal import Decimal

from flask import current_app

from storefront.models import ShippingRule
from storefront.services.pricing import money


def _rule_cost(rule: ShippingRule, order_total: Decimal) -> Decimal:
    if rule.type == "FREE":
        return Decimal("0.00")
    if rule.type == "PERCENTAGE":
        return money(order_total * Decimal(rule.cost or 0) / Decimal(100))
    return money(rule.cost)


def active_rules() -> list[ShippingRule]:
    return (
        ShippingRule.query.filter(ShippingRule.is_active.is_(True))
        .order_by(ShippingRule.priority.asc(), ShippingRule.id.asc())
        .all()
    )


def calculate_shipping(order_total) -> dict:
    """
    Shipping for an order total: the first active rule (lowest priority number)
    whose min/max window contains the total, else DEFAULT_SHIPPING_COST.
    """
    total = money(order_total)
    rules = active_rules()

    rule = next((r for r in rules if r.matches(total)), None)
    if rule is not None:
        cost = _rule_cost(rule, total)
    else:
        cost = money(current_app.config.get("DEFAULT_SHIPPING_COST", Decimal("25.00")))

    result = {"cost": cost, "rule": rule}

    free_minimums = [r.min_order_amount for r in rules if r.type == "FREE" and r.min_order_amount is not None]
    if free_minimums:
        threshold = money(min(free_minimums))
        if total < threshold:
            result["freeShippingThreshold"] = threshold
            result["amountToFreeShipping"] = money(threshold - total)
    return result
