"""
Tiered pricing — the same rule the cart display uses.
"""

from collections.abc import Sequence

from storefront._types import Money, money
from storefront.catalog._types import Product, PromotionRule


def unit_price(
    quantity: int,
    base_price: Money,
    rules: Sequence[PromotionRule] = (),
) -> Money:
    """
    Highest tier whose min_quantity the quantity reaches, else the base price.

    Example:
        rules = (PromotionRule(5, Decimal("90")), PromotionRule(10, Decimal("80")))
        unit_price(7, Decimal("100"), rules)   # 90.00
        unit_price(12, Decimal("100"), rules)  # 80.00
        unit_price(2, Decimal("100"), rules)   # 100.00
    """
    for rule in sorted(rules, key=lambda r: r.min_quantity, reverse=True):
        if quantity >= rule.min_quantity:
            return money(rule.price_per_unit)
    return money(base_price)


def price_for(product: Product, quantity: int) -> Money:
    return unit_price(quantity, product.price, product.promotion_rules)


__all__ = ("unit_price", "price_for")
