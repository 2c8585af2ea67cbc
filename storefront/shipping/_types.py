"""
Shipping types.
"""

from __future__ import annotations

from dataclasses import dataclass

from storefront._types import Money, format_money


@dataclass(frozen=True, slots=True)
class ShippingOption:
    """Computed, never persisted."""

    id: str
    name: str
    description: str
    price: Money
    estimated_days: str
    sort_order: int

    @property
    def price_text(self) -> str:
        return format_money(self.price)


@dataclass(frozen=True, slots=True)
class ShippingSelection:
    """What the order row keeps: id, display name, cost."""

    option_id: str
    name: str
    cost: Money

    @classmethod
    def of(cls, option: ShippingOption) -> ShippingSelection:
        return cls(option_id=option.id, name=option.name, cost=option.price)


__all__ = ("ShippingOption", "ShippingSelection")
