"""
Catalog types — products, cart lines and the checkout snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from storefront._types import Money, ZERO, money


@dataclass(frozen=True, slots=True)
class PromotionRule:
    """Quantity tier: buy at least min_quantity, pay price_per_unit each."""

    min_quantity: int
    price_per_unit: Money


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    price: Money
    in_stock: bool = True
    is_active: bool = True
    promotion_rules: tuple[PromotionRule, ...] = ()


@dataclass(frozen=True, slots=True)
class CartItem:
    product_id: str
    quantity: int


class SnapshotSource(Enum):
    SERVER_CART = "server_cart"
    CLIENT_ITEMS = "client_items"


@dataclass(frozen=True, slots=True)
class CartSnapshotItem:
    """One line, with the unit price locked at intent creation."""

    product_id: str
    quantity: int
    price: Money
    name: str

    @property
    def line_total(self) -> Money:
        return money(self.price * self.quantity)


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    items: tuple[CartSnapshotItem, ...]
    source: SnapshotSource

    @property
    def subtotal(self) -> Money:
        return money(sum((item.line_total for item in self.items), ZERO))


__all__ = (
    "PromotionRule",
    "Product",
    "CartItem",
    "SnapshotSource",
    "CartSnapshotItem",
    "CartSnapshot",
)
