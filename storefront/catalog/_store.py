"""
Catalog store — read API for products and the persisted cart.

The payment core does not own products or carts; it reads them and clears
a cart once the cart has been turned into an order. Methods raise on
infrastructure failure; callers lift them with combinators.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from storefront.catalog._types import CartItem, Product


class CatalogStore(Protocol):
    async def get_product(self, product_id: str) -> Product | None: ...

    async def get_cart_items(self, user_id: str) -> list[CartItem]: ...

    async def clear_cart(self, user_id: str) -> None: ...


class MemoryCatalog:
    """
    In-memory catalog and carts.

    Example:
        catalog = MemoryCatalog()
        await catalog.put_product(Product("p1", "Filler 1ml", Decimal("100")))
        await catalog.add_to_cart("u1", "p1", 2)
    """

    def __init__(self) -> None:
        self._products: dict[str, Product] = {}
        self._carts: dict[str, list[CartItem]] = {}
        self._lock = asyncio.Lock()

    async def put_product(self, product: Product) -> None:
        async with self._lock:
            self._products[product.id] = product

    async def add_to_cart(self, user_id: str, product_id: str, quantity: int) -> None:
        async with self._lock:
            lines = self._carts.setdefault(user_id, [])
            for i, line in enumerate(lines):
                if line.product_id == product_id:
                    lines[i] = CartItem(product_id, line.quantity + quantity)
                    return
            lines.append(CartItem(product_id, quantity))

    async def get_product(self, product_id: str) -> Product | None:
        async with self._lock:
            return self._products.get(product_id)

    async def get_cart_items(self, user_id: str) -> list[CartItem]:
        async with self._lock:
            return list(self._carts.get(user_id, ()))

    async def clear_cart(self, user_id: str) -> None:
        async with self._lock:
            self._carts.pop(user_id, None)


__all__ = ("CatalogStore", "MemoryCatalog")
