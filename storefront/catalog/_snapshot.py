"""
Snapshot builder — lock prices and availability at intent creation.

Products are re-fetched in parallel with combinators.traverse_par; the first
failure aborts the whole snapshot.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import combinators as C
from kungfu import Result, Ok, Error, LazyCoroResult

from storefront._errors import CheckoutError, Errors
from storefront._log import get_logger
from storefront.catalog._pricing import price_for
from storefront.catalog._store import CatalogStore
from storefront.catalog._types import (
    CartItem,
    CartSnapshot,
    CartSnapshotItem,
    Product,
    SnapshotSource,
)


log = get_logger(__name__)


def _catalog_failure(e: Exception) -> CheckoutError:
    log.error("catalog_unavailable", error=str(e))
    return Errors.storage()


def _check(item: CartItem, product: Product | None) -> Result[CartSnapshotItem, CheckoutError]:
    if product is None or not product.is_active:
        return Error(Errors.product_not_found(product.name if product else None))
    if not product.in_stock:
        return Error(Errors.out_of_stock(product.name))
    return Ok(
        CartSnapshotItem(
            product_id=product.id,
            quantity=item.quantity,
            price=price_for(product, item.quantity),
            name=product.name,
        )
    )


def _resolve(
    catalog: CatalogStore,
) -> Callable[[CartItem], LazyCoroResult[CartSnapshotItem, CheckoutError]]:
    def resolve(item: CartItem) -> LazyCoroResult[CartSnapshotItem, CheckoutError]:
        async def _run() -> Result[CartSnapshotItem, CheckoutError]:
            fetched = await C.catching_async(
                lambda: catalog.get_product(item.product_id),
                on_error=_catalog_failure,
            )()
            match fetched:
                case Ok(product):
                    return _check(item, product)
                case Error(e):
                    return Error(e)

        return LazyCoroResult(_run)

    return resolve


async def build_snapshot(
    catalog: CatalogStore,
    user_id: str,
    client_items: Sequence[CartItem] | None = None,
) -> Result[CartSnapshot, CheckoutError]:
    """
    Snapshot the client's items, or the persisted cart when none are given.

    No side effects: the cart is cleared by the caller after the order exists.
    """
    if client_items:
        if any(item.quantity <= 0 for item in client_items):
            return Error(Errors.invalid_quantity())
        items = list(client_items)
        source = SnapshotSource.CLIENT_ITEMS
    else:
        loaded = await C.catching_async(
            lambda: catalog.get_cart_items(user_id),
            on_error=_catalog_failure,
        )()
        match loaded:
            case Ok(cart):
                items = cart
            case Error(e):
                return Error(e)
        if not items:
            return Error(Errors.empty_cart())
        if any(item.quantity <= 0 for item in items):
            return Error(Errors.invalid_quantity())
        source = SnapshotSource.SERVER_CART

    result = await C.traverse_par(items, _resolve(catalog))()

    match result:
        case Ok(lines):
            return Ok(CartSnapshot(items=tuple(lines), source=source))
        case Error(e):
            return Error(e)


async def revalidate_snapshot(
    catalog: CatalogStore,
    items: Sequence[CartSnapshotItem],
) -> Result[None, CheckoutError]:
    """Every product still exists and is in stock. Prices are not re-read."""
    lines = [CartItem(item.product_id, item.quantity) for item in items]
    result = await C.traverse_par(lines, _resolve(catalog))()

    match result:
        case Ok(_):
            return Ok(None)
        case Error(e):
            return Error(e)


__all__ = ("build_snapshot", "revalidate_snapshot")
