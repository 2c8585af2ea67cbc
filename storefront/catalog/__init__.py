"""
Catalog — products, carts and checkout snapshots.

    from storefront import catalog

    match await catalog.build_snapshot(store, user.id, request.items):
        case Ok(snapshot):
            snapshot.subtotal
"""

from storefront.catalog._types import (
    PromotionRule,
    Product,
    CartItem,
    SnapshotSource,
    CartSnapshotItem,
    CartSnapshot,
)
from storefront.catalog._pricing import unit_price, price_for
from storefront.catalog._store import CatalogStore, MemoryCatalog
from storefront.catalog._sqlalchemy import ProductTable, CartItemTable, SQLAlchemyCatalog
from storefront.catalog._snapshot import build_snapshot, revalidate_snapshot

__all__ = (
    # Types
    "PromotionRule",
    "Product",
    "CartItem",
    "SnapshotSource",
    "CartSnapshotItem",
    "CartSnapshot",
    # Pricing
    "unit_price",
    "price_for",
    # Stores
    "CatalogStore",
    "MemoryCatalog",
    "ProductTable",
    "CartItemTable",
    "SQLAlchemyCatalog",
    # Snapshot
    "build_snapshot",
    "revalidate_snapshot",
)
