"""
Ledger — the order book. Single source of truth for payment state.

    from storefront import ledger

    match await store.confirm(order_id, {"stripePaymentIntentId": pi.id}, at=now):
        case Ok(ledger.Confirmation(order, applied=True)):
            notify(order)
        case Ok(ledger.Confirmation(applied=False)):
            pass  # already completed, nothing written
"""

from storefront.ledger._types import (
    OrderStatus,
    PaymentStatus,
    PaymentMethod,
    OrderItem,
    ProviderCorrelation,
    NewOrder,
    Order,
    Confirmation,
    merge_metadata,
)
from storefront.ledger._store import EUPAGO_METHODS, Ledger, MemoryLedger
from storefront.ledger._sqlalchemy import OrderTable, OrderItemTable, SQLAlchemyLedger

__all__ = (
    # Types
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    "OrderItem",
    "ProviderCorrelation",
    "NewOrder",
    "Order",
    "Confirmation",
    "merge_metadata",
    # Stores
    "EUPAGO_METHODS",
    "Ledger",
    "MemoryLedger",
    "OrderTable",
    "OrderItemTable",
    "SQLAlchemyLedger",
)
