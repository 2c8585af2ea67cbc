"""
Ledger types — orders, items and their lifecycle.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from storefront._types import Money, ZERO
from storefront.catalog import CartSnapshotItem
from storefront.shipping import ShippingSelection


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    PAYPAL = "paypal"
    STRIPE = "stripe"
    EUPAGO_MULTIBANCO = "eupago_multibanco"
    EUPAGO_MBWAY = "eupago_mbway"
    NONE = "none"


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderItem:
    product_id: str
    name: str
    quantity: int
    price: Money

    @classmethod
    def of(cls, item: CartSnapshotItem) -> OrderItem:
        return cls(item.product_id, item.name, item.quantity, item.price)


@dataclass(frozen=True, slots=True)
class ProviderCorrelation:
    """
    Durable provider ids on the order row.

    ref: PayPal order id, Stripe PaymentIntent id or EuPago identifier.
    reference/entity/transaction_id: EuPago only.
    """

    ref: str | None = None
    reference: str | None = None
    entity: str | None = None
    transaction_id: str | None = None


@dataclass(frozen=True, slots=True)
class NewOrder:
    """Input for create_pending. Items carry snapshotted prices."""

    user_id: str
    total: Money
    payment_method: PaymentMethod
    items: tuple[OrderItem, ...]
    created_at: datetime
    shipping_address: str = ""
    notes: str = ""
    shipping: ShippingSelection | None = None
    payment_metadata: Mapping[str, Any] = field(default_factory=dict)
    correlation: ProviderCorrelation = ProviderCorrelation()


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    user_id: str
    total: Money
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    items: tuple[OrderItem, ...]
    created_at: datetime
    updated_at: datetime
    shipping_address: str = ""
    notes: str = ""
    shipping_option_id: str | None = None
    shipping_cost: Money = ZERO
    shipping_option_name: str | None = None
    payment_metadata: Mapping[str, Any] = field(default_factory=dict)
    correlation: ProviderCorrelation = ProviderCorrelation()

    @property
    def is_paid(self) -> bool:
        return self.payment_status is PaymentStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class Confirmation:
    """applied=False: the order was already completed and nothing was written."""

    order: Order
    applied: bool


def merge_metadata(
    existing: Mapping[str, Any],
    patch: Mapping[str, Any],
) -> dict[str, Any]:
    """Shallow merge. Keys in patch win; everything else is preserved."""
    return {**existing, **patch}


__all__ = (
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    "OrderItem",
    "ProviderCorrelation",
    "NewOrder",
    "Order",
    "Confirmation",
    "merge_metadata",
)
