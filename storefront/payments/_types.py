"""
Payment types — requests, quotes and provider results.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from storefront._types import Money
from storefront.catalog import CartItem, CartSnapshot
from storefront.ledger import Order, ProviderCorrelation
from storefront.shipping import ShippingOption, ShippingSelection


class Provider(Enum):
    PAYPAL = "paypal"
    STRIPE = "stripe"
    EUPAGO = "eupago"

    @property
    def label(self) -> str:
        return {"paypal": "PayPal", "stripe": "Stripe", "eupago": "EuPago"}[self.value]


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """
    Everything the caller sends to start a payment.

    Empty items means "use my saved cart".
    """

    items: tuple[CartItem, ...] = ()
    country_code: str | None = None
    region: str | None = None
    shipping_option_id: str | None = None
    shipping_address: str = ""
    notes: str = ""
    phone: str | None = None


@dataclass(frozen=True, slots=True)
class Quote:
    snapshot: CartSnapshot
    shipping_options: tuple[ShippingOption, ...]
    shipping: ShippingSelection | None
    total: Money

    @property
    def subtotal(self) -> Money:
        return self.snapshot.subtotal


@dataclass(frozen=True, slots=True)
class ProviderIntent:
    """
    A provider's answer to a create call.

    metadata goes into the order's payment_metadata; client is handed back
    to the caller (client secret, Multibanco entity/reference, ...).
    """

    ref: str
    correlation: ProviderCorrelation
    metadata: Mapping[str, Any] = field(default_factory=dict)
    client: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderConfirmation:
    """Proof of payment from the provider, merged into the order metadata."""

    confirmation_id: str | None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CreatedOrder:
    order: Order
    provider_ref: str
    client: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ConfirmedOrder:
    order: Order
    provider_ref: str
    confirmation_id: str | None
    applied: bool


class WebhookOutcome(Enum):
    """What happened to a webhook. The HTTP answer is 200 either way."""

    CONFIRMED = "confirmed"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    ERROR = "error"


__all__ = (
    "Provider",
    "CheckoutRequest",
    "Quote",
    "ProviderIntent",
    "ProviderConfirmation",
    "CreatedOrder",
    "ConfirmedOrder",
    "WebhookOutcome",
)
