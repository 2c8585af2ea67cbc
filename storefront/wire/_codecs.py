"""
Codecs — pydantic request/response models.

Requests turn into domain values with to_domain(); responses are built from
domain values with from_domain(). JSON uses camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront._errors import CheckoutError
from storefront._types import format_money
from storefront.catalog import CartItem
from storefront.ledger import Order, OrderItem
from storefront.payments import (
    CheckoutRequest,
    ConfirmedOrder,
    CreatedOrder,
    Provider,
    ProviderSettings,
    masked,
    public_view,
)
from storefront.shipping import ShippingOption


class Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class CartItemIn(Camel):
    product_id: str
    quantity: int

    def to_domain(self) -> CartItem:
        return CartItem(product_id=self.product_id, quantity=self.quantity)


class CheckoutIn(Camel):
    items: list[CartItemIn] = Field(default_factory=list)
    country_code: str | None = None
    region: str | None = None
    shipping_option_id: str | None = None
    shipping_address: str = ""
    notes: str = ""

    def to_domain(self) -> CheckoutRequest:
        return CheckoutRequest(
            items=tuple(item.to_domain() for item in self.items),
            country_code=self.country_code,
            region=self.region,
            shipping_option_id=self.shipping_option_id,
            shipping_address=self.shipping_address,
            notes=self.notes,
        )


class MBWayCheckoutIn(CheckoutIn):
    phone: str | None = None

    def to_domain(self) -> CheckoutRequest:
        request = super().to_domain()
        return CheckoutRequest(
            items=request.items,
            country_code=request.country_code,
            region=request.region,
            shipping_option_id=request.shipping_option_id,
            shipping_address=request.shipping_address,
            notes=request.notes,
            phone=self.phone,
        )


class StripeConfirmIn(Camel):
    payment_intent_id: str


class StatusIn(Camel):
    status: str


class PayPalSettingsIn(Camel):
    enabled: bool | None = None
    mode: str | None = None
    client_id: str | None = None
    client_secret: str | None = None


class StripeSettingsIn(Camel):
    enabled: bool | None = None
    mode: str | None = None
    publishable_key: str | None = None
    secret_key: str | None = None


class EupagoSettingsIn(Camel):
    enabled: bool | None = None
    mode: str | None = None
    api_key: str | None = None


class PaymentMethodsIn(Camel):
    paypal: PayPalSettingsIn | None = None
    stripe: StripeSettingsIn | None = None
    eupago: EupagoSettingsIn | None = None

    def to_domain(self) -> dict[Provider, dict[str, Any]]:
        """Only providers and fields the admin actually sent."""
        sections = {
            Provider.PAYPAL: self.paypal,
            Provider.STRIPE: self.stripe,
            Provider.EUPAGO: self.eupago,
        }
        return {
            provider: section.model_dump(exclude_unset=True, exclude_none=True)
            for provider, section in sections.items()
            if section is not None
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorOut(Camel):
    code: str
    message: str

    @classmethod
    def from_domain(cls, error: CheckoutError) -> ErrorOut:
        return cls(code=error.kind.value, message=error.message)


class ShippingOptionOut(Camel):
    id: str
    name: str
    description: str
    price: str
    estimated_days: str
    sort_order: int

    @classmethod
    def from_domain(cls, option: ShippingOption) -> ShippingOptionOut:
        return cls(
            id=option.id,
            name=option.name,
            description=option.description,
            price=option.price_text,
            estimated_days=option.estimated_days,
            sort_order=option.sort_order,
        )


class OrderItemOut(Camel):
    product_id: str
    name: str
    quantity: int
    price: str

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            price=format_money(item.price),
        )


class OrderOut(Camel):
    id: str
    user_id: str
    total: str
    status: str
    payment_method: str
    payment_status: str
    shipping_address: str
    notes: str
    shipping_option_id: str | None
    shipping_cost: str
    shipping_option_name: str | None
    payment_metadata: dict[str, Any]
    items: list[OrderItemOut]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            id=order.id,
            user_id=order.user_id,
            total=format_money(order.total),
            status=order.status.value,
            payment_method=order.payment_method.value,
            payment_status=order.payment_status.value,
            shipping_address=order.shipping_address,
            notes=order.notes,
            shipping_option_id=order.shipping_option_id,
            shipping_cost=format_money(order.shipping_cost),
            shipping_option_name=order.shipping_option_name,
            payment_metadata=dict(order.payment_metadata),
            items=[OrderItemOut.from_domain(item) for item in order.items],
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class PayPalOrderOut(Camel):
    id: str
    order_id: str
    total: str

    @classmethod
    def from_domain(cls, created: CreatedOrder) -> PayPalOrderOut:
        return cls(
            id=created.provider_ref,
            order_id=created.order.id,
            total=format_money(created.order.total),
        )


class StripeIntentOut(Camel):
    payment_intent_id: str
    client_secret: str | None
    order_id: str
    total: str

    @classmethod
    def from_domain(cls, created: CreatedOrder) -> StripeIntentOut:
        return cls(
            payment_intent_id=created.provider_ref,
            client_secret=created.client.get("clientSecret"),
            order_id=created.order.id,
            total=format_money(created.order.total),
        )


class MultibancoOut(Camel):
    success: bool = True
    order_id: str
    total: str
    entity: str | None
    reference: str | None
    identifier: str

    @classmethod
    def from_domain(cls, created: CreatedOrder) -> MultibancoOut:
        return cls(
            order_id=created.order.id,
            total=format_money(created.order.total),
            entity=created.client.get("entity"),
            reference=created.client.get("reference"),
            identifier=created.provider_ref,
        )


class MBWayOut(Camel):
    success: bool = True
    order_id: str
    total: str
    transaction_id: str | None
    identifier: str

    @classmethod
    def from_domain(cls, created: CreatedOrder) -> MBWayOut:
        return cls(
            order_id=created.order.id,
            total=format_money(created.order.total),
            transaction_id=created.client.get("transactionId"),
            identifier=created.provider_ref,
        )


class ConfirmedOut(Camel):
    success: bool = True
    order_id: str
    provider_ref: str
    confirmation_id: str | None
    already_confirmed: bool

    @classmethod
    def from_domain(cls, confirmed: ConfirmedOrder) -> ConfirmedOut:
        return cls(
            order_id=confirmed.order.id,
            provider_ref=confirmed.provider_ref,
            confirmation_id=confirmed.confirmation_id,
            already_confirmed=not confirmed.applied,
        )


class CancelledOut(Camel):
    cancelled: list[str]


class PaymentMethodsSetupOut(Camel):
    paypal: dict[str, Any]
    stripe: dict[str, Any]
    eupago: dict[str, Any]

    @classmethod
    def from_domain(cls, settings: dict[Provider, ProviderSettings]) -> PaymentMethodsSetupOut:
        return cls(**{
            provider.value: _camel_keys(public_view(provider, value))
            for provider, value in settings.items()
        })


class AdminPaymentMethodsOut(Camel):
    paypal: dict[str, Any]
    stripe: dict[str, Any]
    eupago: dict[str, Any]

    @classmethod
    def from_domain(
        cls,
        settings: dict[Provider, ProviderSettings],
        reveal: bool = False,
    ) -> AdminPaymentMethodsOut:
        return cls(**{
            provider.value: _camel_keys(masked(value, reveal))
            for provider, value in settings.items()
        })


def _camel_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {to_camel(key): value for key, value in data.items()}


__all__ = (
    "Camel",
    "CartItemIn",
    "CheckoutIn",
    "MBWayCheckoutIn",
    "StripeConfirmIn",
    "StatusIn",
    "PayPalSettingsIn",
    "StripeSettingsIn",
    "EupagoSettingsIn",
    "PaymentMethodsIn",
    "ErrorOut",
    "ShippingOptionOut",
    "OrderItemOut",
    "OrderOut",
    "PayPalOrderOut",
    "StripeIntentOut",
    "MultibancoOut",
    "MBWayOut",
    "ConfirmedOut",
    "CancelledOut",
    "PaymentMethodsSetupOut",
    "AdminPaymentMethodsOut",
)
