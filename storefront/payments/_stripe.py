"""
Stripe — PaymentIntents through the official SDK.

The adapter talks to a StripeGateway so tests can swap the SDK for a fake.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

import combinators as C
import stripe
from kungfu import Result, Ok, Error

from storefront._errors import CheckoutError, Errors
from storefront._log import get_logger
from storefront._types import to_cents
from storefront.accounts import User
from storefront.ledger import PaymentMethod, ProviderCorrelation
from storefront.payments._settings import StripeSettings
from storefront.payments._types import (
    CheckoutRequest,
    Provider,
    ProviderConfirmation,
    ProviderIntent,
    Quote,
)


log = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    id: str
    status: str
    amount: int
    client_secret: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


class StripeGateway(Protocol):
    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Mapping[str, str],
    ) -> PaymentIntent: ...

    async def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent: ...


class StripeSDKGateway:
    def __init__(self, secret_key: str, max_network_retries: int = 2) -> None:
        self._client = stripe.StripeClient(
            secret_key,
            http_client=stripe.HTTPXClient(),
            max_network_retries=max_network_retries,
        )

    @classmethod
    def from_settings(cls, settings: StripeSettings) -> StripeSDKGateway:
        return cls(settings.secret_key)

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Mapping[str, str],
    ) -> PaymentIntent:
        intent = await self._client.v1.payment_intents.create_async(
            params={
                "amount": amount,
                "currency": currency,
                "automatic_payment_methods": {"enabled": True},
                "metadata": dict(metadata),
            }
        )
        return _intent(intent)

    async def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        return _intent(await self._client.v1.payment_intents.retrieve_async(intent_id))


def _intent(intent: stripe.PaymentIntent) -> PaymentIntent:
    return PaymentIntent(
        id=intent.id,
        status=intent.status,
        amount=intent.amount,
        client_secret=intent.client_secret,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Adapter
# ═══════════════════════════════════════════════════════════════════════════════


def _rejected(action: str, ref: str | None = None):
    def on_error(e: Exception) -> CheckoutError:
        log.warning("stripe_call_failed", action=action, provider_ref=ref, error=str(e))
        return Errors.provider_rejected(Provider.STRIPE.label)

    return on_error


def _confirmation(intent: PaymentIntent) -> ProviderConfirmation:
    return ProviderConfirmation(
        confirmation_id=intent.id,
        metadata={"stripePaymentIntentId": intent.id},
    )


class StripeAdapter:
    method = PaymentMethod.STRIPE
    provider = Provider.STRIPE
    registers = True
    revalidates = False

    def precheck(self, request: CheckoutRequest) -> Result[None, CheckoutError]:
        return Ok(None)

    async def create(
        self,
        client: StripeGateway,
        quote: Quote,
        request: CheckoutRequest,
        user: User,
    ) -> Result[ProviderIntent, CheckoutError]:
        created = await C.catching_async(
            lambda: client.create_payment_intent(
                to_cents(quote.total), "eur", {"userId": user.id}
            ),
            on_error=_rejected("create"),
        )()
        match created:
            case Error(e):
                return Error(e)
            case Ok(intent):
                return Ok(ProviderIntent(
                    ref=intent.id,
                    correlation=ProviderCorrelation(ref=intent.id),
                    metadata={"stripePaymentIntentId": intent.id},
                    client={"paymentIntentId": intent.id, "clientSecret": intent.client_secret},
                ))

    async def confirm(self, client: StripeGateway, ref: str) -> Result[ProviderConfirmation, CheckoutError]:
        match await self._retrieve(client, ref):
            case Error(e):
                return Error(e)
            case Ok(intent) if not intent.succeeded:
                log.info("stripe_payment_not_completed", provider_ref=ref, status=intent.status)
                return Error(Errors.payment_not_completed())
            case Ok(intent):
                return Ok(_confirmation(intent))

    async def lookup(
        self, client: StripeGateway, ref: str
    ) -> Result[ProviderConfirmation | None, CheckoutError]:
        match await self._retrieve(client, ref):
            case Error(e):
                return Error(e)
            case Ok(intent):
                return Ok(_confirmation(intent) if intent.succeeded else None)

    async def _retrieve(self, client: StripeGateway, ref: str) -> Result[PaymentIntent, CheckoutError]:
        return await C.catching_async(
            lambda: client.retrieve_payment_intent(ref),
            on_error=_rejected("retrieve", ref),
        )()


__all__ = (
    "PaymentIntent",
    "StripeGateway",
    "StripeSDKGateway",
    "StripeAdapter",
)
