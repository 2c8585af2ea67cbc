"""
PaymentService — the checkout lifecycle for every provider.

    service = PaymentService(catalog=..., ledger=..., settings=..., ...)

    match await service.create_order(PaymentMethod.STRIPE, request, user):
        case Ok(created):
            created.client["clientSecret"]
        case Error(e):
            e.kind

Phase 1 (create) snapshots the cart, quotes shipping, asks the provider for
an intent and writes a pending order. Phase 2 (confirm, webhook, reconcile)
moves that order to confirmed/completed exactly once.
"""

from __future__ import annotations

import hmac
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Protocol

import combinators as C
from kungfu import Result, Ok, Error

from storefront._errors import CheckoutError, Errors, StoreError
from storefront._log import get_logger
from storefront._types import Clock, utcnow
from storefront.accounts import User, UserDirectory
from storefront.catalog import (
    CartSnapshotItem,
    CatalogStore,
    SnapshotSource,
    revalidate_snapshot,
)
from storefront.config import Config
from storefront.ledger import (
    Confirmation,
    Ledger,
    NewOrder,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from storefront.notify import Notifier
from storefront.payments._clients import ClientCache
from storefront.payments._eupago import EupagoClient, EupagoWebhook, MBWayAdapter, MultibancoAdapter
from storefront.payments._paypal import PayPalAdapter, PayPalClient
from storefront.payments._quote import QuoteContext, QuoteNode
from storefront.payments._settings import (
    EupagoSettings,
    ProviderSettings,
    SettingsStore,
    apply_update,
)
from storefront.payments._stripe import StripeAdapter, StripeSDKGateway
from storefront.payments._types import (
    CheckoutRequest,
    ConfirmedOrder,
    CreatedOrder,
    Provider,
    ProviderConfirmation,
    ProviderIntent,
    Quote,
    WebhookOutcome,
)
from storefront.registry import PendingPayment, PendingPaymentRegistry
from storefront.shipping import ShippingSelection


log = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Adapter protocols
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentAdapter(Protocol):
    method: PaymentMethod
    provider: Provider
    registers: bool
    revalidates: bool

    def precheck(self, request: CheckoutRequest) -> Result[None, CheckoutError]:
        """Request checks that need neither the cart nor the provider."""
        ...

    async def create(
        self, client: Any, quote: Quote, request: CheckoutRequest, user: User
    ) -> Result[ProviderIntent, CheckoutError]: ...


class ConfirmingAdapter(PaymentAdapter, Protocol):
    """Providers the client confirms through us (PayPal, Stripe)."""

    async def confirm(self, client: Any, ref: str) -> Result[ProviderConfirmation, CheckoutError]: ...

    async def lookup(self, client: Any, ref: str) -> Result[ProviderConfirmation | None, CheckoutError]: ...


ADAPTERS: Mapping[PaymentMethod, PaymentAdapter] = {
    PaymentMethod.PAYPAL: PayPalAdapter(),
    PaymentMethod.STRIPE: StripeAdapter(),
    PaymentMethod.EUPAGO_MULTIBANCO: MultibancoAdapter(),
    PaymentMethod.EUPAGO_MBWAY: MBWayAdapter(),
}

CONFIRMING: Mapping[PaymentMethod, ConfirmingAdapter] = {
    PaymentMethod.PAYPAL: PayPalAdapter(),
    PaymentMethod.STRIPE: StripeAdapter(),
}


def default_clients(config: Config) -> ClientCache:
    return ClientCache({
        Provider.PAYPAL: lambda s: PayPalClient.from_settings(s, config.http_timeout),
        Provider.STRIPE: StripeSDKGateway.from_settings,
        Provider.EUPAGO: lambda s: EupagoClient.from_settings(s, config.http_timeout),
    })


def _storage_failure(action: str, e: StoreError, **context: Any) -> CheckoutError:
    log.error("ledger_failed", action=action, error=e.message, **context)
    return Errors.storage()


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentService:
    def __init__(
        self,
        *,
        catalog: CatalogStore,
        ledger: Ledger,
        settings: SettingsStore,
        registry: PendingPaymentRegistry,
        notifier: Notifier,
        clients: ClientCache | None = None,
        users: UserDirectory | None = None,
        config: Config = Config(),
        clock: Clock = utcnow,
    ) -> None:
        self.catalog = catalog
        self.ledger = ledger
        self.settings = settings
        self.registry = registry
        self.notifier = notifier
        self.clients = clients or default_clients(config)
        self.users = users
        self.config = config
        self._clock = clock

    # ───────────────────────────────────────────────────────────────────────────
    # Phase 1
    # ───────────────────────────────────────────────────────────────────────────

    async def create_order(
        self,
        method: PaymentMethod,
        request: CheckoutRequest,
        user: User | None,
    ) -> Result[CreatedOrder, CheckoutError]:
        adapter = ADAPTERS[method]

        match await self._client(adapter.provider):
            case Error(e):
                return Error(e)
            case Ok(client):
                pass

        if user is None:
            return Error(Errors.unauthenticated())
        if not user.is_approved:
            return Error(Errors.account_not_approved())

        match adapter.precheck(request):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        match await QuoteNode.execute(request, QuoteContext(self.catalog, user.id)):
            case Error(e):
                log.info("quote_rejected", method=method.value, user_id=user.id, kind=e.kind.value)
                return Error(e)
            case Ok(quote):
                pass

        match await adapter.create(client, quote, request, user):
            case Error(e):
                return Error(e)
            case Ok(intent):
                pass

        return await self._record(adapter, intent, quote, request, user)

    async def _record(
        self,
        adapter: PaymentAdapter,
        intent: ProviderIntent,
        quote: Quote,
        request: CheckoutRequest,
        user: User,
    ) -> Result[CreatedOrder, CheckoutError]:
        now = self._clock()
        new = NewOrder(
            user_id=user.id,
            total=quote.total,
            payment_method=adapter.method,
            items=tuple(OrderItem.of(item) for item in quote.snapshot.items),
            created_at=now,
            shipping_address=request.shipping_address or user.clinic_address,
            notes=request.notes,
            shipping=quote.shipping,
            payment_metadata=intent.metadata,
            correlation=intent.correlation,
        )
        match await self.ledger.create_pending(new):
            case Error(e):
                return Error(_storage_failure("create_pending", e, provider_ref=intent.ref))
            case Ok(order):
                pass

        if quote.snapshot.source is SnapshotSource.SERVER_CART:
            cleared = await C.catching_async(
                lambda: self.catalog.clear_cart(user.id),
                on_error=lambda e: str(e),
            )()
            match cleared:
                case Error(reason):
                    log.warning("cart_clear_failed", order_id=order.id, user_id=user.id, error=reason)
                case Ok(_):
                    pass

        self.notifier.order_created(order, user)

        if adapter.registers:
            await self.registry.put(
                intent.ref,
                PendingPayment(
                    user_id=user.id,
                    order_id=order.id,
                    cart_snapshot=quote.snapshot.items,
                    total=quote.total,
                    created_at=now,
                    source=quote.snapshot.source,
                    shipping=quote.shipping,
                ),
            )

        log.info(
            "order_created",
            order_id=order.id,
            method=adapter.method.value,
            provider_ref=intent.ref,
            total=str(order.total),
        )
        return Ok(CreatedOrder(order=order, provider_ref=intent.ref, client=intent.client))

    # ───────────────────────────────────────────────────────────────────────────
    # Phase 2
    # ───────────────────────────────────────────────────────────────────────────

    async def confirm_order(
        self,
        method: PaymentMethod,
        ref: str,
        user: User | None,
    ) -> Result[ConfirmedOrder, CheckoutError]:
        """Client-driven confirmation: PayPal capture or Stripe intent check."""
        adapter = CONFIRMING.get(method)
        if adapter is None:
            raise ValueError(f"{method.value} is confirmed by webhook only")

        match await self._client(adapter.provider):
            case Error(e):
                return Error(e)
            case Ok(client):
                pass

        if user is None:
            return Error(Errors.unauthenticated())

        match await self._pending(adapter, ref):
            case Error(e):
                return Error(e)
            case Ok((pending, known)):
                pass

        if pending.user_id != user.id:
            log.warning("confirm_forbidden", method=method.value, provider_ref=ref, user_id=user.id)
            return Error(Errors.forbidden())

        if known is not None and known.is_paid:
            await self.registry.delete(ref)
            return Ok(ConfirmedOrder(known, ref, None, applied=False))

        if adapter.revalidates:
            match await revalidate_snapshot(self.catalog, pending.cart_snapshot):
                case Error(e):
                    await self._abort(pending.order_id, ref)
                    log.info("confirm_revalidation_failed", provider_ref=ref, kind=e.kind.value)
                    return Error(e)
                case Ok(_):
                    pass

        match await adapter.confirm(client, ref):
            case Error(e):
                return await self._confirm_failed(pending.order_id, ref, e)
            case Ok(proof):
                pass

        match await self._commit(pending.order_id, ref, proof, user):
            case Error(e):
                return Error(e)
            case Ok(confirmed):
                return Ok(confirmed)

    async def _pending(
        self, adapter: ConfirmingAdapter, ref: str
    ) -> Result[tuple[PendingPayment, Order | None], CheckoutError]:
        """
        Registry entry for ref, or one rebuilt from the order row.

        The row only stands in while the payment window is open, or once the
        order is already paid (a repeated confirm). An aborted attempt
        (failed payment) never comes back.
        """
        entry = await self.registry.get(ref)
        if entry is not None:
            return Ok((entry, None))

        match await self.ledger.find_by_ref(adapter.method, ref):
            case Error(e):
                return Error(_storage_failure("find_by_ref", e, provider_ref=ref))
            case Ok(None):
                return Error(Errors.payment_expired(adapter.provider.label))
            case Ok(order):
                pass

        if order.payment_status is PaymentStatus.FAILED:
            return Error(Errors.payment_expired(adapter.provider.label))
        if not order.is_paid and self._clock() - order.created_at > self.registry.ttl:
            return Error(Errors.payment_expired(adapter.provider.label))

        log.info("pending_payment_recovered", order_id=order.id, provider_ref=ref)
        return Ok((_rebuild(order), order))

    async def _commit(
        self,
        order_id: str,
        ref: str,
        proof: ProviderConfirmation,
        user: User | None,
    ) -> Result[ConfirmedOrder, CheckoutError]:
        match await self.ledger.confirm(order_id, proof.metadata, self._clock()):
            case Error(e):
                return Error(_storage_failure("confirm", e, order_id=order_id, provider_ref=ref))
            case Ok(None):
                await self.registry.delete(ref)
                return Error(Errors.order_not_found())
            case Ok(Confirmation(order, applied)):
                pass

        await self.registry.delete(ref)
        if applied:
            log.info("order_confirmed", order_id=order.id, provider_ref=ref)
            await self._notify_confirmed(order, user)
        else:
            log.info("order_already_confirmed", order_id=order.id, provider_ref=ref)
        return Ok(ConfirmedOrder(order, ref, proof.confirmation_id, applied))

    async def _abort(self, order_id: str, ref: str) -> None:
        """End the payment attempt: drop the entry and fail the order row."""
        await self.registry.delete(ref)
        match await self.ledger.fail_payment(order_id, self._clock()):
            case Error(e):
                _storage_failure("fail_payment", e, order_id=order_id, provider_ref=ref)
            case Ok(_):
                log.info("payment_aborted", order_id=order_id, provider_ref=ref)

    async def _confirm_failed(
        self, order_id: str, ref: str, error: CheckoutError
    ) -> Result[ConfirmedOrder, CheckoutError]:
        """
        Provider refused the confirm. A concurrent confirm may already have
        completed the order, in which case this one reports applied=False.
        """
        match await self.ledger.get(order_id):
            case Error(e):
                _storage_failure("get", e, order_id=order_id, provider_ref=ref)
                return Error(error)
            case Ok(order) if order is not None and order.is_paid:
                await self.registry.delete(ref)
                log.info("order_already_confirmed", order_id=order_id, provider_ref=ref)
                return Ok(ConfirmedOrder(order, ref, None, applied=False))
            case Ok(_):
                return Error(error)

    async def webhook(self, params: Mapping[str, Any]) -> WebhookOutcome:
        """
        EuPago webhook. Never raises: the caller always answers 200 "OK".
        """
        try:
            return await self._webhook(EupagoWebhook.from_params(params))
        except Exception as e:
            log.error("eupago_webhook_failed", error=str(e), exc_info=True)
            return WebhookOutcome.ERROR

    async def _webhook(self, hook: EupagoWebhook) -> WebhookOutcome:
        match await self.settings.get(Provider.EUPAGO):
            case Error(e):
                log.error("eupago_webhook_failed", error=e.message)
                return WebhookOutcome.ERROR
            case Ok(settings):
                pass

        api_key = settings.api_key if isinstance(settings, EupagoSettings) else ""
        if not api_key or not hook.api_key or not hmac.compare_digest(hook.api_key, api_key):
            log.warning("eupago_webhook_invalid_key")
            return WebhookOutcome.REJECTED

        found = await self.ledger.find_by_eupago(
            reference=hook.reference,
            entity=hook.entity,
            transaction_id=hook.transaction_id,
            identifier=hook.identifier,
        )
        match found:
            case Error(e):
                log.error("eupago_webhook_failed", error=e.message)
                return WebhookOutcome.ERROR
            case Ok(None):
                log.warning(
                    "eupago_webhook_order_not_found",
                    reference=hook.reference,
                    entity=hook.entity,
                    transaction_id=hook.transaction_id,
                    identifier=hook.identifier,
                )
                return WebhookOutcome.NOT_FOUND
            case Ok(order):
                pass

        if order.is_paid:
            return WebhookOutcome.DUPLICATE

        patch = {
            "eupago": {
                **(order.payment_metadata.get("eupago") or {}),
                "webhookV1": hook.as_metadata(),
            }
        }
        match await self.ledger.confirm(order.id, patch, self._clock()):
            case Error(e):
                log.error("eupago_webhook_failed", order_id=order.id, error=e.message)
                return WebhookOutcome.ERROR
            case Ok(None):
                return WebhookOutcome.NOT_FOUND
            case Ok(Confirmation(confirmed, applied=False)):
                return WebhookOutcome.DUPLICATE
            case Ok(Confirmation(confirmed, applied=True)):
                pass

        log.info("order_confirmed", order_id=confirmed.id, method=confirmed.payment_method.value)
        await self._notify_confirmed(confirmed, None)
        return WebhookOutcome.CONFIRMED

    async def reconcile(self, method: PaymentMethod, ref: str) -> Result[ConfirmedOrder, CheckoutError]:
        """
        Ask the provider about an order we may have lost track of.

        Confirms it when the provider has the money; PaymentNotCompleted
        otherwise.
        """
        adapter = CONFIRMING.get(method)
        if adapter is None:
            raise ValueError(f"{method.value} cannot be reconciled")

        match await self._client(adapter.provider):
            case Error(e):
                return Error(e)
            case Ok(client):
                pass

        match await self.ledger.find_by_ref(method, ref):
            case Error(e):
                return Error(_storage_failure("find_by_ref", e, provider_ref=ref))
            case Ok(None):
                return Error(Errors.order_not_found())
            case Ok(order) if order.is_paid:
                return Ok(ConfirmedOrder(order, ref, None, applied=False))
            case Ok(order):
                pass

        match await adapter.lookup(client, ref):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Errors.payment_not_completed())
            case Ok(proof):
                pass

        log.info("order_reconciled", order_id=order.id, provider_ref=ref)
        return await self._commit(order.id, ref, proof, None)

    # ───────────────────────────────────────────────────────────────────────────
    # Orders
    # ───────────────────────────────────────────────────────────────────────────

    async def get_order(self, order_id: str, user: User | None) -> Result[Order, CheckoutError]:
        if user is None:
            return Error(Errors.unauthenticated())
        match await self.ledger.get(order_id):
            case Error(e):
                return Error(_storage_failure("get", e, order_id=order_id))
            case Ok(None):
                return Error(Errors.order_not_found())
            case Ok(order) if order.user_id != user.id and not user.is_admin:
                return Error(Errors.order_not_found())
            case Ok(order):
                return Ok(order)

    async def list_orders(self, user_id: str | None = None) -> Result[list[Order], CheckoutError]:
        match await self.ledger.list_orders(user_id):
            case Error(e):
                return Error(_storage_failure("list_orders", e))
            case Ok(orders):
                return Ok(orders)

    async def update_order_status(self, order_id: str, status: str) -> Result[Order, CheckoutError]:
        """Admin transition. Any status but pending once the order is paid."""
        try:
            target = OrderStatus(status)
        except ValueError:
            return Error(Errors.invalid_status(status))

        match await self.ledger.get(order_id):
            case Error(e):
                return Error(_storage_failure("get", e, order_id=order_id))
            case Ok(None):
                return Error(Errors.order_not_found())
            case Ok(order) if order.is_paid and target is OrderStatus.PENDING:
                return Error(Errors.invalid_status(status))
            case Ok(_):
                pass

        match await self.ledger.update_status(order_id, target, self._clock()):
            case Error(e):
                return Error(_storage_failure("update_status", e, order_id=order_id))
            case Ok(None):
                return Error(Errors.order_not_found())
            case Ok(updated):
                log.info("order_status_updated", order_id=order_id, status=target.value)
                return Ok(updated)

    async def cancel_abandoned(self, older_than: timedelta | None = None) -> Result[list[str], CheckoutError]:
        """Cancel pending orders older than the cutoff. No-op when none is configured."""
        ttl = older_than or self.config.abandoned_order_ttl
        if ttl is None:
            return Ok([])

        now = self._clock()
        match await self.ledger.cancel_abandoned(now - ttl, now):
            case Error(e):
                return Error(_storage_failure("cancel_abandoned", e))
            case Ok(ids):
                if ids:
                    log.info("abandoned_orders_cancelled", count=len(ids), order_ids=ids)
                return Ok(ids)

    # ───────────────────────────────────────────────────────────────────────────
    # Provider settings
    # ───────────────────────────────────────────────────────────────────────────

    async def provider_settings(self) -> Result[dict[Provider, ProviderSettings], CheckoutError]:
        loaded: dict[Provider, ProviderSettings] = {}
        for provider in Provider:
            match await self.settings.get(provider):
                case Error(e):
                    return Error(_storage_failure("settings_get", e, provider=provider.value))
                case Ok(settings):
                    loaded[provider] = settings
        return Ok(loaded)

    async def update_provider_settings(
        self,
        updates: Mapping[Provider, Mapping[str, Any]],
        admin: User,
    ) -> Result[dict[Provider, ProviderSettings], CheckoutError]:
        """Save each submitted provider and drop its cached client."""
        for provider, incoming in updates.items():
            match await self.settings.get(provider):
                case Error(e):
                    return Error(_storage_failure("settings_get", e, provider=provider.value))
                case Ok(current):
                    pass

            match await self.settings.save(provider, apply_update(current, incoming), admin.id):
                case Error(e):
                    return Error(_storage_failure("settings_save", e, provider=provider.value))
                case Ok(_):
                    await self.clients.invalidate(provider)
                    log.info("provider_settings_updated", provider=provider.value, admin_id=admin.id)

        return await self.provider_settings()

    # ───────────────────────────────────────────────────────────────────────────
    # Helpers
    # ───────────────────────────────────────────────────────────────────────────

    async def _client(self, provider: Provider) -> Result[Any, CheckoutError]:
        match await self.settings.get(provider):
            case Error(e):
                return Error(_storage_failure("settings_get", e, provider=provider.value))
            case Ok(settings) if not settings.configured:
                return Error(Errors.provider_not_configured(provider.label))
            case Ok(settings):
                return Ok(await self.clients.get(provider, settings))

    async def _notify_confirmed(self, order: Order, user: User | None) -> None:
        if user is None and self.users is not None:
            user = await self.users.get_user(order.user_id)
        if user is None:
            log.warning("order_confirmed_email_skipped", order_id=order.id)
            return
        self.notifier.order_confirmed(order, user)


def _rebuild(order: Order) -> PendingPayment:
    shipping = (
        ShippingSelection(order.shipping_option_id, order.shipping_option_name or "", order.shipping_cost)
        if order.shipping_option_id
        else None
    )
    return PendingPayment(
        user_id=order.user_id,
        order_id=order.id,
        cart_snapshot=tuple(
            CartSnapshotItem(item.product_id, item.quantity, item.price, item.name)
            for item in order.items
        ),
        total=order.total,
        created_at=order.created_at,
        source=None,
        shipping=shipping,
    )


__all__ = (
    "PaymentAdapter",
    "ConfirmingAdapter",
    "ADAPTERS",
    "CONFIRMING",
    "default_clients",
    "PaymentService",
)
