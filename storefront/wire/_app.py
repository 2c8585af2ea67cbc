"""
HTTP surface — FastAPI routes over PaymentService.

The session layer in front of this app authenticates the caller and puts a
User on request.state.user. Every CheckoutError is answered with its status
and a {"code", "message"} body; nothing else about the failure leaves.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

import fastapi
from fastapi import Depends, Query, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from kungfu import Result, Ok, Error

from storefront._errors import CheckoutError, ErrorKind, Errors
from storefront._log import get_logger
from storefront.accounts import User
from storefront.ledger import PaymentMethod
from storefront.payments import CONFIRMING, PaymentService
from storefront.scheduler import Sweeper
from storefront.shipping import compute_shipping_options
from storefront.wire._codecs import (
    AdminPaymentMethodsOut,
    CancelledOut,
    CheckoutIn,
    ConfirmedOut,
    ErrorOut,
    MBWayCheckoutIn,
    MBWayOut,
    MultibancoOut,
    OrderOut,
    PaymentMethodsIn,
    PaymentMethodsSetupOut,
    PayPalOrderOut,
    ShippingOptionOut,
    StatusIn,
    StripeConfirmIn,
    StripeIntentOut,
)


log = get_logger(__name__)


STATUS: dict[ErrorKind, int] = {
    ErrorKind.PROVIDER_NOT_CONFIGURED: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.ACCOUNT_NOT_APPROVED: 403,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INVALID_QUANTITY: 400,
    ErrorKind.SHIPPING_OPTION_REQUIRED: 400,
    ErrorKind.INVALID_SHIPPING_OPTION: 400,
    ErrorKind.UNSUPPORTED_COUNTRY: 400,
    ErrorKind.INVALID_PHONE: 400,
    ErrorKind.INVALID_STATUS: 400,
    ErrorKind.EMPTY_CART: 400,
    ErrorKind.PRODUCT_NOT_FOUND: 400,
    ErrorKind.OUT_OF_STOCK: 400,
    ErrorKind.ORDER_NOT_FOUND: 404,
    ErrorKind.PROVIDER_REJECTED: 502,
    ErrorKind.PAYMENT_NOT_COMPLETED: 400,
    ErrorKind.PAYMENT_EXPIRED_OR_NOT_FOUND: 400,
    ErrorKind.STORAGE: 500,
}

REVEAL_VALUES = frozenset({"1", "true", "yes"})


# ═══════════════════════════════════════════════════════════════════════════════
# Dependencies
# ═══════════════════════════════════════════════════════════════════════════════


def current_user(request: Request) -> User | None:
    return getattr(request.state, "user", None)


def require_admin(user: Annotated[User | None, Depends(current_user)]) -> User:
    if user is None:
        raise Errors.unauthenticated()
    if not user.is_admin:
        raise CheckoutError(ErrorKind.FORBIDDEN, "Admin access required")
    return user


CurrentUser = Annotated[User | None, Depends(current_user)]
Admin = Annotated[User, Depends(require_admin)]


def unwrap[T](result: Result[T, CheckoutError]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise e
    raise AssertionError("unreachable")


def _subtotal(raw: str | None) -> Decimal:
    try:
        value = Decimal(raw or "0")
    except InvalidOperation:
        return Decimal("0")
    return value if value.is_finite() else Decimal("0")


async def _webhook_params(request: Request) -> dict[str, Any]:
    """Body fields first, then the query string on top."""
    params: dict[str, Any] = {}
    if request.method == "POST":
        try:
            if "json" in request.headers.get("content-type", ""):
                body = await request.json()
                if isinstance(body, dict):
                    params.update(body)
            else:
                form = await request.form()
                params.update({key: value for key, value in form.items() if isinstance(value, str)})
        except Exception as e:
            log.warning("eupago_webhook_body_unreadable", error=str(e))
    params.update(request.query_params)
    return params


# ═══════════════════════════════════════════════════════════════════════════════
# App
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(service: PaymentService, sweeper: Sweeper | None = None) -> fastapi.FastAPI:
    """
    Example:
        app = create_app(service, Sweeper(service))
        # uvicorn.run(app)
    """

    @asynccontextmanager
    async def lifespan(_: fastapi.FastAPI) -> AsyncIterator[None]:
        if sweeper is not None:
            sweeper.start()
        try:
            yield
        finally:
            if sweeper is not None:
                await sweeper.stop()
            await service.notifier.drain()
            await service.clients.aclose()

    app = fastapi.FastAPI(title="storefront", lifespan=lifespan)

    @app.exception_handler(CheckoutError)
    async def checkout_error(_: Request, error: CheckoutError) -> JSONResponse:
        return JSONResponse(
            status_code=STATUS.get(error.kind, 500),
            content=ErrorOut.from_domain(error).model_dump(by_alias=True),
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Public
    # ───────────────────────────────────────────────────────────────────────────

    @app.get("/api/shipping-options")
    async def shipping_options(
        country_code: Annotated[str | None, Query(alias="countryCode")] = None,
        region: str | None = None,
        subtotal: str | None = None,
    ) -> list[ShippingOptionOut]:
        options = compute_shipping_options(country_code, region, _subtotal(subtotal))
        return [ShippingOptionOut.from_domain(option) for option in options]

    @app.get("/api/payment-methods/setup")
    async def payment_methods_setup() -> PaymentMethodsSetupOut:
        return PaymentMethodsSetupOut.from_domain(unwrap(await service.provider_settings()))

    @app.api_route("/api/eupago/webhook", methods=["GET", "POST"])
    async def eupago_webhook(request: Request) -> PlainTextResponse:
        outcome = await service.webhook(await _webhook_params(request))
        log.info("eupago_webhook_handled", outcome=outcome.value)
        return PlainTextResponse("OK")

    # ───────────────────────────────────────────────────────────────────────────
    # Checkout
    # ───────────────────────────────────────────────────────────────────────────

    @app.post("/api/paypal/order")
    async def paypal_order(body: CheckoutIn, user: CurrentUser) -> PayPalOrderOut:
        created = await service.create_order(PaymentMethod.PAYPAL, body.to_domain(), user)
        return PayPalOrderOut.from_domain(unwrap(created))

    @app.post("/api/paypal/order/{order_id}/capture")
    async def paypal_capture(order_id: str, user: CurrentUser) -> ConfirmedOut:
        confirmed = await service.confirm_order(PaymentMethod.PAYPAL, order_id, user)
        return ConfirmedOut.from_domain(unwrap(confirmed))

    @app.post("/api/stripe/payment-intent")
    async def stripe_intent(body: CheckoutIn, user: CurrentUser) -> StripeIntentOut:
        created = await service.create_order(PaymentMethod.STRIPE, body.to_domain(), user)
        return StripeIntentOut.from_domain(unwrap(created))

    @app.post("/api/stripe/confirm")
    async def stripe_confirm(body: StripeConfirmIn, user: CurrentUser) -> ConfirmedOut:
        confirmed = await service.confirm_order(PaymentMethod.STRIPE, body.payment_intent_id, user)
        return ConfirmedOut.from_domain(unwrap(confirmed))

    @app.post("/api/eupago/multibanco")
    async def eupago_multibanco(body: CheckoutIn, user: CurrentUser) -> MultibancoOut:
        created = await service.create_order(PaymentMethod.EUPAGO_MULTIBANCO, body.to_domain(), user)
        return MultibancoOut.from_domain(unwrap(created))

    @app.post("/api/eupago/mbway")
    async def eupago_mbway(body: MBWayCheckoutIn, user: CurrentUser) -> MBWayOut:
        created = await service.create_order(PaymentMethod.EUPAGO_MBWAY, body.to_domain(), user)
        return MBWayOut.from_domain(unwrap(created))

    @app.get("/api/orders/{order_id}")
    async def get_order(order_id: str, user: CurrentUser) -> OrderOut:
        return OrderOut.from_domain(unwrap(await service.get_order(order_id, user)))

    # ───────────────────────────────────────────────────────────────────────────
    # Admin
    # ───────────────────────────────────────────────────────────────────────────

    @app.get("/api/admin/orders")
    async def admin_orders(_: Admin, user_id: Annotated[str | None, Query(alias="userId")] = None) -> list[OrderOut]:
        return [OrderOut.from_domain(order) for order in unwrap(await service.list_orders(user_id))]

    @app.patch("/api/admin/orders/{order_id}/status")
    async def admin_order_status(order_id: str, body: StatusIn, _: Admin) -> OrderOut:
        return OrderOut.from_domain(unwrap(await service.update_order_status(order_id, body.status)))

    @app.post("/api/admin/orders/cancel-abandoned")
    async def admin_cancel_abandoned(
        _: Admin,
        older_than_hours: Annotated[float | None, Query(alias="olderThanHours", gt=0)] = None,
    ) -> CancelledOut:
        older_than = timedelta(hours=older_than_hours) if older_than_hours else None
        return CancelledOut(cancelled=unwrap(await service.cancel_abandoned(older_than)))

    @app.post("/api/admin/payments/{method}/{ref}/reconcile")
    async def admin_reconcile(method: str, ref: str, _: Admin) -> ConfirmedOut:
        try:
            payment_method = PaymentMethod(method)
        except ValueError:
            raise fastapi.HTTPException(status_code=404, detail="Unknown payment method")
        if payment_method not in CONFIRMING:
            raise fastapi.HTTPException(status_code=400, detail=f"{method} is confirmed by webhook")
        return ConfirmedOut.from_domain(unwrap(await service.reconcile(payment_method, ref)))

    @app.get("/api/admin/payment-methods")
    async def admin_payment_methods(
        response: Response,
        _: Admin,
        reveal: str | None = None,
    ) -> AdminPaymentMethodsOut:
        response.headers["Cache-Control"] = "no-store"
        settings = unwrap(await service.provider_settings())
        return AdminPaymentMethodsOut.from_domain(settings, (reveal or "").lower() in REVEAL_VALUES)

    @app.post("/api/admin/payment-methods")
    async def admin_update_payment_methods(
        body: PaymentMethodsIn,
        response: Response,
        admin: Admin,
    ) -> AdminPaymentMethodsOut:
        response.headers["Cache-Control"] = "no-store"
        settings = unwrap(await service.update_provider_settings(body.to_domain(), admin))
        return AdminPaymentMethodsOut.from_domain(settings)

    return app


__all__ = (
    "STATUS",
    "current_user",
    "require_admin",
    "unwrap",
    "create_app",
)
