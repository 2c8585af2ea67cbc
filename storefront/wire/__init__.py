"""
Wire — FastAPI app and pydantic codecs over the checkout core.

    from storefront import wire

    app = wire.create_app(service, Sweeper(service))
"""

from storefront.wire._codecs import (
    Camel,
    CartItemIn,
    CheckoutIn,
    MBWayCheckoutIn,
    StripeConfirmIn,
    StatusIn,
    PaymentMethodsIn,
    ErrorOut,
    ShippingOptionOut,
    OrderOut,
    PayPalOrderOut,
    StripeIntentOut,
    MultibancoOut,
    MBWayOut,
    ConfirmedOut,
    CancelledOut,
    PaymentMethodsSetupOut,
    AdminPaymentMethodsOut,
)
from storefront.wire._app import STATUS, current_user, require_admin, unwrap, create_app
from storefront.wire._bootstrap import Stack, build_stack

__all__ = (
    # Codecs
    "Camel",
    "CartItemIn",
    "CheckoutIn",
    "MBWayCheckoutIn",
    "StripeConfirmIn",
    "StatusIn",
    "PaymentMethodsIn",
    "ErrorOut",
    "ShippingOptionOut",
    "OrderOut",
    "PayPalOrderOut",
    "StripeIntentOut",
    "MultibancoOut",
    "MBWayOut",
    "ConfirmedOut",
    "CancelledOut",
    "PaymentMethodsSetupOut",
    "AdminPaymentMethodsOut",
    # App
    "STATUS",
    "current_user",
    "require_admin",
    "unwrap",
    "create_app",
    "Stack",
    "build_stack",
)
