"""
Payments — provider adapters, settings and the checkout service.

    from storefront import payments

    service = payments.PaymentService(
        catalog=catalog,
        ledger=ledger,
        settings=payments.MemorySettingsStore(),
        registry=PendingPaymentRegistry(),
        notifier=Notifier(LogMailer(sender)),
    )
    await service.create_order(PaymentMethod.PAYPAL, request, user)
"""

from storefront.payments._types import (
    Provider,
    CheckoutRequest,
    Quote,
    ProviderIntent,
    ProviderConfirmation,
    CreatedOrder,
    ConfirmedOrder,
    WebhookOutcome,
)
from storefront.payments._settings import (
    MASK,
    PayPalSettings,
    StripeSettings,
    EupagoSettings,
    ProviderSettings,
    SETTINGS_TYPES,
    default_settings,
    settings_from_dict,
    fingerprint,
    masked,
    apply_update,
    public_view,
    SettingsStore,
    MemorySettingsStore,
    SettingsTable,
    SQLAlchemySettingsStore,
)
from storefront.payments._clients import ClientFactory, ClientCache
from storefront.payments._quote import (
    QuoteContext,
    ShippingChoice,
    RequestNode,
    SnapshotNode,
    ShippingNode,
    QuoteNode,
)
from storefront.payments._paypal import (
    PayPalError,
    PayPalOrder,
    PayPalClient,
    PayPalAdapter,
)
from storefront.payments._stripe import (
    PaymentIntent,
    StripeGateway,
    StripeSDKGateway,
    StripeAdapter,
)
from storefront.payments._eupago import (
    EupagoRefs,
    extract_refs,
    normalize_phone,
    logical_failure,
    EupagoResponse,
    EupagoClient,
    MBWayRequest,
    MBWayStrategy,
    MBWAY_V1_02,
    MBWAY_LEGACY,
    MBWAY_STRATEGIES,
    should_fall_back,
    request_mbway,
    EupagoWebhook,
    MultibancoAdapter,
    MBWayAdapter,
)
from storefront.payments._service import (
    PaymentAdapter,
    ConfirmingAdapter,
    ADAPTERS,
    CONFIRMING,
    default_clients,
    PaymentService,
)

__all__ = (
    # Types
    "Provider",
    "CheckoutRequest",
    "Quote",
    "ProviderIntent",
    "ProviderConfirmation",
    "CreatedOrder",
    "ConfirmedOrder",
    "WebhookOutcome",
    # Settings
    "MASK",
    "PayPalSettings",
    "StripeSettings",
    "EupagoSettings",
    "ProviderSettings",
    "SETTINGS_TYPES",
    "default_settings",
    "settings_from_dict",
    "fingerprint",
    "masked",
    "apply_update",
    "public_view",
    "SettingsStore",
    "MemorySettingsStore",
    "SettingsTable",
    "SQLAlchemySettingsStore",
    # Clients
    "ClientFactory",
    "ClientCache",
    # Quote graph
    "QuoteContext",
    "ShippingChoice",
    "RequestNode",
    "SnapshotNode",
    "ShippingNode",
    "QuoteNode",
    # PayPal
    "PayPalError",
    "PayPalOrder",
    "PayPalClient",
    "PayPalAdapter",
    # Stripe
    "PaymentIntent",
    "StripeGateway",
    "StripeSDKGateway",
    "StripeAdapter",
    # EuPago
    "EupagoRefs",
    "extract_refs",
    "normalize_phone",
    "logical_failure",
    "EupagoResponse",
    "EupagoClient",
    "MBWayRequest",
    "MBWayStrategy",
    "MBWAY_V1_02",
    "MBWAY_LEGACY",
    "MBWAY_STRATEGIES",
    "should_fall_back",
    "request_mbway",
    "EupagoWebhook",
    "MultibancoAdapter",
    "MBWayAdapter",
    # Service
    "PaymentAdapter",
    "ConfirmingAdapter",
    "ADAPTERS",
    "CONFIRMING",
    "default_clients",
    "PaymentService",
)
