"""
Registry — in-flight PayPal/Stripe payments, keyed by provider id.
"""

from storefront.registry._registry import (
    DEFAULT_TTL,
    PendingPayment,
    PendingPaymentRegistry,
)

__all__ = ("DEFAULT_TTL", "PendingPayment", "PendingPaymentRegistry")
