"""
storefront — checkout and payment core for a B2B storefront.

    from storefront import shipping   # Shipping rules
    from storefront import catalog    # Products, carts, snapshots
    from storefront import ledger     # Orders
    from storefront import payments   # PayPal, Stripe, EuPago
    from storefront import wire       # FastAPI app
"""

from storefront import shipping
from storefront import catalog
from storefront import ledger
from storefront import registry
from storefront import notify
from storefront import payments
from storefront._errors import ErrorKind, CheckoutError, Errors, StoreError
from storefront._types import Money, money
from storefront.config import Config

__version__ = "0.1.0"

__all__ = (
    "shipping",
    "catalog",
    "ledger",
    "registry",
    "notify",
    "payments",
    "ErrorKind",
    "CheckoutError",
    "Errors",
    "StoreError",
    "Money",
    "money",
    "Config",
)
