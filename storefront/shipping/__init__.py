"""
Shipping — rules engine for checkout shipping options.

    from storefront import shipping

    options = shipping.compute_shipping_options("DE", None, subtotal)
    match shipping.select_shipping(options, request.shipping_option_id):
        case Ok(selection):
            ...
"""

from storefront.shipping._types import ShippingOption, ShippingSelection
from storefront.shipping._rules import (
    EU_COUNTRIES,
    FREE_SHIPPING_THRESHOLD,
    normalize_text,
    is_portugal_islands,
    is_portugal_mainland,
    is_eu_non_portugal,
    compute_shipping_options,
    find_option,
    select_shipping,
)

__all__ = (
    "ShippingOption",
    "ShippingSelection",
    "EU_COUNTRIES",
    "FREE_SHIPPING_THRESHOLD",
    "normalize_text",
    "is_portugal_islands",
    "is_portugal_mainland",
    "is_eu_non_portugal",
    "compute_shipping_options",
    "find_option",
    "select_shipping",
)
