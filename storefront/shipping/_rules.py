"""
Shipping rules — pure, deterministic, no I/O.

Brazil and Portugal get a single free option. Everywhere else the rules are
evaluated independently, unioned and sorted by sort_order.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Sequence
from decimal import Decimal

from kungfu import Result, Ok, Error

from storefront._errors import CheckoutError, Errors
from storefront._types import ZERO, money
from storefront.shipping._types import ShippingOption, ShippingSelection


EU_COUNTRIES = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR",
    "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK",
    "SI", "ES", "SE",
})

FREE_SHIPPING_THRESHOLD = Decimal("500")

_ISLAND_MARKERS = ("madeira", "acores", "azores")


# ═══════════════════════════════════════════════════════════════════════════════
# Geography
# ═══════════════════════════════════════════════════════════════════════════════


def normalize_text(value: str) -> str:
    """Strip accents and lowercase: 'Açores' -> 'acores'."""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def is_portugal_islands(region: str | None) -> bool:
    if not region:
        return False
    normalized = normalize_text(region)
    return any(marker in normalized for marker in _ISLAND_MARKERS)


def is_portugal_mainland(country_code: str | None, region: str | None) -> bool:
    if (country_code or "").upper() != "PT":
        return False
    return not is_portugal_islands(region)


def is_eu_non_portugal(country_code: str | None) -> bool:
    code = (country_code or "").upper()
    return code != "PT" and code in EU_COUNTRIES


# ═══════════════════════════════════════════════════════════════════════════════
# Options
# ═══════════════════════════════════════════════════════════════════════════════


def _free(description: str) -> ShippingOption:
    return ShippingOption(
        id="free-shipping",
        name="Envio Grátis",
        description=description,
        price=ZERO,
        estimated_days="",
        sort_order=-10,
    )


PT_STANDARD = ShippingOption(
    id="pt-standard",
    name="Envio Standard",
    description="Apenas Portugal Continental",
    price=money("7.00"),
    estimated_days="Entrega 1 a 2 dias",
    sort_order=0,
)

PT_ISLANDS = ShippingOption(
    id="pt-islands",
    name="Envio Ilhas",
    description="Apenas Açores e Madeira",
    price=money("16.00"),
    estimated_days="Entrega 2-5 dias úteis",
    sort_order=1,
)

DHL_EU_GROUND = ShippingOption(
    id="dhl-eu-ground",
    name="DHL UE - Via Terrestre",
    description="Disponível apenas para países da União Europeia",
    price=money("19.00"),
    estimated_days="Entrega 3-5 dias úteis",
    sort_order=2,
)

DHL_EU_AIR = ShippingOption(
    id="dhl-eu-air",
    name="DHL UE - Via Aérea",
    description="Disponível apenas para países da União Europeia",
    price=money("25.00"),
    estimated_days="Entrega 1-2 dias úteis",
    sort_order=3,
)


def compute_shipping_options(
    country_code: str | None,
    region: str | None,
    subtotal: Decimal,
) -> list[ShippingOption]:
    """
    Options available for a destination and cart subtotal.

    Example:
        compute_shipping_options("DE", None, Decimal("600"))
        # [free-shipping, dhl-eu-ground, dhl-eu-air]

    An empty list means no selection is needed and shipping costs nothing.
    """
    cc = (country_code or "").upper()

    if cc == "BR":
        return [_free("Disponível para entregas no Brasil")]
    if cc == "PT":
        return [_free("Disponível para entregas em Portugal")]

    options: list[ShippingOption] = []

    if subtotal >= FREE_SHIPPING_THRESHOLD:
        options.append(_free("Disponível apenas para pedidos acima de €500"))

    # PT never gets here while the blanket rule above stands
    if is_portugal_mainland(cc, region):
        options.append(PT_STANDARD)
    if cc == "PT" and is_portugal_islands(region):
        options.append(PT_ISLANDS)

    if is_eu_non_portugal(cc):
        options.extend((DHL_EU_GROUND, DHL_EU_AIR))

    return sorted(options, key=lambda option: option.sort_order)


def find_option(
    options: Sequence[ShippingOption],
    option_id: str | None,
) -> ShippingOption | None:
    if not option_id:
        return None
    return next((option for option in options if option.id == option_id), None)


def select_shipping(
    options: Sequence[ShippingOption],
    option_id: str | None,
) -> Result[ShippingSelection | None, CheckoutError]:
    """
    Validate the caller's choice against the computed options.

    Ok(None) when there is nothing to choose from.
    """
    if options and not option_id:
        return Error(Errors.shipping_option_required())

    option = find_option(options, option_id)
    if option_id and option is None:
        return Error(Errors.invalid_shipping_option())

    return Ok(ShippingSelection.of(option) if option else None)


__all__ = (
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
