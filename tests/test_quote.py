"""Tests for the quote graph: snapshot, shipping and total."""

from decimal import Decimal

from storefront._errors import ErrorKind
from storefront.catalog import CartItem, MemoryCatalog
from storefront.payments import CheckoutRequest, QuoteContext, QuoteNode

from conftest import FILLER, SERUM, SOLD_OUT, expect_error, run, unwrap


def quote(request, cart=()):
    async def scenario():
        catalog = MemoryCatalog()
        for product in (FILLER, SERUM, SOLD_OUT):
            await catalog.put_product(product)
        for product_id, quantity in cart:
            await catalog.add_to_cart("u1", product_id, quantity)
        return await QuoteNode.execute(request, QuoteContext(catalog, "u1"))

    return run(scenario())


class TestQuote:
    def test_total_includes_shipping(self):
        result = quote(
            CheckoutRequest(
                items=(CartItem("filler", 1), CartItem("serum", 2)),
                country_code="DE",
                shipping_option_id="dhl-eu-air",
            )
        )

        q = unwrap(result)
        assert q.subtotal == Decimal("150.00")
        assert q.shipping.option_id == "dhl-eu-air"
        assert q.total == Decimal("175.00")
        assert [o.id for o in q.shipping_options] == ["dhl-eu-ground", "dhl-eu-air"]

    def test_portugal_ships_free(self):
        q = unwrap(
            quote(
                CheckoutRequest(country_code="PT", shipping_option_id="free-shipping"),
                cart=[("filler", 2)],
            )
        )

        assert q.total == Decimal("200.00")
        assert q.shipping.cost == Decimal("0")

    def test_no_options_means_no_shipping(self):
        q = unwrap(quote(CheckoutRequest(items=(CartItem("filler", 1),), country_code="US")))

        assert q.shipping is None
        assert q.shipping_options == ()
        assert q.total == Decimal("100.00")

    def test_missing_choice(self):
        expect_error(
            quote(CheckoutRequest(items=(CartItem("filler", 1),), country_code="DE")),
            ErrorKind.SHIPPING_OPTION_REQUIRED,
        )

    def test_snapshot_error_wins_over_shipping_error(self):
        expect_error(
            quote(CheckoutRequest(items=(CartItem("sold-out", 1),), country_code="DE")),
            ErrorKind.OUT_OF_STOCK,
        )

    def test_empty_cart(self):
        expect_error(quote(CheckoutRequest(country_code="PT")), ErrorKind.EMPTY_CART)
