"""
Quote — snapshot → shipping → total, as a graph.

    match await QuoteNode.execute(request, QuoteContext(catalog, user.id)):
        case Ok(quote):
            quote.total

Each node carries a Result; a failed step is handed through untouched so the
first error is the one the caller sees.
"""

from dataclasses import dataclass

from kungfu import Result, Ok, Error

from storefront import _graph as G
from storefront._errors import CheckoutError
from storefront._types import money
from storefront.catalog import CartSnapshot, CatalogStore, build_snapshot
from storefront.payments._types import CheckoutRequest, Quote
from storefront.shipping import (
    ShippingOption,
    ShippingSelection,
    compute_shipping_options,
    select_shipping,
)


@dataclass(frozen=True, slots=True)
class QuoteContext:
    """Dependencies for one quote. Injected by type, so keep it concrete."""

    catalog: CatalogStore
    user_id: str


@dataclass(frozen=True, slots=True)
class ShippingChoice:
    options: tuple[ShippingOption, ...]
    selection: ShippingSelection | None


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class RequestNode:
    """Entry point: wraps the checkout request."""

    def __init__(self, data: CheckoutRequest) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, request: CheckoutRequest) -> "RequestNode":
        return cls(request)


@G.node
class SnapshotNode:
    def __init__(self, result: Result[CartSnapshot, CheckoutError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, request: RequestNode, ctx: QuoteContext) -> "SnapshotNode":
        return cls(await build_snapshot(ctx.catalog, ctx.user_id, request.data.items))


@G.node
class ShippingNode:
    """Options for the destination, and the caller's validated choice."""

    def __init__(self, result: Result[ShippingChoice, CheckoutError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, request: RequestNode, snapshot: SnapshotNode) -> "ShippingNode":
        match snapshot.result:
            case Error(e):
                return cls(Error(e))
            case Ok(snap):
                pass

        options = tuple(
            compute_shipping_options(
                request.data.country_code,
                request.data.region,
                snap.subtotal,
            )
        )
        match select_shipping(options, request.data.shipping_option_id):
            case Ok(selection):
                return cls(Ok(ShippingChoice(options, selection)))
            case Error(e):
                return cls(Error(e))


@G.node
class QuoteNode:
    def __init__(self, result: Result[Quote, CheckoutError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, snapshot: SnapshotNode, shipping: ShippingNode) -> "QuoteNode":
        match snapshot.result, shipping.result:
            case Error(e), _:
                return cls(Error(e))
            case _, Error(e):
                return cls(Error(e))
            case Ok(snap), Ok(choice):
                cost = choice.selection.cost if choice.selection else 0
                return cls(Ok(Quote(
                    snapshot=snap,
                    shipping_options=choice.options,
                    shipping=choice.selection,
                    total=money(snap.subtotal + cost),
                )))
            case _:
                raise AssertionError("unreachable")

    @classmethod
    async def execute(
        cls,
        request: CheckoutRequest,
        ctx: QuoteContext,
    ) -> Result[Quote, CheckoutError]:
        node = await G.compose(cls, request, ctx)
        return node.result


__all__ = (
    "QuoteContext",
    "ShippingChoice",
    "RequestNode",
    "SnapshotNode",
    "ShippingNode",
    "QuoteNode",
)
