"""Ledger tests, run against both the in-memory and the SQLAlchemy store."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from storefront._db import create_database
from storefront.ledger import (
    MemoryLedger,
    NewOrder,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProviderCorrelation,
    SQLAlchemyLedger,
)
from storefront.shipping import ShippingSelection

from conftest import run, unwrap


T0 = datetime(2024, 5, 1, 12, 0)


def new_order(
    user_id="u1",
    method=PaymentMethod.STRIPE,
    correlation=ProviderCorrelation(ref="pi_1"),
    created_at=T0,
    metadata=None,
):
    return NewOrder(
        user_id=user_id,
        total=Decimal("144.00"),
        payment_method=method,
        items=(
            OrderItem("filler", "Filler 1ml", 1, Decimal("100.00")),
            OrderItem("serum", "Serum", 1, Decimal("25.00")),
        ),
        created_at=created_at,
        shipping_address="Rua A 1, Lisboa",
        shipping=ShippingSelection("dhl-eu-ground", "DHL Ground", Decimal("19.00")),
        payment_metadata=metadata or {"stripePaymentIntentId": "pi_1"},
        correlation=correlation,
    )


@pytest.fixture(params=["memory", "sqlalchemy"])
def backend(request):
    """An async factory: await backend() -> (ledger, close)."""

    async def open_ledger():
        if request.param == "memory":
            async def close():
                pass

            return MemoryLedger(), close

        session_factory, engine = await create_database()
        return SQLAlchemyLedger(session_factory), engine.dispose

    return open_ledger


class TestCreate:
    def test_starts_pending_with_items_and_shipping(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                created = unwrap(await ledger.create_pending(new_order()))
                loaded = unwrap(await ledger.get(created.id))
            finally:
                await close()
            return created, loaded

        created, loaded = run(scenario())

        assert loaded == created
        assert loaded.status is OrderStatus.PENDING
        assert loaded.payment_status is PaymentStatus.PENDING
        assert [i.product_id for i in loaded.items] == ["filler", "serum"]
        assert loaded.items[1].price == Decimal("25.00")
        assert loaded.total == Decimal("144.00")
        assert loaded.shipping_option_id == "dhl-eu-ground"
        assert loaded.shipping_cost == Decimal("19.00")
        assert loaded.correlation.ref == "pi_1"

    def test_get_missing(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                return unwrap(await ledger.get("nope"))
            finally:
                await close()

        assert run(scenario()) is None


class TestConfirm:
    def test_first_confirm_applies_and_merges(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                order = unwrap(await ledger.create_pending(new_order()))
                first = unwrap(await ledger.confirm(order.id, {"paid": True}, T0))
                second = unwrap(await ledger.confirm(order.id, {"paid": "again"}, T0))
            finally:
                await close()
            return first, second

        first, second = run(scenario())

        assert first.applied
        assert first.order.status is OrderStatus.CONFIRMED
        assert first.order.payment_status is PaymentStatus.COMPLETED
        assert first.order.payment_metadata == {"stripePaymentIntentId": "pi_1", "paid": True}
        assert not second.applied
        assert second.order.payment_metadata["paid"] is True

    def test_concurrent_confirms_apply_once(self):
        async def scenario():
            ledger = MemoryLedger()
            order = unwrap(await ledger.create_pending(new_order()))
            results = await asyncio.gather(
                *(ledger.confirm(order.id, {"n": n}, T0) for n in range(5))
            )
            return [unwrap(r) for r in results]

        confirmations = run(scenario())

        assert sum(c.applied for c in confirmations) == 1

    def test_missing_order(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                return unwrap(await ledger.confirm("nope", {}, T0))
            finally:
                await close()

        assert run(scenario()) is None


class TestFailPayment:
    def test_unpaid_order_is_cancelled(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                created = unwrap(await ledger.create_pending(new_order()))
                failed = unwrap(await ledger.fail_payment(created.id, T0 + timedelta(minutes=5)))
                loaded = unwrap(await ledger.get(created.id))
            finally:
                await close()
            return failed, loaded

        failed, loaded = run(scenario())

        assert failed == loaded
        assert loaded.status is OrderStatus.CANCELLED
        assert loaded.payment_status is PaymentStatus.FAILED
        assert loaded.updated_at == T0 + timedelta(minutes=5)

    def test_paid_order_is_untouched(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                created = unwrap(await ledger.create_pending(new_order()))
                unwrap(await ledger.confirm(created.id, {}, T0))
                return unwrap(await ledger.fail_payment(created.id, T0))
            finally:
                await close()

        order = run(scenario())

        assert order.status is OrderStatus.CONFIRMED
        assert order.payment_status is PaymentStatus.COMPLETED

    def test_missing_order(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                return unwrap(await ledger.fail_payment("nope", T0))
            finally:
                await close()

        assert run(scenario()) is None


class TestLookup:
    def test_find_by_ref_is_scoped_to_method(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                order = unwrap(await ledger.create_pending(new_order()))
                hit = unwrap(await ledger.find_by_ref(PaymentMethod.STRIPE, "pi_1"))
                miss = unwrap(await ledger.find_by_ref(PaymentMethod.PAYPAL, "pi_1"))
            finally:
                await close()
            return order, hit, miss

        order, hit, miss = run(scenario())

        assert hit.id == order.id
        assert miss is None

    def test_find_by_eupago_fallback_chain(self, backend):
        correlation = ProviderCorrelation(
            ref="ident-1", reference="987654321", entity="12345", transaction_id="TX-1"
        )

        async def scenario():
            ledger, close = await backend()
            try:
                order = unwrap(
                    await ledger.create_pending(
                        new_order(method=PaymentMethod.EUPAGO_MULTIBANCO, correlation=correlation)
                    )
                )
                found = [
                    unwrap(await ledger.find_by_eupago(reference="987654321", entity="12345")),
                    unwrap(await ledger.find_by_eupago(reference="987654321")),
                    unwrap(await ledger.find_by_eupago(reference="000", transaction_id="TX-1")),
                    unwrap(await ledger.find_by_eupago(identifier="ident-1")),
                    unwrap(await ledger.find_by_eupago(reference="987654321", entity="99999")),
                ]
            finally:
                await close()
            return order, found

        order, found = run(scenario())

        assert [o.id if o else None for o in found] == [order.id] * 4 + [None]

    def test_find_by_eupago_ignores_other_methods(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                await ledger.create_pending(
                    new_order(correlation=ProviderCorrelation(ref="ident-1"))
                )
                return unwrap(await ledger.find_by_eupago(identifier="ident-1"))
            finally:
                await close()

        assert run(scenario()) is None


class TestAdmin:
    def test_list_newest_first_and_by_user(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                older = unwrap(await ledger.create_pending(new_order(created_at=T0)))
                newer = unwrap(
                    await ledger.create_pending(new_order(created_at=T0 + timedelta(hours=1)))
                )
                other = unwrap(
                    await ledger.create_pending(
                        new_order(user_id="u2", created_at=T0 + timedelta(hours=2))
                    )
                )
                everything = unwrap(await ledger.list_orders())
                mine = unwrap(await ledger.list_orders("u1"))
            finally:
                await close()
            return [o.id for o in everything], [o.id for o in mine], (older, newer, other)

        everything, mine, (older, newer, other) = run(scenario())

        assert everything == [other.id, newer.id, older.id]
        assert mine == [newer.id, older.id]

    def test_update_status(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                order = unwrap(await ledger.create_pending(new_order()))
                updated = unwrap(
                    await ledger.update_status(order.id, OrderStatus.SHIPPED, T0 + timedelta(days=1))
                )
                missing = unwrap(await ledger.update_status("nope", OrderStatus.SHIPPED, T0))
            finally:
                await close()
            return updated, missing

        updated, missing = run(scenario())

        assert updated.status is OrderStatus.SHIPPED
        assert updated.payment_status is PaymentStatus.PENDING
        assert updated.updated_at == T0 + timedelta(days=1)
        assert missing is None

    def test_cancel_abandoned_skips_recent_and_paid(self, backend):
        async def scenario():
            ledger, close = await backend()
            try:
                stale = unwrap(await ledger.create_pending(new_order(created_at=T0)))
                paid = unwrap(await ledger.create_pending(new_order(created_at=T0)))
                fresh = unwrap(
                    await ledger.create_pending(new_order(created_at=T0 + timedelta(days=2)))
                )
                await ledger.confirm(paid.id, {}, T0)
                cancelled = unwrap(
                    await ledger.cancel_abandoned(T0 + timedelta(days=1), T0 + timedelta(days=3))
                )
                stale_now = unwrap(await ledger.get(stale.id))
                fresh_now = unwrap(await ledger.get(fresh.id))
            finally:
                await close()
            return cancelled, stale, stale_now, fresh_now

        cancelled, stale, stale_now, fresh_now = run(scenario())

        assert cancelled == [stale.id]
        assert stale_now.status is OrderStatus.CANCELLED
        assert stale_now.payment_status is PaymentStatus.FAILED
        assert fresh_now.status is OrderStatus.PENDING
