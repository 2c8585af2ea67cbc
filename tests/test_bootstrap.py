"""SQLAlchemy catalog, user directory and the bootstrapped stack."""

from datetime import datetime
from decimal import Decimal

from storefront._db import create_database
from storefront.accounts import SQLAlchemyUserDirectory
from storefront.catalog import CartItem, SQLAlchemyCatalog, SnapshotSource, build_snapshot
from storefront.config import Config
from storefront.ledger import NewOrder, OrderItem, PaymentMethod, ProviderCorrelation
from storefront.notify import MemoryMailer
from storefront.payments import EupagoSettings, Provider, StripeSettings, WebhookOutcome
from storefront.wire import build_stack

from conftest import ADMIN, ANA, FILLER, PENDING, SERUM, run, unwrap


class TestSQLAlchemyCatalog:
    def test_products_and_cart(self):
        async def scenario():
            session_factory, engine = await create_database()
            catalog = SQLAlchemyCatalog(session_factory)
            try:
                await catalog.put_product(FILLER)
                await catalog.put_product(SERUM)
                await catalog.add_to_cart("u1", "serum", 3)
                await catalog.add_to_cart("u1", "serum", 2)
                await catalog.add_to_cart("u1", "filler", 1)
                product = await catalog.get_product("serum")
                snapshot = unwrap(await build_snapshot(catalog, "u1"))
                await catalog.clear_cart("u1")
                cart = await catalog.get_cart_items("u1")
            finally:
                await engine.dispose()
            return product, snapshot, cart

        product, snapshot, cart = run(scenario())

        assert product == SERUM
        assert snapshot.source is SnapshotSource.SERVER_CART
        assert [(i.product_id, i.quantity, i.price) for i in snapshot.items] == [
            ("serum", 5, Decimal("20.00")),
            ("filler", 1, Decimal("100.00")),
        ]
        assert cart == []

    def test_missing_product(self):
        async def scenario():
            session_factory, engine = await create_database()
            try:
                return await SQLAlchemyCatalog(session_factory).get_product("ghost")
            finally:
                await engine.dispose()

        assert run(scenario()) is None


class TestBuildStack:
    def test_wires_sqlalchemy_stores(self):
        async def scenario():
            stack = await build_stack(Config().with_pending_ttl(minutes=10))
            try:
                await stack.service.settings.save(
                    Provider.STRIPE, StripeSettings(True, "test", "pk", "sk"), "admin"
                )
                settings = unwrap(await stack.service.provider_settings())
                orders = unwrap(await stack.service.list_orders())
            finally:
                await stack.service.clients.aclose()
                await stack.engine.dispose()
            return stack, settings, orders

        stack, settings, orders = run(scenario())

        assert settings[Provider.STRIPE].configured
        assert not settings[Provider.PAYPAL].configured
        assert orders == []
        assert stack.service.registry.ttl.total_seconds() == 600
        assert not stack.sweeper.running

    def test_items_from_client(self):
        async def scenario():
            stack = await build_stack(Config())
            try:
                await stack.service.catalog.put_product(FILLER)
                return unwrap(
                    await build_snapshot(stack.service.catalog, "u1", [CartItem("filler", 2)])
                )
            finally:
                await stack.engine.dispose()

        assert run(scenario()).subtotal == Decimal("200.00")

    def test_webhook_confirmation_emails_user_from_table(self):
        mailer = MemoryMailer()

        async def scenario():
            stack = await build_stack(Config(), mailer=mailer)
            service = stack.service
            try:
                await service.users.put(ANA)
                await service.settings.save(
                    Provider.EUPAGO, EupagoSettings(True, "sandbox", "eupago-key"), "admin"
                )
                order = unwrap(
                    await service.ledger.create_pending(
                        NewOrder(
                            user_id=ANA.id,
                            total=Decimal("50.00"),
                            payment_method=PaymentMethod.EUPAGO_MULTIBANCO,
                            items=(OrderItem("serum", "Serum", 2, Decimal("25.00")),),
                            created_at=datetime(2024, 5, 1, 12, 0),
                            correlation=ProviderCorrelation(reference="987654321", entity="12345"),
                        )
                    )
                )
                outcome = await service.webhook(
                    {"chave_api": "eupago-key", "referencia": "987654321", "entidade": "12345"}
                )
                await service.notifier.drain()
            finally:
                await service.clients.aclose()
                await stack.engine.dispose()
            return order, outcome

        order, outcome = run(scenario())

        assert outcome is WebhookOutcome.CONFIRMED
        assert [(m.to, m.subject) for m in mailer.sent] == [
            (ANA.email, f"Pedido #{order.id} confirmado")
        ]


class TestSQLAlchemyUserDirectory:
    def test_put_and_get(self):
        async def scenario():
            session_factory, engine = await create_database()
            users = SQLAlchemyUserDirectory(session_factory)
            try:
                await users.put(ANA)
                await users.put(PENDING)
                await users.put(ADMIN)
                return (
                    await users.get_user(ANA.id),
                    await users.get_user(PENDING.id),
                    await users.get_user(ADMIN.id),
                    await users.get_user("ghost"),
                )
            finally:
                await engine.dispose()

        ana, pending, admin, ghost = run(scenario())

        assert ana == ANA
        assert not pending.is_approved
        assert admin.is_admin
        assert ghost is None
