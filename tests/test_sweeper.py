"""Tests for the periodic sweeper."""

import asyncio
from datetime import timedelta

from storefront.catalog import CartItem
from storefront.config import Config
from storefront.ledger import OrderStatus, PaymentMethod
from storefront.payments import CheckoutRequest
from storefront.scheduler import Sweeper

from conftest import ANA, World, run, unwrap


GERMANY = CheckoutRequest(
    items=(CartItem("filler", 1),),
    country_code="DE",
    shipping_option_id="dhl-eu-ground",
)


class TestRunOnce:
    def test_expires_registry_entries_only_by_default(self):
        world = World()

        async def scenario():
            await world.stock()
            created = unwrap(await world.service.create_order(PaymentMethod.PAYPAL, GERMANY, ANA))
            world.clock.advance(hours=72)
            report = await Sweeper(world.service).run_once()
            return created, report, unwrap(await world.ledger.get(created.order.id))

        created, report, order = run(scenario())

        assert report.expired_payments == 1
        assert report.cancelled_orders == ()
        assert order.status is OrderStatus.PENDING

    def test_cancels_abandoned_orders_when_configured(self):
        world = World(config=Config().with_abandoned_order_ttl(hours=48))

        async def scenario():
            await world.stock()
            old = unwrap(await world.service.create_order(PaymentMethod.STRIPE, GERMANY, ANA))
            world.clock.advance(hours=47)
            recent = unwrap(await world.service.create_order(PaymentMethod.STRIPE, GERMANY, ANA))
            world.clock.advance(hours=2)
            report = await Sweeper(world.service).run_once()
            return old, recent, report

        old, recent, report = run(scenario())

        assert report.cancelled_orders == (old.order.id,)
        assert recent.order.id not in report.cancelled_orders


class TestLifecycle:
    def test_start_runs_periodically_and_stop_cancels(self):
        world = World()
        sweeper = Sweeper(world.service, interval=timedelta(milliseconds=5))

        async def scenario():
            sweeper.start()
            sweeper.start()
            running = sweeper.running
            await asyncio.sleep(0.05)
            await sweeper.stop()
            return running

        assert run(scenario())
        assert not sweeper.running

    def test_stop_without_start(self):
        run(Sweeper(World().service).stop())

    def test_interval_defaults_to_config(self):
        world = World(config=Config().with_sweep_interval(minutes=1))

        assert Sweeper(world.service)._interval == timedelta(minutes=1)
