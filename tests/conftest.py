"""Pytest fixtures for storefront tests."""

import asyncio
import json
from datetime import datetime, timedelta
from decimal import Decimal

import httpx
import pytest
from kungfu import Error, Ok

from storefront.accounts import AccountStatus, MemoryUserDirectory, Role, User
from storefront.catalog import MemoryCatalog, Product, PromotionRule
from storefront.config import Config
from storefront.ledger import MemoryLedger
from storefront.notify import MemoryMailer, Notifier
from storefront.payments import (
    ClientCache,
    EupagoClient,
    EupagoSettings,
    MemorySettingsStore,
    PaymentIntent,
    PaymentService,
    PayPalClient,
    PayPalSettings,
    Provider,
    StripeSettings,
)
from storefront.registry import PendingPaymentRegistry


def run(coro):
    """Drive one async scenario to completion."""
    return asyncio.run(coro)


def unwrap(result):
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise AssertionError(f"unexpected error: {e!r}")


def expect_error(result, kind):
    match result:
        case Error(e):
            assert e.kind is kind, e
            return e
        case Ok(value):
            raise AssertionError(f"expected {kind}, got {value!r}")


# ═══════════════════════════════════════════════════════════════════════════════
# Fakes
# ═══════════════════════════════════════════════════════════════════════════════


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class FakePayPal:
    """Enough of the Orders v2 API for create, capture and get."""

    def __init__(self) -> None:
        self.orders: dict[str, dict] = {}
        self.captures = 0
        self.fail_create = False
        self.fail_capture = False
        self.capture_status = "COMPLETED"

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "token", "expires_in": 3600})

        if path == "/v2/checkout/orders" and request.method == "POST":
            if self.fail_create:
                return httpx.Response(500, json={"name": "INTERNAL_SERVER_ERROR"})
            order_id = f"PP-{len(self.orders) + 1}"
            body = json.loads(request.content)
            self.orders[order_id] = {
                "status": "CREATED",
                "amount": body["purchase_units"][0]["amount"],
            }
            return httpx.Response(201, json={"id": order_id, "status": "CREATED"})

        order_id = path.split("/")[4]
        if order_id not in self.orders:
            return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND"})

        if path.endswith("/capture"):
            self.captures += 1
            if self.fail_capture:
                return httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY"})
            self.orders[order_id]["status"] = self.capture_status
            return httpx.Response(201, json=self._order(order_id))

        return httpx.Response(200, json=self._order(order_id))

    def _order(self, order_id: str) -> dict:
        status = self.orders[order_id]["status"]
        data = {"id": order_id, "status": status}
        if status == "COMPLETED":
            data["payer"] = {"email_address": "buyer@example.com"}
            data["purchase_units"] = [
                {"payments": {"captures": [{"id": f"CAP-{order_id}", "status": "COMPLETED"}]}}
            ]
        return data


class FakeStripe:
    def __init__(self) -> None:
        self.intents: dict[str, PaymentIntent] = {}
        self.created: list[dict] = []
        self.fail = False

    async def create_payment_intent(self, amount, currency, metadata) -> PaymentIntent:
        if self.fail:
            raise ConnectionError("stripe unreachable")
        intent_id = f"pi_{len(self.intents) + 1}"
        intent = PaymentIntent(intent_id, "requires_payment_method", amount, f"{intent_id}_secret")
        self.intents[intent_id] = intent
        self.created.append({"amount": amount, "currency": currency, "metadata": dict(metadata)})
        return intent

    async def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        if self.fail:
            raise ConnectionError("stripe unreachable")
        return self.intents[intent_id]

    def succeed(self, intent_id: str) -> None:
        intent = self.intents[intent_id]
        self.intents[intent_id] = PaymentIntent(intent.id, "succeeded", intent.amount, intent.client_secret)


class FakeEupago:
    """Records every request; answers from a per-path table."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, dict, httpx.Headers]] = []
        self.responses: dict[str, tuple[int, object]] = {
            "/clientes/rest_api/multibanco/create": (
                200,
                {"sucesso": True, "entidade": "12345", "referencia": "987654321", "valor": 0},
            ),
            "/api/v1.02/mbway/create": (
                200,
                {"transactionStatus": "Success", "transactionID": "TX-1", "reference": "555"},
            ),
            "/clientes/rest_api/mbway/create": (
                200,
                {"sucesso": True, "referencia": "556", "transacao": "TX-LEGACY"},
            ),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.url.path, json.loads(request.content), request.headers))
        status, body = self.responses.get(request.url.path, (404, None))
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def paths(self) -> list[str]:
        return [path for path, _, _ in self.requests]


# ═══════════════════════════════════════════════════════════════════════════════
# World
# ═══════════════════════════════════════════════════════════════════════════════


ANA = User("u1", "ana@clinic.pt", "Ana", clinic_address="Rua A 1, Lisboa")
BRUNO = User("u2", "bruno@clinic.pt", "Bruno")
PENDING = User("u3", "carla@clinic.pt", "Carla", status=AccountStatus.PENDING)
ADMIN = User("admin", "admin@store.pt", "Admin", role=Role.ADMIN)

FILLER = Product("filler", "Filler 1ml", Decimal("100.00"))
SERUM = Product(
    "serum",
    "Serum",
    Decimal("25.00"),
    promotion_rules=(PromotionRule(5, Decimal("20.00")), PromotionRule(10, Decimal("18.00"))),
)
SOLD_OUT = Product("sold-out", "Sold Out", Decimal("10.00"), in_stock=False)
RETIRED = Product("retired", "Retired", Decimal("10.00"), is_active=False)


class World:
    """Every collaborator of PaymentService, in memory, with fake providers."""

    def __init__(self, configured: bool = True, config: Config | None = None) -> None:
        self.clock = FakeClock()
        self.config = config or Config()
        self.catalog = MemoryCatalog()
        self.ledger = MemoryLedger()
        self.registry = PendingPaymentRegistry(self.config.pending_payment_ttl, clock=self.clock)
        self.mailer = MemoryMailer()
        self.notifier = Notifier(self.mailer)
        self.users = MemoryUserDirectory(ANA, BRUNO, PENDING, ADMIN)
        self.paypal = FakePayPal()
        self.stripe = FakeStripe()
        self.eupago = FakeEupago()
        self.settings = MemorySettingsStore(
            {
                Provider.PAYPAL: PayPalSettings(True, "sandbox", "client-id", "client-secret"),
                Provider.STRIPE: StripeSettings(True, "test", "pk_test", "sk_test"),
                Provider.EUPAGO: EupagoSettings(True, "sandbox", "eupago-key"),
            }
            if configured
            else None
        )
        self.clients = ClientCache(
            {
                Provider.PAYPAL: lambda s: PayPalClient.from_settings(
                    s, transport=httpx.MockTransport(self.paypal.handler)
                ),
                Provider.STRIPE: lambda s: self.stripe,
                Provider.EUPAGO: lambda s: EupagoClient.from_settings(
                    s, transport=httpx.MockTransport(self.eupago.handler)
                ),
            }
        )
        self.service = PaymentService(
            catalog=self.catalog,
            ledger=self.ledger,
            settings=self.settings,
            registry=self.registry,
            notifier=self.notifier,
            clients=self.clients,
            users=self.users,
            config=self.config,
            clock=self.clock,
        )

    async def stock(self) -> None:
        for product in (FILLER, SERUM, SOLD_OUT, RETIRED):
            await self.catalog.put_product(product)

    async def settle(self) -> None:
        await self.notifier.drain()

    def subjects(self) -> list[str]:
        return [message.subject for message in self.mailer.sent]


@pytest.fixture
def world():
    return World()


@pytest.fixture
def unconfigured_world():
    return World(configured=False)
