"""HTTP tests for the FastAPI surface."""

import pytest
from fastapi.testclient import TestClient

from storefront.ledger import PaymentMethod, PaymentStatus
from storefront.wire import create_app

from conftest import ADMIN, ANA, BRUNO, PENDING, World, run, unwrap


USERS = {user.id: user for user in (ANA, BRUNO, PENDING, ADMIN)}

GERMANY = {
    "items": [{"productId": "filler", "quantity": 1}],
    "countryCode": "DE",
    "shippingOptionId": "dhl-eu-ground",
}

LISBON = {
    "items": [{"productId": "serum", "quantity": 2}],
    "countryCode": "PT",
    "region": "Lisboa",
    "shippingOptionId": "free-shipping",
}


def as_user(user):
    return {"X-User": user.id}


@pytest.fixture
def world():
    w = World()
    run(w.stock())
    return w


@pytest.fixture
def client(world):
    app = create_app(world.service)

    @app.middleware("http")
    async def session(request, call_next):
        request.state.user = USERS.get(request.headers.get("X-User", ""))
        return await call_next(request)

    with TestClient(app) as test_client:
        yield test_client


# ═══════════════════════════════════════════════════════════════════════════════
# Public
# ═══════════════════════════════════════════════════════════════════════════════


class TestPublic:
    def test_shipping_options(self, client):
        response = client.get(
            "/api/shipping-options", params={"countryCode": "DE", "subtotal": "600"}
        )

        assert response.status_code == 200
        options = response.json()
        assert [o["id"] for o in options] == ["free-shipping", "dhl-eu-ground", "dhl-eu-air"]
        assert options[0]["price"] == "0.00"
        assert options[1]["price"] == "19.00"
        assert {"estimatedDays", "sortOrder", "description"} <= set(options[0])

    def test_shipping_options_bad_subtotal(self, client):
        response = client.get(
            "/api/shipping-options", params={"countryCode": "US", "subtotal": "lots"}
        )

        assert response.json() == []

    def test_payment_methods_setup_has_no_secrets(self, client):
        response = client.get("/api/payment-methods/setup")

        assert response.status_code == 200
        body = response.json()
        assert body["paypal"] == {"enabled": True, "clientId": "client-id", "mode": "sandbox"}
        assert body["stripe"]["publishableKey"] == "pk_test"
        assert body["eupago"] == {"enabled": True, "mode": "sandbox"}
        for secret in ("client-secret", "sk_test", "eupago-key"):
            assert secret not in response.text


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════


class TestCheckout:
    def test_unauthenticated(self, client):
        response = client.post("/api/stripe/payment-intent", json=GERMANY)

        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    def test_not_approved(self, client):
        response = client.post("/api/stripe/payment-intent", json=GERMANY, headers=as_user(PENDING))

        assert response.status_code == 403
        assert response.json() == {
            "code": "account_not_approved",
            "message": "Your account is pending approval",
        }

    def test_shipping_required(self, client):
        body = {**GERMANY, "shippingOptionId": None}

        response = client.post("/api/paypal/order", json=body, headers=as_user(ANA))

        assert response.status_code == 400
        assert response.json()["code"] == "shipping_option_required"

    def test_stripe_flow(self, client, world):
        created = client.post("/api/stripe/payment-intent", json=GERMANY, headers=as_user(ANA))

        assert created.status_code == 200
        intent = created.json()
        assert intent["paymentIntentId"] == "pi_1"
        assert intent["clientSecret"] == "pi_1_secret"
        assert intent["total"] == "119.00"

        early = client.post(
            "/api/stripe/confirm", json={"paymentIntentId": "pi_1"}, headers=as_user(ANA)
        )
        assert early.status_code == 400
        assert early.json()["code"] == "payment_not_completed"

        world.stripe.succeed("pi_1")
        first = client.post(
            "/api/stripe/confirm", json={"paymentIntentId": "pi_1"}, headers=as_user(ANA)
        )
        second = client.post(
            "/api/stripe/confirm", json={"paymentIntentId": "pi_1"}, headers=as_user(ANA)
        )

        assert first.json()["alreadyConfirmed"] is False
        assert first.json()["orderId"] == intent["orderId"]
        assert second.status_code == 200
        assert second.json()["alreadyConfirmed"] is True

    def test_paypal_flow_and_order_visibility(self, client):
        created = client.post("/api/paypal/order", json=GERMANY, headers=as_user(ANA)).json()

        assert created["id"] == "PP-1"

        captured = client.post(f"/api/paypal/order/{created['id']}/capture", headers=as_user(ANA))
        assert captured.status_code == 200
        assert captured.json()["confirmationId"] == "CAP-PP-1"

        stranger = client.get(f"/api/orders/{created['orderId']}", headers=as_user(BRUNO))
        assert stranger.status_code == 404

        order = client.get(f"/api/orders/{created['orderId']}", headers=as_user(ANA)).json()
        assert order["status"] == "confirmed"
        assert order["paymentStatus"] == "completed"
        assert order["shippingCost"] == "19.00"
        assert order["items"] == [
            {"productId": "filler", "name": "Filler 1ml", "quantity": 1, "price": "100.00"}
        ]

    def test_capture_by_other_user(self, client):
        created = client.post("/api/paypal/order", json=GERMANY, headers=as_user(ANA)).json()

        response = client.post(f"/api/paypal/order/{created['id']}/capture", headers=as_user(BRUNO))

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    def test_multibanco_outside_portugal(self, client):
        response = client.post("/api/eupago/multibanco", json=GERMANY, headers=as_user(ANA))

        assert response.status_code == 400
        assert response.json()["code"] == "unsupported_country"

    def test_mbway(self, client):
        body = {**LISBON, "phone": "912 345 678"}

        response = client.post("/api/eupago/mbway", json=body, headers=as_user(ANA))

        assert response.status_code == 200
        assert response.json()["transactionId"] == "TX-1"
        assert response.json()["total"] == "50.00"

    def test_provider_failure_is_bad_gateway(self, client, world):
        world.paypal.fail_create = True

        response = client.post("/api/paypal/order", json=GERMANY, headers=as_user(ANA))

        assert response.status_code == 502
        assert response.json()["code"] == "provider_rejected"


# ═══════════════════════════════════════════════════════════════════════════════
# Webhook
# ═══════════════════════════════════════════════════════════════════════════════


class TestWebhook:
    def multibanco(self, client):
        response = client.post("/api/eupago/multibanco", json=LISBON, headers=as_user(ANA))
        assert response.status_code == 200
        return response.json()

    def payment_status(self, world, order_id):
        return unwrap(run(world.ledger.get(order_id))).payment_status

    def test_query_string(self, client, world):
        created = self.multibanco(client)

        response = client.get(
            "/api/eupago/webhook",
            params={
                "chave_api": "eupago-key",
                "referencia": created["reference"],
                "entidade": created["entity"],
                "valor": "50.00",
            },
        )

        assert response.status_code == 200
        assert response.text == "OK"
        assert self.payment_status(world, created["orderId"]) is PaymentStatus.COMPLETED

    def test_form_body(self, client, world):
        created = self.multibanco(client)

        response = client.post(
            "/api/eupago/webhook",
            data={"chave_api": "eupago-key", "identificador": created["identifier"]},
        )

        assert response.text == "OK"
        assert self.payment_status(world, created["orderId"]) is PaymentStatus.COMPLETED

    def test_json_body(self, client, world):
        created = self.multibanco(client)

        client.post(
            "/api/eupago/webhook",
            json={"chave_api": "eupago-key", "referencia": created["reference"]},
        )

        assert self.payment_status(world, created["orderId"]) is PaymentStatus.COMPLETED

    def test_wrong_key_still_answers_ok(self, client, world):
        created = self.multibanco(client)

        response = client.get(
            "/api/eupago/webhook",
            params={"chave_api": "nope", "referencia": created["reference"]},
        )

        assert response.status_code == 200
        assert response.text == "OK"
        assert self.payment_status(world, created["orderId"]) is PaymentStatus.PENDING


# ═══════════════════════════════════════════════════════════════════════════════
# Admin
# ═══════════════════════════════════════════════════════════════════════════════


class TestAdmin:
    def test_requires_admin(self, client):
        assert client.get("/api/admin/orders").status_code == 401
        assert client.get("/api/admin/orders", headers=as_user(ANA)).status_code == 403

    def test_list_and_update_orders(self, client):
        mine = client.post("/api/paypal/order", json=GERMANY, headers=as_user(ANA)).json()
        client.post("/api/paypal/order", json=GERMANY, headers=as_user(BRUNO))

        everything = client.get("/api/admin/orders", headers=as_user(ADMIN)).json()
        filtered = client.get(
            "/api/admin/orders", params={"userId": "u1"}, headers=as_user(ADMIN)
        ).json()

        assert len(everything) == 2
        assert [o["id"] for o in filtered] == [mine["orderId"]]

        shipped = client.patch(
            f"/api/admin/orders/{mine['orderId']}/status",
            json={"status": "shipped"},
            headers=as_user(ADMIN),
        )
        bogus = client.patch(
            f"/api/admin/orders/{mine['orderId']}/status",
            json={"status": "lost"},
            headers=as_user(ADMIN),
        )

        assert shipped.json()["status"] == "shipped"
        assert bogus.status_code == 400
        assert bogus.json()["code"] == "invalid_status"

    def test_cancel_abandoned(self, client, world):
        created = client.post("/api/paypal/order", json=GERMANY, headers=as_user(ANA)).json()
        world.clock.advance(hours=3)

        default = client.post("/api/admin/orders/cancel-abandoned", headers=as_user(ADMIN))
        explicit = client.post(
            "/api/admin/orders/cancel-abandoned",
            params={"olderThanHours": 1},
            headers=as_user(ADMIN),
        )

        assert default.json() == {"cancelled": []}
        assert explicit.json() == {"cancelled": [created["orderId"]]}

    def test_reconcile(self, client, world):
        client.post("/api/stripe/payment-intent", json=GERMANY, headers=as_user(ANA))
        world.stripe.succeed("pi_1")

        unknown = client.post("/api/admin/payments/bitcoin/x/reconcile", headers=as_user(ADMIN))
        webhook_only = client.post(
            f"/api/admin/payments/{PaymentMethod.EUPAGO_MBWAY.value}/x/reconcile",
            headers=as_user(ADMIN),
        )
        reconciled = client.post("/api/admin/payments/stripe/pi_1/reconcile", headers=as_user(ADMIN))

        assert unknown.status_code == 404
        assert webhook_only.status_code == 400
        assert reconciled.status_code == 200
        assert reconciled.json()["alreadyConfirmed"] is False

    def test_payment_methods_masked(self, client):
        response = client.get("/api/admin/payment-methods", headers=as_user(ADMIN))
        revealed = client.get(
            "/api/admin/payment-methods", params={"reveal": "true"}, headers=as_user(ADMIN)
        )

        assert response.headers["Cache-Control"] == "no-store"
        assert response.json()["paypal"]["clientSecret"] == "********"
        assert response.json()["paypal"]["hasSecret"] is True
        assert revealed.json()["stripe"]["secretKey"] == "sk_test"

    def test_update_payment_methods(self, client):
        response = client.post(
            "/api/admin/payment-methods",
            json={"paypal": {"enabled": False, "clientSecret": "********"}},
            headers=as_user(ADMIN),
        )

        assert response.status_code == 200
        assert response.json()["paypal"]["enabled"] is False
        assert response.json()["paypal"]["clientSecret"] == "********"

        setup = client.get("/api/payment-methods/setup").json()
        assert setup["paypal"]["enabled"] is False

        checkout = client.post("/api/paypal/order", json=GERMANY, headers=as_user(ANA))
        assert checkout.status_code == 400
        assert checkout.json()["code"] == "provider_not_configured"
