"""
PayPal — Orders v2 over REST.

    client = PayPalClient.from_settings(settings)
    order = await client.create_order(Decimal("57.00"))
    capture = await client.capture_order(order.id)

The adapter turns client exceptions into ProviderRejected with
combinators.catching_async; nothing provider-specific leaks to the caller.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import combinators as C
import httpx
from kungfu import Result, Ok, Error

from storefront._errors import CheckoutError, Errors
from storefront._log import get_logger
from storefront._types import Money, format_money
from storefront.accounts import User
from storefront.ledger import PaymentMethod, ProviderCorrelation
from storefront.payments._settings import PayPalSettings
from storefront.payments._types import (
    CheckoutRequest,
    Provider,
    ProviderConfirmation,
    ProviderIntent,
    Quote,
)


log = get_logger(__name__)


API_BASE = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}


# ═══════════════════════════════════════════════════════════════════════════════
# Client
# ═══════════════════════════════════════════════════════════════════════════════


class PayPalError(Exception):
    def __init__(self, status: int, name: str | None = None, debug_id: str | None = None) -> None:
        super().__init__(f"PayPal API error {status}: {name or 'unknown'}")
        self.status = status
        self.name = name
        self.debug_id = debug_id


@dataclass(frozen=True, slots=True)
class PayPalOrder:
    id: str
    status: str
    payer_email: str | None = None
    capture_id: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.status == "COMPLETED"

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> PayPalOrder:
        units = data.get("purchase_units") or []
        payments = (units[0].get("payments") or {}) if units else {}
        captures = payments.get("captures") or []
        return cls(
            id=str(data.get("id", "")),
            status=str(data.get("status", "")),
            payer_email=(data.get("payer") or {}).get("email_address"),
            capture_id=captures[0].get("id") if captures else None,
            raw=data,
        )


class PayPalClient:
    """Thin async client. Access tokens are reused until a minute before expiry."""

    def __init__(self, http: httpx.AsyncClient, client_id: str, client_secret: str) -> None:
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._token: str | None = None
        self._token_expires = 0.0

    @classmethod
    def from_settings(
        cls,
        settings: PayPalSettings,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> PayPalClient:
        http = httpx.AsyncClient(
            base_url=API_BASE.get(settings.mode, API_BASE["sandbox"]),
            timeout=timeout,
            transport=transport,
        )
        return cls(http, settings.client_id, settings.client_secret)

    async def create_order(self, total: Money, currency: str = "EUR") -> PayPalOrder:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {"amount": {"currency_code": currency, "value": format_money(total)}}
            ],
        }
        return PayPalOrder.parse(await self._request("POST", "/v2/checkout/orders", json=body))

    async def capture_order(self, order_id: str) -> PayPalOrder:
        data = await self._request("POST", f"/v2/checkout/orders/{order_id}/capture", json={})
        return PayPalOrder.parse(data)

    async def get_order(self, order_id: str) -> PayPalOrder:
        return PayPalOrder.parse(await self._request("GET", f"/v2/checkout/orders/{order_id}"))

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires:
            return self._token

        response = await self._http.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
        )
        if response.is_error:
            raise PayPalError(response.status_code, "AUTHENTICATION_FAILURE")
        data = response.json()
        self._token = str(data["access_token"])
        self._token_expires = time.monotonic() + max(int(data.get("expires_in", 0)) - 60, 0)
        return self._token

    async def _request(self, method: str, path: str, json: Any = None) -> dict[str, Any]:
        token = await self._access_token()
        response = await self._http.request(
            method,
            path,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.is_error:
            detail: dict[str, Any] = {}
            try:
                detail = response.json()
            except ValueError:
                pass
            raise PayPalError(response.status_code, detail.get("name"), detail.get("debug_id"))
        return response.json()


# ═══════════════════════════════════════════════════════════════════════════════
# Adapter
# ═══════════════════════════════════════════════════════════════════════════════


def _rejected(action: str, ref: str | None = None):
    def on_error(e: Exception) -> CheckoutError:
        log.warning("paypal_call_failed", action=action, provider_ref=ref, error=str(e))
        return Errors.provider_rejected(Provider.PAYPAL.label)

    return on_error


def _confirmation(order: PayPalOrder) -> ProviderConfirmation:
    return ProviderConfirmation(
        confirmation_id=order.capture_id,
        metadata={
            "paypalOrderId": order.id,
            "paypalCaptureId": order.capture_id,
            "payerEmail": order.payer_email,
        },
    )


class PayPalAdapter:
    method = PaymentMethod.PAYPAL
    provider = Provider.PAYPAL
    registers = True
    revalidates = True

    def precheck(self, request: CheckoutRequest) -> Result[None, CheckoutError]:
        return Ok(None)

    async def create(
        self,
        client: PayPalClient,
        quote: Quote,
        request: CheckoutRequest,
        user: User,
    ) -> Result[ProviderIntent, CheckoutError]:
        created = await C.catching_async(
            lambda: client.create_order(quote.total),
            on_error=_rejected("create"),
        )()
        match created:
            case Error(e):
                return Error(e)
            case Ok(order):
                return Ok(ProviderIntent(
                    ref=order.id,
                    correlation=ProviderCorrelation(ref=order.id),
                    metadata={"paypalOrderId": order.id},
                    client={"id": order.id, "status": order.status},
                ))

    async def confirm(self, client: PayPalClient, ref: str) -> Result[ProviderConfirmation, CheckoutError]:
        captured = await C.catching_async(
            lambda: client.capture_order(ref),
            on_error=_rejected("capture", ref),
        )()
        match captured:
            case Error(e):
                return Error(e)
            case Ok(order) if not order.completed:
                log.warning("paypal_capture_incomplete", provider_ref=ref, status=order.status)
                return Error(Errors.payment_not_completed())
            case Ok(order):
                return Ok(_confirmation(order))

    async def lookup(
        self, client: PayPalClient, ref: str
    ) -> Result[ProviderConfirmation | None, CheckoutError]:
        """Payment proof if PayPal has the money (capturing an approved order), else None."""
        fetched = await C.catching_async(
            lambda: client.get_order(ref),
            on_error=_rejected("get", ref),
        )()
        match fetched:
            case Error(e):
                return Error(e)
            case Ok(order) if order.completed:
                return Ok(_confirmation(order))
            case Ok(order) if order.status == "APPROVED":
                match await self.confirm(client, ref):
                    case Ok(confirmation):
                        return Ok(confirmation)
                    case Error(e):
                        return Error(e)
            case Ok(_):
                pass
        return Ok(None)


__all__ = (
    "API_BASE",
    "PayPalError",
    "PayPalOrder",
    "PayPalClient",
    "PayPalAdapter",
)
