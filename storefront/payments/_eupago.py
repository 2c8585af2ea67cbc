"""
EuPago — Multibanco references and MBWay requests, Portugal only.

EuPago confirms asynchronously through a webhook (query string or form
fields). Orders are correlated by reference + entity, then transaction id,
then our own identifier.

MBWay has two request shapes. The v1.02 JSON API is tried first; the legacy
rest_api endpoint is used only when v1.02 answers 404/405 or an
unknown-endpoint error code.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import combinators as C
import httpx
from kungfu import Result, Ok, Error

from storefront._errors import CheckoutError, Errors
from storefront._log import get_logger
from storefront._types import Money
from storefront.accounts import User
from storefront.ledger import PaymentMethod, ProviderCorrelation
from storefront.payments._settings import EupagoSettings
from storefront.payments._types import (
    CheckoutRequest,
    Provider,
    ProviderIntent,
    Quote,
)


log = get_logger(__name__)


SANDBOX_HOST = "https://sandbox.eupago.pt"
LIVE_HOST = "https://clientes.eupago.pt"

MULTIBANCO_PATH = "/clientes/rest_api/multibanco/create"
MBWAY_PATH = "/api/v1.02/mbway/create"
MBWAY_LEGACY_PATH = "/clientes/rest_api/mbway/create"

_UNKNOWN_ENDPOINT_CODES = frozenset({"ENDPOINT_NOT_FOUND", "NOT_FOUND", "METHOD_NOT_ALLOWED"})


def host_for(mode: str) -> str:
    return LIVE_HOST if mode == "live" else SANDBOX_HOST


# ═══════════════════════════════════════════════════════════════════════════════
# Payload helpers
# ═══════════════════════════════════════════════════════════════════════════════


def _as_text(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        text = str(value).strip()
        return text or None
    return None


def _first(payload: Any, keys: tuple[str, ...]) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    for key in keys:
        text = _as_text(payload.get(key))
        if text:
            return text
    return None


@dataclass(frozen=True, slots=True)
class EupagoRefs:
    entity: str | None = None
    reference: str | None = None
    transaction_id: str | None = None


def extract_refs(payload: Any) -> EupagoRefs:
    """Pick entity/reference/transaction out of either API generation's answer."""
    nested = (
        payload.get("transactions") if isinstance(payload, Mapping) else None,
        payload.get("transaction") if isinstance(payload, Mapping) else None,
    )

    def lookup(top: tuple[str, ...], inner: tuple[str, ...]) -> str | None:
        return _first(payload, top) or next(
            (v for v in (_first(n, inner) for n in nested) if v), None
        )

    return EupagoRefs(
        entity=lookup(("entidade", "entity"), ("entity",)),
        reference=lookup(("referencia", "reference", "ref"), ("reference",)),
        transaction_id=lookup(
            ("transacao", "transaction", "trid", "transactionId", "transactionID"),
            ("trid",),
        ),
    )


def normalize_phone(phone: str | None) -> str | None:
    """
    Nine-digit Portuguese mobile number, or None.

        normalize_phone("+351 912 345 678")  # "912345678"
    """
    digits = re.sub(r"\D", "", phone or "")
    for prefix in ("00351", "351"):
        if digits.startswith(prefix) and len(digits) > 9:
            digits = digits[len(prefix):]
            break
    return digits if len(digits) == 9 else None


def logical_failure(data: Any) -> bool:
    """2xx answers can still say no."""
    if not isinstance(data, Mapping):
        return False
    for key in ("sucesso", "success"):
        if data.get(key) is False:
            return True
    status = str(data.get("transactionStatus", "")).lower()
    return status in ("rejected", "error")


# ═══════════════════════════════════════════════════════════════════════════════
# Client
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EupagoResponse:
    status: int
    data: Any
    raw_text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class EupagoClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str) -> None:
        self._http = http
        self.api_key = api_key

    @classmethod
    def from_settings(
        cls,
        settings: EupagoSettings,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> EupagoClient:
        http = httpx.AsyncClient(
            base_url=host_for(settings.mode),
            timeout=timeout,
            transport=transport,
        )
        return cls(http, settings.api_key)

    async def post(
        self,
        path: str,
        body: Mapping[str, Any],
        api_key_header: bool = True,
    ) -> EupagoResponse:
        headers = {"accept": "application/json"}
        if api_key_header:
            headers["ApiKey"] = self.api_key

        response = await self._http.post(path, json=dict(body), headers=headers)
        try:
            data = response.json() if response.text else None
        except ValueError:
            data = response.text
        return EupagoResponse(response.status_code, data, response.text)

    async def aclose(self) -> None:
        await self._http.aclose()


# ═══════════════════════════════════════════════════════════════════════════════
# MBWay strategies
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MBWayRequest:
    identifier: str
    amount: Money
    phone: str
    email: str
    api_key: str


@dataclass(frozen=True, slots=True)
class MBWayStrategy:
    name: str
    path: str
    build: Callable[[MBWayRequest], dict[str, Any]]
    api_key_header: bool


def _v102_body(req: MBWayRequest) -> dict[str, Any]:
    return {
        "payment": {
            "identifier": req.identifier,
            "title": f"Pedido {req.identifier}",
            "amount": {"value": float(req.amount), "currency": "EUR"},
        },
        "customer": {"phone": req.phone, "email": req.email},
    }


def _legacy_body(req: MBWayRequest) -> dict[str, Any]:
    return {
        "chave": req.api_key,
        "valor": float(req.amount),
        "id": req.identifier,
        "alias": req.phone,
        "descricao": f"Pedido {req.identifier}",
    }


MBWAY_V1_02 = MBWayStrategy("v1.02", MBWAY_PATH, _v102_body, api_key_header=True)
MBWAY_LEGACY = MBWayStrategy("rest_api", MBWAY_LEGACY_PATH, _legacy_body, api_key_header=False)
MBWAY_STRATEGIES = (MBWAY_V1_02, MBWAY_LEGACY)


def should_fall_back(response: EupagoResponse) -> bool:
    if response.status in (404, 405):
        return True
    if isinstance(response.data, Mapping):
        return str(response.data.get("code", "")).upper() in _UNKNOWN_ENDPOINT_CODES
    return False


async def request_mbway(
    client: EupagoClient, req: MBWayRequest
) -> tuple[MBWayStrategy, EupagoResponse]:
    """Try each strategy in order; stop at the first that is not an unknown endpoint."""
    response = EupagoResponse(0, None)
    strategy = MBWAY_STRATEGIES[0]
    for strategy in MBWAY_STRATEGIES:
        response = await client.post(strategy.path, strategy.build(req), strategy.api_key_header)
        if not should_fall_back(response):
            break
        log.info("eupago_mbway_fallback", strategy=strategy.name, status=response.status)
    return strategy, response


# ═══════════════════════════════════════════════════════════════════════════════
# Webhook
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EupagoWebhook:
    """Webhook v1.0 fields, from the query string or the form body."""

    api_key: str | None = None
    reference: str | None = None
    entity: str | None = None
    transaction_id: str | None = None
    identifier: str | None = None
    method: str | None = None
    amount: str | None = None
    paid_at: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> EupagoWebhook:
        def get(*keys: str) -> str | None:
            return _first(params, keys)

        return cls(
            api_key=get("chave_api", "chave"),
            reference=get("referencia"),
            entity=get("entidade"),
            transaction_id=get("transacao", "trid"),
            identifier=get("identificador", "id"),
            method=get("mp"),
            amount=get("valor"),
            paid_at=get("data"),
        )

    def as_metadata(self) -> dict[str, Any]:
        return {
            "referencia": self.reference,
            "entidade": self.entity,
            "transacao": self.transaction_id,
            "identificador": self.identifier,
            "mp": self.method,
            "valor": self.amount,
            "data": self.paid_at,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Adapters
# ═══════════════════════════════════════════════════════════════════════════════


def _unavailable(action: str):
    def on_error(e: Exception) -> CheckoutError:
        log.warning("eupago_call_failed", action=action, error=str(e))
        return Errors.provider_rejected(Provider.EUPAGO.label)

    return on_error


def _portugal_only(request: CheckoutRequest) -> Result[None, CheckoutError]:
    if (request.country_code or "").upper() != "PT":
        return Error(Errors.unsupported_country(Provider.EUPAGO.label))
    return Ok(None)


def _intent(
    identifier: str,
    method: str,
    response: EupagoResponse,
    extra: Mapping[str, Any],
) -> ProviderIntent:
    refs = extract_refs(response.data)
    return ProviderIntent(
        ref=identifier,
        correlation=ProviderCorrelation(
            ref=identifier,
            reference=refs.reference,
            entity=refs.entity,
            transaction_id=refs.transaction_id,
        ),
        metadata={
            "eupago": {
                "method": method,
                "identifier": identifier,
                **extra,
                "entity": refs.entity,
                "reference": refs.reference,
                "transactionId": refs.transaction_id,
                "raw": response.data,
            }
        },
        client={
            "identifier": identifier,
            "entity": refs.entity,
            "reference": refs.reference,
            "transactionId": refs.transaction_id,
        },
    )


class MultibancoAdapter:
    method = PaymentMethod.EUPAGO_MULTIBANCO
    provider = Provider.EUPAGO
    registers = False
    revalidates = False

    def precheck(self, request: CheckoutRequest) -> Result[None, CheckoutError]:
        return _portugal_only(request)

    async def create(
        self,
        client: EupagoClient,
        quote: Quote,
        request: CheckoutRequest,
        user: User,
    ) -> Result[ProviderIntent, CheckoutError]:
        identifier = str(uuid.uuid4())
        body = {
            "chave": client.api_key,
            "valor": float(quote.total),
            "id": identifier,
            "per_dup": 0,
        }
        posted = await C.catching_async(
            lambda: client.post(MULTIBANCO_PATH, body),
            on_error=_unavailable("multibanco"),
        )()
        match posted:
            case Error(e):
                return Error(e)
            case Ok(response):
                pass

        refs = extract_refs(response.data)
        if not response.ok or logical_failure(response.data) or not refs.reference:
            log.warning(
                "eupago_multibanco_rejected",
                status=response.status,
                identifier=identifier,
                body=response.raw_text[:500],
            )
            return Error(Errors.provider_rejected(Provider.EUPAGO.label))

        return Ok(_intent(identifier, "multibanco", response, {}))


class MBWayAdapter:
    method = PaymentMethod.EUPAGO_MBWAY
    provider = Provider.EUPAGO
    registers = False
    revalidates = False

    def precheck(self, request: CheckoutRequest) -> Result[None, CheckoutError]:
        match _portugal_only(request):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass
        if normalize_phone(request.phone) is None:
            return Error(Errors.invalid_phone())
        return Ok(None)

    async def create(
        self,
        client: EupagoClient,
        quote: Quote,
        request: CheckoutRequest,
        user: User,
    ) -> Result[ProviderIntent, CheckoutError]:
        phone = normalize_phone(request.phone)
        if phone is None:
            return Error(Errors.invalid_phone())

        req = MBWayRequest(
            identifier=str(uuid.uuid4()),
            amount=quote.total,
            phone=phone,
            email=user.email,
            api_key=client.api_key,
        )
        sent = await C.catching_async(
            lambda: request_mbway(client, req),
            on_error=_unavailable("mbway"),
        )()
        match sent:
            case Error(e):
                return Error(e)
            case Ok((strategy, response)):
                pass

        if not response.ok or logical_failure(response.data):
            log.warning(
                "eupago_mbway_rejected",
                strategy=strategy.name,
                status=response.status,
                identifier=req.identifier,
                body=response.raw_text[:500],
            )
            return Error(Errors.provider_rejected(Provider.EUPAGO.label))

        extra = {"phone": phone, "strategy": strategy.name}
        return Ok(_intent(req.identifier, "mbway", response, extra))


__all__ = (
    "SANDBOX_HOST",
    "LIVE_HOST",
    "MULTIBANCO_PATH",
    "MBWAY_PATH",
    "MBWAY_LEGACY_PATH",
    "host_for",
    "EupagoRefs",
    "extract_refs",
    "normalize_phone",
    "logical_failure",
    "EupagoResponse",
    "EupagoClient",
    "MBWayRequest",
    "MBWayStrategy",
    "MBWAY_V1_02",
    "MBWAY_LEGACY",
    "MBWAY_STRATEGIES",
    "should_fall_back",
    "request_mbway",
    "EupagoWebhook",
    "MultibancoAdapter",
    "MBWayAdapter",
)
