"""
Provider settings — one keyed singleton per provider.

Admins edit them at runtime. Secrets are masked on the way out and a masked
or empty secret on the way in keeps the stored one.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime
from typing import Any, ClassVar, Protocol

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Result, Ok, Error

from storefront._db import Base
from storefront._errors import StoreError
from storefront._types import utcnow
from storefront.payments._types import Provider


MASK = "********"


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PayPalSettings:
    secrets: ClassVar[tuple[str, ...]] = ("client_secret",)

    enabled: bool = False
    mode: str = "sandbox"
    client_id: str = ""
    client_secret: str = ""

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.client_id) and bool(self.client_secret)


@dataclass(frozen=True, slots=True)
class StripeSettings:
    secrets: ClassVar[tuple[str, ...]] = ("secret_key",)

    enabled: bool = False
    mode: str = "test"
    publishable_key: str = ""
    secret_key: str = ""

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.publishable_key) and bool(self.secret_key)


@dataclass(frozen=True, slots=True)
class EupagoSettings:
    secrets: ClassVar[tuple[str, ...]] = ("api_key",)

    enabled: bool = False
    mode: str = "sandbox"
    api_key: str = ""

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.api_key)


type ProviderSettings = PayPalSettings | StripeSettings | EupagoSettings

SETTINGS_TYPES: Mapping[Provider, type[PayPalSettings] | type[StripeSettings] | type[EupagoSettings]] = {
    Provider.PAYPAL: PayPalSettings,
    Provider.STRIPE: StripeSettings,
    Provider.EUPAGO: EupagoSettings,
}


def default_settings(provider: Provider) -> ProviderSettings:
    return SETTINGS_TYPES[provider]()


def settings_from_dict(provider: Provider, data: Mapping[str, Any]) -> ProviderSettings:
    typ = SETTINGS_TYPES[provider]
    known = {f.name for f in fields(typ)}
    return typ(**{k: v for k, v in data.items() if k in known})


def fingerprint(provider: Provider, settings: ProviderSettings) -> str:
    """Changes whenever credentials or mode change."""
    payload = json.dumps(
        {"provider": provider.value, **asdict(settings)}, sort_keys=True
    )
    return hashlib.sha256(payload.encode()).hexdigest()


def masked(settings: ProviderSettings, reveal: bool = False) -> dict[str, Any]:
    """Admin view: secrets replaced by MASK unless reveal, plus has_secret."""
    view = asdict(settings)
    has_secret = all(view[name] for name in settings.secrets)
    if not reveal:
        for name in settings.secrets:
            view[name] = MASK if view[name] else ""
    view["has_secret"] = has_secret
    return view


def apply_update(current: ProviderSettings, incoming: Mapping[str, Any]) -> ProviderSettings:
    """
    Merge an admin form into the stored settings.

    A secret that is empty or equal to MASK keeps the stored value.
    """
    changes: dict[str, Any] = {}
    for f in fields(current):
        if f.name not in incoming:
            continue
        value = incoming[f.name]
        if f.name in current.secrets:
            text = str(value or "").strip()
            if not text or text == MASK:
                continue
            changes[f.name] = text
        elif f.name == "enabled":
            changes[f.name] = bool(value)
        else:
            changes[f.name] = str(value or "").strip() or getattr(current, f.name)
    return replace(current, **changes)


def public_view(provider: Provider, settings: ProviderSettings) -> dict[str, Any]:
    """What the checkout page may see: no secrets at all."""
    match settings:
        case PayPalSettings():
            return {
                "enabled": settings.enabled and bool(settings.client_id),
                "client_id": settings.client_id or None,
                "mode": settings.mode,
            }
        case StripeSettings():
            return {
                "enabled": settings.configured,
                "publishable_key": settings.publishable_key or None,
                "mode": settings.mode,
            }
        case EupagoSettings():
            return {"enabled": settings.configured, "mode": settings.mode}


# ═══════════════════════════════════════════════════════════════════════════════
# Settings Store
# ═══════════════════════════════════════════════════════════════════════════════


class SettingsStore(Protocol):
    async def get(self, provider: Provider) -> Result[ProviderSettings, StoreError]:
        """Stored settings, or the disabled defaults when none were saved."""
        ...

    async def save(
        self,
        provider: Provider,
        settings: ProviderSettings,
        updated_by: str | None = None,
    ) -> Result[None, StoreError]: ...


class MemorySettingsStore:
    def __init__(self, initial: Mapping[Provider, ProviderSettings] | None = None) -> None:
        self._settings: dict[Provider, ProviderSettings] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, provider: Provider) -> Result[ProviderSettings, StoreError]:
        async with self._lock:
            return Ok(self._settings.get(provider) or default_settings(provider))

    async def save(
        self,
        provider: Provider,
        settings: ProviderSettings,
        updated_by: str | None = None,
    ) -> Result[None, StoreError]:
        async with self._lock:
            self._settings[provider] = settings
        return Ok(None)


class SettingsTable(Base):
    __tablename__ = "payment_settings"

    provider: Mapped[str] = mapped_column(String(20), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)


class SQLAlchemySettingsStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def get(self, provider: Provider) -> Result[ProviderSettings, StoreError]:
        try:
            async with self._session() as session:
                row = await session.get(SettingsTable, provider.value)
                if row is None:
                    return Ok(default_settings(provider))
                return Ok(settings_from_dict(provider, row.data))
        except Exception as e:
            return Error(StoreError(f"Failed to load {provider.value} settings: {e}", e))

    async def save(
        self,
        provider: Provider,
        settings: ProviderSettings,
        updated_by: str | None = None,
    ) -> Result[None, StoreError]:
        try:
            async with self._session() as session:
                await session.merge(
                    SettingsTable(
                        provider=provider.value,
                        data=asdict(settings),
                        updated_at=utcnow(),
                        updated_by=updated_by,
                    )
                )
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to save {provider.value} settings: {e}", e))


__all__ = (
    "MASK",
    "PayPalSettings",
    "StripeSettings",
    "EupagoSettings",
    "ProviderSettings",
    "SETTINGS_TYPES",
    "default_settings",
    "settings_from_dict",
    "fingerprint",
    "masked",
    "apply_update",
    "public_view",
    "SettingsStore",
    "MemorySettingsStore",
    "SettingsTable",
    "SQLAlchemySettingsStore",
)
