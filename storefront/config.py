"""
Config — process-wide settings.

Fluent builder pattern, like everything else here:

    config = (
        Config.from_env()
        .with_database("sqlite+aiosqlite:///store.db")
        .with_abandoned_order_ttl(hours=48)
    )

Provider credentials are NOT here: they live in the settings store and can
change at runtime (see storefront.payments.SettingsStore).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import timedelta


ENV_PREFIX = "STOREFRONT_"


@dataclass(frozen=True, slots=True)
class Config:
    """
    Immutable configuration. Each with_* method returns a new Config.

    abandoned_order_ttl is None by default: pending orders are only
    cancelled when an operator opts in.
    """

    database_url: str = "sqlite+aiosqlite:///:memory:"
    pending_payment_ttl: timedelta = timedelta(minutes=30)
    sweep_interval: timedelta = timedelta(minutes=5)
    abandoned_order_ttl: timedelta | None = None
    http_timeout: float = 15.0
    mail_sender: str = "noreply@storefront.local"
    mail_sender_name: str = "Storefront"
    log_level: str = "INFO"
    log_json: bool = False

    def with_database(self, url: str) -> Config:
        return replace(self, database_url=url)

    def with_pending_ttl(
        self,
        *,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> Config:
        ttl = delta if delta is not None else timedelta(minutes=minutes or 30)
        return replace(self, pending_payment_ttl=ttl)

    def with_sweep_interval(
        self,
        *,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> Config:
        interval = delta if delta is not None else timedelta(minutes=minutes or 5)
        return replace(self, sweep_interval=interval)

    def with_abandoned_order_ttl(
        self,
        *,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> Config:
        """Opt into cancelling stale pending orders. hours=0 disables it again."""
        if delta is not None:
            ttl: timedelta | None = delta
        else:
            ttl = timedelta(hours=hours) if hours else None
        return replace(self, abandoned_order_ttl=ttl)

    def with_http_timeout(self, seconds: float) -> Config:
        return replace(self, http_timeout=seconds)

    def with_mail_sender(self, address: str, name: str | None = None) -> Config:
        return replace(
            self,
            mail_sender=address,
            mail_sender_name=name if name is not None else self.mail_sender_name,
        )

    def with_logging(self, level: str, *, json: bool = False) -> Config:
        return replace(self, log_level=level.upper(), log_json=json)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        """
        Read STOREFRONT_* variables. Unset variables keep their defaults.

            STOREFRONT_DATABASE_URL
            STOREFRONT_PENDING_TTL_MINUTES
            STOREFRONT_SWEEP_INTERVAL_MINUTES
            STOREFRONT_ABANDONED_ORDER_TTL_HOURS
            STOREFRONT_HTTP_TIMEOUT
            STOREFRONT_MAIL_FROM / STOREFRONT_MAIL_FROM_NAME
            STOREFRONT_LOG_LEVEL / STOREFRONT_LOG_JSON
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value and value.strip() else None

        config = cls()
        if url := get("DATABASE_URL"):
            config = config.with_database(url)
        if ttl := get("PENDING_TTL_MINUTES"):
            config = config.with_pending_ttl(minutes=float(ttl))
        if interval := get("SWEEP_INTERVAL_MINUTES"):
            config = config.with_sweep_interval(minutes=float(interval))
        if abandoned := get("ABANDONED_ORDER_TTL_HOURS"):
            config = config.with_abandoned_order_ttl(hours=float(abandoned))
        if timeout := get("HTTP_TIMEOUT"):
            config = config.with_http_timeout(float(timeout))
        if sender := get("MAIL_FROM"):
            config = config.with_mail_sender(sender, get("MAIL_FROM_NAME"))
        json_flag = (get("LOG_JSON") or "").lower() in ("1", "true", "yes")
        config = config.with_logging(get("LOG_LEVEL") or config.log_level, json=json_flag)
        return config


__all__ = ("Config", "ENV_PREFIX")
