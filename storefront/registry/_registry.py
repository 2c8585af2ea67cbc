"""
Pending-payment registry — provider id → local order, for 30 minutes.

PayPal and Stripe confirm calls only carry the provider's id. The registry
maps it back to the order and the snapshot taken at creation. It is a cache
in front of the order row: entries older than the TTL are invisible to get()
and removed by sweep().
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

from storefront._types import Clock, Money, utcnow
from storefront.catalog import CartSnapshotItem, SnapshotSource
from storefront.shipping import ShippingSelection


DEFAULT_TTL = timedelta(minutes=30)


@dataclass(frozen=True, slots=True)
class PendingPayment:
    user_id: str
    order_id: str
    cart_snapshot: tuple[CartSnapshotItem, ...]
    total: Money
    created_at: datetime
    source: SnapshotSource | None
    shipping: ShippingSelection | None = None

    @property
    def shipping_option_id(self) -> str | None:
        return self.shipping.option_id if self.shipping else None

    def expired(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.created_at > ttl


class PendingPaymentRegistry:
    """
    Concurrency-safe map of in-flight payments.

    Example:
        registry = PendingPaymentRegistry(ttl=timedelta(minutes=30))
        await registry.put(intent.id, PendingPayment(...))
        entry = await registry.get(intent.id)   # None once expired
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Clock = utcnow) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, PendingPayment] = {}
        self._lock = asyncio.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def put(self, provider_id: str, entry: PendingPayment) -> None:
        async with self._lock:
            self._entries[provider_id] = entry

    async def get(self, provider_id: str) -> PendingPayment | None:
        async with self._lock:
            entry = self._entries.get(provider_id)
            if entry is None:
                return None
            if entry.expired(self._clock(), self._ttl):
                del self._entries[provider_id]
                return None
            return entry

    async def delete(self, provider_id: str) -> bool:
        async with self._lock:
            return self._entries.pop(provider_id, None) is not None

    async def sweep(self) -> int:
        """Drop expired entries regardless of state. Returns how many."""
        now = self._clock()
        async with self._lock:
            stale = [k for k, v in self._entries.items() if v.expired(now, self._ttl)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ("DEFAULT_TTL", "PendingPayment", "PendingPaymentRegistry")
