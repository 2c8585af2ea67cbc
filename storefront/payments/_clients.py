"""
Client cache — one provider client per (provider, fingerprint).

Clients are rebuilt when the stored settings change and closed when evicted.
Saving settings calls invalidate() so the next request uses fresh credentials.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping
from typing import Any

from storefront._log import get_logger
from storefront.payments._settings import ProviderSettings, fingerprint
from storefront.payments._types import Provider


log = get_logger(__name__)


type ClientFactory = Callable[[Any], Any]


class ClientCache:
    """
    Example:
        clients = ClientCache({Provider.PAYPAL: PayPalClient.from_settings})
        paypal = await clients.get(Provider.PAYPAL, settings)
        await clients.invalidate(Provider.PAYPAL)
    """

    def __init__(self, factories: Mapping[Provider, ClientFactory]) -> None:
        self._factories = dict(factories)
        self._clients: dict[Provider, tuple[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, provider: Provider, settings: ProviderSettings) -> Any:
        key = fingerprint(provider, settings)
        async with self._lock:
            cached = self._clients.get(provider)
            if cached is not None and cached[0] == key:
                return cached[1]

            client = self._factories[provider](settings)
            self._clients[provider] = (key, client)

        if cached is not None:
            await _close(provider, cached[1])
        log.info("provider_client_built", provider=provider.value)
        return client

    async def invalidate(self, provider: Provider | None = None) -> int:
        """Drop one provider's client, or all of them. Returns how many."""
        async with self._lock:
            targets = [provider] if provider is not None else list(self._clients)
            evicted = [
                (p, self._clients.pop(p)[1]) for p in targets if p in self._clients
            ]

        for p, client in evicted:
            await _close(p, client)
        if evicted:
            log.info("provider_clients_invalidated", providers=[p.value for p, _ in evicted])
        return len(evicted)

    async def aclose(self) -> None:
        await self.invalidate()


async def _close(provider: Provider, client: Any) -> None:
    close = getattr(client, "aclose", None)
    if close is None:
        return
    try:
        result = close()
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        log.warning("provider_client_close_failed", provider=provider.value, error=str(e))


__all__ = ("ClientFactory", "ClientCache")
