"""
Scheduler — periodic housekeeping.

Every interval the sweeper drops expired registry entries and, when an
abandoned-order TTL is configured, cancels pending orders older than it.

    sweeper = Sweeper(service, interval=timedelta(minutes=5))
    sweeper.start()
    ...
    await sweeper.stop()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta

from kungfu import Ok, Error

from storefront._log import get_logger
from storefront.payments import PaymentService


log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SweepReport:
    expired_payments: int = 0
    cancelled_orders: tuple[str, ...] = field(default_factory=tuple)


class Sweeper:
    def __init__(self, service: PaymentService, interval: timedelta | None = None) -> None:
        self._service = service
        self._interval = interval or service.config.sweep_interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> SweepReport:
        expired = await self._service.registry.sweep()
        if expired:
            log.info("pending_payments_expired", count=expired)

        cancelled: tuple[str, ...] = ()
        if self._service.config.abandoned_order_ttl is not None:
            match await self._service.cancel_abandoned():
                case Ok(ids):
                    cancelled = tuple(ids)
                case Error(e):
                    log.error("abandoned_sweep_failed", error=e.message)

        return SweepReport(expired_payments=expired, cancelled_orders=cancelled)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        log.info("sweeper_started", interval_seconds=self._interval.total_seconds())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("sweeper_stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval.total_seconds())
            try:
                await self.run_once()
            except Exception as e:
                log.error("sweep_failed", error=str(e), exc_info=True)


__all__ = ("SweepReport", "Sweeper")
