"""
Notifier — fire-and-forget order emails.

Sends run as background tasks on the running loop. A failed send is logged
and never reaches the checkout flow that triggered it.
"""

from __future__ import annotations

import asyncio

from storefront._log import get_logger
from storefront.accounts import User
from storefront.ledger import Order
from storefront.notify._mailer import EmailMessage, Mailer
from storefront.notify._templates import (
    order_confirmed_email,
    order_confirmed_subject,
    order_created_email,
    order_created_subject,
)


log = get_logger(__name__)


class Notifier:
    """
    Example:
        notifier = Notifier(MemoryMailer())
        notifier.order_created(order, user)
        await notifier.drain()
    """

    def __init__(self, mailer: Mailer) -> None:
        self._mailer = mailer
        self._tasks: set[asyncio.Task[None]] = set()

    def order_created(self, order: Order, user: User) -> None:
        self._dispatch(
            "order_created",
            order,
            EmailMessage(
                to=user.email,
                subject=order_created_subject(order),
                html=order_created_email(order, user.first_name),
            ),
        )

    def order_confirmed(self, order: Order, user: User) -> None:
        self._dispatch(
            "order_confirmed",
            order,
            EmailMessage(
                to=user.email,
                subject=order_confirmed_subject(order),
                html=order_confirmed_email(order, user.first_name),
            ),
        )

    async def drain(self) -> None:
        """Wait for in-flight sends. For shutdown and tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _dispatch(self, kind: str, order: Order, message: EmailMessage) -> None:
        task = asyncio.get_running_loop().create_task(self._send(kind, order, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, kind: str, order: Order, message: EmailMessage) -> None:
        try:
            await self._mailer.send(message)
        except Exception as e:
            log.error("email_failed", kind=kind, order_id=order.id, to=message.to, error=str(e))
        else:
            log.info("email_sent", kind=kind, order_id=order.id, to=message.to)


__all__ = ("Notifier",)
