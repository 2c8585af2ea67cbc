"""
Mailer — outbound email transport.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

from storefront._log import get_logger


log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class EmailMessage:
    to: str
    subject: str
    html: str


class Mailer(Protocol):
    async def send(self, message: EmailMessage) -> None:
        """Deliver or raise."""
        ...


class LogMailer:
    """Used when no transport is configured: the email is logged, not sent."""

    def __init__(self, sender: str = "noreply@storefront.local", sender_name: str = "Storefront") -> None:
        self.sender = f"{sender_name} <{sender}>" if sender_name else sender

    async def send(self, message: EmailMessage) -> None:
        log.warning(
            "email_not_sent",
            reason="no transport configured",
            sender=self.sender,
            to=message.to,
            subject=message.subject,
        )


class MemoryMailer:
    """Collects messages. fail=True makes every send raise."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[EmailMessage] = []
        self._fail = fail
        self._lock = asyncio.Lock()

    async def send(self, message: EmailMessage) -> None:
        if self._fail:
            raise ConnectionError("mail transport unavailable")
        async with self._lock:
            self.sent.append(message)


__all__ = ("EmailMessage", "Mailer", "LogMailer", "MemoryMailer")
