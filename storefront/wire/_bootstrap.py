"""
Bootstrap — build the SQLAlchemy-backed service from a Config.

    stack = await build_stack(Config.from_env())
    app = create_app(stack.service, stack.sweeper)
    ...
    await stack.engine.dispose()

Without a users= directory, confirmation emails look recipients up in the
"users" table (SQLAlchemyUserDirectory), kept in sync by the account layer.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from storefront import _log
from storefront._db import create_database
from storefront.accounts import SQLAlchemyUserDirectory, UserDirectory
from storefront.catalog import SQLAlchemyCatalog
from storefront.config import Config
from storefront.ledger import SQLAlchemyLedger
from storefront.notify import LogMailer, Mailer, Notifier
from storefront.payments import PaymentService, SQLAlchemySettingsStore
from storefront.registry import PendingPaymentRegistry
from storefront.scheduler import Sweeper


@dataclass(frozen=True, slots=True)
class Stack:
    service: PaymentService
    sweeper: Sweeper
    engine: AsyncEngine


async def build_stack(
    config: Config,
    *,
    mailer: Mailer | None = None,
    users: UserDirectory | None = None,
) -> Stack:
    _log.configure(config.log_level, json=config.log_json)
    session_factory, engine = await create_database(config.database_url)

    service = PaymentService(
        catalog=SQLAlchemyCatalog(session_factory),
        ledger=SQLAlchemyLedger(session_factory),
        settings=SQLAlchemySettingsStore(session_factory),
        registry=PendingPaymentRegistry(ttl=config.pending_payment_ttl),
        notifier=Notifier(mailer or LogMailer(config.mail_sender, config.mail_sender_name)),
        users=users or SQLAlchemyUserDirectory(session_factory),
        config=config,
    )
    return Stack(service=service, sweeper=Sweeper(service), engine=engine)


__all__ = ("Stack", "build_stack")
