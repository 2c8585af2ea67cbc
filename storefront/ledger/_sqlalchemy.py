"""
SQLAlchemy ledger — orders and order items.

Money is stored as integer cents. Provider ids are copied out of the
metadata into indexed columns so webhooks and reconciliation can find an
order without the in-memory registry.

Confirmation is a guarded UPDATE:

    UPDATE orders SET status='confirmed', payment_status='completed', ...
    WHERE id = :id AND payment_status != 'completed'

and rowcount tells whether this call won.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, cast

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Result, Ok, Error

from storefront._db import Base
from storefront._errors import StoreError
from storefront._types import from_cents, to_cents
from storefront.ledger._store import EUPAGO_METHODS, new_order_id
from storefront.ledger._types import (
    Confirmation,
    NewOrder,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProviderCorrelation,
    merge_metadata,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════


class OrderTable(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    shipping_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    shipping_option_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    shipping_cost_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shipping_option_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Durable provider correlation
    provider_ref: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    provider_reference: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    provider_entity: Mapped[str | None] = mapped_column(String(32), nullable=True)
    provider_transaction_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class OrderItemTable(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id"), nullable=False, index=True
    )
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyLedger:
    """
    Ledger backed by any async SQLAlchemy engine.

    Example:
        session_factory, engine = await create_database("sqlite+aiosqlite:///shop.db")
        ledger = SQLAlchemyLedger(session_factory)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def create_pending(self, new: NewOrder) -> Result[Order, StoreError]:
        try:
            async with self._session() as session:
                order_id = new_order_id()
                session.add(
                    OrderTable(
                        id=order_id,
                        user_id=new.user_id,
                        total_cents=to_cents(new.total),
                        status=OrderStatus.PENDING.value,
                        payment_method=new.payment_method.value,
                        payment_status=PaymentStatus.PENDING.value,
                        payment_metadata=dict(new.payment_metadata),
                        shipping_address=new.shipping_address,
                        notes=new.notes,
                        shipping_option_id=new.shipping.option_id if new.shipping else None,
                        shipping_cost_cents=to_cents(new.shipping.cost) if new.shipping else 0,
                        shipping_option_name=new.shipping.name if new.shipping else None,
                        provider_ref=new.correlation.ref,
                        provider_reference=new.correlation.reference,
                        provider_entity=new.correlation.entity,
                        provider_transaction_id=new.correlation.transaction_id,
                        created_at=new.created_at,
                        updated_at=new.created_at,
                    )
                )
                # parent row before the items that reference it
                await session.flush()
                session.add_all(
                    OrderItemTable(
                        order_id=order_id,
                        product_id=item.product_id,
                        name=item.name,
                        quantity=item.quantity,
                        price_cents=to_cents(item.price),
                    )
                    for item in new.items
                )
                await session.commit()

                order = await _load(session, order_id)
                if order is None:
                    return Error(StoreError(f"Order vanished after insert: {order_id}"))
                return Ok(order)

        except Exception as e:
            return Error(StoreError(f"Failed to create order: {e}", e))

    async def get(self, order_id: str) -> Result[Order | None, StoreError]:
        try:
            async with self._session() as session:
                return Ok(await _load(session, order_id))
        except Exception as e:
            return Error(StoreError(f"Failed to get order: {e}", e))

    async def confirm(
        self,
        order_id: str,
        patch: Mapping[str, Any],
        at: datetime,
    ) -> Result[Confirmation | None, StoreError]:
        try:
            async with self._session() as session:
                row = await session.get(OrderTable, order_id)
                if row is None:
                    return Ok(None)

                if row.payment_status != PaymentStatus.COMPLETED.value:
                    merged = merge_metadata(row.payment_metadata or {}, patch)
                    stmt = (
                        update(OrderTable)
                        .where(
                            OrderTable.id == order_id,
                            OrderTable.payment_status != PaymentStatus.COMPLETED.value,
                        )
                        .values(
                            status=OrderStatus.CONFIRMED.value,
                            payment_status=PaymentStatus.COMPLETED.value,
                            payment_metadata=merged,
                            updated_at=at,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    cursor = cast(CursorResult[Any], await session.execute(stmt))
                    await session.commit()
                    applied = cursor.rowcount > 0
                else:
                    applied = False

                session.expire_all()
                order = await _load(session, order_id)
                if order is None:
                    return Ok(None)
                return Ok(Confirmation(order, applied=applied))

        except Exception as e:
            return Error(StoreError(f"Failed to confirm order: {e}", e))

    async def fail_payment(
        self, order_id: str, at: datetime
    ) -> Result[Order | None, StoreError]:
        try:
            async with self._session() as session:
                await session.execute(
                    update(OrderTable)
                    .where(
                        OrderTable.id == order_id,
                        OrderTable.payment_status == PaymentStatus.PENDING.value,
                    )
                    .values(
                        status=OrderStatus.CANCELLED.value,
                        payment_status=PaymentStatus.FAILED.value,
                        updated_at=at,
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                return Ok(await _load(session, order_id))
        except Exception as e:
            return Error(StoreError(f"Failed to fail order payment: {e}", e))

    async def find_by_ref(
        self, method: PaymentMethod, ref: str
    ) -> Result[Order | None, StoreError]:
        try:
            async with self._session() as session:
                order_id = (
                    await session.execute(
                        select(OrderTable.id).where(
                            OrderTable.payment_method == method.value,
                            OrderTable.provider_ref == ref,
                        )
                    )
                ).scalars().first()
                return Ok(await _load(session, order_id) if order_id else None)
        except Exception as e:
            return Error(StoreError(f"Failed to find order: {e}", e))

    async def find_by_eupago(
        self,
        *,
        reference: str | None = None,
        entity: str | None = None,
        transaction_id: str | None = None,
        identifier: str | None = None,
    ) -> Result[Order | None, StoreError]:
        eupago = OrderTable.payment_method.in_([m.value for m in EUPAGO_METHODS])
        attempts = []
        if reference:
            by_reference = [eupago, OrderTable.provider_reference == reference]
            if entity is not None:
                by_reference.append(OrderTable.provider_entity == entity)
            attempts.append(by_reference)
        if transaction_id:
            attempts.append([eupago, OrderTable.provider_transaction_id == transaction_id])
        if identifier:
            attempts.append([eupago, OrderTable.provider_ref == identifier])

        try:
            async with self._session() as session:
                for criteria in attempts:
                    order_id = (
                        await session.execute(select(OrderTable.id).where(*criteria))
                    ).scalars().first()
                    if order_id:
                        return Ok(await _load(session, order_id))
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to find EuPago order: {e}", e))

    async def list_orders(
        self, user_id: str | None = None
    ) -> Result[list[Order], StoreError]:
        try:
            async with self._session() as session:
                stmt = select(OrderTable).order_by(OrderTable.created_at.desc())
                if user_id is not None:
                    stmt = stmt.where(OrderTable.user_id == user_id)
                rows = list((await session.execute(stmt)).scalars())
                items = await _items_for(session, [row.id for row in rows])
                return Ok([_to_order(row, items.get(row.id, ())) for row in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list orders: {e}", e))

    async def update_status(
        self, order_id: str, status: OrderStatus, at: datetime
    ) -> Result[Order | None, StoreError]:
        try:
            async with self._session() as session:
                row = await session.get(OrderTable, order_id)
                if row is None:
                    return Ok(None)
                row.status = status.value
                row.updated_at = at
                await session.commit()
                return Ok(await _load(session, order_id))
        except Exception as e:
            return Error(StoreError(f"Failed to update order status: {e}", e))

    async def cancel_abandoned(
        self, older_than: datetime, at: datetime
    ) -> Result[list[str], StoreError]:
        try:
            async with self._session() as session:
                stale = (
                    OrderTable.status == OrderStatus.PENDING.value,
                    OrderTable.payment_status == PaymentStatus.PENDING.value,
                    OrderTable.created_at < older_than,
                )
                ids = list(
                    (await session.execute(select(OrderTable.id).where(*stale))).scalars()
                )
                if not ids:
                    return Ok([])

                # state re-checked in the UPDATE: a confirm may land in between
                await session.execute(
                    update(OrderTable)
                    .where(OrderTable.id.in_(ids), *stale)
                    .values(
                        status=OrderStatus.CANCELLED.value,
                        payment_status=PaymentStatus.FAILED.value,
                        updated_at=at,
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.commit()

                cancelled = (
                    await session.execute(
                        select(OrderTable.id).where(
                            OrderTable.id.in_(ids),
                            OrderTable.status == OrderStatus.CANCELLED.value,
                        )
                    )
                ).scalars()
                return Ok(list(cancelled))
        except Exception as e:
            return Error(StoreError(f"Failed to cancel abandoned orders: {e}", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Row mapping
# ═══════════════════════════════════════════════════════════════════════════════


async def _items_for(
    session: AsyncSession, order_ids: list[str]
) -> dict[str, tuple[OrderItem, ...]]:
    if not order_ids:
        return {}
    rows = (
        await session.execute(
            select(OrderItemTable)
            .where(OrderItemTable.order_id.in_(order_ids))
            .order_by(OrderItemTable.id)
        )
    ).scalars()

    grouped: dict[str, list[OrderItem]] = {}
    for row in rows:
        grouped.setdefault(row.order_id, []).append(
            OrderItem(
                product_id=row.product_id,
                name=row.name,
                quantity=row.quantity,
                price=from_cents(row.price_cents),
            )
        )
    return {order_id: tuple(items) for order_id, items in grouped.items()}


async def _load(session: AsyncSession, order_id: str) -> Order | None:
    row = (
        await session.execute(select(OrderTable).where(OrderTable.id == order_id))
    ).scalar_one_or_none()
    if row is None:
        return None
    items = await _items_for(session, [order_id])
    return _to_order(row, items.get(order_id, ()))


def _to_order(row: OrderTable, items: tuple[OrderItem, ...]) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        total=from_cents(row.total_cents),
        status=OrderStatus(row.status),
        payment_method=PaymentMethod(row.payment_method),
        payment_status=PaymentStatus(row.payment_status),
        items=items,
        created_at=row.created_at,
        updated_at=row.updated_at,
        shipping_address=row.shipping_address,
        notes=row.notes,
        shipping_option_id=row.shipping_option_id,
        shipping_cost=from_cents(row.shipping_cost_cents),
        shipping_option_name=row.shipping_option_name,
        payment_metadata=dict(row.payment_metadata or {}),
        correlation=ProviderCorrelation(
            ref=row.provider_ref,
            reference=row.provider_reference,
            entity=row.provider_entity,
            transaction_id=row.provider_transaction_id,
        ),
    )


__all__ = ("OrderTable", "OrderItemTable", "SQLAlchemyLedger")
