"""
Ledger — typed storage protocol for orders.

All methods return Result for explicit error handling. Orders are never
deleted: they only move between statuses.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

from kungfu import Result, Ok

from storefront._errors import StoreError
from storefront._types import ZERO
from storefront.ledger._types import (
    Confirmation,
    NewOrder,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    merge_metadata,
)


EUPAGO_METHODS = (PaymentMethod.EUPAGO_MULTIBANCO, PaymentMethod.EUPAGO_MBWAY)


def new_order_id() -> str:
    return str(uuid.uuid4())


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Ledger(Protocol):
    """
    Order storage.

    confirm() is the only payment transition and must be a compare-and-swap:
    exactly one of any number of concurrent calls for the same order gets
    applied=True.
    """

    async def create_pending(self, new: NewOrder) -> Result[Order, StoreError]:
        """Insert the order and its items as one unit, pending/pending."""
        ...

    async def get(self, order_id: str) -> Result[Order | None, StoreError]: ...

    async def confirm(
        self,
        order_id: str,
        patch: Mapping[str, Any],
        at: datetime,
    ) -> Result[Confirmation | None, StoreError]:
        """
        Mark confirmed/completed and shallow-merge patch into the metadata.

        Ok(None) if the order does not exist. Already completed orders are
        returned untouched with applied=False.
        """
        ...

    async def fail_payment(
        self, order_id: str, at: datetime
    ) -> Result[Order | None, StoreError]:
        """
        Close an unpaid order as cancelled/failed. Completed orders are
        returned untouched. Ok(None) if the order does not exist.
        """
        ...

    async def find_by_ref(
        self, method: PaymentMethod, ref: str
    ) -> Result[Order | None, StoreError]:
        """Lookup by the durable provider id (PayPal order, Stripe intent)."""
        ...

    async def find_by_eupago(
        self,
        *,
        reference: str | None = None,
        entity: str | None = None,
        transaction_id: str | None = None,
        identifier: str | None = None,
    ) -> Result[Order | None, StoreError]:
        """Try reference+entity, then transaction id, then identifier."""
        ...

    async def list_orders(
        self, user_id: str | None = None
    ) -> Result[list[Order], StoreError]:
        """Newest first."""
        ...

    async def update_status(
        self, order_id: str, status: OrderStatus, at: datetime
    ) -> Result[Order | None, StoreError]: ...

    async def cancel_abandoned(
        self, older_than: datetime, at: datetime
    ) -> Result[list[str], StoreError]:
        """Cancel pending/pending orders created before older_than. Returns ids."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryLedger:
    """
    In-memory ledger for tests and local runs.

    A single asyncio.Lock makes every read-check-write atomic.
    """

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()

    async def create_pending(self, new: NewOrder) -> Result[Order, StoreError]:
        order = Order(
            id=new_order_id(),
            user_id=new.user_id,
            total=new.total,
            status=OrderStatus.PENDING,
            payment_method=new.payment_method,
            payment_status=PaymentStatus.PENDING,
            items=new.items,
            created_at=new.created_at,
            updated_at=new.created_at,
            shipping_address=new.shipping_address,
            notes=new.notes,
            shipping_option_id=new.shipping.option_id if new.shipping else None,
            shipping_cost=new.shipping.cost if new.shipping else ZERO,
            shipping_option_name=new.shipping.name if new.shipping else None,
            payment_metadata=dict(new.payment_metadata),
            correlation=new.correlation,
        )
        async with self._lock:
            self._orders[order.id] = order
        return Ok(order)

    async def get(self, order_id: str) -> Result[Order | None, StoreError]:
        async with self._lock:
            return Ok(self._orders.get(order_id))

    async def confirm(
        self,
        order_id: str,
        patch: Mapping[str, Any],
        at: datetime,
    ) -> Result[Confirmation | None, StoreError]:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return Ok(None)
            if order.payment_status is PaymentStatus.COMPLETED:
                return Ok(Confirmation(order, applied=False))

            updated = replace(
                order,
                status=OrderStatus.CONFIRMED,
                payment_status=PaymentStatus.COMPLETED,
                payment_metadata=merge_metadata(order.payment_metadata, patch),
                updated_at=at,
            )
            self._orders[order_id] = updated
            return Ok(Confirmation(updated, applied=True))

    async def find_by_ref(
        self, method: PaymentMethod, ref: str
    ) -> Result[Order | None, StoreError]:
        async with self._lock:
            return Ok(next(
                (
                    o for o in self._orders.values()
                    if o.payment_method is method and o.correlation.ref == ref
                ),
                None,
            ))

    async def find_by_eupago(
        self,
        *,
        reference: str | None = None,
        entity: str | None = None,
        transaction_id: str | None = None,
        identifier: str | None = None,
    ) -> Result[Order | None, StoreError]:
        async with self._lock:
            candidates = [o for o in self._orders.values() if o.payment_method in EUPAGO_METHODS]

        def first(pred: Any) -> Order | None:
            return next((o for o in candidates if pred(o.correlation)), None)

        order = None
        if reference:
            order = first(
                lambda c: c.reference == reference and (entity is None or c.entity == entity)
            )
        if order is None and transaction_id:
            order = first(lambda c: c.transaction_id == transaction_id)
        if order is None and identifier:
            order = first(lambda c: c.ref == identifier)
        return Ok(order)

    async def fail_payment(
        self, order_id: str, at: datetime
    ) -> Result[Order | None, StoreError]:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None or order.payment_status is not PaymentStatus.PENDING:
                return Ok(order)
            updated = replace(
                order,
                status=OrderStatus.CANCELLED,
                payment_status=PaymentStatus.FAILED,
                updated_at=at,
            )
            self._orders[order_id] = updated
            return Ok(updated)

    async def list_orders(
        self, user_id: str | None = None
    ) -> Result[list[Order], StoreError]:
        async with self._lock:
            orders = [
                o for o in self._orders.values()
                if user_id is None or o.user_id == user_id
            ]
        return Ok(sorted(orders, key=lambda o: o.created_at, reverse=True))

    async def update_status(
        self, order_id: str, status: OrderStatus, at: datetime
    ) -> Result[Order | None, StoreError]:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return Ok(None)
            updated = replace(order, status=status, updated_at=at)
            self._orders[order_id] = updated
            return Ok(updated)

    async def cancel_abandoned(
        self, older_than: datetime, at: datetime
    ) -> Result[list[str], StoreError]:
        cancelled: list[str] = []
        async with self._lock:
            for order in list(self._orders.values()):
                if (
                    order.status is OrderStatus.PENDING
                    and order.payment_status is PaymentStatus.PENDING
                    and order.created_at < older_than
                ):
                    self._orders[order.id] = replace(
                        order,
                        status=OrderStatus.CANCELLED,
                        payment_status=PaymentStatus.FAILED,
                        updated_at=at,
                    )
                    cancelled.append(order.id)
        return Ok(cancelled)


__all__ = ("EUPAGO_METHODS", "new_order_id", "Ledger", "MemoryLedger")
