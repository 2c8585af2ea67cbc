"""
SQLAlchemy catalog — products and cart lines.

Prices are stored as integer cents.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from storefront._db import Base
from storefront._types import from_cents, to_cents, money
from storefront.catalog._types import CartItem, Product, PromotionRule


# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════


class ProductTable(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # [{"minQuantity": 5, "pricePerUnit": "90.00"}, ...]
    promotion_rules: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )


class CartItemTable(Base):
    __tablename__ = "cart_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyCatalog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def put_product(self, product: Product) -> None:
        async with self._session() as session:
            await session.merge(
                ProductTable(
                    id=product.id,
                    name=product.name,
                    price_cents=to_cents(product.price),
                    in_stock=product.in_stock,
                    is_active=product.is_active,
                    promotion_rules=[
                        {
                            "minQuantity": rule.min_quantity,
                            "pricePerUnit": str(money(rule.price_per_unit)),
                        }
                        for rule in product.promotion_rules
                    ],
                )
            )
            await session.commit()

    async def add_to_cart(self, user_id: str, product_id: str, quantity: int) -> None:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(CartItemTable).where(
                        CartItemTable.user_id == user_id,
                        CartItemTable.product_id == product_id,
                    )
                )
            ).scalar_one_or_none()

            if row is None:
                session.add(
                    CartItemTable(user_id=user_id, product_id=product_id, quantity=quantity)
                )
            else:
                row.quantity += quantity
            await session.commit()

    async def get_product(self, product_id: str) -> Product | None:
        async with self._session() as session:
            row = await session.get(ProductTable, product_id)
            return _to_product(row) if row else None

    async def get_cart_items(self, user_id: str) -> list[CartItem]:
        async with self._session() as session:
            rows = (
                await session.execute(
                    select(CartItemTable)
                    .where(CartItemTable.user_id == user_id)
                    .order_by(CartItemTable.id)
                )
            ).scalars()
            return [CartItem(row.product_id, row.quantity) for row in rows]

    async def clear_cart(self, user_id: str) -> None:
        async with self._session() as session:
            await session.execute(delete(CartItemTable).where(CartItemTable.user_id == user_id))
            await session.commit()


def _to_product(row: ProductTable) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        price=from_cents(row.price_cents),
        in_stock=row.in_stock,
        is_active=row.is_active,
        promotion_rules=tuple(
            PromotionRule(int(rule["minQuantity"]), money(rule["pricePerUnit"]))
            for rule in row.promotion_rules or ()
        ),
    )


__all__ = ("ProductTable", "CartItemTable", "SQLAlchemyCatalog")
