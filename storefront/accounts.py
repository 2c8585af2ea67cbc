"""
Accounts — the session user as the payment core sees it.

Login and registration live elsewhere. The core only needs to know who is
paying, whether an admin approved them, and where to send email.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from sqlalchemy import String, Text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from storefront._db import Base


class AccountStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Role(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass(frozen=True, slots=True)
class User:
    id: str
    email: str
    first_name: str = ""
    clinic_address: str = ""
    status: AccountStatus = AccountStatus.APPROVED
    role: Role = Role.CUSTOMER

    @property
    def is_approved(self) -> bool:
        return self.status is AccountStatus.APPROVED

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class UserDirectory(Protocol):
    """Lookup used when no session is present (webhooks)."""

    async def get_user(self, user_id: str) -> User | None: ...


class MemoryUserDirectory:
    def __init__(self, *users: User) -> None:
        self._users = {user.id: user for user in users}
        self._lock = asyncio.Lock()

    async def put(self, user: User) -> None:
        async with self._lock:
            self._users[user.id] = user

    async def get_user(self, user_id: str) -> User | None:
        async with self._lock:
            return self._users.get(user_id)


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy directory
# ═══════════════════════════════════════════════════════════════════════════════


class UserTable(Base):
    """Read model of the account fields the payment core needs."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    clinic_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=AccountStatus.PENDING.value)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=Role.CUSTOMER.value)


class SQLAlchemyUserDirectory:
    """
    Example:
        session_factory, engine = await create_database(url)
        users = SQLAlchemyUserDirectory(session_factory)
        await users.put(User("u1", "ana@clinic.pt", "Ana"))
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def put(self, user: User) -> None:
        async with self._session() as session:
            await session.merge(
                UserTable(
                    id=user.id,
                    email=user.email,
                    first_name=user.first_name,
                    clinic_address=user.clinic_address,
                    status=user.status.value,
                    role=user.role.value,
                )
            )
            await session.commit()

    async def get_user(self, user_id: str) -> User | None:
        async with self._session() as session:
            row = await session.get(UserTable, user_id)
            if row is None:
                return None
            return User(
                id=row.id,
                email=row.email,
                first_name=row.first_name,
                clinic_address=row.clinic_address,
                status=AccountStatus(row.status),
                role=Role(row.role),
            )


__all__ = (
    "AccountStatus",
    "Role",
    "User",
    "UserDirectory",
    "MemoryUserDirectory",
    "UserTable",
    "SQLAlchemyUserDirectory",
)
