"""
Core types for storefront.

Re-exports from kungfu + money and clock helpers shared by every subpackage.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""EUR amount, always quantized to cents."""

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Decimal | int | str | float) -> Money:
    """
    Quantize to two decimals, half-up.

    Floats go through str() first so 19.99 stays 19.99.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Money) -> int:
    return int(money(value) * 100)


def from_cents(cents: int) -> Money:
    return money(Decimal(cents) / 100)


def format_money(value: Money) -> str:
    """'7' -> '7.00'. The wire format for every amount."""
    return f"{money(value):.2f}"


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC, matching what SQLite hands back."""
    return datetime.now(UTC).replace(tzinfo=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    "Money",
    "CENT",
    "ZERO",
    "money",
    "to_cents",
    "from_cents",
    "format_money",
    "Clock",
    "utcnow",
)
