"""
Errors — checkout failures as values.

Every operation returns Result[T, CheckoutError]. CheckoutError is also an
Exception so the HTTP layer can raise it at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Error kinds
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """Stable error codes, safe to show to the caller."""

    # configuration
    PROVIDER_NOT_CONFIGURED = "provider_not_configured"
    # authorization
    UNAUTHENTICATED = "unauthenticated"
    ACCOUNT_NOT_APPROVED = "account_not_approved"
    FORBIDDEN = "forbidden"
    # validation
    INVALID_QUANTITY = "invalid_quantity"
    SHIPPING_OPTION_REQUIRED = "shipping_option_required"
    INVALID_SHIPPING_OPTION = "invalid_shipping_option"
    UNSUPPORTED_COUNTRY = "unsupported_country"
    INVALID_PHONE = "invalid_phone"
    INVALID_STATUS = "invalid_status"
    # state
    EMPTY_CART = "empty_cart"
    PRODUCT_NOT_FOUND = "product_not_found"
    OUT_OF_STOCK = "out_of_stock"
    ORDER_NOT_FOUND = "order_not_found"
    # external
    PROVIDER_REJECTED = "provider_rejected"
    PAYMENT_NOT_COMPLETED = "payment_not_completed"
    # expiry
    PAYMENT_EXPIRED_OR_NOT_FOUND = "payment_expired_or_not_found"
    # internal
    STORAGE = "storage_error"


class CheckoutError(Exception):
    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"CheckoutError({self.kind.name}, {self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CheckoutError):
            return NotImplemented
        return self.kind == other.kind and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.kind, self.message))


class Errors:
    """Factories with the default messages."""

    @staticmethod
    def provider_not_configured(provider: str) -> CheckoutError:
        return CheckoutError(
            ErrorKind.PROVIDER_NOT_CONFIGURED,
            f"{provider} is not configured or enabled",
        )

    @staticmethod
    def unauthenticated() -> CheckoutError:
        return CheckoutError(ErrorKind.UNAUTHENTICATED, "Authentication required")

    @staticmethod
    def account_not_approved() -> CheckoutError:
        return CheckoutError(
            ErrorKind.ACCOUNT_NOT_APPROVED, "Your account is pending approval"
        )

    @staticmethod
    def forbidden() -> CheckoutError:
        return CheckoutError(ErrorKind.FORBIDDEN, "Unauthorized to confirm this payment")

    @staticmethod
    def invalid_quantity() -> CheckoutError:
        return CheckoutError(ErrorKind.INVALID_QUANTITY, "Invalid quantity")

    @staticmethod
    def shipping_option_required() -> CheckoutError:
        return CheckoutError(
            ErrorKind.SHIPPING_OPTION_REQUIRED, "Shipping option is required"
        )

    @staticmethod
    def invalid_shipping_option() -> CheckoutError:
        return CheckoutError(
            ErrorKind.INVALID_SHIPPING_OPTION,
            "Invalid shipping option for your location",
        )

    @staticmethod
    def unsupported_country(provider: str) -> CheckoutError:
        return CheckoutError(
            ErrorKind.UNSUPPORTED_COUNTRY,
            f"{provider} is only available for Portugal",
        )

    @staticmethod
    def invalid_phone() -> CheckoutError:
        return CheckoutError(
            ErrorKind.INVALID_PHONE, "A valid phone number is required for MBWay"
        )

    @staticmethod
    def invalid_status(status: str) -> CheckoutError:
        return CheckoutError(ErrorKind.INVALID_STATUS, f"Invalid order status: {status}")

    @staticmethod
    def empty_cart() -> CheckoutError:
        return CheckoutError(ErrorKind.EMPTY_CART, "Cart is empty")

    @staticmethod
    def product_not_found(name: str | None = None) -> CheckoutError:
        if name:
            return CheckoutError(
                ErrorKind.PRODUCT_NOT_FOUND, f"Product {name} is no longer available"
            )
        return CheckoutError(ErrorKind.PRODUCT_NOT_FOUND, "Product not found")

    @staticmethod
    def out_of_stock(name: str) -> CheckoutError:
        return CheckoutError(ErrorKind.OUT_OF_STOCK, f"Product {name} is out of stock")

    @staticmethod
    def order_not_found() -> CheckoutError:
        return CheckoutError(ErrorKind.ORDER_NOT_FOUND, "Order not found")

    @staticmethod
    def provider_rejected(provider: str) -> CheckoutError:
        return CheckoutError(
            ErrorKind.PROVIDER_REJECTED, f"{provider} rejected the payment request"
        )

    @staticmethod
    def payment_not_completed() -> CheckoutError:
        return CheckoutError(ErrorKind.PAYMENT_NOT_COMPLETED, "Payment not completed")

    @staticmethod
    def payment_expired(provider: str) -> CheckoutError:
        return CheckoutError(
            ErrorKind.PAYMENT_EXPIRED_OR_NOT_FOUND,
            f"{provider} payment expired or not found. Please try again.",
        )

    @staticmethod
    def storage() -> CheckoutError:
        return CheckoutError(ErrorKind.STORAGE, "Order storage is unavailable")


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


__all__ = (
    "ErrorKind",
    "CheckoutError",
    "Errors",
    "StoreError",
)
