"""
Notify — order-created and order-confirmed emails, best effort.
"""

from storefront.notify._mailer import EmailMessage, Mailer, LogMailer, MemoryMailer
from storefront.notify._templates import (
    order_created_subject,
    order_confirmed_subject,
    order_created_email,
    order_confirmed_email,
)
from storefront.notify._notifier import Notifier

__all__ = (
    "EmailMessage",
    "Mailer",
    "LogMailer",
    "MemoryMailer",
    "order_created_subject",
    "order_confirmed_subject",
    "order_created_email",
    "order_confirmed_email",
    "Notifier",
)
