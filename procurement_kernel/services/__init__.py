"""Kernel services (flush-only, caller owns the transaction)."""

from procurement_kernel.services.base import BaseService
from procurement_kernel.services.notification_store import NotificationStore

__all__ = [
    "BaseService",
    "NotificationStore",
]
