"""
Pure domain layer.

This module contains enums, value objects and DTOs with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time is injected through ``Clock``.
"""

from procurement_kernel.domain.budget import (
    ThresholdRatios,
    ThresholdTier,
    classify_spend,
    decimal_to_str,
    format_money,
    spend_percentage,
)
from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.dtos import (
    ApprovalOutcome,
    Approver,
    DeliveryResult,
    EmailMessage,
    NotificationEvent,
    RoutingOutcome,
    ThresholdCheck,
)
from procurement_kernel.domain.supplier import (
    APPROVED_SUPPLIER_STATUSES,
    SupplierStatus,
    is_supplier_eligible,
)
from procurement_kernel.domain.types import (
    MANAGERIAL_ROLES,
    REQUEST_TRANSITIONS,
    TERMINAL_REQUEST_STATUSES,
    ApprovalAction,
    NotificationType,
    OrderStatus,
    RequestStatus,
    UserRole,
    can_transition,
)

__all__ = [
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Enums and state machine
    "UserRole",
    "MANAGERIAL_ROLES",
    "RequestStatus",
    "REQUEST_TRANSITIONS",
    "TERMINAL_REQUEST_STATUSES",
    "can_transition",
    "ApprovalAction",
    "NotificationType",
    "OrderStatus",
    # Suppliers
    "SupplierStatus",
    "APPROVED_SUPPLIER_STATUSES",
    "is_supplier_eligible",
    # Budget
    "ThresholdTier",
    "ThresholdRatios",
    "classify_spend",
    "spend_percentage",
    "format_money",
    "decimal_to_str",
    # DTOs
    "Approver",
    "NotificationEvent",
    "EmailMessage",
    "DeliveryResult",
    "RoutingOutcome",
    "ApprovalOutcome",
    "ThresholdCheck",
]
