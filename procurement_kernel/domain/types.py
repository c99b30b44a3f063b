"""
Procurement domain enums and the purchase request state machine.

Responsibility
--------------
Pure value types shared by models, selectors and services: user roles,
request statuses and their transition table, approval actions,
notification kinds, and order statuses.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``,
``models/``, ``services/`` or outer packages.

Invariants enforced
-------------------
* ``REQUEST_TRANSITIONS`` is the only source of legal status changes.
  Terminal statuses (APPROVED, REJECTED) have no outgoing edges.
"""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    """Organizational role.  Drives routing and authorization."""

    MEMBER = "MEMBER"
    MANAGER = "MANAGER"
    SENIOR_MANAGER = "SENIOR_MANAGER"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


# Roles whose additional-role grants confer approval authority in a department
MANAGERIAL_ROLES: frozenset[UserRole] = frozenset({
    UserRole.MANAGER,
    UserRole.SENIOR_MANAGER,
})


class RequestStatus(str, Enum):
    """Purchase request lifecycle states."""

    IN_PROGRESS = "IN_PROGRESS"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.IN_PROGRESS: frozenset({
        RequestStatus.PENDING,
        # auto-approval when no approver is required
        RequestStatus.APPROVED,
    }),
    RequestStatus.PENDING: frozenset({
        # re-routing a request blocked on its supplier
        RequestStatus.PENDING,
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
    }),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.REJECTED,
})


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """True if ``current -> target`` is a legal request status change."""
    return target in REQUEST_TRANSITIONS.get(current, frozenset())


class ApprovalAction(str, Enum):
    """Actions an approver can take on a PENDING request."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"


class NotificationType(str, Enum):
    """Kinds of in-app notification."""

    SYSTEM_ALERT = "SYSTEM_ALERT"
    BUDGET_WARNING = "BUDGET_WARNING"
    BUDGET_CRITICAL = "BUDGET_CRITICAL"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    REQUEST_CREATED = "REQUEST_CREATED"
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    SUPPLIER_REQUEST = "SUPPLIER_REQUEST"
    ORDER_CREATED = "ORDER_CREATED"


class OrderStatus(str, Enum):
    """Purchase order lifecycle states.  CANCELLED orders are not spend."""

    IN_PROGRESS = "IN_PROGRESS"
    SENT = "SENT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
