"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable values that cross component boundaries: the chosen approver,
    a notification event, an outbound email, a channel delivery result, and
    the outcomes of routing, approval and threshold checks.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Services return these instead of ORM entities so that callers (and
    delivery jobs running outside the session) never touch a live
    ``Session``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from procurement_kernel.domain.budget import ThresholdTier
from procurement_kernel.domain.types import (
    ApprovalAction,
    NotificationType,
    RequestStatus,
    UserRole,
)


@dataclass(frozen=True)
class Approver:
    """The user expected to act next on a request."""

    user_id: UUID
    name: str
    email: str | None
    role: UserRole


@dataclass(frozen=True)
class NotificationEvent:
    """
    What to tell a user.

    Contract:
        metadata holds JSON-compatible scalars only (str, int, bool, None).
        Monetary values are carried as strings so that Decimal precision
        survives the JSON column round trip.
    """

    type: NotificationType
    title: str
    message: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class DeliveryResult:
    """Result of an email send.  Channels return this instead of raising."""

    sent: bool
    error: str | None = None


@dataclass(frozen=True)
class RoutingOutcome:
    """Result of routing a request that has left draft."""

    request_id: UUID
    status: RequestStatus
    approver: Approver | None
    notified_user_ids: tuple[UUID, ...] = ()

    @property
    def auto_approved(self) -> bool:
        return self.status == RequestStatus.APPROVED

    @property
    def blocked_on_supplier(self) -> bool:
        return self.status == RequestStatus.PENDING and self.approver is None


@dataclass(frozen=True)
class ApprovalOutcome:
    """Result of a completed approve/reject action."""

    request_id: UUID
    action: ApprovalAction
    status: RequestStatus
    approver_id: UUID
    history_id: UUID


@dataclass(frozen=True)
class ThresholdCheck:
    """
    Result of a department threshold check.

    Guarantees:
        - tier is None when spend is below every threshold.
        - suppressed is True when an alert for this tier was already sent
          inside the dedup window; recipient_ids is then empty.
    """

    department_id: UUID
    department_name: str
    spend: Decimal
    budget: Decimal
    percentage: int
    tier: ThresholdTier | None
    suppressed: bool = False
    recipient_ids: tuple[UUID, ...] = ()

    @property
    def alerted(self) -> bool:
        return bool(self.recipient_ids)
