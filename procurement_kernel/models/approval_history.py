"""
Module: procurement_kernel.models.approval_history
Responsibility: Append-only audit trail of approve/reject actions.
Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are immutable once flushed: ORM listeners reject UPDATE and
      DELETE with ImmutabilityViolationError.
    - One row per action taken, including an APPROVE that was refused
      because the supplier is not eligible (recorded as an attempt).

Audit relevance:
    The history row is flushed before the request status is mutated, so the
    trail never under-reports an action whose status change happened.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base, UTCDateTime, UUIDString, utcnow
from procurement_kernel.domain.types import ApprovalAction
from procurement_kernel.exceptions import ImmutabilityViolationError


class ApprovalHistory(Base):
    """One approve/reject action on a purchase request.  Append-only."""

    __tablename__ = "approval_history"

    __table_args__ = (
        Index("idx_approval_history_request", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_requests.id"),
        nullable=False,
    )

    approver_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    action: Mapped[ApprovalAction] = mapped_column(String(20), nullable=False)

    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ApprovalHistory request={self.request_id} {self.action}>"


@event.listens_for(ApprovalHistory, "before_update")
def prevent_history_update(mapper, connection, target):
    """Prevent updates to approval history records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalHistory",
        entity_id=str(target.id),
        reason="Approval history is append-only -- cannot modify",
    )


@event.listens_for(ApprovalHistory, "before_delete")
def prevent_history_delete(mapper, connection, target):
    """Prevent deletion of approval history records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalHistory",
        entity_id=str(target.id),
        reason="Approval history is append-only -- cannot delete",
    )
