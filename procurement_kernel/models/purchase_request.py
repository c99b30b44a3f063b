"""
Module: procurement_kernel.models.purchase_request
Responsibility: ORM persistence for purchase requests, the aggregate whose
    status the approval engine drives.
Architecture position: Kernel > Models.

Invariants enforced:
    - status follows REQUEST_TRANSITIONS; nothing leaves APPROVED/REJECTED.
      Enforced by ApprovalProcessor, which mutates status only through a
      conditional UPDATE guarded by the expected status and ``version``.
    - version increases by exactly one on every status change.

Failure modes:
    - A stale ``version`` in the conditional UPDATE affects zero rows; the
      processor turns that into InvalidRequestStateError.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import TimestampedBase, UUIDString
from procurement_kernel.domain.types import RequestStatus
from procurement_kernel.models.organization import User
from procurement_kernel.models.supplier import Supplier


class PurchaseRequest(TimestampedBase):
    """
    A request to buy goods or services.

    Contract:
        current_approver_id is who must act next; approver_id is who last
        acted.  budget_category is a legacy free-text department name that
        the budget monitor also counts as spend for that department.
    """

    __tablename__ = "purchase_requests"

    __table_args__ = (
        Index("idx_request_status", "status"),
        Index("idx_request_requester", "requester_id"),
        Index("idx_request_current_approver", "current_approver_id"),
    )

    requester_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    status: Mapped[RequestStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RequestStatus.IN_PROGRESS,
    )

    current_approver_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    approver_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    supplier_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("suppliers.id"),
        nullable=True,
    )

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    budget_category: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Optimistic concurrency counter
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    requester: Mapped[User] = relationship("User", foreign_keys=[requester_id])

    supplier: Mapped[Supplier | None] = relationship("Supplier", foreign_keys=[supplier_id])

    @property
    def is_routable(self) -> bool:
        """IN_PROGRESS, or PENDING with nobody assigned (blocked on its supplier)."""
        if self.status == RequestStatus.IN_PROGRESS:
            return True
        return self.status == RequestStatus.PENDING and self.current_approver_id is None

    @property
    def short_id(self) -> str:
        """First eight characters of the id, as shown in subjects and messages."""
        return str(self.id)[:8]

    def __repr__(self) -> str:
        return f"<PurchaseRequest {self.short_id} {self.status} v{self.version}>"
