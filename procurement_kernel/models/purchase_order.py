"""
Module: procurement_kernel.models.purchase_order
Responsibility: Purchase orders issued against approved requests.  Every
    non-cancelled order counts as committed spend for budget monitoring.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one order per request (uq_purchase_order_request).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import TimestampedBase, UUIDString
from procurement_kernel.domain.types import OrderStatus
from procurement_kernel.models.purchase_request import PurchaseRequest


class PurchaseOrder(TimestampedBase):
    """An order placed with a supplier for an approved request."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("request_id", name="uq_purchase_order_request"),
        Index("idx_purchase_order_status", "status"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_requests.id"),
        nullable=False,
    )

    supplier_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("suppliers.id"),
        nullable=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.IN_PROGRESS,
    )

    request: Mapped[PurchaseRequest] = relationship("PurchaseRequest")

    @property
    def counts_as_spend(self) -> bool:
        return self.status != OrderStatus.CANCELLED

    def __repr__(self) -> str:
        return f"<PurchaseOrder request={self.request_id} {self.status} {self.total_amount}>"
