"""
Module: procurement_kernel.models.supplier
Responsibility: Supplier reference record.  Only the fields the approval
    engine consults are modelled: status (eligibility gate) and contact
    email (purchase-request dispatch).
Architecture position: Kernel > Models.

Invariants enforced:
    - status is always a ``SupplierStatus`` member.  Free-form values from
      the supplier CRUD layer go through ``Supplier.from_legacy_status``.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TimestampedBase
from procurement_kernel.domain.supplier import SupplierStatus


class Supplier(TimestampedBase):
    """External vendor referenced by purchase requests."""

    __tablename__ = "suppliers"

    __table_args__ = (
        Index("idx_supplier_status", "status"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    status: Mapped[SupplierStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SupplierStatus.UNRECOGNIZED,
    )

    @classmethod
    def from_legacy_status(
        cls,
        name: str,
        status: str | None,
        contact_email: str | None = None,
    ) -> "Supplier":
        """Build a Supplier from a free-form legacy status string."""
        return cls(
            name=name,
            contact_email=contact_email,
            status=SupplierStatus.from_legacy(status),
        )

    @property
    def supplier_status(self) -> SupplierStatus:
        return SupplierStatus(self.status)

    def __repr__(self) -> str:
        return f"<Supplier {self.name} ({self.status})>"
