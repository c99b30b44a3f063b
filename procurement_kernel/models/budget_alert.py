"""
Module: procurement_kernel.models.budget_alert
Responsibility: Last time each (department, tier) budget alert fired.  The
    threshold monitor reads one row by composite key to decide whether an
    alert is still inside the dedup window.
Architecture position: Kernel > Models.

Invariants enforced:
    - One row per (department_id, tier) (uq_budget_alert_department_tier).
    - last_alerted_at only moves forward.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base, UTCDateTime, UUIDString
from procurement_kernel.domain.budget import ThresholdTier


class BudgetAlert(Base):
    """Dedup marker for a department's threshold tier."""

    __tablename__ = "budget_alerts"

    __table_args__ = (
        UniqueConstraint(
            "department_id", "tier",
            name="uq_budget_alert_department_tier",
        ),
    )

    department_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("departments.id"),
        nullable=False,
    )

    tier: Mapped[ThresholdTier] = mapped_column(String(20), nullable=False)

    last_alerted_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<BudgetAlert dept={self.department_id} {self.tier} at={self.last_alerted_at}>"
