"""
Module: procurement_kernel.models.notification
Responsibility: In-app notification rows, the source of truth for what a
    user has been told.
Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are created by NotificationFanout and mutated only by read-state
      toggles.  Nothing deletes them automatically; an owner may delete one
      of their own through NotificationStore.
    - metadata holds JSON scalars only (Decimals as strings).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TimestampedBase, UUIDString
from procurement_kernel.domain.types import NotificationType


class Notification(TimestampedBase):
    """A message addressed to one user."""

    __tablename__ = "notifications"

    __table_args__ = (
        Index("idx_notification_user_read", "user_id", "read"),
        Index("idx_notification_user_created", "user_id", "created_at"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    type: Mapped[NotificationType] = mapped_column(String(30), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    message: Mapped[str] = mapped_column(Text, nullable=False)

    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_payload(self) -> dict[str, Any]:
        """Plain-data form published to the push channel."""
        return {
            "id": str(self.id),
            "userId": str(self.user_id),
            "type": NotificationType(self.type).value,
            "title": self.title,
            "message": self.message,
            "metadata": dict(self.metadata_ or {}),
            "read": self.read,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Notification {self.type} user={self.user_id} read={self.read}>"
