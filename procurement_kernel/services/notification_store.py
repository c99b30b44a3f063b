"""
NotificationStore -- persistence and read state for in-app notifications.

Responsibility:
    Create notification rows, list them for their owner, toggle read state,
    count unread, and delete on explicit owner request.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.

Invariants enforced:
    - Ownership: mark_as_read and delete only touch a notification whose
      user_id matches the caller's user.  Otherwise NotificationNotFoundError
      (the row's existence is not disclosed to non-owners).
    - Only the ``read`` flag is ever updated.

Failure modes:
    - create() propagates database errors.  The persisted row is the source
      of truth, so its failure must reach the caller.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update

from procurement_kernel.domain.types import NotificationType
from procurement_kernel.exceptions import NotificationNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.notification import Notification
from procurement_kernel.services.base import BaseService

logger = get_logger("services.notification_store")


class NotificationStore(BaseService[Notification]):
    """Data access for Notification rows."""

    def create(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=NotificationType(type).value,
            title=title,
            message=message,
            metadata_=dict(metadata or {}),
            read=False,
            created_at=self._clock.now(),
        )
        self._persist(notification)

        logger.debug(
            "notification_created",
            extra={
                "notification_id": str(notification.id),
                "user_id": str(user_id),
                "notification_type": notification.type,
            },
        )
        return notification

    def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Notifications owned by ``user_id``, newest first."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        return list(self.session.scalars(stmt))

    def _get_owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
        notification = self.session.scalars(stmt).first()
        if notification is None:
            raise NotificationNotFoundError(str(notification_id), str(user_id))
        return notification

    def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        """
        Mark one notification read.

        Raises:
            NotificationNotFoundError: If it does not exist or belongs to
                someone else.
        """
        notification = self._get_owned(notification_id, user_id)
        if not notification.read:
            notification.read = True
            self.session.flush()
        return notification

    def mark_all_as_read(self, user_id: UUID) -> int:
        """Mark every unread notification of ``user_id`` read.  Returns the count."""
        result = self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session="fetch")
        )
        count = result.rowcount or 0
        logger.info(
            "notifications_marked_read",
            extra={"user_id": str(user_id), "count": count},
        )
        return count

    def unread_count(self, user_id: UUID) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        return int(self.session.scalar(stmt) or 0)

    def delete(self, notification_id: UUID, user_id: UUID) -> None:
        """
        Delete one of the owner's notifications.

        Raises:
            NotificationNotFoundError: If it does not exist or belongs to
                someone else.
        """
        notification = self._get_owned(notification_id, user_id)
        self.session.delete(notification)
        self.session.flush()
        logger.info(
            "notification_deleted",
            extra={"notification_id": str(notification_id), "user_id": str(user_id)},
        )
