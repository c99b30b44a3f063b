"""
NotificationFanout -- deliver one event to a user over every channel.

Responsibility:
    Per recipient:
      1. Persist a Notification row synchronously.  This is the source of
         truth; failures propagate to the caller.
      2. Hand a push publish of the serialized row to the DeliveryQueue.
      3. Hand an email to the DeliveryQueue unless the recipient is
         excluded for this call or has no address.
    Push and email are best effort: logged and dropped on failure, never
    rolling back the persisted row.  No retries at this layer.  Under
    ProcurementWorkflow the queue is the unit of work's outbox, so nothing
    is sent for a row that is later rolled back.

Architecture position:
    Services.  Flush-only through NotificationStore.

Stakeholders of a request:
    MANAGER/SENIOR_MANAGER users whose primary department is the
    requester's, then users holding a MANAGER/SENIOR_MANAGER grant in that
    department, then every SYSTEM_ADMIN.  The requester is removed and
    users are deduplicated by id, keeping first occurrence.
"""

from __future__ import annotations

from collections.abc import Iterable
from html import escape
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_kernel.domain.budget import decimal_to_str
from procurement_kernel.domain.dtos import EmailMessage, NotificationEvent
from procurement_kernel.domain.types import MANAGERIAL_ROLES, NotificationType
from procurement_kernel.exceptions import UserNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.notification import Notification
from procurement_kernel.models.organization import User
from procurement_kernel.models.purchase_request import PurchaseRequest
from procurement_kernel.selectors.organization_selector import OrganizationSelector
from procurement_kernel.services.notification_store import NotificationStore
from procurement_services.channels import EmailChannel, PushChannel
from procurement_services.dispatch import DeliveryQueue, EmailJob, PushJob
from procurement_services.email_templates import EmailTemplates, short_id

logger = get_logger("services.notification_fanout")


def dedupe_users(users: Iterable[User], exclude: Iterable[UUID] = ()) -> list[User]:
    """Drop excluded ids and repeats, keeping first occurrence order."""
    seen: set[UUID] = set(exclude)
    result: list[User] = []
    for user in users:
        if user.id in seen:
            continue
        seen.add(user.id)
        result.append(user)
    return result


class NotificationFanout:
    """
    Multi-channel notification delivery.

    Args:
        session: Caller-owned session (flush-only).
        store: Notification persistence.
        email_channel: Outbound email.
        push_channel: Real-time push.
        queue: Handoff for push and email jobs.
        templates: Email builders.
    """

    def __init__(
        self,
        session: Session,
        store: NotificationStore,
        email_channel: EmailChannel,
        push_channel: PushChannel,
        queue: DeliveryQueue,
        templates: EmailTemplates,
    ):
        self._session = session
        self._store = store
        self._email = email_channel
        self._push = push_channel
        self._queue = queue
        self._templates = templates
        self._org = OrganizationSelector(session)

    # ------------------------------------------------------------------
    # Single recipient
    # ------------------------------------------------------------------

    def notify(
        self,
        target_user_id: UUID,
        event: NotificationEvent,
        *,
        send_email: bool = True,
        email: EmailMessage | None = None,
    ) -> Notification:
        """
        Deliver ``event`` to one user.

        When ``send_email`` is true the explicit ``email`` is sent, or, if
        none is given, a plain email built from the event title and message
        is sent to the user's address.  Users without an address get no
        email.

        Raises:
            UserNotFoundError: If the target user does not exist.
        """
        user = self._session.get(User, target_user_id)
        if user is None:
            raise UserNotFoundError(str(target_user_id))

        notification = self._store.create(
            user_id=user.id,
            type=event.type,
            title=event.title,
            message=event.message,
            metadata=event.metadata,
        )

        self._queue.submit(
            PushJob(
                channel=self._push,
                user_id=str(user.id),
                payload=notification.to_payload(),
            )
        )

        if send_email:
            message = email or self._default_email(user, event)
            if message is not None:
                self._queue.submit(
                    EmailJob(channel=self._email, message=message, user_id=str(user.id))
                )

        logger.info(
            "notification_dispatched",
            extra={
                "notification_id": str(notification.id),
                "user_id": str(user.id),
                "notification_type": event.type.value,
                "email_queued": bool(send_email and (email or user.email)),
            },
        )
        return notification

    def notify_many(
        self,
        users: Iterable[User],
        event: NotificationEvent,
        *,
        send_email: bool = True,
    ) -> list[Notification]:
        return [
            self.notify(user.id, event, send_email=send_email)
            for user in dedupe_users(users)
        ]

    @staticmethod
    def _default_email(user: User, event: NotificationEvent) -> EmailMessage | None:
        if not user.email:
            return None
        return EmailMessage(
            to=user.email,
            subject=event.title,
            html=f"<p>{escape(event.message)}</p>",
            text=event.message,
        )

    # ------------------------------------------------------------------
    # Stakeholder broadcast
    # ------------------------------------------------------------------

    def stakeholders_for(self, requester: User) -> list[User]:
        candidates: list[User] = []
        if requester.department_id is not None:
            candidates.extend(
                self._org.users_with_roles(MANAGERIAL_ROLES, requester.department_id)
            )
            candidates.extend(
                self._org.grant_holders(requester.department_id, MANAGERIAL_ROLES)
            )
        candidates.extend(self._org.system_admins())
        return dedupe_users(candidates, exclude=[requester.id])

    def notify_stakeholders(
        self,
        request: PurchaseRequest,
        requester: User,
        skip_email_user_ids: Iterable[UUID] = (),
    ) -> list[Notification]:
        """
        Broadcast a new-request event to every stakeholder.

        Recipients in ``skip_email_user_ids`` still get the persisted
        notification and the push, but no email.
        """
        skip = set(skip_email_user_ids)
        rid = short_id(request.id)
        amount = self._templates.money(request.total_amount)
        event = NotificationEvent(
            type=NotificationType.REQUEST_CREATED,
            title="New Purchase Request",
            message=f"{requester.name} raised purchase request #{rid} for {amount}.",
            metadata={
                "requestId": str(request.id),
                "requesterId": str(requester.id),
                "totalAmount": decimal_to_str(request.total_amount),
            },
        )

        notifications = []
        for user in self.stakeholders_for(requester):
            wants_email = user.id not in skip and bool(user.email)
            email = None
            if wants_email:
                email = self._templates.new_request(
                    to=user.email,
                    recipient_name=user.name,
                    requester_name=requester.name,
                    request_id=request.id,
                    total_amount=request.total_amount,
                )
            notifications.append(
                self.notify(user.id, event, send_email=wants_email, email=email)
            )

        logger.info(
            "stakeholders_notified",
            extra={
                "request_id": str(request.id),
                "recipient_count": len(notifications),
                "email_skipped": sorted(str(uid) for uid in skip),
            },
        )
        return notifications
