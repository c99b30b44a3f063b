"""
ApprovalProcessor -- the purchase request state machine.

Responsibility:
    Drive a request from draft to PENDING/APPROVED (``route_request``) and
    from PENDING to APPROVED/REJECTED (``process_approval``), enforcing
    supplier-eligibility gating and writing the approval history row before
    mutating status.

Architecture position:
    Services.  Flush-only: ProcurementWorkflow (or the test harness) owns
    commit/rollback.

Invariants enforced:
    - Transitions follow REQUEST_TRANSITIONS; nothing leaves a terminal
      status.
    - History-then-state: the ApprovalHistory row is flushed before the
      status UPDATE is issued.
    - Single winner: the status UPDATE is conditional on the expected status
      and the row version read under ``SELECT ... FOR UPDATE``.  Zero rows
      affected means another action won and raises InvalidRequestStateError.
    - A request reaches APPROVED only with no supplier or an approved one.

Failure modes (process_approval, in check order):
    - RequestNotFoundError -- request absent.
    - UnauthorizedApproverError -- AuthorizationGuard said no.  No change.
    - InvalidRequestStateError -- status is not PENDING.  No change.
    - SupplierNotApprovedError -- APPROVE with an ineligible supplier.  The
      history row recording the attempt has already been flushed and the
      request stays PENDING.

Audit relevance:
    An APPROVE refused for supplier ineligibility leaves a history row for
    an approval that did not take effect, while a REJECT never has this
    asymmetry.  Consumers reading the trail must treat APPROVE rows on a
    still-PENDING request as attempts.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from procurement_kernel.domain.budget import decimal_to_str
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.dtos import (
    ApprovalOutcome,
    Approver,
    NotificationEvent,
    RoutingOutcome,
)
from procurement_kernel.domain.supplier import (
    APPROVED_SUPPLIER_STATUSES,
    SupplierStatus,
    is_supplier_eligible,
)
from procurement_kernel.domain.types import (
    ApprovalAction,
    NotificationType,
    RequestStatus,
    can_transition,
)
from procurement_kernel.exceptions import (
    InvalidRequestStateError,
    RequestNotFoundError,
    SupplierNotApprovedError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.approval_history import ApprovalHistory
from procurement_kernel.models.organization import User
from procurement_kernel.models.purchase_request import PurchaseRequest
from procurement_services.approval_router import ApprovalRouter
from procurement_services.authorization_guard import AuthorizationGuard
from procurement_services.channels import EmailChannel
from procurement_services.dispatch import DeliveryQueue, EmailJob
from procurement_services.email_templates import EmailTemplates
from procurement_services.notification_fanout import NotificationFanout

logger = get_logger("services.approval_processor")

_ACTION_RESULT: dict[ApprovalAction, RequestStatus] = {
    ApprovalAction.APPROVE: RequestStatus.APPROVED,
    ApprovalAction.REJECT: RequestStatus.REJECTED,
}


class ApprovalProcessor:
    """
    Routes requests and applies approve/reject actions.

    Args:
        session: Caller-owned session (flush-only).
        clock: Time source for history rows and updated_at.
        router: Next-approver computation.
        guard: Approve/reject authorization.
        fanout: Multi-channel notification delivery.
        templates: Email builders.
        email_channel: Used directly for supplier emails (suppliers are not
            users and get no in-app notification).
        queue: Delivery handoff.
        approved_supplier_statuses: Supplier statuses that allow APPROVED.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        router: ApprovalRouter,
        guard: AuthorizationGuard,
        fanout: NotificationFanout,
        templates: EmailTemplates,
        email_channel: EmailChannel,
        queue: DeliveryQueue,
        approved_supplier_statuses: Iterable[SupplierStatus] = APPROVED_SUPPLIER_STATUSES,
    ):
        self._session = session
        self._clock = clock
        self._router = router
        self._guard = guard
        self._fanout = fanout
        self._templates = templates
        self._email = email_channel
        self._queue = queue
        self._approved_statuses = frozenset(approved_supplier_statuses)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_request(self, request_id: UUID) -> PurchaseRequest:
        request = self._session.execute(
            select(PurchaseRequest)
            .where(PurchaseRequest.id == request_id)
            .with_for_update()
        ).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request

    def _supplier_status(self, request: PurchaseRequest) -> SupplierStatus | None:
        if request.supplier_id is None or request.supplier is None:
            return None
        return SupplierStatus(request.supplier.status)

    def supplier_eligible(self, request: PurchaseRequest) -> bool:
        return is_supplier_eligible(self._supplier_status(request), self._approved_statuses)

    def _transition(
        self,
        request: PurchaseRequest,
        target: RequestStatus,
        **values: Any,
    ) -> None:
        """
        Conditionally move ``request`` to ``target``.

        The UPDATE matches only while status and version still equal what
        this session read.  The instance is refreshed afterwards.
        """
        current = RequestStatus(request.status)
        if not can_transition(current, target):
            raise InvalidRequestStateError(
                str(request.id), current.value, f"a status that can move to {target.value}"
            )

        result = self._session.execute(
            update(PurchaseRequest)
            .where(
                PurchaseRequest.id == request.id,
                PurchaseRequest.status == current.value,
                PurchaseRequest.version == request.version,
            )
            .values(
                status=target.value,
                version=request.version + 1,
                updated_at=self._clock.now(),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "request_transition_lost",
                extra={
                    "request_id": str(request.id),
                    "from_status": current.value,
                    "to_status": target.value,
                    "version": request.version,
                },
            )
            raise InvalidRequestStateError(str(request.id), current.value, current.value)

        self._session.refresh(request)
        logger.info(
            "request_transitioned",
            extra={
                "request_id": str(request.id),
                "from_status": current.value,
                "to_status": target.value,
                "version": request.version,
            },
        )

    def _request_metadata(self, request: PurchaseRequest, requester: User) -> dict[str, Any]:
        return {
            "requestId": str(request.id),
            "requesterId": str(requester.id),
            "totalAmount": decimal_to_str(request.total_amount),
        }

    def _dispatch_supplier_email(self, request: PurchaseRequest, requester: User) -> bool:
        supplier = request.supplier
        if supplier is None or not supplier.contact_email:
            return False
        message = self._templates.supplier_purchase_request(
            to=supplier.contact_email,
            supplier_name=supplier.name,
            requester_name=requester.name,
            requester_email=requester.email,
            request_id=request.id,
            total_amount=request.total_amount,
            created_at=request.created_at or self._clock.now(),
            reason=request.reason,
        )
        self._queue.submit(EmailJob(channel=self._email, message=message))
        logger.info(
            "supplier_email_queued",
            extra={"request_id": str(request.id), "supplier_id": str(supplier.id)},
        )
        return True

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route_request(self, request_id: UUID) -> RoutingOutcome:
        """
        Route a request that has left draft.

        Only IN_PROGRESS requests, and PENDING requests blocked on their
        supplier (no current approver), can be routed.  A request assigned
        to an approver leaves PENDING only through ``process_approval``.

        Outcomes:
            - Approver found: PENDING with current_approver_id set; the
              approver gets an APPROVAL_REQUIRED notification and the
              approval email; stakeholders are broadcast to without a
              second email to the approver.
            - No approver, ineligible supplier: PENDING with no approver
              (blocked on supplier eligibility); broadcast only.
            - No approver otherwise: APPROVED directly with no history row;
              the supplier is emailed when it has a contact address;
              broadcast.

        Raises:
            RequestNotFoundError: If the request does not exist.
            InvalidRequestStateError: If the request is terminal or already
                assigned to an approver.
            UserNotFoundError: If the requester does not exist.
        """
        request = self._lock_request(request_id)
        if not request.is_routable:
            raise InvalidRequestStateError(
                str(request_id),
                RequestStatus(request.status).value,
                "IN_PROGRESS, or PENDING without an approver",
            )

        approver = self._router.next_approver(request.requester_id)
        requester = request.requester

        if approver is not None:
            self._transition(
                request,
                RequestStatus.PENDING,
                current_approver_id=approver.user_id,
            )
            notified = [self._notify_approver(request, requester, approver).user_id]
            skip = {approver.user_id}
        elif not self.supplier_eligible(request):
            self._transition(request, RequestStatus.PENDING, current_approver_id=None)
            notified = []
            skip = set()
            logger.info(
                "request_blocked_on_supplier",
                extra={
                    "request_id": str(request.id),
                    "supplier_id": str(request.supplier_id),
                    "supplier_status": self._supplier_status(request),
                },
            )
        else:
            self._transition(request, RequestStatus.APPROVED, current_approver_id=None)
            self._dispatch_supplier_email(request, requester)
            notified = []
            skip = set()
            logger.info("request_auto_approved", extra={"request_id": str(request.id)})

        broadcast = self._fanout.notify_stakeholders(request, requester, skip_email_user_ids=skip)
        notified.extend(n.user_id for n in broadcast)

        return RoutingOutcome(
            request_id=request.id,
            status=RequestStatus(request.status),
            approver=approver,
            notified_user_ids=tuple(notified),
        )

    def _notify_approver(
        self,
        request: PurchaseRequest,
        requester: User,
        approver: Approver,
    ):
        rid = request.short_id
        amount = self._templates.money(request.total_amount)
        event = NotificationEvent(
            type=NotificationType.APPROVAL_REQUIRED,
            title="Approval Required",
            message=(
                f"{requester.name} submitted purchase request #{rid} for {amount}. "
                "Your approval is required."
            ),
            metadata=self._request_metadata(request, requester),
        )
        email = None
        if approver.email:
            email = self._templates.approval_request(
                to=approver.email,
                approver_name=approver.name,
                requester_name=requester.name,
                request_id=request.id,
                total_amount=request.total_amount,
            )
        return self._fanout.notify(
            approver.user_id,
            event,
            send_email=email is not None,
            email=email,
        )

    # ------------------------------------------------------------------
    # Approve / reject
    # ------------------------------------------------------------------

    def process_approval(
        self,
        request_id: UUID,
        actor_id: UUID,
        action: ApprovalAction,
        comments: str | None = None,
    ) -> ApprovalOutcome:
        """
        Apply an approve/reject action to a PENDING request.

        Raises:
            RequestNotFoundError: If the request does not exist.
            UnauthorizedApproverError: If the actor may not act on it.
            InvalidRequestStateError: If it is not PENDING, or another
                action changed it first.
            SupplierNotApprovedError: APPROVE with an ineligible supplier.
                The history row for the attempt is already flushed.
        """
        action = ApprovalAction(action)
        request = self._lock_request(request_id)

        self._guard.authorize(actor_id, request_id)

        status = RequestStatus(request.status)
        if status != RequestStatus.PENDING:
            raise InvalidRequestStateError(
                str(request_id), status.value, RequestStatus.PENDING.value
            )

        history = ApprovalHistory(
            request_id=request.id,
            approver_id=actor_id,
            action=action.value,
            comments=comments,
            created_at=self._clock.now(),
        )
        self._session.add(history)
        self._session.flush()

        logger.info(
            "approval_history_recorded",
            extra={
                "history_id": str(history.id),
                "request_id": str(request.id),
                "actor_id": str(actor_id),
                "action": action.value,
            },
        )

        if action == ApprovalAction.APPROVE and not self.supplier_eligible(request):
            supplier_status = self._supplier_status(request)
            logger.warning(
                "approval_blocked_supplier_not_approved",
                extra={
                    "request_id": str(request.id),
                    "supplier_id": str(request.supplier_id),
                    "supplier_status": supplier_status,
                    "history_id": str(history.id),
                },
            )
            raise SupplierNotApprovedError(
                str(request.id),
                str(request.supplier_id),
                supplier_status.value if supplier_status else SupplierStatus.UNRECOGNIZED.value,
            )

        target = _ACTION_RESULT[action]
        self._transition(
            request,
            target,
            approver_id=actor_id,
            current_approver_id=None,
        )

        self._notify_requester(request, actor_id, action, comments)
        if action == ApprovalAction.APPROVE:
            self._dispatch_supplier_email(request, request.requester)

        return ApprovalOutcome(
            request_id=request.id,
            action=action,
            status=target,
            approver_id=actor_id,
            history_id=history.id,
        )

    def _notify_requester(
        self,
        request: PurchaseRequest,
        actor_id: UUID,
        action: ApprovalAction,
        comments: str | None,
    ) -> None:
        requester = request.requester
        actor = self._session.get(User, actor_id)
        actor_name = actor.name if actor is not None else "an approver"
        status = _ACTION_RESULT[action]
        approved = action == ApprovalAction.APPROVE

        event = NotificationEvent(
            type=NotificationType.REQUEST_APPROVED if approved else NotificationType.REQUEST_REJECTED,
            title="Request Approved" if approved else "Request Rejected",
            message=(
                f"Your purchase request #{request.short_id} has been "
                f"{status.value.lower()} by {actor_name}"
            ),
            metadata={"requestId": str(request.id), "status": status.value},
        )

        email = None
        if not approved and requester.email:
            email = self._templates.rejection(
                to=requester.email,
                requester_name=requester.name,
                request_id=request.id,
                total_amount=request.total_amount,
                reason=comments,
            )
        self._fanout.notify(requester.id, event, send_email=email is not None, email=email)
