"""
ProcurementWorkflow -- inbound trigger points and transaction boundaries.

Responsibility:
    The CRUD layer calls one method per trigger:

    * ``on_request_submitted`` -- route the request.  Failures are logged,
      never raised: request creation already succeeded.
    * ``approve`` / ``reject`` -- synchronous; errors surface to the user.
    * ``create_order`` -- issue the order of an approved request.
    * ``on_order_created`` / ``on_order_status_changed`` -- run the budget
      threshold check for the owning department.  Failures are logged.

    Each trigger runs in its own short-lived session from the injected
    session factory; services underneath are flush-only.  Push and email
    jobs produced inside a unit of work wait in its DeliveryOutbox and reach
    the delivery queue only after the commit succeeds.

Architecture position:
    Services > Workflow.  The only place that commits.

Invariants enforced:
    - The ApprovalHistory row of an APPROVE refused for supplier
      ineligibility is committed before SupplierNotApprovedError
      propagates, so the attempt stays on the audit trail.
    - A rolled-back unit of work delivers nothing: its held jobs are
      discarded with the session state.
    - Follow-on side effects (order issuance, threshold checks) run in
      separate units of work after the primary transition commits; their
      failure never undoes it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from procurement_config import ProcurementConfig, get_active_config
from procurement_config.bridges import (
    approved_supplier_statuses,
    dedup_window,
    threshold_ratios,
)
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.dtos import ApprovalOutcome, RoutingOutcome, ThresholdCheck
from procurement_kernel.domain.types import ApprovalAction, OrderStatus
from procurement_kernel.exceptions import SupplierNotApprovedError
from procurement_kernel.logging_config import LogContext, configure_logging, get_logger
from procurement_kernel.models.purchase_request import PurchaseRequest
from procurement_kernel.services.notification_store import NotificationStore
from procurement_services.approval_processor import ApprovalProcessor
from procurement_services.approval_router import ApprovalRouter
from procurement_services.authorization_guard import AuthorizationGuard
from procurement_services.budget_monitor import BudgetThresholdMonitor
from procurement_services.channels import (
    DisabledEmailChannel,
    EmailChannel,
    InProcessPushChannel,
    PushChannel,
    SmtpEmailChannel,
)
from procurement_services.dispatch import (
    DeliveryOutbox,
    DeliveryQueue,
    ThreadPoolDeliveryQueue,
)
from procurement_services.email_templates import EmailTemplates
from procurement_services.notification_fanout import NotificationFanout
from procurement_services.purchase_orders import PurchaseOrderService

logger = get_logger("services.workflow")


@dataclass(frozen=True)
class ServiceBundle:
    """Services wired to one session."""

    session: Session
    queue: DeliveryQueue
    store: NotificationStore
    fanout: NotificationFanout
    router: ApprovalRouter
    guard: AuthorizationGuard
    processor: ApprovalProcessor
    monitor: BudgetThresholdMonitor
    orders: PurchaseOrderService


def build_services(
    session: Session,
    clock: Clock,
    email_channel: EmailChannel,
    push_channel: PushChannel,
    queue: DeliveryQueue,
    config: ProcurementConfig,
) -> ServiceBundle:
    templates = EmailTemplates(
        app_base_url=config.notifications.app_base_url,
        currency_symbol=config.budget.currency_symbol,
    )
    store = NotificationStore(session, clock)
    fanout = NotificationFanout(
        session=session,
        store=store,
        email_channel=email_channel,
        push_channel=push_channel,
        queue=queue,
        templates=templates,
    )
    router = ApprovalRouter(session)
    guard = AuthorizationGuard(session)
    processor = ApprovalProcessor(
        session=session,
        clock=clock,
        router=router,
        guard=guard,
        fanout=fanout,
        templates=templates,
        email_channel=email_channel,
        queue=queue,
        approved_supplier_statuses=approved_supplier_statuses(config),
    )
    monitor = BudgetThresholdMonitor(
        session=session,
        clock=clock,
        fanout=fanout,
        templates=templates,
        ratios=threshold_ratios(config.budget),
        dedup_window=dedup_window(config.budget),
    )
    orders = PurchaseOrderService(session, clock)
    return ServiceBundle(
        session=session,
        queue=queue,
        store=store,
        fanout=fanout,
        router=router,
        guard=guard,
        processor=processor,
        monitor=monitor,
        orders=orders,
    )


class ProcurementWorkflow:
    """
    Trigger facade over the approval engine.

    Args:
        session_factory: Zero-argument callable returning a new Session.
        clock: Time source.
        email_channel: Outbound email.
        push_channel: Real-time push.
        queue: Delivery handoff.
        config: Runtime configuration.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock,
        email_channel: EmailChannel,
        push_channel: PushChannel,
        queue: DeliveryQueue,
        config: ProcurementConfig,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._email = email_channel
        self._push = push_channel
        self._queue = queue
        self._config = config

    @contextmanager
    def unit_of_work(
        self,
        commit_on: tuple[type[Exception], ...] = (),
    ) -> Iterator[ServiceBundle]:
        """
        Commit on success, roll back and re-raise on failure.

        Exceptions listed in ``commit_on`` still propagate, but the flushed
        work is committed first.  Delivery jobs are released to the queue
        only when the body completed and the commit succeeded.
        """
        session = self._session_factory()
        outbox = DeliveryOutbox()
        try:
            yield build_services(
                session, self._clock, self._email, self._push, outbox, self._config
            )
            session.commit()
        except commit_on:
            session.commit()
            raise
        except Exception:
            session.rollback()
            outbox.discard()
            raise
        finally:
            session.close()
        outbox.release(self._queue)

    def close(self) -> None:
        """Drain and stop the delivery queue."""
        self._queue.shutdown(wait=True)
        logger.info("workflow_closed")

    # ------------------------------------------------------------------
    # Request submitted
    # ------------------------------------------------------------------

    def on_request_submitted(self, request_id: UUID) -> RoutingOutcome | None:
        """
        Route a newly submitted request.

        An auto-approved request with a supplier gets its order issued and
        the owning department's threshold checked.  Returns None when
        routing failed (the failure is logged).
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            request_id=str(request_id),
            trigger="request_submitted",
        ):
            try:
                with self.unit_of_work() as services:
                    outcome = services.processor.route_request(request_id)
            except Exception:
                logger.error("request_routing_failed", exc_info=True)
                return None

            if outcome.auto_approved:
                self._issue_order_for(request_id)
            return outcome

    # ------------------------------------------------------------------
    # Approve / reject
    # ------------------------------------------------------------------

    def approve(
        self,
        request_id: UUID,
        actor_id: UUID,
        comments: str | None = None,
    ) -> ApprovalOutcome:
        return self._act(request_id, actor_id, ApprovalAction.APPROVE, comments)

    def reject(
        self,
        request_id: UUID,
        actor_id: UUID,
        comments: str | None = None,
    ) -> ApprovalOutcome:
        return self._act(request_id, actor_id, ApprovalAction.REJECT, comments)

    def _act(
        self,
        request_id: UUID,
        actor_id: UUID,
        action: ApprovalAction,
        comments: str | None,
    ) -> ApprovalOutcome:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            request_id=str(request_id),
            actor_id=str(actor_id),
            trigger=action.value.lower(),
        ):
            # keep the attempted-approval history row
            with self.unit_of_work(commit_on=(SupplierNotApprovedError,)) as services:
                outcome = services.processor.process_approval(
                    request_id, actor_id, action, comments
                )

            if action == ApprovalAction.APPROVE:
                self._issue_order_for(request_id)
            return outcome

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(self, request_id: UUID, supplier_id: UUID | None = None) -> UUID:
        """Issue the order of an approved request, then check thresholds."""
        with self.unit_of_work() as services:
            order_id = services.orders.create_order(request_id, supplier_id).id
        self.on_order_created(order_id)
        return order_id

    def update_order_status(self, order_id: UUID, status: OrderStatus) -> None:
        with self.unit_of_work() as services:
            services.orders.update_status(order_id, status)
        self.on_order_status_changed(order_id)

    def _issue_order_for(self, request_id: UUID) -> UUID | None:
        """
        Order follow-up of an approval: only for requests with a supplier.

        The order starts SENT when the supplier was emailed with the
        approval, IN_PROGRESS otherwise.
        """
        try:
            with self.unit_of_work() as services:
                request = services.session.get(PurchaseRequest, request_id)
                if request is None or request.supplier_id is None:
                    return None
                emailed = request.supplier is not None and bool(request.supplier.contact_email)
                order_id = services.orders.create_order(
                    request_id,
                    status=OrderStatus.SENT if emailed else OrderStatus.IN_PROGRESS,
                ).id
        except Exception:
            logger.error(
                "order_issue_failed",
                extra={"request_id": str(request_id)},
                exc_info=True,
            )
            return None
        self.on_order_created(order_id)
        return order_id

    def on_order_created(self, order_id: UUID) -> ThresholdCheck | None:
        return self._check_threshold_for_order(order_id, "order_created")

    def on_order_status_changed(self, order_id: UUID) -> ThresholdCheck | None:
        return self._check_threshold_for_order(order_id, "order_status_changed")

    def _check_threshold_for_order(self, order_id: UUID, trigger: str) -> ThresholdCheck | None:
        with LogContext.bind(correlation_id=str(uuid4()), trigger=trigger):
            try:
                with self.unit_of_work() as services:
                    department_id = services.orders.department_for_order(order_id)
                    if department_id is None:
                        logger.info(
                            "threshold_check_skipped_no_department",
                            extra={"order_id": str(order_id)},
                        )
                        return None
                    with LogContext.bind(department_id=str(department_id)):
                        return services.monitor.check_department_threshold(department_id)
            except Exception:
                logger.error(
                    "threshold_check_failed",
                    extra={"order_id": str(order_id)},
                    exc_info=True,
                )
                return None


def build_workflow(
    config: ProcurementConfig | None = None,
    session_factory: Callable[[], Session] | None = None,
    clock: Clock | None = None,
    email_channel: EmailChannel | None = None,
    push_channel: PushChannel | None = None,
    queue: DeliveryQueue | None = None,
) -> ProcurementWorkflow:
    """
    Wire a ProcurementWorkflow from configuration.

    Anything not supplied is built from ``config``: the engine from
    ``database``, SMTP email (or a disabled channel when
    ``notifications.email_enabled`` is false), an in-process push registry,
    and a thread-pool delivery queue.  Also installs JSON logging.
    """
    configure_logging()
    config = config or get_active_config()

    if session_factory is None:
        from procurement_kernel.db.engine import get_session_factory, init_engine_from_url

        init_engine_from_url(
            config.database.url,
            echo=config.database.echo,
            pool_size=config.database.pool_size,
        )
        session_factory = get_session_factory()

    if email_channel is None:
        email_channel = (
            SmtpEmailChannel(config.smtp)
            if config.notifications.email_enabled
            else DisabledEmailChannel()
        )

    return ProcurementWorkflow(
        session_factory=session_factory,
        clock=clock or SystemClock(),
        email_channel=email_channel,
        push_channel=push_channel or InProcessPushChannel(),
        queue=queue or ThreadPoolDeliveryQueue(),
        config=config,
    )
