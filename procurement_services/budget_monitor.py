"""
BudgetThresholdMonitor -- alert once per tier per window as spend grows.

Responsibility:
    After any event that changes a department's committed spend, recompute
    spend / budget, pick the single highest tier crossed, and notify every
    SYSTEM_ADMIN and every SENIOR_MANAGER of the department unless the same
    tier already fired for that department inside the dedup window.

Architecture position:
    Services.  Flush-only.

Invariants enforced:
    - budget == 0 disables monitoring for the department.
    - Tiers are mutually exclusive per check (highest first).
    - Dedup is keyed by (department, tier) through BudgetAlert.  The window
      comparison happens in SQL so stored and computed timestamps are
      compared on the same footing.
    - Dedup reads are unlocked.  Two concurrent checks may both alert;
      that extra alert is accepted.

Failure modes:
    - DepartmentNotFoundError if the department does not exist.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.domain.budget import (
    ThresholdRatios,
    ThresholdTier,
    classify_spend,
    decimal_to_str,
    spend_percentage,
)
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.dtos import NotificationEvent, ThresholdCheck
from procurement_kernel.domain.types import UserRole
from procurement_kernel.exceptions import DepartmentNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.budget_alert import BudgetAlert
from procurement_kernel.models.organization import Department, User
from procurement_kernel.selectors.organization_selector import OrganizationSelector
from procurement_kernel.selectors.spend_selector import SpendSelector
from procurement_services.email_templates import EmailTemplates
from procurement_services.notification_fanout import NotificationFanout, dedupe_users

logger = get_logger("services.budget_monitor")

DEFAULT_DEDUP_WINDOW = timedelta(hours=24)


class BudgetThresholdMonitor:
    """
    Department spend-to-budget monitor.

    Args:
        session: Caller-owned session (flush-only).
        clock: Time source for the dedup window.
        fanout: Notification delivery.
        templates: Money formatting for alert messages.
        ratios: Tier boundaries.
        dedup_window: How long an alert for a tier suppresses repeats.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        fanout: NotificationFanout,
        templates: EmailTemplates,
        ratios: ThresholdRatios = ThresholdRatios(),
        dedup_window: timedelta = DEFAULT_DEDUP_WINDOW,
    ):
        self._session = session
        self._clock = clock
        self._fanout = fanout
        self._templates = templates
        self._ratios = ratios
        self._window = dedup_window
        self._org = OrganizationSelector(session)
        self._spend = SpendSelector(session)

    def check_department_threshold(self, department_id: UUID) -> ThresholdCheck | None:
        """
        Recompute spend and alert if a tier is newly crossed.

        Returns:
            None when monitoring is disabled (budget 0).  Otherwise a
            ThresholdCheck describing spend, tier, and whether the alert
            was sent or suppressed.

        Raises:
            DepartmentNotFoundError: If the department does not exist.
        """
        department = self._org.get_department(department_id)
        if department is None:
            raise DepartmentNotFoundError(str(department_id))

        budget = department.budget
        if budget <= 0:
            logger.debug(
                "budget_monitoring_disabled",
                extra={"department_id": str(department_id)},
            )
            return None

        spend = self._spend.department_spend(department)
        tier = classify_spend(spend, budget, self._ratios)
        percentage = spend_percentage(spend, budget)

        check = ThresholdCheck(
            department_id=department.id,
            department_name=department.name,
            spend=spend,
            budget=budget,
            percentage=percentage,
            tier=tier,
        )
        if tier is None:
            return check

        if self._recently_alerted(department.id, tier):
            logger.info(
                "budget_alert_suppressed",
                extra={
                    "department_id": str(department.id),
                    "tier": tier.value,
                    "percentage": percentage,
                },
            )
            return ThresholdCheck(
                department_id=check.department_id,
                department_name=check.department_name,
                spend=spend,
                budget=budget,
                percentage=percentage,
                tier=tier,
                suppressed=True,
            )

        self._record_alert(department.id, tier)
        recipients = self.recipients_for(department)
        notifications = self._fanout.notify_many(
            recipients,
            self._build_event(department, spend, budget, percentage, tier),
            send_email=False,
        )

        logger.info(
            "budget_alert_sent",
            extra={
                "department_id": str(department.id),
                "tier": tier.value,
                "percentage": percentage,
                "spend": spend,
                "budget": budget,
                "recipient_count": len(notifications),
            },
        )
        return ThresholdCheck(
            department_id=check.department_id,
            department_name=check.department_name,
            spend=spend,
            budget=budget,
            percentage=percentage,
            tier=tier,
            recipient_ids=tuple(n.user_id for n in notifications),
        )

    def recipients_for(self, department: Department) -> list[User]:
        """Every SYSTEM_ADMIN plus the department's SENIOR_MANAGERs, deduplicated."""
        return dedupe_users(
            self._org.system_admins()
            + self._org.users_with_roles([UserRole.SENIOR_MANAGER], department.id)
        )

    # ------------------------------------------------------------------
    # Dedup
    # ------------------------------------------------------------------

    def _recently_alerted(self, department_id: UUID, tier: ThresholdTier) -> bool:
        cutoff = self._clock.now() - self._window
        stmt = select(BudgetAlert.id).where(
            BudgetAlert.department_id == department_id,
            BudgetAlert.tier == tier.value,
            BudgetAlert.last_alerted_at >= cutoff,
        )
        return self._session.scalars(stmt).first() is not None

    def _record_alert(self, department_id: UUID, tier: ThresholdTier) -> None:
        alert = self._session.scalars(
            select(BudgetAlert).where(
                BudgetAlert.department_id == department_id,
                BudgetAlert.tier == tier.value,
            )
        ).first()
        now = self._clock.now()
        if alert is None:
            self._session.add(
                BudgetAlert(
                    department_id=department_id,
                    tier=tier.value,
                    last_alerted_at=now,
                )
            )
        else:
            alert.last_alerted_at = now
        self._session.flush()

    # ------------------------------------------------------------------
    # Message
    # ------------------------------------------------------------------

    def _build_event(
        self,
        department: Department,
        spend: Decimal,
        budget: Decimal,
        percentage: int,
        tier: ThresholdTier,
    ) -> NotificationEvent:
        spent = self._templates.money(spend)
        limit = self._templates.money(budget)

        if tier == ThresholdTier.EXCEEDED:
            message = (
                f"{department.name} department has spent {spent}, "
                f"exceeding the {limit} annual budget."
            )
        else:
            message = (
                f"{department.name} department has spent {spent} of {limit} "
                f"({percentage}%) annual budget."
            )
            if tier == ThresholdTier.CRITICAL:
                message += " Approaching limit!"

        return NotificationEvent(
            type=tier.notification_type,
            title=tier.title,
            message=message,
            metadata={
                "departmentId": str(department.id),
                "departmentName": department.name,
                "currentSpend": decimal_to_str(spend),
                "budgetLimit": decimal_to_str(budget),
                "percentage": percentage,
                "tier": tier.value,
            },
        )
