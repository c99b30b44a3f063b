"""
Tests for BudgetThresholdMonitor -- tiered spend alerts with dedup.

Engineering has a 10,000 budget throughout.  Recipients are every
SYSTEM_ADMIN plus Engineering's senior managers (Root, Dana, Carol).

Covers:
- tier selection (highest tier only) and message texts
- dedup inside the window, re-alert after it, new tier not suppressed
- cancelled orders excluded; legacy budget_category counted (max rule)
- budget 0 disables monitoring; unknown department
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from procurement_kernel.domain.budget import ThresholdRatios, ThresholdTier
from procurement_kernel.domain.types import NotificationType, OrderStatus, UserRole
from procurement_kernel.exceptions import DepartmentNotFoundError
from procurement_kernel.models import BudgetAlert, Notification
from procurement_services.budget_monitor import BudgetThresholdMonitor
from procurement_services.email_templates import EmailTemplates


def _alerts_for(session, user_id) -> list[Notification]:
    return list(
        session.scalars(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at)
        )
    )


class TestTierSelection:

    def test_below_warning_is_quiet(self, services, session, org, make_order):
        make_order(org.alice, 7999)

        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.tier is None
        assert check.percentage == 80
        assert check.alerted is False
        assert _alerts_for(session, org.root.id) == []

    def test_warning_at_85_percent(self, services, session, org, make_order, push_channel, email_channel):
        make_order(org.alice, 5000)
        make_order(org.bob, 3500)

        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.tier == ThresholdTier.WARNING
        assert check.spend == Decimal("8500")
        assert check.percentage == 85
        assert set(check.recipient_ids) == {org.root.id, org.dana.id, org.carol.id}

        alert = _alerts_for(session, org.dana.id)[0]
        assert alert.type == NotificationType.BUDGET_WARNING.value
        assert alert.title == "Budget Warning"
        assert alert.message == (
            "Engineering department has spent £8,500 of £10,000 (85%) annual budget."
        )
        assert alert.metadata_ == {
            "departmentId": str(org.engineering.id),
            "departmentName": "Engineering",
            "currentSpend": "8500",
            "budgetLimit": "10000",
            "percentage": 85,
            "tier": "WARNING",
        }
        assert len(push_channel.for_user(org.dana.id)) == 1
        # budget alerts are in-app and push only
        assert email_channel.sent == []

    def test_critical_message(self, services, session, org, make_order):
        make_order(org.alice, 9100)

        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.tier == ThresholdTier.CRITICAL
        alert = _alerts_for(session, org.root.id)[0]
        assert alert.title == "Budget Critical"
        assert alert.message == (
            "Engineering department has spent £9,100 of £10,000 (91%) annual budget. "
            "Approaching limit!"
        )

    def test_exceeded_message(self, services, session, org, make_order):
        make_order(org.alice, 10250)

        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.tier == ThresholdTier.EXCEEDED
        alert = _alerts_for(session, org.root.id)[0]
        assert alert.type == NotificationType.BUDGET_EXCEEDED.value
        assert alert.message == (
            "Engineering department has spent £10,250, exceeding the £10,000 annual budget."
        )

    def test_only_highest_tier_fires(self, services, session, org, make_order):
        make_order(org.alice, 12000)

        services.monitor.check_department_threshold(org.engineering.id)

        types = [n.type for n in _alerts_for(session, org.root.id)]
        assert types == [NotificationType.BUDGET_EXCEEDED.value]

    def test_department_managers_and_other_seniors_not_alerted(
        self, services, session, org, make_order
    ):
        make_order(org.alice, 8500)

        services.monitor.check_department_threshold(org.engineering.id)

        assert _alerts_for(session, org.bob.id) == []
        assert _alerts_for(session, org.sam.id) == []
        assert _alerts_for(session, org.alice.id) == []

    def test_custom_ratios(self, session, deterministic_clock, services, org, make_order):
        monitor = BudgetThresholdMonitor(
            session=session,
            clock=deterministic_clock,
            fanout=services.fanout,
            templates=EmailTemplates("http://localhost:3000"),
            ratios=ThresholdRatios(
                warning=Decimal("0.5"), critical=Decimal("0.7"), exceeded=Decimal("0.95")
            ),
        )
        make_order(org.alice, 6000)

        check = monitor.check_department_threshold(org.engineering.id)

        assert check.tier == ThresholdTier.WARNING


class TestDedup:

    def test_repeat_inside_window_is_suppressed(
        self, services, session, org, make_order, deterministic_clock, captured_logs
    ):
        make_order(org.alice, 8500)
        first = services.monitor.check_department_threshold(org.engineering.id)

        deterministic_clock.advance_hours(1)
        make_order(org.alice, 200)
        second = services.monitor.check_department_threshold(org.engineering.id)

        assert first.alerted is True
        assert second.tier == ThresholdTier.WARNING
        assert second.percentage == 87
        assert second.suppressed is True
        assert second.recipient_ids == ()
        assert len(_alerts_for(session, org.root.id)) == 1
        assert any(r["message"] == "budget_alert_suppressed" for r in captured_logs())

    def test_realert_after_window(self, services, session, org, make_order, deterministic_clock):
        make_order(org.alice, 8500)
        services.monitor.check_department_threshold(org.engineering.id)

        deterministic_clock.advance_hours(25)
        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.suppressed is False
        assert check.alerted is True
        assert len(_alerts_for(session, org.root.id)) == 2

    def test_new_tier_is_not_suppressed(self, services, session, org, make_order, deterministic_clock):
        make_order(org.alice, 8500)
        services.monitor.check_department_threshold(org.engineering.id)

        deterministic_clock.advance_hours(1)
        make_order(org.alice, 700)
        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.tier == ThresholdTier.CRITICAL
        assert check.alerted is True
        types = [n.type for n in _alerts_for(session, org.root.id)]
        assert types == [
            NotificationType.BUDGET_WARNING.value,
            NotificationType.BUDGET_CRITICAL.value,
        ]

    def test_one_alert_record_per_department_and_tier(
        self, services, session, org, make_order, deterministic_clock
    ):
        make_order(org.alice, 8500)
        services.monitor.check_department_threshold(org.engineering.id)
        deterministic_clock.advance_hours(30)
        services.monitor.check_department_threshold(org.engineering.id)

        alerts = list(session.scalars(select(BudgetAlert)))
        assert len(alerts) == 1
        assert alerts[0].tier == ThresholdTier.WARNING.value

    def test_short_window(self, session, deterministic_clock, services, org, make_order):
        monitor = BudgetThresholdMonitor(
            session=session,
            clock=deterministic_clock,
            fanout=services.fanout,
            templates=EmailTemplates("http://localhost:3000"),
            dedup_window=timedelta(hours=2),
        )
        make_order(org.alice, 8500)
        monitor.check_department_threshold(org.engineering.id)

        deterministic_clock.advance_hours(3)
        check = monitor.check_department_threshold(org.engineering.id)

        assert check.alerted is True

    def test_departments_are_independent(self, services, org, make_order):
        make_order(org.alice, 8500)
        make_order(org.mia, 4200)

        engineering = services.monitor.check_department_threshold(org.engineering.id)
        sales = services.monitor.check_department_threshold(org.sales.id)

        assert engineering.alerted is True
        assert sales.tier == ThresholdTier.WARNING
        assert sales.alerted is True
        assert set(sales.recipient_ids) == {org.root.id, org.sam.id}


class TestSpendSources:

    def test_cancelled_orders_do_not_count(self, services, org, make_order):
        make_order(org.alice, 6000)
        make_order(org.alice, 3000, status=OrderStatus.CANCELLED)

        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.spend == Decimal("6000")
        assert check.tier is None

    def test_completed_and_sent_orders_count(self, services, org, make_order):
        make_order(org.alice, 4000, status=OrderStatus.SENT)
        make_order(org.alice, 4500, status=OrderStatus.COMPLETED)

        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.spend == Decimal("8500")

    def test_budget_category_counts_when_larger(self, services, org, make_order):
        # Mia sits in Sales but books against the Engineering budget line
        make_order(org.mia, 9000, budget_category="Engineering")
        make_order(org.alice, 1000)

        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.spend == Decimal("9000")
        assert check.tier == ThresholdTier.CRITICAL

    def test_matching_signals_are_not_double_counted(self, services, org, make_order):
        make_order(org.alice, 8500, budget_category="Engineering")

        check = services.monitor.check_department_threshold(org.engineering.id)

        assert check.spend == Decimal("8500")


class TestDisabledAndMissing:

    def test_zero_budget_disables_monitoring(self, services, session, make_department, make_user, make_order):
        lab = make_department("Lab", budget=0)
        admin = make_user("Admin", UserRole.SYSTEM_ADMIN)
        member = make_user("Lab Tech", UserRole.MEMBER, department=lab)
        make_order(member, 50000)

        assert services.monitor.check_department_threshold(lab.id) is None
        assert _alerts_for(session, admin.id) == []

    def test_unknown_department(self, services):
        with pytest.raises(DepartmentNotFoundError):
            services.monitor.check_department_threshold(uuid4())

    def test_alert_without_recipients_still_records(
        self, services, session, make_department, make_user, make_order
    ):
        lab = make_department("Lab", budget=100)
        member = make_user("Lab Tech", UserRole.MEMBER, department=lab)
        make_order(member, 95)

        check = services.monitor.check_department_threshold(lab.id)

        assert check.tier == ThresholdTier.CRITICAL
        assert check.recipient_ids == ()
        assert len(list(session.scalars(select(BudgetAlert)))) == 1
