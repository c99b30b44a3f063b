"""
Pytest fixtures for the procurement approval test suite.

Provides:
- In-memory SQLite engine and sessions (one fresh schema per test)
- Deterministic clock
- Recording email and push channels, and an inline delivery queue
- Wired services (``services``) and the trigger facade (``workflow``)
- Factory fixtures for departments, users, suppliers, requests and orders

Sessions from ``session_factory`` share one StaticPool connection, so data
committed by one session is visible to the next.  Tests that drive
``workflow`` commit their seed data first.
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import procurement_kernel.models  # noqa: F401  (registers all tables)
from procurement_config import ProcurementConfig
from procurement_kernel.db.base import Base
from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.domain.dtos import DeliveryResult, EmailMessage
from procurement_kernel.domain.types import OrderStatus, RequestStatus, UserRole
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from procurement_kernel.models import (
    AdditionalRole,
    Department,
    PurchaseOrder,
    PurchaseRequest,
    Supplier,
    User,
)
from procurement_services.channels import EmailChannel, PushChannel
from procurement_services.dispatch import InlineDeliveryQueue
from procurement_services.workflow import ProcurementWorkflow, build_services

_AUTO = object()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture procurement logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.on_request_submitted(request_id)
            logs = captured_logs()
            assert any(r["message"] == "request_transitioned" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("procurement")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database with every table created."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """Session for seeding and asserting.  Rolled back at teardown."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Clock, channels, configuration
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


class RecordingEmailChannel(EmailChannel):
    """Keeps every message it is asked to send.  Set ``fail_with`` to fail."""

    def __init__(self):
        self.sent: list[EmailMessage] = []
        self.fail_with: str | None = None

    def send(self, message: EmailMessage) -> DeliveryResult:
        if self.fail_with is not None:
            return DeliveryResult(sent=False, error=self.fail_with)
        self.sent.append(message)
        return DeliveryResult(sent=True)

    def to(self, address: str) -> list[EmailMessage]:
        return [m for m in self.sent if m.to == address]


class RecordingPushChannel(PushChannel):
    """Keeps every publish.  Set ``raise_with`` to make publish raise."""

    def __init__(self):
        self.published: list[tuple[str, dict]] = []
        self.raise_with: Exception | None = None

    def publish(self, user_id: str, payload: dict) -> None:
        if self.raise_with is not None:
            raise self.raise_with
        self.published.append((user_id, payload))

    def for_user(self, user_id) -> list[dict]:
        return [payload for uid, payload in self.published if uid == str(user_id)]


@pytest.fixture
def email_channel() -> RecordingEmailChannel:
    return RecordingEmailChannel()


@pytest.fixture
def push_channel() -> RecordingPushChannel:
    return RecordingPushChannel()


@pytest.fixture
def delivery_queue() -> InlineDeliveryQueue:
    return InlineDeliveryQueue()


@pytest.fixture
def config() -> ProcurementConfig:
    return ProcurementConfig()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def services(session, deterministic_clock, email_channel, push_channel, delivery_queue, config):
    """Every service wired to the test session (flush-only, never commits)."""
    return build_services(
        session,
        deterministic_clock,
        email_channel,
        push_channel,
        delivery_queue,
        config,
    )


@pytest.fixture
def workflow(
    session_factory, deterministic_clock, email_channel, push_channel, delivery_queue, config
):
    """Trigger facade that commits through its own sessions."""
    return ProcurementWorkflow(
        session_factory=session_factory,
        clock=deterministic_clock,
        email_channel=email_channel,
        push_channel=push_channel,
        queue=delivery_queue,
        config=config,
    )


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def make_department(session, deterministic_clock):
    """Factory fixture: ``make_department("Engineering", budget=10000)``."""

    def _create(name: str, budget=0, parent: Department | None = None) -> Department:
        department = Department(
            name=name,
            budget=Decimal(str(budget)),
            parent_id=parent.id if parent else None,
            created_at=deterministic_clock.now(),
        )
        session.add(department)
        session.flush()
        return department

    return _create


@pytest.fixture
def make_user(session, deterministic_clock):
    """
    Factory fixture for users.

    Each user is created one clock tick after the previous one so that
    "first by creation order" lookups are deterministic.  The email defaults
    to ``<name>@example.com``; pass ``email=None`` for a user without one.
    """

    def _create(
        name: str,
        role: UserRole = UserRole.MEMBER,
        department: Department | None = None,
        manager: User | None = None,
        email=_AUTO,
    ) -> User:
        user = User(
            name=name,
            email=f"{name.lower()}@example.com" if email is _AUTO else email,
            role=UserRole(role).value,
            department_id=department.id if department else None,
            manager_id=manager.id if manager else None,
            created_at=deterministic_clock.tick(),
        )
        session.add(user)
        session.flush()
        return user

    return _create


@pytest.fixture
def grant_role(session):
    """Factory fixture: additional MANAGER/SENIOR_MANAGER grant in a department."""

    def _grant(user: User, department: Department, role: UserRole) -> AdditionalRole:
        grant = AdditionalRole(department_id=department.id, role=UserRole(role).value)
        user.additional_roles.append(grant)
        session.flush()
        return grant

    return _grant


@pytest.fixture
def make_supplier(session, deterministic_clock):
    """Factory fixture taking the free-form legacy status string."""

    def _create(
        name: str = "Acme Supplies",
        status: str | None = "Standard",
        contact_email=_AUTO,
    ) -> Supplier:
        supplier = Supplier.from_legacy_status(
            name,
            status,
            contact_email="orders@acme.example" if contact_email is _AUTO else contact_email,
        )
        supplier.created_at = deterministic_clock.now()
        session.add(supplier)
        session.flush()
        return supplier

    return _create


@pytest.fixture
def make_request(session, deterministic_clock):
    """Factory fixture for purchase requests (IN_PROGRESS unless told otherwise)."""

    def _create(
        requester: User,
        total=1000,
        supplier: Supplier | None = None,
        status: RequestStatus = RequestStatus.IN_PROGRESS,
        current_approver: User | None = None,
        budget_category: str | None = None,
        reason: str | None = None,
    ) -> PurchaseRequest:
        request = PurchaseRequest(
            requester_id=requester.id,
            total_amount=Decimal(str(total)),
            supplier_id=supplier.id if supplier else None,
            status=RequestStatus(status).value,
            current_approver_id=current_approver.id if current_approver else None,
            budget_category=budget_category,
            reason=reason,
            created_at=deterministic_clock.now(),
        )
        session.add(request)
        session.flush()
        return request

    return _create


@pytest.fixture
def make_order(session, deterministic_clock, make_request):
    """
    Factory fixture placing an order directly (no approval flow).

    Used to set up committed spend for budget monitoring.
    """

    def _create(
        requester: User,
        total,
        status: OrderStatus = OrderStatus.IN_PROGRESS,
        budget_category: str | None = None,
    ) -> PurchaseOrder:
        request = make_request(
            requester,
            total=total,
            status=RequestStatus.APPROVED,
            budget_category=budget_category,
        )
        order = PurchaseOrder(
            request_id=request.id,
            total_amount=request.total_amount,
            status=OrderStatus(status).value,
            created_at=deterministic_clock.now(),
        )
        session.add(order)
        session.flush()
        return order

    return _create


@pytest.fixture
def org(make_department, make_user):
    """
    A small organization used across scenario tests.

    Engineering (budget 10,000):
        dana   SENIOR_MANAGER
        bob    MANAGER
        alice  MEMBER, reports to bob
        carol  SENIOR_MANAGER
    Sales (budget 5,000):
        sam    SENIOR_MANAGER
        mia    MEMBER, no manager
    No department:
        root   SYSTEM_ADMIN
    """
    engineering = make_department("Engineering", budget=10000)
    sales = make_department("Sales", budget=5000)
    root = make_user("Root", UserRole.SYSTEM_ADMIN)
    dana = make_user("Dana", UserRole.SENIOR_MANAGER, department=engineering)
    bob = make_user("Bob", UserRole.MANAGER, department=engineering)
    alice = make_user("Alice", UserRole.MEMBER, department=engineering, manager=bob)
    carol = make_user("Carol", UserRole.SENIOR_MANAGER, department=engineering)
    sam = make_user("Sam", UserRole.SENIOR_MANAGER, department=sales)
    mia = make_user("Mia", UserRole.MEMBER, department=sales)

    return SimpleNamespace(
        engineering=engineering,
        sales=sales,
        root=root,
        dana=dana,
        bob=bob,
        alice=alice,
        carol=carol,
        sam=sam,
        mia=mia,
    )
