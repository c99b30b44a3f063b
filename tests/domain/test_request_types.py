"""
Tests for request lifecycle types, DTOs and the deterministic clock.

Invariants tested:
- REQUEST_TRANSITIONS defines the only legal status changes; APPROVED and
  REJECTED have no outgoing edges.
- PENDING -> PENDING is legal (re-routing an already routed request).
- Outcome DTOs are frozen.
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.domain.dtos import Approver, RoutingOutcome
from procurement_kernel.domain.types import (
    MANAGERIAL_ROLES,
    REQUEST_TRANSITIONS,
    TERMINAL_REQUEST_STATUSES,
    RequestStatus,
    UserRole,
    can_transition,
)

S = RequestStatus


class TestRequestTransitions:

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.IN_PROGRESS, S.PENDING),
            (S.IN_PROGRESS, S.APPROVED),
            (S.PENDING, S.PENDING),
            (S.PENDING, S.APPROVED),
            (S.PENDING, S.REJECTED),
        ],
    )
    def test_legal(self, current, target):
        assert can_transition(current, target) is True

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.IN_PROGRESS, S.REJECTED),
            (S.IN_PROGRESS, S.IN_PROGRESS),
            (S.PENDING, S.IN_PROGRESS),
            (S.APPROVED, S.REJECTED),
            (S.REJECTED, S.APPROVED),
            (S.APPROVED, S.PENDING),
        ],
    )
    def test_illegal(self, current, target):
        assert can_transition(current, target) is False

    def test_terminal_statuses_have_no_edges(self):
        assert TERMINAL_REQUEST_STATUSES == {S.APPROVED, S.REJECTED}
        for status in TERMINAL_REQUEST_STATUSES:
            assert REQUEST_TRANSITIONS[status] == frozenset()

    def test_every_status_is_in_table(self):
        assert set(REQUEST_TRANSITIONS) == set(RequestStatus)

    def test_str_enum_compares_with_stored_value(self):
        assert S.PENDING == "PENDING"
        assert RequestStatus("APPROVED") is S.APPROVED


class TestRoles:

    def test_managerial_roles(self):
        assert MANAGERIAL_ROLES == {UserRole.MANAGER, UserRole.SENIOR_MANAGER}


class TestOutcomes:

    def _approver(self):
        return Approver(user_id=uuid4(), name="Bob", email=None, role=UserRole.MANAGER)

    def test_routed(self):
        outcome = RoutingOutcome(uuid4(), S.PENDING, self._approver())

        assert outcome.auto_approved is False
        assert outcome.blocked_on_supplier is False

    def test_auto_approved(self):
        outcome = RoutingOutcome(uuid4(), S.APPROVED, None)

        assert outcome.auto_approved is True
        assert outcome.blocked_on_supplier is False

    def test_blocked_on_supplier(self):
        outcome = RoutingOutcome(uuid4(), S.PENDING, None)

        assert outcome.blocked_on_supplier is True

    def test_frozen(self):
        approver = self._approver()

        with pytest.raises(FrozenInstanceError):
            approver.name = "Eve"


class TestDeterministicClock:

    def test_stable_until_advanced(self):
        clock = DeterministicClock()

        assert clock.now() == clock.now()
        assert clock.now() == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_tick_and_advance(self):
        clock = DeterministicClock()
        start = clock.now()

        assert clock.tick() == start + timedelta(seconds=1)
        clock.advance_hours(2)
        assert clock.now() == start + timedelta(hours=2, seconds=1)

    def test_set_time_resets_offset(self):
        clock = DeterministicClock()
        clock.advance(30)
        target = datetime(2025, 6, 1, tzinfo=timezone.utc)

        clock.set_time(target)

        assert clock.now() == target
