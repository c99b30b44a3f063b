"""
Module: procurement_kernel.selectors.spend_selector
Responsibility: Committed-spend aggregation for budget monitoring.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Spend is derived from non-cancelled PurchaseOrder rows at query time;
      nothing stores a running total.
    - All sums are Decimal (never float).

Department spend is the larger of two independently computed sums: orders
whose request's requester belongs to the department, and orders whose
request carries a legacy budget_category equal to the department name.
Taking the maximum avoids double counting when both signals agree.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from procurement_kernel.domain.types import OrderStatus
from procurement_kernel.models.organization import Department, User
from procurement_kernel.models.purchase_order import PurchaseOrder
from procurement_kernel.models.purchase_request import PurchaseRequest
from procurement_kernel.selectors.base import BaseSelector


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class SpendSelector(BaseSelector[PurchaseOrder]):
    """Selector for committed spend per department."""

    def _committed_orders(self):
        return (
            select(func.sum(PurchaseOrder.total_amount))
            .join(PurchaseRequest, PurchaseRequest.id == PurchaseOrder.request_id)
            .where(PurchaseOrder.status != OrderStatus.CANCELLED.value)
        )

    def spend_by_requester_department(self, department_id: UUID) -> Decimal:
        stmt = (
            self._committed_orders()
            .join(User, User.id == PurchaseRequest.requester_id)
            .where(User.department_id == department_id)
        )
        return _as_decimal(self.session.scalar(stmt))

    def spend_by_budget_category(self, department_name: str) -> Decimal:
        stmt = self._committed_orders().where(
            PurchaseRequest.budget_category == department_name,
        )
        return _as_decimal(self.session.scalar(stmt))

    def department_spend(self, department: Department) -> Decimal:
        return max(
            self.spend_by_requester_department(department.id),
            self.spend_by_budget_category(department.name),
        )
