"""
PurchaseOrderService -- issue orders against approved requests.

Responsibility:
    Create the single purchase order of an APPROVED request (inheriting its
    total), change order status, and resolve the department whose budget an
    order counts against.  Creating or re-statusing an order changes
    committed spend, so ProcurementWorkflow runs the threshold check after
    both.

Architecture position:
    Services.  Flush-only.

Failure modes:
    - RequestNotFoundError / OrderNotFoundError -- absent rows.
    - InvalidRequestStateError -- request is not APPROVED.
    - DuplicateOrderError -- the request already has an order.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from procurement_kernel.domain.types import OrderStatus, RequestStatus
from procurement_kernel.exceptions import (
    DuplicateOrderError,
    InvalidRequestStateError,
    OrderNotFoundError,
    RequestNotFoundError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.purchase_order import PurchaseOrder
from procurement_kernel.models.purchase_request import PurchaseRequest
from procurement_kernel.services.base import BaseService

logger = get_logger("services.purchase_orders")


class PurchaseOrderService(BaseService[PurchaseOrder]):
    """Order issuance and status changes."""

    def get(self, order_id: UUID) -> PurchaseOrder:
        order = self.session.get(PurchaseOrder, order_id)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def create_order(
        self,
        request_id: UUID,
        supplier_id: UUID | None = None,
        status: OrderStatus = OrderStatus.IN_PROGRESS,
    ) -> PurchaseOrder:
        """
        Issue the order for an approved request.

        ``supplier_id`` defaults to the request's supplier.
        """
        request = self.session.get(PurchaseRequest, request_id)
        if request is None:
            raise RequestNotFoundError(str(request_id))

        request_status = RequestStatus(request.status)
        if request_status != RequestStatus.APPROVED:
            raise InvalidRequestStateError(
                str(request_id), request_status.value, RequestStatus.APPROVED.value
            )

        existing = self.session.scalars(
            select(PurchaseOrder).where(PurchaseOrder.request_id == request_id)
        ).first()
        if existing is not None:
            raise DuplicateOrderError(str(request_id), str(existing.id))

        order = PurchaseOrder(
            request_id=request.id,
            supplier_id=supplier_id or request.supplier_id,
            total_amount=request.total_amount,
            status=OrderStatus(status).value,
            created_at=self._clock.now(),
        )
        self._persist(order)

        logger.info(
            "purchase_order_created",
            extra={
                "order_id": str(order.id),
                "request_id": str(request.id),
                "total_amount": order.total_amount,
                "order_status": order.status,
            },
        )
        return order

    def update_status(self, order_id: UUID, status: OrderStatus) -> PurchaseOrder:
        order = self.get(order_id)
        previous = OrderStatus(order.status)
        order.status = OrderStatus(status).value
        order.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "purchase_order_status_changed",
            extra={
                "order_id": str(order.id),
                "from_status": previous.value,
                "to_status": order.status,
            },
        )
        return order

    def department_for_order(self, order_id: UUID) -> UUID | None:
        """Primary department of the requester behind the order, if any."""
        order = self.get(order_id)
        return order.request.requester.department_id
