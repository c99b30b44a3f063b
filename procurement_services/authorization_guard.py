"""
AuthorizationGuard -- may this actor approve or reject this request?

Rules, evaluated as a disjunction:
    1. actor is SYSTEM_ADMIN.
    2. actor is SENIOR_MANAGER and either shares the requester's primary
       department (both non-null) or holds an additional MANAGER or
       SENIOR_MANAGER grant scoped to the requester's department.
    3. actor is MANAGER and is the requester's direct manager.  Transitive
       reports are not authorized.

Nothing else authorizes.  ``can_approve`` never raises for "not
authorized" and returns False when the actor or request does not resolve.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from procurement_kernel.domain.types import MANAGERIAL_ROLES, UserRole
from procurement_kernel.exceptions import UnauthorizedApproverError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.organization import User
from procurement_kernel.models.purchase_request import PurchaseRequest
from procurement_kernel.selectors.organization_selector import OrganizationSelector

logger = get_logger("services.authorization_guard")


def is_authorized(actor: User, requester: User) -> bool:
    """Pure rule evaluation over loaded users."""
    role = UserRole(actor.role)

    if role == UserRole.SYSTEM_ADMIN:
        return True

    if role == UserRole.SENIOR_MANAGER:
        same_department = (
            actor.department_id is not None
            and actor.department_id == requester.department_id
        )
        return same_department or actor.holds_grant(
            requester.department_id, MANAGERIAL_ROLES
        )

    if role == UserRole.MANAGER:
        return requester.manager_id is not None and actor.id == requester.manager_id

    return False


class AuthorizationGuard:
    """Gates approve/reject actions."""

    def __init__(self, session: Session):
        self._session = session
        self._org = OrganizationSelector(session)

    def can_approve(self, actor_id: UUID, request_id: UUID) -> bool:
        actor = self._org.get_user(actor_id)
        if actor is None:
            return False
        request = self._session.get(PurchaseRequest, request_id)
        if request is None:
            return False
        requester = self._org.get_user(request.requester_id)
        if requester is None:
            return False
        return is_authorized(actor, requester)

    def authorize(self, actor_id: UUID, request_id: UUID) -> None:
        """
        Raises:
            UnauthorizedApproverError: If ``can_approve`` is False.
        """
        if not self.can_approve(actor_id, request_id):
            logger.warning(
                "approval_forbidden",
                extra={"actor_id": str(actor_id), "request_id": str(request_id)},
            )
            raise UnauthorizedApproverError(str(actor_id), str(request_id))
