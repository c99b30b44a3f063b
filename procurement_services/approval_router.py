"""
ApprovalRouter -- who must approve a requester's purchase request.

Responsibility:
    Walk the approval chain one step from the requester:

    * MEMBER with a manager        -> that manager.
    * MANAGER                      -> first SENIOR_MANAGER whose *primary*
                                      department is the requester's, else the
                                      first SYSTEM_ADMIN, else None.
    * SENIOR_MANAGER, SYSTEM_ADMIN,
      or MEMBER without manager    -> None.

    None means "route for auto-resolution" and is never an error.

Architecture position:
    Services.  Read-only; performs no flush.

Invariants enforced:
    - "First" is creation order, ties broken by id.
    - A MANAGER with no department never matches a department senior
      manager and falls through to the SYSTEM_ADMIN search.

Failure modes:
    - UserNotFoundError if the requester does not exist.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from procurement_kernel.domain.dtos import Approver
from procurement_kernel.domain.types import UserRole
from procurement_kernel.exceptions import UserNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.organization import User
from procurement_kernel.selectors.organization_selector import OrganizationSelector

logger = get_logger("services.approval_router")


class ApprovalRouter:
    """Computes the next approver for a requester."""

    def __init__(self, session: Session):
        self._org = OrganizationSelector(session)

    def next_approver(self, requester_id: UUID) -> Approver | None:
        requester = self._org.get_user(requester_id)
        if requester is None:
            raise UserNotFoundError(str(requester_id))

        approver = self._resolve(requester)

        logger.debug(
            "next_approver_resolved",
            extra={
                "requester_id": str(requester_id),
                "requester_role": UserRole(requester.role).value,
                "approver_id": str(approver.id) if approver else None,
            },
        )
        return approver.to_approver() if approver else None

    def _resolve(self, requester: User) -> User | None:
        role = UserRole(requester.role)

        if role == UserRole.MEMBER:
            return requester.manager

        if role == UserRole.MANAGER:
            if requester.department_id is not None:
                senior = self._org.first_with_role(
                    UserRole.SENIOR_MANAGER,
                    department_id=requester.department_id,
                )
                if senior is not None:
                    return senior
            return self._org.first_with_role(UserRole.SYSTEM_ADMIN)

        return None
