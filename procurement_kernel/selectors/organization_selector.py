"""
Module: procurement_kernel.selectors.organization_selector
Responsibility: Read-only queries over users, departments and additional
    role grants, used by routing, authorization, stakeholder selection and
    budget alert recipient selection.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every multi-row query is ordered by (created_at, id) so that "first
      match" lookups are stable across calls and backends.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from procurement_kernel.domain.types import UserRole
from procurement_kernel.models.organization import AdditionalRole, Department, User
from procurement_kernel.selectors.base import BaseSelector


def _role_values(roles: Iterable[UserRole]) -> list[str]:
    return [UserRole(role).value for role in roles]


class OrganizationSelector(BaseSelector[User]):
    """
    Selector for the organizational hierarchy.

    Guarantees:
        - get_user() eagerly loads additional role grants.
        - Results are lists in creation order; empty when nothing matches.
    """

    def get_user(self, user_id: UUID) -> User | None:
        stmt = (
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.additional_roles))
        )
        return self.session.scalars(stmt).first()

    def get_department(self, department_id: UUID) -> Department | None:
        return self.session.get(Department, department_id)

    def first_with_role(
        self,
        role: UserRole,
        department_id: UUID | None = None,
    ) -> User | None:
        """
        First user (creation order) holding ``role`` as their primary role.

        When ``department_id`` is given the user's *primary* department must
        match it; additional grants are not considered.
        """
        stmt = select(User).where(User.role == UserRole(role).value)
        if department_id is not None:
            stmt = stmt.where(User.department_id == department_id)
        stmt = stmt.order_by(User.created_at, User.id).limit(1)
        return self.session.scalars(stmt).first()

    def users_with_roles(
        self,
        roles: Iterable[UserRole],
        department_id: UUID | None = None,
    ) -> list[User]:
        stmt = select(User).where(User.role.in_(_role_values(roles)))
        if department_id is not None:
            stmt = stmt.where(User.department_id == department_id)
        stmt = stmt.order_by(User.created_at, User.id)
        return list(self.session.scalars(stmt))

    def grant_holders(
        self,
        department_id: UUID,
        roles: Iterable[UserRole],
    ) -> list[User]:
        """Users with an additional grant of one of ``roles`` in the department."""
        stmt = (
            select(User)
            .join(AdditionalRole, AdditionalRole.user_id == User.id)
            .where(
                AdditionalRole.department_id == department_id,
                AdditionalRole.role.in_(_role_values(roles)),
            )
            .order_by(User.created_at, User.id)
        )
        return list(self.session.scalars(stmt).unique())

    def system_admins(self) -> list[User]:
        return self.users_with_roles([UserRole.SYSTEM_ADMIN])
